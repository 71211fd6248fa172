"""
3D vector helpers.

Vectors are plain numpy arrays whose last axis has length 3, so every helper
works on a single vector of shape (3,) and on a batch of shape (n, 3) alike.
"""

from __future__ import annotations

from typing import Iterable, Mapping

import numpy as np

ZERO = np.zeros(3)


def vec3(value: Iterable[float] | Mapping[str, float] | np.ndarray) -> np.ndarray:
    """Build a float64 vector from a sequence or an {x, y, z} mapping."""
    if isinstance(value, Mapping):
        value = (value["x"], value["y"], value["z"])
    v = np.array(value, dtype=float)
    if v.shape != (3,):
        raise ValueError(f"Expected 3 components, got shape {v.shape}")
    return v


def dot(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.sum(a * b, axis=-1)


def cross(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.cross(a, b)


def norm(a: np.ndarray) -> np.ndarray:
    return np.sqrt(dot(a, a))


def normalize(a: np.ndarray, eps: float = 1e-12) -> np.ndarray:
    """Unit vector(s) along ``a``; zero-length inputs stay zero."""
    length = norm(a)
    safe = np.where(length > eps, length, 1.0)
    return a / safe[..., None]


def radial_component(a: np.ndarray, unit: np.ndarray) -> np.ndarray:
    """Component of ``a`` parallel to the unit vector(s) ``unit``."""
    return dot(a, unit)[..., None] * unit


def project_onto_plane(a: np.ndarray, unit_normal: np.ndarray) -> np.ndarray:
    """Remove the component of ``a`` along ``unit_normal``."""
    return a - radial_component(a, unit_normal)
