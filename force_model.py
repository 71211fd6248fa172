"""
Force model of the magnetic pendulum.

State vectors are laid out as u = [x, y, z, vx, vy, vz]; every function here
accepts a single state of shape (6,) or a batch of shape (n, 6).
"""

from __future__ import annotations

from typing import Callable

import numpy as np

from approximation import model_for
from geometry import norm
from pendulum_system import MagneticPendulumSystem


def magnetic_force(
    p: np.ndarray,
    positions: np.ndarray,
    strengths: np.ndarray,
    exponent: float,
    softening: float,
) -> np.ndarray:
    """
    Sum of the magnet forces on the bob at ``p``.

    Each magnet contributes strength / d**exponent along the bob-to-magnet
    direction; ``strengths`` carry the polarity sign, so repelling magnets
    push instead of pull. Distances are floored at ``softening``.
    """
    diff = positions - p[..., None, :]  # (..., M, 3), bob -> magnet
    dist = np.maximum(norm(diff), softening)
    scale = strengths / dist ** (exponent + 1)
    return np.sum(scale[..., None] * diff, axis=-2)


def damping_force(v: np.ndarray, friction: float) -> np.ndarray:
    return -friction * v


def _applied_force(p, v, model, positions, strengths, exponent, softening, friction):
    return (
        model.restoring_force(p)
        + magnetic_force(p, positions, strengths, exponent, softening)
        + damping_force(v, friction)
    )


def net_force(u: np.ndarray, system: MagneticPendulumSystem, model=None) -> np.ndarray:
    """Gravity (or restoring spring) + magnets + drag acting on state ``u``."""
    if model is None:
        model = model_for(system)
    return _applied_force(
        u[..., :3], u[..., 3:], model,
        system.magnet_positions, system.magnet_strengths,
        system.force_exponent, system.softening, system.pendulum.friction,
    )


def build_equations_of_motion(system: MagneticPendulumSystem) -> Callable:
    """
    Build the right-hand side f(t, u) for ``system``.

    Magnet arrays and the approximation model are captured once, so the
    returned closure reads nothing mutable and can be shipped to worker
    processes with dill. The force is the one ``net_force`` reports.
    """

    model = model_for(system)
    positions = system.magnet_positions
    strengths = system.magnet_strengths
    exponent = system.force_exponent
    softening = system.softening
    friction = system.pendulum.friction
    mass = system.pendulum.mass

    def equations_of_motion(t: float, u: np.ndarray) -> np.ndarray:
        """Return time derivative of state [position, velocity]."""

        p = u[..., :3]
        v = u[..., 3:]

        force = _applied_force(p, v, model, positions, strengths, exponent, softening, friction)
        acceleration = model.project_acceleration(p, v, force / mass)

        return np.concatenate([v, acceleration], axis=-1)

    return equations_of_motion
