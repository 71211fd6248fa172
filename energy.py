"""
Energy bookkeeping and capture detection.

A bob that sits inside a magnet's well with less total energy than the lowest
saddle separating that well from the others can never climb out again (drag
only removes energy), so the trajectory can be stopped and attributed to that
magnet. The saddle energies are computed once per layout by
``compute_escape_thresholds``; ``CaptureDetector`` applies the test to a batch
of states during integration.
"""

from __future__ import annotations

import logging
from typing import Tuple

import numpy as np
from scipy import ndimage

import config
from approximation import model_for
from geometry import dot, norm
from pendulum_system import ApproximationMode, MagnetDirection, MagneticPendulumSystem

logger = logging.getLogger(__name__)


def magnetic_potential(
    p: np.ndarray,
    positions: np.ndarray,
    strengths: np.ndarray,
    exponent: float,
    softening: float,
) -> np.ndarray:
    """Potential whose negative gradient is ``force_model.magnetic_force``."""
    diff = positions - p[..., None, :]
    dist = np.maximum(norm(diff), softening)
    if exponent == 1:
        terms = strengths * np.log(dist)
    else:
        terms = -strengths / ((exponent - 1) * dist ** (exponent - 1))
    return np.sum(terms, axis=-1)


def kinetic_energy(v: np.ndarray, mass: float) -> np.ndarray:
    return 0.5 * mass * dot(v, v)


def potential_energy(p: np.ndarray, system: MagneticPendulumSystem, model=None) -> np.ndarray:
    if model is None:
        model = model_for(system)
    return model.gravity_potential(p) + magnetic_potential(
        p, system.magnet_positions, system.magnet_strengths,
        system.force_exponent, system.softening,
    )


def total_energy(u: np.ndarray, system: MagneticPendulumSystem, model=None) -> np.ndarray:
    """E = T + V for a state (6,) or a batch of states (n, 6)."""
    return kinetic_energy(u[..., 3:], system.pendulum.mass) + potential_energy(u[..., :3], system, model)


# ---------------------------------------------------------------------------
# Escape thresholds
# ---------------------------------------------------------------------------

_NEIGHBORS = np.ones((3, 3), dtype=bool)  # 8-connected flooding


def _potential_map(system: MagneticPendulumSystem, model, size: int):
    """
    Potential of a resting bob on a size x size grid around the magnets.

    The grid spans the magnets and the suspension axis, padded by half their
    extent on every side. Points the bob cannot reach hold +inf.
    """
    xy = np.vstack([system.magnet_positions[:, :2], system.pendulum.suspension_point[:2]])
    lo, hi = xy.min(axis=0), xy.max(axis=0)
    pad = np.where(hi > lo, 0.5 * (hi - lo), 1.0)
    xs = np.linspace(lo[0] - pad[0], hi[0] + pad[0], size)
    ys = np.linspace(lo[1] - pad[1], hi[1] + pad[1], size)
    gx, gy = np.meshgrid(xs, ys, indexing='ij')
    values = potential_energy(model.surface_point(gx, gy), system, model)
    values = np.where(np.isfinite(values), values, np.inf)
    cells = [(int(np.argmin(np.abs(xs - p[0]))), int(np.argmin(np.abs(ys - p[1]))))
             for p in system.magnet_positions]
    return values, cells


def _escape_level(values: np.ndarray, levels: np.ndarray, source, targets) -> float:
    """
    Lowest grid level at which the region {V <= level} joins ``source`` to a target.

    This is the minimax barrier over all paths on the grid: the energy of the
    lowest pass out of the source well. +inf when no target is ever joined.
    """

    def joined(level):
        labels, _ = ndimage.label(values <= level, structure=_NEIGHBORS)
        here = labels[source]
        return here != 0 and any(labels[t] == here for t in targets)

    if not np.isfinite(values[source]) or levels.size == 0 or not joined(levels[-1]):
        return np.inf

    lo = int(np.searchsorted(levels, values[source]))
    hi = levels.size - 1
    while lo < hi:
        mid = (lo + hi) // 2
        if joined(levels[mid]):
            hi = mid
        else:
            lo = mid + 1
    return float(levels[lo])


def compute_escape_thresholds(
    system: MagneticPendulumSystem,
    grid_size: int = config.SADDLE_GRID_SIZE,
) -> np.ndarray:
    """
    Escape energy of every magnet, indexed like ``system.magnets``.

    Repelling magnets have no well and get -inf (never capture). An
    attracting magnet without another attracting magnet to escape to gets
    +inf, and so does one whose neighbors all lie outside the bob's reach.
    Otherwise the threshold is the lowest pass from its well to the well of
    any other attracting magnet, found by flooding a map of the resting
    potential. Wells that hold no magnet, such as a dip under the suspension
    axis, are passed through rather than counted as escapes.
    """
    attracting = [i for i, m in enumerate(system.magnets) if m.direction is MagnetDirection.POSITIVE]

    thresholds = np.empty(len(system.magnets))
    values = cells = levels = None
    for i, magnet in enumerate(system.magnets):
        if magnet.direction is MagnetDirection.NEGATIVE:
            thresholds[i] = -np.inf
            continue
        others = [j for j in attracting if j != i]
        if not others:
            thresholds[i] = np.inf
            continue
        if values is None:
            values, cells = _potential_map(system, model_for(system), grid_size)
            levels = np.unique(values[np.isfinite(values)])
        thresholds[i] = _escape_level(values, levels, cells[i], [cells[j] for j in others])

    logger.debug("Escape thresholds: %s", thresholds.tolist())
    return thresholds


# ---------------------------------------------------------------------------
# View bounds
# ---------------------------------------------------------------------------

def suggest_simulation_bounds(
    system: MagneticPendulumSystem,
    padding_ratio: float = config.BOUNDS_PADDING,
    height_limit_ratio: float = config.HEIGHT_LIMIT_RATIO,
) -> Tuple[float, float, float, float]:
    """
    Pick a (min_x, max_x, min_y, max_y) window covering the magnets.

    The window always contains the suspension axis and is padded by
    ``padding_ratio`` of its extent. In Rigour mode it is clipped to the
    horizontal radius the bob reaches when released from at most
    ``height_limit_ratio * rod_length`` above its rest point.
    """
    axis = system.pendulum.suspension_point[:2]
    xy = np.vstack([system.magnet_positions[:, :2], axis])
    min_x, min_y = xy.min(axis=0)
    max_x, max_y = xy.max(axis=0)

    width = max_x - min_x
    height = max_y - min_y
    pad_x = width * padding_ratio if width > 0 else 1.0
    pad_y = height * padding_ratio if height > 0 else 1.0
    bounds = [min_x - pad_x, max_x + pad_x, min_y - pad_y, max_y + pad_y]

    if system.pendulum.approximation is ApproximationMode.RIGOUR:
        length = system.pendulum.rod_length
        drop = length - length * height_limit_ratio
        if 0.0 < drop < length:
            r_limit = np.sqrt(length * length - drop * drop)
            bounds = [
                max(bounds[0], axis[0] - r_limit),
                min(bounds[1], axis[0] + r_limit),
                max(bounds[2], axis[1] - r_limit),
                min(bounds[3], axis[1] + r_limit),
            ]

    return tuple(float(b) for b in bounds)


# ---------------------------------------------------------------------------
# Capture test
# ---------------------------------------------------------------------------

class CaptureDetector:
    """Energy-based capture test against precomputed escape thresholds."""

    def __init__(
        self,
        system: MagneticPendulumSystem,
        thresholds: np.ndarray,
        capture_radius: float = config.CAPTURE_RADIUS,
        model=None,
    ):
        thresholds = np.array(thresholds, dtype=float)
        if thresholds.shape != (len(system.magnets),):
            raise ValueError(
                f"Expected {len(system.magnets)} thresholds, got shape {thresholds.shape}"
            )
        self.system = system
        self.model = model if model is not None else model_for(system)
        self.positions = system.magnet_positions
        self.thresholds = thresholds
        self.capture_radius = capture_radius

    def nearest_magnet(self, p: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Index of and distance to the closest magnet for each position."""
        dist = norm(self.positions - p[..., None, :])
        index = np.argmin(dist, axis=-1)
        return index, np.take_along_axis(dist, index[..., None], axis=-1)[..., 0]

    def energy(self, u: np.ndarray) -> np.ndarray:
        return total_energy(u, self.system, self.model)

    def check(self, u: np.ndarray) -> np.ndarray:
        """
        Capturing magnet index per state, or -1 where no capture applies.

        Both the radius and the energy comparison are inclusive.
        """
        index, dist = self.nearest_magnet(u[..., :3])
        captured = (dist <= self.capture_radius) & (self.energy(u) <= self.thresholds[index])
        return np.where(captured, index, -1)
