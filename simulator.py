"""
Magnetic Pendulum Simulation
Integrate pendulum trajectories from pixel initial conditions until capture
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Optional, Tuple

import numpy as np

import config
from approximation import model_for
from energy import CaptureDetector, compute_escape_thresholds, suggest_simulation_bounds
from force_model import build_equations_of_motion
from integrator import rk4_step
from pendulum_system import ConfigurationError, MagneticPendulumSystem

logger = logging.getLogger(__name__)


class EndReason(IntEnum):
    CAPTURED = 0
    MAX_STEPS = 1
    OUT_OF_BOUNDS = 2   # left the escape box around the view window
    UNREACHABLE = 3     # start point lies outside the rod's reach
    UNSTABLE = 4        # non-finite state during integration


@dataclass(frozen=True)
class SimConfig:
    time_step: float = config.TIME_STEP
    max_steps: int = config.MAX_STEPS
    capture_radius: float = config.CAPTURE_RADIUS
    check_interval: int = config.CHECK_INTERVAL
    width: int = config.WIDTH
    height: int = config.HEIGHT
    bounds: Optional[Tuple[float, float, float, float]] = None  # (min_x, max_x, min_y, max_y)

    def __post_init__(self):
        if not self.time_step > 0:
            raise ConfigurationError(f"time_step must be positive, got {self.time_step}")
        if int(self.max_steps) < 1:
            raise ConfigurationError(f"max_steps must be at least 1, got {self.max_steps}")
        if not self.capture_radius > 0:
            raise ConfigurationError(f"capture_radius must be positive, got {self.capture_radius}")
        if int(self.check_interval) < 1:
            raise ConfigurationError(f"check_interval must be at least 1, got {self.check_interval}")
        if int(self.width) < 1 or int(self.height) < 1:
            raise ConfigurationError(f"Image size must be positive, got {self.width}x{self.height}")
        if self.bounds is not None:
            min_x, max_x, min_y, max_y = self.bounds
            if not (min_x < max_x and min_y < max_y):
                raise ConfigurationError(f"Degenerate bounds {self.bounds}")


@dataclass(frozen=True, eq=False)
class PixelResult:
    magnet_index: Optional[int]
    steps: int
    reason: EndReason
    final_position: np.ndarray

    @property
    def resolved(self) -> bool:
        return self.magnet_index is not None


@dataclass(frozen=True, eq=False)
class TrajectoryBatch:
    """Outcome of a batch of trajectories; magnet_index is -1 where unresolved."""

    magnet_index: np.ndarray
    steps: np.ndarray
    reason: np.ndarray
    final_state: np.ndarray


@dataclass(frozen=True, eq=False)
class RenderContext:
    """
    Everything a worker needs to simulate any pixel.

    Built once by ``prepare_context`` and never mutated afterwards, so it can
    be shared by every row of the render without synchronization.
    """

    system: MagneticPendulumSystem
    sim_config: SimConfig
    thresholds: np.ndarray
    bounds: Tuple[float, float, float, float]
    equations_of_motion: Callable
    model: object
    detector: CaptureDetector

    @property
    def width(self) -> int:
        return int(self.sim_config.width)

    @property
    def height(self) -> int:
        return int(self.sim_config.height)

    @property
    def escape_box(self) -> Tuple[float, float, float, float]:
        min_x, max_x, min_y, max_y = self.bounds
        cx, cy = 0.5 * (min_x + max_x), 0.5 * (min_y + max_y)
        hx = 0.5 * (max_x - min_x) * config.ESCAPE_BOX_SCALE
        hy = 0.5 * (max_y - min_y) * config.ESCAPE_BOX_SCALE
        return cx - hx, cx + hx, cy - hy, cy + hy


def prepare_context(
    system: MagneticPendulumSystem,
    sim_config: SimConfig | None = None,
    thresholds: np.ndarray | None = None,
) -> RenderContext:
    """Precompute escape thresholds, view bounds and equations for a render."""
    if sim_config is None:
        sim_config = SimConfig()
    if thresholds is None:
        thresholds = compute_escape_thresholds(system)
    thresholds = np.array(thresholds, dtype=float)
    thresholds.setflags(write=False)

    bounds = sim_config.bounds if sim_config.bounds is not None else suggest_simulation_bounds(system)
    model = model_for(system)
    detector = CaptureDetector(system, thresholds, sim_config.capture_radius, model=model)

    logger.info("Physics bounds: X[%.2f, %.2f], Y[%.2f, %.2f]", *bounds)
    logger.info("Escape thresholds: %s", np.array2string(thresholds, precision=4))

    return RenderContext(
        system=system,
        sim_config=sim_config,
        thresholds=thresholds,
        bounds=tuple(float(b) for b in bounds),
        equations_of_motion=build_equations_of_motion(system),
        model=model,
        detector=detector,
    )


def pixel_to_plane(context: RenderContext, row, col) -> Tuple[np.ndarray, np.ndarray]:
    """Map pixel (row, col) linearly onto the physical (x, y) window; row 0 is the top."""
    min_x, max_x, min_y, max_y = context.bounds
    x = min_x + (max_x - min_x) * (np.asarray(col, dtype=float) / context.width)
    y = max_y - (max_y - min_y) * (np.asarray(row, dtype=float) / context.height)
    return x, y


def initial_states(context: RenderContext, rows, cols) -> np.ndarray:
    """Resting states for the given pixels; NaN rows where the bob cannot start."""
    x, y = pixel_to_plane(context, rows, cols)
    positions = context.model.surface_point(x, y).reshape(-1, 3)
    return np.concatenate([positions, np.zeros_like(positions)], axis=1)


def run_trajectories(context: RenderContext, starts: np.ndarray) -> TrajectoryBatch:
    """
    Integrate a batch of trajectories until each is captured or finished.

    Every step applies RK4, the mode's constraint projection and a finite
    check; every ``check_interval`` steps the bounds and capture tests run.
    Finished trajectories drop out of the active set, and a failure in one
    trajectory never affects the others.
    """
    cfg = context.sim_config
    h = cfg.time_step
    max_steps = int(cfg.max_steps)
    interval = int(cfg.check_interval)
    fun = context.equations_of_motion
    model = context.model
    box_min_x, box_max_x, box_min_y, box_max_y = context.escape_box

    final = np.array(starts, dtype=float).reshape(-1, 6)
    n = final.shape[0]
    magnet_index = np.full(n, -1, dtype=np.int64)
    steps = np.zeros(n, dtype=np.int64)
    reason = np.full(n, EndReason.MAX_STEPS, dtype=np.int8)

    unreachable = ~np.isfinite(final).all(axis=1)
    reason[unreachable] = EndReason.UNREACHABLE

    active = np.flatnonzero(~unreachable)
    state = final[active]

    with np.errstate(over='ignore', invalid='ignore', divide='ignore'):
        for step in range(1, max_steps + 1):
            if active.size == 0:
                break

            state = rk4_step(fun, (step - 1) * h, state, h)
            state = model.constrain(state)
            done = np.zeros(active.size, dtype=bool)

            bad = ~np.isfinite(state).all(axis=1)
            if bad.any():
                logger.debug("%d trajectories became unstable at step %d", int(bad.sum()), step)
                reason[active[bad]] = EndReason.UNSTABLE
                steps[active[bad]] = step
                done |= bad

            if step % interval == 0:
                x, y = state[:, 0], state[:, 1]
                outside = ~done & ((x < box_min_x) | (x > box_max_x) | (y < box_min_y) | (y > box_max_y))
                reason[active[outside]] = EndReason.OUT_OF_BOUNDS
                steps[active[outside]] = step
                done |= outside

                hit = context.detector.check(state)
                captured = ~done & (hit >= 0)
                magnet_index[active[captured]] = hit[captured]
                reason[active[captured]] = EndReason.CAPTURED
                steps[active[captured]] = step
                done |= captured

            if done.any():
                final[active[done]] = state[done]
                keep = ~done
                active = active[keep]
                state = state[keep]

    final[active] = state
    steps[active] = max_steps

    return TrajectoryBatch(magnet_index=magnet_index, steps=steps, reason=reason, final_state=final)


def simulate_pixel(context: RenderContext, row: int, col: int) -> PixelResult:
    """Simulate the trajectory released from pixel (row, col)."""
    batch = run_trajectories(context, initial_states(context, row, col))
    index = int(batch.magnet_index[0])
    return PixelResult(
        magnet_index=index if index >= 0 else None,
        steps=int(batch.steps[0]),
        reason=EndReason(int(batch.reason[0])),
        final_position=batch.final_state[0, :3].copy(),
    )


def simulate_row(context: RenderContext, row: int) -> TrajectoryBatch:
    """Simulate every pixel of one image row as a single batch."""
    cols = np.arange(context.width)
    return run_trajectories(context, initial_states(context, np.full(cols.shape, row), cols))
