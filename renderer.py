"""
Parallel fractal renderer
Fan rows of the pixel grid out over a process pool and assemble the image
"""

from __future__ import annotations

import logging
import multiprocessing as mp
import time
from dataclasses import dataclass
from typing import Iterable, Tuple

import dill
import numpy as np

from coloring import colorize
from simulator import EndReason, RenderContext, simulate_row

logger = logging.getLogger(__name__)

_worker_context = None


def _worker_init(context_blob: bytes) -> None:
    """Initializer for worker processes; restores the shared read-only context."""
    global _worker_context
    _worker_context = dill.loads(context_blob)


def _worker_simulate_row(row: int) -> Tuple[int, np.ndarray, np.ndarray, np.ndarray]:
    """Simulate a single image row inside a worker process."""
    if _worker_context is None:
        raise RuntimeError("Worker context not initialized")

    batch = simulate_row(_worker_context, row)
    return row, batch.magnet_index, batch.steps, batch.reason


@dataclass(frozen=True, eq=False)
class RenderResult:
    magnet_index: np.ndarray  # (height, width), -1 = unresolved
    steps: np.ndarray         # (height, width)
    reason: np.ndarray        # (height, width), EndReason values
    rgb: np.ndarray           # (height, width, 3) uint8, row-major

    def reason_counts(self) -> dict:
        return {r.name: int(np.count_nonzero(self.reason == r)) for r in EndReason}


def render_fractal(
    context: RenderContext,
    processes: int | None = None,
    progress: bool = True,
) -> RenderResult:
    """
    Render the basin-of-attraction image for ``context``.

    Parameters:
    -----------
    context : RenderContext
        Precomputed, immutable render inputs (see ``simulator.prepare_context``)
    processes : int | None
        Number of worker processes (default: cpu_count, sequential when <=1)
    progress : bool
        Log progress roughly every 10% of rows

    Returns:
    --------
    RenderResult with per-pixel magnet index, step count, end reason and the
    RGB buffer.
    """
    width, height = context.width, context.height
    magnet_index = np.full((height, width), -1, dtype=np.int64)
    steps = np.zeros((height, width), dtype=np.int64)
    reason = np.zeros((height, width), dtype=np.int8)

    cpu_total = mp.cpu_count() or 1
    processes = processes or min(height, cpu_total)
    processes = max(1, min(processes, height))
    report_every = max(1, height // 10)

    logger.info("Rendering %dx%d pixels...", width, height)
    tic = time.time()

    def store(completed: int, row: int, idx: np.ndarray, n_steps: np.ndarray, why: np.ndarray) -> None:
        # Each row slot is written exactly once.
        magnet_index[row] = idx
        steps[row] = n_steps
        reason[row] = why
        if progress and (completed % report_every == 0 or completed == height):
            logger.info("Progress: %d/%d rows", completed, height)

    if processes == 1:
        for completed, row in enumerate(range(height), start=1):
            batch = simulate_row(context, row)
            store(completed, row, batch.magnet_index, batch.steps, batch.reason)
    else:
        logger.info("Using %d parallel workers...", processes)
        context_blob = dill.dumps(context)
        ctx = mp.get_context("spawn")
        with ctx.Pool(
            processes=processes,
            initializer=_worker_init,
            initargs=(context_blob,),
        ) as pool:
            row_iter: Iterable[Tuple[int, np.ndarray, np.ndarray, np.ndarray]] = pool.imap_unordered(
                _worker_simulate_row, range(height)
            )
            for completed, (row, idx, n_steps, why) in enumerate(row_iter, start=1):
                store(completed, row, idx, n_steps, why)

    toc = time.time()
    logger.info("Simulation completed in %.1f seconds", toc - tic)

    rgb = colorize(
        magnet_index,
        steps,
        n_magnets=len(context.system.magnets),
        max_steps=int(context.sim_config.max_steps),
    )
    result = RenderResult(magnet_index=magnet_index, steps=steps, reason=reason, rgb=rgb)
    logger.info("End reasons: %s", result.reason_counts())
    return result
