"""
Fractal Output
Write the rendered color buffer as an image and keep the raw result grids
"""

from __future__ import annotations

import logging
from pathlib import Path

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np

import config

logger = logging.getLogger(__name__)


def save_image(rgb: np.ndarray, filename: str | Path = config.OUTPUT_FILENAME) -> Path:
    """Write an (height, width, 3) uint8 buffer as a PNG."""
    rgb = np.asarray(rgb)
    if rgb.ndim != 3 or rgb.shape[2] != 3:
        raise ValueError(f"Expected an (height, width, 3) RGB buffer, got shape {rgb.shape}")

    path = Path(filename)
    path.parent.mkdir(parents=True, exist_ok=True)
    plt.imsave(path, np.ascontiguousarray(rgb, dtype=np.uint8))
    logger.info("Saved image to %s", path)
    return path


def save_results(result, context, filename: str | Path = config.RESULTS_FILENAME) -> Path:
    """Save the per-pixel grids and the render window to an .npz archive."""
    path = Path(filename)
    path.parent.mkdir(parents=True, exist_ok=True)
    np.savez(
        path,
        magnet_index=result.magnet_index,
        steps=result.steps,
        reason=result.reason,
        rgb=result.rgb,
        bounds=np.array(context.bounds),
        thresholds=np.asarray(context.thresholds),
        max_steps=int(context.sim_config.max_steps),
        n_magnets=len(context.system.magnets),
    )
    logger.info("Results saved to %s", path)
    return path


def load_results(filename: str | Path = config.RESULTS_FILENAME) -> dict:
    """Load an archive written by ``save_results`` into a plain dict."""
    with np.load(filename) as data:
        results = {key: data[key] for key in data.files}
    results["max_steps"] = int(results["max_steps"])
    results["n_magnets"] = int(results["n_magnets"])
    return results
