"""
Pixel coloring: hue per magnet, lightness per convergence speed.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

import config


def hsl_to_rgb(h, s, l) -> np.ndarray:
    """
    Convert HSL to 8-bit RGB.

    ``h`` is in degrees, ``s`` and ``l`` in [0, 1]; arguments broadcast and the
    result has an extra trailing axis of length 3 (dtype uint8).
    """
    h, s, l = np.broadcast_arrays(np.asarray(h, dtype=float) % 360.0,
                                  np.asarray(s, dtype=float),
                                  np.asarray(l, dtype=float))
    c = (1.0 - np.abs(2.0 * l - 1.0)) * s
    x = c * (1.0 - np.abs((h / 60.0) % 2.0 - 1.0))
    m = l - c / 2.0
    zero = np.zeros_like(c)

    sector = np.floor(h / 60.0).astype(int)
    r = np.choose(sector, [c, x, zero, zero, x, c], mode='clip')
    g = np.choose(sector, [x, c, c, x, zero, zero], mode='clip')
    b = np.choose(sector, [zero, zero, x, c, c, x], mode='clip')

    rgb = np.stack([r + m, g + m, b + m], axis=-1)
    return np.clip(np.round(rgb * 255.0), 0, 255).astype(np.uint8)


def magnet_hues(n_magnets: int) -> np.ndarray:
    """Evenly spaced hues, magnet ``i`` of ``n`` at ``i * 360 / n`` degrees."""
    return np.arange(n_magnets) * (360.0 / n_magnets)


def lightness(steps, max_steps: int) -> np.ndarray:
    """Bright for fast captures, darker near the step budget; never increasing in ``steps``."""
    ratio = np.clip(np.asarray(steps, dtype=float) / max_steps, 0.0, 1.0)
    return config.LIGHTNESS_MAX * np.maximum(1.0 - np.sqrt(ratio), config.LIGHTNESS_FLOOR)


def colorize(
    magnet_index: np.ndarray,
    steps: np.ndarray,
    n_magnets: int,
    max_steps: int,
    saturation: float = config.SATURATION,
    background: Sequence[int] = config.BACKGROUND_COLOR,
) -> np.ndarray:
    """
    RGB buffer for a grid of results.

    ``magnet_index`` holds -1 for unresolved pixels; those get ``background``
    instead of any magnet's hue.
    """
    magnet_index = np.asarray(magnet_index)
    resolved = magnet_index >= 0
    hue = magnet_hues(n_magnets)[np.where(resolved, magnet_index, 0)]
    rgb = hsl_to_rgb(hue, saturation, lightness(steps, max_steps))
    rgb[~resolved] = np.asarray(background, dtype=np.uint8)
    return rgb


def color_for(
    magnet_index: Optional[int],
    steps: int,
    n_magnets: int,
    max_steps: int,
    background: Sequence[int] = config.BACKGROUND_COLOR,
) -> tuple:
    """Color of a single pixel result."""
    index = -1 if magnet_index is None else magnet_index
    rgb = colorize(np.array([index]), np.array([steps]), n_magnets, max_steps, background=background)
    return tuple(int(c) for c in rgb[0])
