"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from pendulum_system import (  # noqa: E402
    ApproximationMode,
    Magnet,
    MagnetDirection,
    MagneticPendulumSystem,
    PendulumConfig,
)
from simulator import SimConfig  # noqa: E402

SQRT3_4 = 0.25 * np.sqrt(3.0)


def make_system(mode, magnets, friction=0.0, suspension=(0.0, 0.0, 1.0), mass=1.0, **kwargs):
    pendulum = PendulumConfig(
        suspension_point=suspension,
        mass=mass,
        approximation=mode,
        friction=friction,
    )
    return MagneticPendulumSystem(
        pendulum=pendulum,
        magnets=tuple(Magnet(position=p, direction=d, strength=s) for p, d, s in magnets),
        **kwargs,
    )


@pytest.fixture
def single_magnet_system():
    """One magnet directly below the suspension point, no friction, small-angle swing."""
    return make_system(
        ApproximationMode.SMALL_ANGLE,
        [((0.0, 0.0, -0.2), MagnetDirection.POSITIVE, 0.1)],
    )


@pytest.fixture
def three_magnet_system():
    """Three attracting magnets on a circle, small-angle swing with drag."""
    return make_system(
        ApproximationMode.SMALL_ANGLE,
        [
            ((0.5, 0.0, -0.1), MagnetDirection.POSITIVE, 0.5),
            ((-0.25, SQRT3_4, -0.1), MagnetDirection.POSITIVE, 0.5),
            ((-0.25, -SQRT3_4, -0.1), MagnetDirection.POSITIVE, 0.5),
        ],
        friction=0.3,
    )


@pytest.fixture
def symmetric_rigour_system():
    """Two equal magnets mirrored about x = 0 under a rigid rod, with drag."""
    return make_system(
        ApproximationMode.RIGOUR,
        [
            ((0.3, 0.0, -0.1), MagnetDirection.POSITIVE, 0.5),
            ((-0.3, 0.0, -0.1), MagnetDirection.POSITIVE, 0.5),
        ],
        friction=0.5,
    )


@pytest.fixture
def conservative_rigour_system():
    """Rigid rod, no drag, one weak magnet well away from the swing."""
    return make_system(
        ApproximationMode.RIGOUR,
        [((0.5, 0.0, -0.3), MagnetDirection.POSITIVE, 0.01)],
    )


@pytest.fixture
def small_sim_config():
    """Tiny image and step budget for fast end-to-end runs."""
    return SimConfig(
        time_step=0.01,
        max_steps=500,
        capture_radius=0.3,
        width=9,
        height=9,
        bounds=(-1.0, 1.0, -1.0, 1.0),
    )


@pytest.fixture
def system_factory():
    """Build a validated system from (position, direction, strength) triples."""
    return make_system
