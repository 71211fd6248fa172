"""
Magnetic pendulum system description.

Holds the immutable inputs of a render: the pendulum, the magnet layout and
the global physical constants, plus validation and loading from the JSON
layout file:

    {
        "pendulum": {"suspension_point": {"x": 0, "y": 0, "z": 1.0},
                     "mass": 1.0, "approximate": "Rigour"},
        "magnets": [{"position": {"x": 0.5, "y": 0, "z": -0.1},
                     "velocity": {"x": 0, "y": 0, "z": 0},
                     "direction": "Positive", "strength": 0.5}]
    }
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Sequence, Tuple

import numpy as np

import config
from geometry import ZERO, norm, vec3

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """The pendulum/magnet layout cannot be simulated."""


class NumericalInstabilityError(ArithmeticError):
    """Integration produced a non-finite position or velocity."""


class ApproximationMode(Enum):
    SMALL_ANGLE = "SmallAngle"
    RIGOUR = "Rigour"


class MagnetDirection(Enum):
    POSITIVE = "Positive"  # attracts
    NEGATIVE = "Negative"  # repels

    @property
    def sign(self) -> float:
        return 1.0 if self is MagnetDirection.POSITIVE else -1.0


def _frozen_vector(value) -> np.ndarray:
    v = vec3(value)
    v.setflags(write=False)
    return v


@dataclass(frozen=True, eq=False)
class Magnet:
    position: np.ndarray
    direction: MagnetDirection
    strength: float
    # Accepted for layout compatibility; magnets never move.
    velocity: np.ndarray = field(default_factory=lambda: ZERO.copy())

    def __post_init__(self):
        object.__setattr__(self, "position", _frozen_vector(self.position))
        object.__setattr__(self, "velocity", _frozen_vector(self.velocity))
        object.__setattr__(self, "strength", float(self.strength))


@dataclass(frozen=True, eq=False)
class PendulumConfig:
    suspension_point: np.ndarray
    mass: float
    approximation: ApproximationMode
    rod_length: float | None = None
    friction: float = config.FRICTION

    def __post_init__(self):
        object.__setattr__(self, "suspension_point", _frozen_vector(self.suspension_point))
        object.__setattr__(self, "mass", float(self.mass))
        object.__setattr__(self, "friction", float(self.friction))
        if self.rod_length is None:
            # Bob's lowest point sits on the z = 0 plane.
            object.__setattr__(self, "rod_length", float(self.suspension_point[2]))
        else:
            object.__setattr__(self, "rod_length", float(self.rod_length))

    @property
    def rest_point(self) -> np.ndarray:
        """Lowest point of the swing, directly below the suspension point."""
        return self.suspension_point - np.array([0.0, 0.0, self.rod_length])


@dataclass(frozen=True, eq=False)
class MagneticPendulumSystem:
    """Everything the force model needs; shared read-only by all workers."""

    pendulum: PendulumConfig
    magnets: Tuple[Magnet, ...]
    gravity: float = config.GRAVITY
    force_exponent: float = config.FORCE_EXPONENT
    softening: float = config.SINGULARITY_EPSILON

    def __post_init__(self):
        object.__setattr__(self, "magnets", tuple(self.magnets))
        validate_system(self)

    @property
    def magnet_positions(self) -> np.ndarray:
        return np.array([m.position for m in self.magnets]).reshape(-1, 3)

    @property
    def magnet_strengths(self) -> np.ndarray:
        """Signed strengths: positive attracts, negative repels."""
        return np.array([m.direction.sign * m.strength for m in self.magnets])

    def reordered(self, order: Sequence[int]) -> "MagneticPendulumSystem":
        return MagneticPendulumSystem(
            pendulum=self.pendulum,
            magnets=tuple(self.magnets[i] for i in order),
            gravity=self.gravity,
            force_exponent=self.force_exponent,
            softening=self.softening,
        )


def _require_finite(name: str, value) -> None:
    if not np.all(np.isfinite(value)):
        raise ConfigurationError(f"{name} must be finite, got {value}")


def validate_system(system: MagneticPendulumSystem) -> None:
    """Raise ConfigurationError if the layout cannot be rendered."""
    p = system.pendulum
    if not isinstance(p.approximation, ApproximationMode):
        raise ConfigurationError(f"Unknown approximation mode: {p.approximation!r}")
    _require_finite("suspension_point", p.suspension_point)
    _require_finite("mass", p.mass)
    if p.mass <= 0:
        raise ConfigurationError(f"Pendulum mass must be positive, got {p.mass}")
    _require_finite("rod_length", p.rod_length)
    if p.rod_length <= 0:
        raise ConfigurationError(f"Rod length must be positive, got {p.rod_length}")
    _require_finite("friction", p.friction)
    if p.friction < 0:
        raise ConfigurationError(f"Friction must be non-negative, got {p.friction}")
    if not math.isfinite(system.gravity) or system.gravity <= 0:
        raise ConfigurationError(f"Gravity must be positive, got {system.gravity}")
    if not math.isfinite(system.force_exponent) or system.force_exponent <= 0:
        raise ConfigurationError(f"Force exponent must be positive, got {system.force_exponent}")
    if not system.softening > 0:
        raise ConfigurationError(f"Softening distance must be positive, got {system.softening}")
    if not system.magnets:
        raise ConfigurationError("At least one magnet is required")

    rest = p.rest_point
    for i, magnet in enumerate(system.magnets):
        if not isinstance(magnet.direction, MagnetDirection):
            raise ConfigurationError(f"Magnet {i}: unknown direction {magnet.direction!r}")
        _require_finite(f"Magnet {i} position", magnet.position)
        _require_finite(f"Magnet {i} strength", magnet.strength)
        if magnet.strength <= 0:
            raise ConfigurationError(f"Magnet {i}: strength must be positive, got {magnet.strength}")
        if norm(magnet.position - rest) < system.softening:
            raise ConfigurationError(
                f"Magnet {i} sits on the pendulum's rest point {rest.tolist()}; "
                "place it below the swing surface"
            )


def _parse_enum(enum_cls, value: Any, what: str):
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ConfigurationError(f"Unknown {what} {value!r} (expected one of: {choices})") from None


def system_from_dict(
    data: Mapping[str, Any],
    gravity: float = config.GRAVITY,
    force_exponent: float = config.FORCE_EXPONENT,
) -> MagneticPendulumSystem:
    """Build and validate a system from the decoded JSON layout."""
    try:
        pend = data["pendulum"]
        pendulum = PendulumConfig(
            suspension_point=pend["suspension_point"],
            mass=pend["mass"],
            approximation=_parse_enum(ApproximationMode, pend["approximate"], "approximation"),
            rod_length=pend.get("rod_length"),
            friction=pend.get("friction", config.FRICTION),
        )
        magnets = []
        for i, entry in enumerate(data["magnets"]):
            magnet = Magnet(
                position=entry["position"],
                direction=_parse_enum(MagnetDirection, entry["direction"], "magnet direction"),
                strength=entry["strength"],
                velocity=entry.get("velocity", (0.0, 0.0, 0.0)),
            )
            if np.any(magnet.velocity != 0):
                logger.warning("Magnet %d has a velocity %s; magnets are static and it will be ignored",
                               i, magnet.velocity.tolist())
            magnets.append(magnet)
    except KeyError as err:
        raise ConfigurationError(f"Missing field in system config: {err}") from err
    except (TypeError, ValueError) as err:
        if isinstance(err, ConfigurationError):
            raise
        raise ConfigurationError(f"Malformed system config: {err}") from err

    return MagneticPendulumSystem(
        pendulum=pendulum,
        magnets=tuple(magnets),
        gravity=gravity,
        force_exponent=force_exponent,
    )


def load_system_config(file_path: str | Path = config.SYSTEM_CONFIG_FILE, **kwargs) -> MagneticPendulumSystem:
    """Read a JSON layout file and return the validated system."""
    path = Path(file_path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as err:
        raise ConfigurationError(f"System config not found: {path}") from err
    except json.JSONDecodeError as err:
        raise ConfigurationError(f"System config {path} is not valid JSON: {err}") from err

    system = system_from_dict(data, **kwargs)
    logger.info("Loaded %d magnets from %s (%s mode)",
                len(system.magnets), path, system.pendulum.approximation.value)
    return system
