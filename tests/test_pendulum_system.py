"""Tests for layout validation and loading."""

import json
import logging

import numpy as np
import pytest

from pendulum_system import (
    ApproximationMode,
    ConfigurationError,
    Magnet,
    MagnetDirection,
    MagneticPendulumSystem,
    PendulumConfig,
    load_system_config,
    system_from_dict,
)


def _layout(**pendulum_overrides):
    pendulum = {
        "suspension_point": {"x": 0.0, "y": 0.0, "z": 1.0},
        "mass": 1.0,
        "approximate": "Rigour",
    }
    pendulum.update(pendulum_overrides)
    return {
        "pendulum": pendulum,
        "magnets": [
            {
                "position": {"x": 0.5, "y": 0.0, "z": -0.1},
                "velocity": {"x": 0.0, "y": 0.0, "z": 0.0},
                "direction": "Positive",
                "strength": 0.1,
            },
            {
                "position": [-0.5, 0.0, -0.1],
                "velocity": [0.0, 0.0, 0.0],
                "direction": "Negative",
                "strength": 0.2,
            },
        ],
    }


class TestValidation:
    """Invalid layouts are rejected before any simulation."""

    def _pendulum(self, **kwargs):
        params = dict(suspension_point=(0, 0, 1), mass=1.0, approximation=ApproximationMode.RIGOUR)
        params.update(kwargs)
        return PendulumConfig(**params)

    def _magnet(self, position=(0.5, 0.0, -0.1), strength=0.1):
        return Magnet(position=position, direction=MagnetDirection.POSITIVE, strength=strength)

    def test_rod_length_defaults_to_suspension_height(self):
        assert self._pendulum(suspension_point=(0, 0, 2.5)).rod_length == 2.5

    @pytest.mark.parametrize("mass", [0.0, -1.0, float("nan")])
    def test_bad_mass(self, mass):
        with pytest.raises(ConfigurationError):
            MagneticPendulumSystem(self._pendulum(mass=mass), (self._magnet(),))

    def test_bad_strength(self):
        with pytest.raises(ConfigurationError):
            MagneticPendulumSystem(self._pendulum(), (self._magnet(strength=0.0),))

    def test_no_magnets(self):
        with pytest.raises(ConfigurationError):
            MagneticPendulumSystem(self._pendulum(), ())

    def test_negative_friction(self):
        with pytest.raises(ConfigurationError):
            MagneticPendulumSystem(self._pendulum(friction=-0.1), (self._magnet(),))

    def test_magnet_on_rest_point(self):
        with pytest.raises(ConfigurationError, match="rest point"):
            MagneticPendulumSystem(self._pendulum(), (self._magnet(position=(0.0, 0.0, 0.0)),))

    def test_unknown_mode(self):
        with pytest.raises(ConfigurationError):
            MagneticPendulumSystem(self._pendulum(approximation="Sloppy"), (self._magnet(),))

    def test_configuration_error_is_value_error(self):
        assert issubclass(ConfigurationError, ValueError)

    def test_system_is_immutable(self):
        system = MagneticPendulumSystem(self._pendulum(), (self._magnet(),))
        with pytest.raises(Exception):
            system.gravity = 1.0
        with pytest.raises(ValueError):
            system.magnets[0].position[0] = 3.0


class TestSystemFromDict:
    """Decoding the JSON layout."""

    def test_valid_layout(self):
        system = system_from_dict(_layout(friction=0.3))
        assert system.pendulum.approximation is ApproximationMode.RIGOUR
        assert system.pendulum.friction == 0.3
        assert [m.direction for m in system.magnets] == [MagnetDirection.POSITIVE, MagnetDirection.NEGATIVE]
        np.testing.assert_allclose(system.magnet_strengths, [0.1, -0.2])

    def test_unknown_approximation(self):
        with pytest.raises(ConfigurationError, match="approximation"):
            system_from_dict(_layout(approximate="Roughly"))

    def test_unknown_direction(self):
        layout = _layout()
        layout["magnets"][0]["direction"] = "Sideways"
        with pytest.raises(ConfigurationError, match="direction"):
            system_from_dict(layout)

    def test_missing_field(self):
        layout = _layout()
        del layout["pendulum"]["mass"]
        with pytest.raises(ConfigurationError, match="mass"):
            system_from_dict(layout)

    def test_malformed_vector(self):
        layout = _layout()
        layout["magnets"][0]["position"] = [1.0, 2.0]
        with pytest.raises(ConfigurationError):
            system_from_dict(layout)

    def test_magnet_velocity_is_ignored_with_warning(self, caplog):
        layout = _layout()
        layout["magnets"][0]["velocity"] = {"x": 1.0, "y": 0.0, "z": 0.0}
        with caplog.at_level(logging.WARNING, logger="pendulum_system"):
            system = system_from_dict(layout)
        assert "static" in caplog.text
        np.testing.assert_array_equal(system.magnets[0].velocity, [1.0, 0.0, 0.0])


class TestLoadSystemConfig:
    """Reading layout files from disk."""

    def test_load(self, tmp_path):
        path = tmp_path / "layout.json"
        path.write_text(json.dumps(_layout()), encoding="utf-8")
        system = load_system_config(path)
        assert len(system.magnets) == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_system_config(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="valid JSON"):
            load_system_config(path)
