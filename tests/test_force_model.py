"""Tests for the force model and its consistency with the potential."""

import numpy as np
import pytest

from approximation import RigourModel, SmallAngleModel, model_for
from energy import potential_energy
from force_model import build_equations_of_motion, magnetic_force, net_force
from geometry import dot, norm
from pendulum_system import ApproximationMode, MagnetDirection


def _numeric_gradient(fun, p, eps=1e-6, axes=(0, 1, 2)):
    grad = np.zeros(3)
    for axis in axes:
        step = np.zeros(3)
        step[axis] = eps
        grad[axis] = (fun(p + step) - fun(p - step)) / (2 * eps)
    return grad


class TestMagneticForce:
    """Per-magnet attraction and repulsion."""

    def test_attraction_points_at_magnet(self):
        p = np.array([0.0, 0.0, 0.0])
        force = magnetic_force(p, np.array([[1.0, 0.0, 0.0]]), np.array([2.0]), 2, 1e-4)
        np.testing.assert_allclose(force, [2.0, 0.0, 0.0])

    def test_repulsion_flips_sign(self):
        p = np.array([0.0, 0.0, 0.0])
        force = magnetic_force(p, np.array([[0.0, 2.0, 0.0]]), np.array([-1.0]), 2, 1e-4)
        np.testing.assert_allclose(force, [0.0, -0.25, 0.0])

    def test_inverse_square(self):
        positions = np.array([[0.0, 0.0, -1.0]])
        near = norm(magnetic_force(np.zeros(3), positions, np.array([1.0]), 2, 1e-4))
        far = norm(magnetic_force(np.array([0.0, 0.0, 1.0]), positions, np.array([1.0]), 2, 1e-4))
        assert near / far == pytest.approx(4.0)

    def test_softening_keeps_force_finite(self):
        force = magnetic_force(np.zeros(3), np.array([[0.0, 0.0, 0.0]]), np.array([1.0]), 2, 1e-4)
        assert np.all(np.isfinite(force))

    def test_batched_matches_single(self):
        positions = np.array([[0.5, 0.0, -0.1], [-0.5, 0.2, -0.1]])
        strengths = np.array([0.1, -0.3])
        batch = np.array([[0.1, 0.2, 0.0], [-0.3, 0.1, 0.05]])
        together = magnetic_force(batch, positions, strengths, 2, 1e-4)
        for row, p in enumerate(batch):
            np.testing.assert_allclose(together[row], magnetic_force(p, positions, strengths, 2, 1e-4))


class TestForceIsGradientOfPotential:
    """Net conservative force equals -grad V, for both modes and several power laws."""

    @pytest.mark.parametrize("exponent", [1, 2, 3])
    def test_small_angle(self, system_factory, exponent):
        system = system_factory(
            ApproximationMode.SMALL_ANGLE,
            [((0.5, 0.0, -0.1), MagnetDirection.POSITIVE, 0.1),
             ((-0.4, 0.3, -0.2), MagnetDirection.NEGATIVE, 0.05)],
            force_exponent=exponent,
        )
        p = np.array([0.3, 0.2, 0.0])
        force = net_force(np.concatenate([p, np.zeros(3)]), system)
        grad = _numeric_gradient(lambda q: potential_energy(q, system), p, axes=(0, 1))
        np.testing.assert_allclose(force[:2], -grad[:2], rtol=1e-6, atol=1e-8)

    @pytest.mark.parametrize("exponent", [1, 2, 3])
    def test_rigour(self, system_factory, exponent):
        system = system_factory(
            ApproximationMode.RIGOUR,
            [((0.5, 0.0, -0.1), MagnetDirection.POSITIVE, 0.1)],
            force_exponent=exponent,
        )
        p = np.array([0.2, -0.1, 0.03])
        force = net_force(np.concatenate([p, np.zeros(3)]), system)
        grad = _numeric_gradient(lambda q: potential_energy(q, system), p)
        np.testing.assert_allclose(force, -grad, rtol=1e-6, atol=1e-8)


class TestDamping:
    """Linear drag opposes the velocity."""

    def test_drag(self, three_magnet_system):
        p = np.array([0.1, 0.1, 0.0])
        still = net_force(np.concatenate([p, np.zeros(3)]), three_magnet_system)
        moving = net_force(np.concatenate([p, [1.0, -2.0, 0.0]]), three_magnet_system)
        np.testing.assert_allclose(moving - still, [-0.3, 0.6, 0.0])


class TestEquationsOfMotion:
    """The closure handed to the integrator."""

    def test_mode_registry(self, single_magnet_system, symmetric_rigour_system):
        assert isinstance(model_for(single_magnet_system), SmallAngleModel)
        assert isinstance(model_for(symmetric_rigour_system), RigourModel)

    def test_small_angle_stays_planar(self, three_magnet_system):
        fun = build_equations_of_motion(three_magnet_system)
        du = fun(0.0, np.array([0.2, -0.3, 0.0, 0.5, 0.1, 0.0]))
        assert du[2] == 0.0 and du[5] == 0.0

    def test_rigour_acceleration_keeps_rod_length(self, symmetric_rigour_system):
        """Radial acceleration is exactly the centripetal one, so d2/dt2 |r|^2 = 0."""
        model = model_for(symmetric_rigour_system)
        fun = build_equations_of_motion(symmetric_rigour_system)
        p = model.surface_point(0.2, 0.1)
        rope = p - symmetric_rigour_system.pendulum.suspension_point
        v = np.cross(rope, [0.0, 0.0, 1.0]) * 0.7  # tangential
        du = fun(0.0, np.concatenate([p, v]))
        assert dot(rope, du[3:]) + dot(v, v) == pytest.approx(0.0, abs=1e-12)

    def test_batch_shape(self, symmetric_rigour_system):
        fun = build_equations_of_motion(symmetric_rigour_system)
        model = model_for(symmetric_rigour_system)
        p = model.surface_point(np.array([0.1, -0.2]), np.array([0.0, 0.3]))
        u = np.concatenate([p, np.zeros_like(p)], axis=1)
        assert fun(0.0, u).shape == (2, 6)

    def test_small_angle_acceleration_is_gradient_of_potential(self, system_factory):
        """What the integrator sees at rest is -grad V / m, the field the capture test relies on."""
        system = system_factory(
            ApproximationMode.SMALL_ANGLE,
            [((0.5, 0.0, -0.1), MagnetDirection.POSITIVE, 0.1),
             ((-0.4, 0.3, -0.2), MagnetDirection.NEGATIVE, 0.05)],
            mass=2.0,
        )
        fun = build_equations_of_motion(system)
        p = np.array([0.3, 0.2, 0.0])
        acceleration = fun(0.0, np.concatenate([p, np.zeros(3)]))[3:]
        grad = _numeric_gradient(lambda q: potential_energy(q, system), p, axes=(0, 1))
        np.testing.assert_allclose(acceleration[:2], -grad[:2] / 2.0, rtol=1e-6, atol=1e-8)

    def test_rigour_acceleration_is_projected_net_force(self, symmetric_rigour_system):
        model = model_for(symmetric_rigour_system)
        fun = build_equations_of_motion(symmetric_rigour_system)
        p = model.surface_point(np.array([0.2, -0.1]), np.array([0.1, 0.25]))
        rope = p - symmetric_rigour_system.pendulum.suspension_point
        v = np.cross(rope, [0.0, 0.0, 1.0]) * 0.4
        u = np.concatenate([p, v], axis=1)
        expected = model.project_acceleration(
            p, v, net_force(u, symmetric_rigour_system, model) / symmetric_rigour_system.pendulum.mass
        )
        np.testing.assert_allclose(fun(0.0, u)[:, 3:], expected, rtol=1e-12, atol=1e-12)
