"""
Approximation modes of the pendulum.

Each mode is a small behavior class that supplies the pieces of the dynamics
that differ between a flattened small-angle swing and an exact rigid rod:
the restoring force, its potential, how the net acceleration is constrained,
the post-step constraint projection and the surface the bob can start on.
The class is picked once per render from ``ApproximationMode``.
"""

from __future__ import annotations

import numpy as np

from geometry import dot, norm, normalize, project_onto_plane
from pendulum_system import ApproximationMode, MagneticPendulumSystem


class SmallAngleModel:
    """
    Planar small-oscillation pendulum.

    The bob moves in the horizontal plane through the rest point and is
    pulled back towards the suspension axis by a linear spring with
    k = m g / L. Positions keep a constant z, so no projection is needed
    after a step.
    """

    mode = ApproximationMode.SMALL_ANGLE

    def __init__(self, system: MagneticPendulumSystem):
        pendulum = system.pendulum
        self.axis_xy = np.array(pendulum.suspension_point[:2])
        self.plane_z = float(pendulum.rest_point[2])
        self.stiffness = pendulum.mass * system.gravity / pendulum.rod_length

    def restoring_force(self, p: np.ndarray) -> np.ndarray:
        force = np.zeros_like(p)
        force[..., :2] = -self.stiffness * (p[..., :2] - self.axis_xy)
        return force

    def gravity_potential(self, p: np.ndarray) -> np.ndarray:
        offset = p[..., :2] - self.axis_xy
        return 0.5 * self.stiffness * np.sum(offset * offset, axis=-1)

    def project_acceleration(self, p: np.ndarray, v: np.ndarray, a: np.ndarray) -> np.ndarray:
        a = a.copy()
        a[..., 2] = 0.0
        return a

    def constrain(self, u: np.ndarray) -> np.ndarray:
        return u

    def surface_point(self, x, y) -> np.ndarray:
        x, y = np.broadcast_arrays(np.asarray(x, dtype=float), np.asarray(y, dtype=float))
        return np.stack([x, y, np.full(x.shape, self.plane_z)], axis=-1)


class RigourModel:
    """
    Rigid rod of fixed length hanging from the suspension point.

    Only the tangential part of the applied acceleration moves the bob; the
    radial part is carried by rod tension, which also supplies the
    centripetal term -|v|^2/L along the rod. After every step the position is
    put back on the sphere and the radial velocity is removed.
    """

    mode = ApproximationMode.RIGOUR

    def __init__(self, system: MagneticPendulumSystem):
        pendulum = system.pendulum
        self.suspension = np.array(pendulum.suspension_point)
        self.rod_length = pendulum.rod_length
        self.weight = np.array([0.0, 0.0, -pendulum.mass * system.gravity])
        self.mass_gravity = pendulum.mass * system.gravity

    def restoring_force(self, p: np.ndarray) -> np.ndarray:
        return np.broadcast_to(self.weight, p.shape).copy()

    def gravity_potential(self, p: np.ndarray) -> np.ndarray:
        return self.mass_gravity * p[..., 2]

    def project_acceleration(self, p: np.ndarray, v: np.ndarray, a: np.ndarray) -> np.ndarray:
        rope = p - self.suspension
        length = norm(rope)
        unit = normalize(rope)
        tangential = project_onto_plane(a, unit)
        centripetal = -(dot(v, v) / np.maximum(length, 1e-12))[..., None] * unit
        return tangential + centripetal

    def constrain(self, u: np.ndarray) -> np.ndarray:
        """Snap positions onto the rod sphere and keep only tangential velocity."""
        unit = normalize(u[..., :3] - self.suspension)
        out = np.empty_like(u)
        out[..., :3] = self.suspension + self.rod_length * unit
        out[..., 3:] = project_onto_plane(u[..., 3:], unit)
        return out

    def surface_point(self, x, y) -> np.ndarray:
        """Lower-hemisphere point above (x, y); NaN where the rod cannot reach."""
        x, y = np.broadcast_arrays(np.asarray(x, dtype=float), np.asarray(y, dtype=float))
        r_sq = (x - self.suspension[0]) ** 2 + (y - self.suspension[1]) ** 2
        depth_sq = self.rod_length ** 2 - r_sq
        with np.errstate(invalid="ignore"):
            z = np.where(depth_sq >= 0, self.suspension[2] - np.sqrt(depth_sq), np.nan)
        return np.stack([x, y, z], axis=-1)


_MODELS = {
    ApproximationMode.SMALL_ANGLE: SmallAngleModel,
    ApproximationMode.RIGOUR: RigourModel,
}


def model_for(system: MagneticPendulumSystem):
    """Instantiate the behavior class of the system's approximation mode."""
    return _MODELS[system.pendulum.approximation](system)
