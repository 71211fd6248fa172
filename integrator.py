"""
Numerical integration of the pendulum state.

Rendering uses a fixed-step classical RK4; ``integrate_reference`` wraps an
adaptive high-order scipy solver and is used to check the fixed-step result.
"""

from __future__ import annotations

from typing import Callable

import numpy as np
from scipy.integrate import solve_ivp

from pendulum_system import NumericalInstabilityError

REFERENCE_SOLVER_KWARGS = dict(
    method='DOP853',
    rtol=1e-12,
    atol=1e-14,
)


def check_finite(u: np.ndarray) -> None:
    if not np.all(np.isfinite(u)):
        raise NumericalInstabilityError("Non-finite position or velocity in pendulum state")


def rk4_step(fun: Callable, t: float, u: np.ndarray, h: float) -> np.ndarray:
    """Advance ``u`` by one RK4 step of size ``h`` (four calls to ``fun``)."""
    k1 = fun(t, u)
    k2 = fun(t + 0.5 * h, u + 0.5 * h * k1)
    k3 = fun(t + 0.5 * h, u + 0.5 * h * k2)
    k4 = fun(t + h, u + h * k3)
    return u + (h / 6.0) * (k1 + 2.0 * k2 + 2.0 * k3 + k4)


def integrate_fixed(fun: Callable, u0: np.ndarray, h: float, n_steps: int,
                    constrain: Callable | None = None) -> np.ndarray:
    """
    Run ``n_steps`` RK4 steps from ``u0`` and return the trajectory.

    Returns an array of shape (n_steps + 1, *u0.shape); ``constrain`` is
    applied after every step when given.
    Raises NumericalInstabilityError as soon as a step leaves the finite range.
    """
    u = np.asarray(u0, dtype=float)
    out = np.empty((n_steps + 1,) + u.shape)
    out[0] = u
    t = 0.0
    for i in range(1, n_steps + 1):
        u = rk4_step(fun, t, u, h)
        if constrain is not None:
            u = constrain(u)
        check_finite(u)
        t += h
        out[i] = u
    return out


def integrate_reference(fun: Callable, u0: np.ndarray, t_end: float,
                        t_eval: np.ndarray | None = None, **solver_kwargs) -> np.ndarray:
    """
    Integrate a single state with scipy's adaptive DOP853 solver.

    Returns the states at ``t_eval`` (default: just ``t_end``) with shape
    (len(t_eval), 6).
    """
    kwargs = dict(REFERENCE_SOLVER_KWARGS)
    kwargs.update(solver_kwargs)
    if t_eval is None:
        t_eval = np.array([t_end])
    sol = solve_ivp(fun, [0, t_end], np.asarray(u0, dtype=float), t_eval=t_eval, **kwargs)
    if not sol.success:
        raise RuntimeError(f"Reference integration failed: {sol.message}")
    return sol.y.T
