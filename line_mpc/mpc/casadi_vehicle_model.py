import casadi as ca
import numpy as np

from .constants import DT, LF
from .tools import polyeval, reference_heading


def get_kinematic_model(lf=LF, dt=DT):
    """CasADi function of one discrete kinematic bicycle step."""
    x = ca.SX.sym('x', 4)  # [X, Y, psi, v]
    u = ca.SX.sym('u', 2)  # [delta, a]

    X, Y, psi, v = x[0], x[1], x[2], x[3]
    delta, a = u[0], u[1]

    x_next = ca.vertcat(
        X + v * ca.cos(psi) * dt,
        Y + v * ca.sin(psi) * dt,
        psi + v / lf * delta * dt,
        v + a * dt,
    )
    return ca.Function('f', [x, u], [x_next], ['x', 'u'], ['x_next'])


def step(state, command, lf=LF, dt=DT):
    """NumPy twin of ``get_kinematic_model`` for simulation outside the solver."""
    X, Y, psi, v = (float(s) for s in state[:4])
    delta, a = (float(c) for c in command)
    return np.array([
        X + v * np.cos(psi) * dt,
        Y + v * np.sin(psi) * dt,
        psi + v / lf * delta * dt,
        v + a * dt,
    ])


def tracking_errors(f0, psides0, y0, psi0, v0, epsi0, delta0, lf=LF, dt=DT):
    """
    Next-step cross-track and heading errors.

    ``f0`` is the reference evaluated at the current x and ``psides0`` the
    reference tangent angle there. Works on floats and CasADi expressions.
    """
    if isinstance(epsi0, (ca.SX, ca.MX, ca.DM)):
        sin = ca.sin
    else:
        sin = np.sin
    cte1 = (f0 - y0) + v0 * sin(epsi0) * dt
    epsi1 = (psi0 - psides0) + v0 * delta0 / lf * dt
    return cte1, epsi1


def rollout(state, commands, coeffs, lf=LF, dt=DT):
    """
    Forward-simulate the full six-field state under a command sequence.

    Returns an array of shape ``(len(commands) + 1, 6)`` with rows
    ``[x, y, psi, v, cte, epsi]``.
    """
    states = [np.asarray(state, dtype=float).copy()]
    for delta, a in commands:
        x0, y0, psi0, v0, _, epsi0 = states[-1]
        nxt = step((x0, y0, psi0, v0), (delta, a), lf=lf, dt=dt)
        cte1, epsi1 = tracking_errors(
            polyeval(coeffs, x0), reference_heading(coeffs, x0),
            y0, psi0, v0, epsi0, delta, lf=lf, dt=dt,
        )
        states.append(np.concatenate((nxt, [cte1, epsi1])))
    return np.array(states)
