import logging
from dataclasses import dataclass

import numpy as np

from .constants import MPCConfig
from .errors import ConfigurationError, SolveFailure
from .formulation import ProblemFormulation
from .layout import STATE_FIELDS
from .optimizer import make_optimizer

logger = logging.getLogger(__name__)

# Tolerance on actuator bounds for the solver's bound relaxation.
BOUND_TOL = 1e-6


@dataclass
class MPCResult:
    next_state: np.ndarray  # predicted [x, y, psi, v, cte, epsi] one dt ahead
    delta: float
    a: float
    cost: float
    mpc_x: np.ndarray
    mpc_y: np.ndarray
    solution: np.ndarray
    status: str = ''
    solve_time: float = 0.0

    @property
    def command(self):
        return self.delta, self.a

    def as_vector(self):
        """``[x, y, psi, v, cte, epsi, delta, a, cost]``"""
        return np.concatenate((self.next_state, [self.delta, self.a, self.cost]))


class MPCController:
    """
    Receding-horizon solve for a kinematic bicycle tracking a polynomial.

    Holds only its configuration and optimizer; every call to ``solve``
    builds a fresh problem around the given state and reference.
    """

    def __init__(self, config=None, optimizer=None):
        """
        Args:
            config: MPCConfig, defaults to the stock tuning
            optimizer: object with ``solve(formulation, x0, lbx, ubx, lbg, ubg)``,
                defaults to the backend named in ``config``
        """
        self.config = config if config is not None else MPCConfig()
        self.optimizer = optimizer if optimizer is not None else make_optimizer(self.config)

    def build(self, coeffs):
        return ProblemFormulation(self.config, coeffs)

    def solve(self, state, coeffs):
        """
        Solve one horizon starting from ``state``.

        Args:
            state: [x, y, psi, v, cte, epsi] in the vehicle frame
            coeffs: reference polynomial coefficients, increasing power order

        Returns:
            MPCResult with the step-1 predicted state and the first actuation

        Raises:
            SolveFailure: the optimizer did not report success, or any actuation
                in the horizon lies outside its limit
            ConfigurationError: malformed state or bound vectors
        """
        formulation = self.build(coeffs)
        layout = formulation.layout

        vars0 = formulation.initial_guess(state)
        lbx, ubx = formulation.variable_bounds()
        lbg, ubg = formulation.constraint_bounds(state)
        self._check_sizes(layout, vars0, lbx, ubx, lbg, ubg)

        result = self.optimizer.solve(formulation, vars0, lbx, ubx, lbg, ubg)
        if not result.success:
            logger.warning("MPC solve failed: status=%s cost=%s", result.status, result.cost)
            raise SolveFailure(result.status, result.cost)

        sol = np.asarray(result.x, dtype=float).ravel()
        if sol.size != layout.n_vars:
            raise SolveFailure(
                'bad_solution_size', result.cost,
                f"optimizer returned {sol.size} values, expected {layout.n_vars}",
            )

        self._check_actuators(layout, sol, result)
        delta = float(np.clip(sol[layout.actuator(0, 'delta')], -self.config.steer_limit, self.config.steer_limit))
        a = float(np.clip(sol[layout.actuator(0, 'a')], -self.config.accel_limit, self.config.accel_limit))

        next_state = np.array([sol[layout.state(1, name)] for name in STATE_FIELDS])
        logger.debug(
            "MPC cost=%.4f delta=%.4f a=%.4f status=%s time=%.3fs",
            result.cost, delta, a, result.status, result.solve_time,
        )
        return MPCResult(
            next_state=next_state,
            delta=delta,
            a=a,
            cost=float(result.cost),
            mpc_x=sol[layout.state_slice('x')].copy(),
            mpc_y=sol[layout.state_slice('y')].copy(),
            solution=sol,
            status=result.status,
            solve_time=result.solve_time,
        )

    @staticmethod
    def _check_sizes(layout, vars0, lbx, ubx, lbg, ubg):
        for name, vec, size in (
            ('initial guess', vars0, layout.n_vars),
            ('lower variable bounds', lbx, layout.n_vars),
            ('upper variable bounds', ubx, layout.n_vars),
            ('lower constraint bounds', lbg, layout.n_constraints),
            ('upper constraint bounds', ubg, layout.n_constraints),
        ):
            if len(vec) != size:
                raise ConfigurationError(f"{name} has length {len(vec)}, expected {size}")

    def _check_actuators(self, layout, sol, result):
        """Every actuation over the horizon must respect its limit."""
        for name, limit in (('delta', self.config.steer_limit), ('a', self.config.accel_limit)):
            values = sol[layout.actuator_slice(name)]
            over = np.flatnonzero(~(np.abs(values) <= limit + BOUND_TOL))
            if over.size:
                step = int(over[0])
                raise SolveFailure(
                    'actuator_out_of_bounds', result.cost,
                    f"{name}[{step}]={values[step]:.6f} outside +/-{limit:.6f}",
                )
