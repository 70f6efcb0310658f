"""
Kinematic bicycle NLP for tracking a fitted reference polynomial.

Decision variables are the predicted states over the horizon plus the
actuations between them. The dynamics enter as equality constraints rather
than being substituted into the cost, so the solver treats the whole
trajectory as simultaneous unknowns (multiple shooting).
"""

import casadi as ca
import numpy as np

from .casadi_vehicle_model import get_kinematic_model, tracking_errors
from .errors import ConfigurationError, FitError
from .layout import STATE_FIELDS, DecisionLayout
from .tools import polyderiv


class ProblemFormulation:
    """
    Cost, constraints and bound tables for one control tick.

    Built fresh every tick from the config and the reference polynomial
    ``coeffs`` (increasing power order, any degree).
    """

    def __init__(self, config, coeffs):
        coeffs = np.asarray(coeffs, dtype=float).ravel()
        if coeffs.size == 0 or not np.all(np.isfinite(coeffs)):
            raise FitError("reference polynomial must have finite coefficients")
        self.config = config
        self.coeffs = coeffs
        self.layout = DecisionLayout(config.horizon)
        self.model = get_kinematic_model(config.lf, config.dt)

        self.vars = ca.SX.sym('vars', self.layout.n_vars)
        self.cost = self._build_cost(self.vars)
        self.constraints = self._build_constraints(self.vars)

        self.nlp = {'x': self.vars, 'f': self.cost, 'g': self.constraints}
        self.evaluator = ca.Function(
            'fg_eval', [self.vars], [self.cost, self.constraints], ['vars'], ['cost', 'g']
        )
        self._jacobians = None

    # --- reference curve ---

    def reference(self, x):
        """Polynomial value at ``x``."""
        f = 0
        for i, c in enumerate(self.coeffs):
            f += float(c) * x ** i
        return f

    def reference_heading(self, x):
        """Desired heading ``atan(f'(x))``."""
        slope = 0
        for i, c in enumerate(polyderiv(self.coeffs)):
            slope += float(c) * x ** i
        return ca.atan(slope)

    # --- cost / constraints ---

    def _build_cost(self, vars):
        cfg = self.config
        L = self.layout
        N = L.horizon
        cost = 0

        # The part of the cost based on the reference state.
        for i in range(N):
            cost += cfg.w_cte * (vars[L.state(i, 'cte')] - cfg.ref_cte) ** 2
            cost += cfg.w_epsi * (vars[L.state(i, 'epsi')] - cfg.ref_epsi) ** 2
            cost += cfg.w_v * (vars[L.state(i, 'v')] - cfg.ref_v) ** 2

        # Minimize the use of actuators.
        for i in range(N - 1):
            cost += cfg.w_delta * vars[L.actuator(i, 'delta')] ** 2
            cost += cfg.w_a * vars[L.actuator(i, 'a')] ** 2

        # Minimize the gap between sequential actuations.
        for i in range(N - 2):
            cost += cfg.w_ddelta * (vars[L.actuator(i + 1, 'delta')] - vars[L.actuator(i, 'delta')]) ** 2
            cost += cfg.w_da * (vars[L.actuator(i + 1, 'a')] - vars[L.actuator(i, 'a')]) ** 2

        return cost

    def _build_constraints(self, vars):
        cfg = self.config
        L = self.layout
        g = [None] * L.n_constraints

        for name in STATE_FIELDS:
            g[L.anchor(name)] = vars[L.state(0, name)]

        for i in range(L.horizon - 1):
            s0 = {name: vars[L.state(i, name)] for name in STATE_FIELDS}
            s1 = {name: vars[L.state(i + 1, name)] for name in STATE_FIELDS}
            delta0 = vars[L.actuator(i, 'delta')]
            a0 = vars[L.actuator(i, 'a')]

            nxt = self.model(
                ca.vertcat(s0['x'], s0['y'], s0['psi'], s0['v']),
                ca.vertcat(delta0, a0),
            )
            f0 = self.reference(s0['x'])
            psides0 = self.reference_heading(s0['x'])
            cte1, epsi1 = tracking_errors(
                f0, psides0, s0['y'], s0['psi'], s0['v'], s0['epsi'], delta0,
                lf=cfg.lf, dt=cfg.dt,
            )

            g[L.transition(i, 'x')] = s1['x'] - nxt[0]
            g[L.transition(i, 'y')] = s1['y'] - nxt[1]
            g[L.transition(i, 'psi')] = s1['psi'] - nxt[2]
            g[L.transition(i, 'v')] = s1['v'] - nxt[3]
            g[L.transition(i, 'cte')] = s1['cte'] - cte1
            g[L.transition(i, 'epsi')] = s1['epsi'] - epsi1

        return ca.vertcat(*g)

    # --- numeric helpers ---

    def evaluate(self, vars):
        """Numeric ``(cost, constraints)`` for a full decision vector."""
        cost, g = self.evaluator(np.asarray(vars, dtype=float))
        return float(cost), np.asarray(g.full()).ravel()

    def jacobians(self):
        """CasADi functions for the cost gradient and the constraint Jacobian."""
        if self._jacobians is None:
            grad_f = ca.Function('grad_f', [self.vars], [ca.gradient(self.cost, self.vars)])
            jac_g = ca.Function('jac_g', [self.vars], [ca.jacobian(self.constraints, self.vars)])
            self._jacobians = (grad_f, jac_g)
        return self._jacobians

    # --- initial guess and bounds ---

    def check_state(self, state):
        state = np.asarray(state, dtype=float).ravel()
        if state.size != self.layout.n_states:
            raise ConfigurationError(
                f"state must have {self.layout.n_states} components, got {state.size}"
            )
        if not np.all(np.isfinite(state)):
            raise ConfigurationError("state contains non-finite values")
        return state

    def initial_guess(self, state):
        """Zeros everywhere except the step-0 state slots."""
        state = self.check_state(state)
        L = self.layout
        vars0 = np.zeros(L.n_vars)
        for name, value in zip(STATE_FIELDS, state):
            vars0[L.state(0, name)] = value
        return vars0

    def variable_bounds(self):
        cfg = self.config
        L = self.layout
        lbx = np.empty(L.n_vars)
        ubx = np.empty(L.n_vars)

        # Non-actuators are effectively unbounded.
        lbx[:L.actuator_start] = -cfg.state_bound
        ubx[:L.actuator_start] = cfg.state_bound

        lbx[L.actuator_slice('delta')] = -cfg.steer_limit
        ubx[L.actuator_slice('delta')] = cfg.steer_limit
        lbx[L.actuator_slice('a')] = -cfg.accel_limit
        ubx[L.actuator_slice('a')] = cfg.accel_limit
        return lbx, ubx

    def constraint_bounds(self, state):
        """Zero for every transition residual, the measured state for anchors."""
        state = self.check_state(state)
        L = self.layout
        lbg = np.zeros(L.n_constraints)
        ubg = np.zeros(L.n_constraints)
        for name, value in zip(STATE_FIELDS, state):
            lbg[L.anchor(name)] = value
            ubg[L.anchor(name)] = value
        return lbg, ubg
