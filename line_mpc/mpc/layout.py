"""
Index arithmetic for the flat decision vector.

The solver takes all state and actuator variables in a single vector:

    [x_0..x_{N-1}, y_*, psi_*, v_*, cte_*, epsi_*, delta_0..delta_{N-2}, a_0..a_{N-2}]

The constraint vector mirrors the state block: index ``start(f)`` holds the
anchor residual for field ``f`` and ``start(f) + i + 1`` the residual of the
transition from step ``i`` to ``i + 1``.
"""

from .errors import ConfigurationError

STATE_FIELDS = ('x', 'y', 'psi', 'v', 'cte', 'epsi')
ACTUATOR_FIELDS = ('delta', 'a')


class DecisionLayout:
    def __init__(self, horizon):
        if horizon < 2:
            raise ConfigurationError(f"horizon must be >= 2, got {horizon}")
        self.horizon = int(horizon)
        self.n_states = len(STATE_FIELDS)
        self.n_actuators = len(ACTUATOR_FIELDS)

        N = self.horizon
        self._starts = {}
        offset = 0
        for name in STATE_FIELDS:
            self._starts[name] = offset
            offset += N
        for name in ACTUATOR_FIELDS:
            self._starts[name] = offset
            offset += N - 1

        # N timesteps == N - 1 actuations
        self.n_vars = offset
        self.n_constraints = self.n_states * N

    def start(self, name):
        return self._starts[name]

    @property
    def actuator_start(self):
        return self._starts[ACTUATOR_FIELDS[0]]

    def state(self, step, name):
        """Index of state ``name`` at horizon step ``step`` (0..N-1)."""
        if name not in STATE_FIELDS:
            raise KeyError(name)
        if not 0 <= step < self.horizon:
            raise IndexError(f"state step {step} outside horizon {self.horizon}")
        return self._starts[name] + step

    def actuator(self, step, name):
        """Index of actuator ``name`` applied at step ``step`` (0..N-2)."""
        if name not in ACTUATOR_FIELDS:
            raise KeyError(name)
        if not 0 <= step < self.horizon - 1:
            raise IndexError(f"actuator step {step} outside {self.horizon - 1} actuations")
        return self._starts[name] + step

    def state_slice(self, name):
        if name not in STATE_FIELDS:
            raise KeyError(name)
        start = self._starts[name]
        return slice(start, start + self.horizon)

    def actuator_slice(self, name):
        if name not in ACTUATOR_FIELDS:
            raise KeyError(name)
        start = self._starts[name]
        return slice(start, start + self.horizon - 1)

    def anchor(self, name):
        """Constraint index pinning ``name`` at step 0 to the measured state."""
        if name not in STATE_FIELDS:
            raise KeyError(name)
        return self._starts[name]

    def transition(self, step, name):
        """Constraint index of the ``step -> step + 1`` residual for ``name``."""
        if name not in STATE_FIELDS:
            raise KeyError(name)
        if not 0 <= step < self.horizon - 1:
            raise IndexError(f"transition {step} outside {self.horizon - 1} transitions")
        return self._starts[name] + step + 1

    def __repr__(self):
        return f"DecisionLayout(horizon={self.horizon}, n_vars={self.n_vars})"
