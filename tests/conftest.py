import matplotlib
matplotlib.use('Agg')

import numpy as np
import pytest

from line_mpc.mpc.constants import MPCConfig
from line_mpc.mpc.layout import DecisionLayout, STATE_FIELDS
from line_mpc.mpc.mpc import MPCResult


@pytest.fixture
def cruise_config():
    """Stock tuning with the target speed matched to the test vehicles."""
    return MPCConfig(ref_v=10.0, max_cpu_time=10.0)


@pytest.fixture
def flat_coeffs():
    return np.zeros(4)


class StubController:
    """Controller double that drives straight ahead without calling a solver."""

    def __init__(self, config, command=(0.0, 0.0), on_solve=None):
        self.config = config
        self.command = command
        self.calls = 0
        self.on_solve = on_solve

    def solve(self, state, coeffs):
        self.calls += 1
        if self.on_solve is not None:
            self.on_solve(self)
        v = state[3]
        dt = self.config.dt
        layout = DecisionLayout(self.config.horizon)
        sol = np.zeros(layout.n_vars)
        for i in range(layout.horizon):
            sol[layout.state(i, 'x')] = v * dt * i
            sol[layout.state(i, 'v')] = v
        next_state = np.array([sol[layout.state(1, name)] for name in STATE_FIELDS])
        return MPCResult(
            next_state=next_state, delta=self.command[0], a=self.command[1], cost=0.0,
            mpc_x=sol[layout.state_slice('x')], mpc_y=sol[layout.state_slice('y')],
            solution=sol, status='Solve_Succeeded',
        )


@pytest.fixture
def stub_controller():
    return StubController
