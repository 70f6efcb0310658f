"""
Solve-level tests for MPCController with IPOPT (via CasADi) and SLSQP.
"""

import numpy as np
import pytest

from line_mpc.mpc.casadi_vehicle_model import step
from line_mpc.mpc.constants import MPCConfig
from line_mpc.mpc.errors import ConfigurationError, SolveFailure
from line_mpc.mpc.layout import STATE_FIELDS
from line_mpc.mpc.mpc import MPCController
from line_mpc.mpc.optimizer import IpoptOptimizer, OptimizerResult, SlsqpOptimizer, make_optimizer
from line_mpc.mpc.tools import polyeval


class FailingOptimizer:
    def __init__(self, status='Infeasible_Problem_Detected'):
        self.status = status
        self.calls = 0

    def solve(self, formulation, x0, lbx, ubx, lbg, ubg):
        self.calls += 1
        return OptimizerResult(False, self.status, np.asarray(x0), float('nan'))


class FixedOptimizer:
    """Reports success with a prepared solution vector."""

    def __init__(self, edit=None, size=None):
        self.edit = edit
        self.size = size

    def solve(self, formulation, x0, lbx, ubx, lbg, ubg):
        x = np.array(x0, dtype=float)
        if self.edit is not None:
            self.edit(formulation.layout, x)
        if self.size is not None:
            x = x[:self.size]
        return OptimizerResult(True, 'Solve_Succeeded', x, 0.0)


def check_solution(controller, state, coeffs, result, tol=1e-6):
    problem = controller.build(coeffs)
    layout = problem.layout
    sol = result.solution
    _, g = problem.evaluate(sol)

    for name, value in zip(STATE_FIELDS, state):
        assert sol[layout.state(0, name)] == pytest.approx(value, abs=tol)
    for i in range(layout.horizon - 1):
        for name in STATE_FIELDS:
            assert abs(g[layout.transition(i, name)]) < tol

    cfg = controller.config
    assert np.all(np.abs(sol[layout.actuator_slice('delta')]) <= cfg.steer_limit + 1e-6)
    assert np.all(np.abs(sol[layout.actuator_slice('a')]) <= cfg.accel_limit + 1e-6)


class TestIpopt:
    def test_on_line_at_cruise_speed_needs_no_actuation(self, cruise_config, flat_coeffs):
        controller = MPCController(cruise_config)
        state = np.array([0.0, 0.0, 0.0, 10.0, 0.0, 0.0])

        result = controller.solve(state, flat_coeffs)

        assert abs(result.delta) < 1e-3
        assert abs(result.a) < 1e-3
        assert result.cost < 1e-3
        assert result.next_state[0] == pytest.approx(10.0 * cruise_config.dt, abs=1e-4)
        check_solution(controller, state, flat_coeffs, result)

    def test_lateral_offset_steers_towards_line(self, cruise_config):
        d = 1.0
        coeffs = np.array([d, 0.0, 0.0, 0.0])
        controller = MPCController(cruise_config)
        state = np.array([0.0, 0.0, 0.0, 10.0, d, 0.0])

        result = controller.solve(state, coeffs)

        # Line is to the left (positive y), so steer left.
        assert result.delta > 0.0
        check_solution(controller, state, coeffs, result)

        pose = state[:4]
        for _ in range(10):
            pose = step(pose, result.command, lf=cruise_config.lf, dt=cruise_config.dt)
        assert abs(polyeval(coeffs, pose[0]) - pose[1]) < d

    def test_saturated_actuators_stay_in_bounds(self):
        config = MPCConfig(max_cpu_time=10.0)  # ref_v = 40 from 10 saturates throttle
        coeffs = np.array([-4.0, 0.2, 0.0, 0.0])
        controller = MPCController(config)
        state = np.array([0.0, 0.0, 0.0, 10.0, -4.0, -np.arctan(0.2)])

        result = controller.solve(state, coeffs)

        assert result.a == pytest.approx(config.accel_limit, abs=1e-3)
        assert abs(result.delta) <= config.steer_limit
        check_solution(controller, state, coeffs, result)

    def test_predicted_path_covers_horizon(self, cruise_config, flat_coeffs):
        result = MPCController(cruise_config).solve([0.0, 0.0, 0.0, 10.0, 0.0, 0.0], flat_coeffs)

        assert result.mpc_x.shape == (cruise_config.horizon,)
        assert result.mpc_y.shape == (cruise_config.horizon,)
        assert np.all(np.diff(result.mpc_x) > 0)
        assert result.as_vector().shape == (9,)

    def test_cpu_budget_exhaustion_is_a_failure(self):
        config = MPCConfig(max_cpu_time=1e-9)
        controller = MPCController(config)

        with pytest.raises(SolveFailure):
            controller.solve([0.0, 0.0, 0.0, 10.0, 2.0, 0.3], [2.0, -0.3, 0.01, 0.0])


class TestSlsqp:
    @pytest.fixture
    def config(self):
        return MPCConfig(horizon=8, ref_v=10.0, backend='slsqp', max_cpu_time=60.0)

    def test_backend_selection(self, config):
        assert isinstance(make_optimizer(config), SlsqpOptimizer)
        assert isinstance(make_optimizer(config.replace(backend='ipopt')), IpoptOptimizer)

    def test_on_line_at_cruise_speed(self, config, flat_coeffs):
        controller = MPCController(config)
        result = controller.solve([0.0, 0.0, 0.0, 10.0, 0.0, 0.0], flat_coeffs)

        assert abs(result.delta) < 1e-3
        assert abs(result.a) < 1e-3

    def test_lateral_offset_steers_towards_line(self, config):
        coeffs = np.array([1.0, 0.0, 0.0, 0.0])
        controller = MPCController(config)
        state = np.array([0.0, 0.0, 0.0, 10.0, 1.0, 0.0])

        result = controller.solve(state, coeffs)

        assert result.delta > 0.0
        check_solution(controller, state, coeffs, result, tol=1e-5)

    def test_cpu_budget_exhaustion_is_a_failure(self, config):
        controller = MPCController(config.replace(max_cpu_time=1e-9))

        with pytest.raises(SolveFailure) as excinfo:
            controller.solve([0.0, 0.0, 0.0, 10.0, 2.0, 0.3], [2.0, -0.3, 0.01, 0.0])
        assert excinfo.value.status == 'Maximum_CpuTime_Exceeded'


class TestFailures:
    def test_optimizer_failure_raises_without_command(self, cruise_config, flat_coeffs):
        optimizer = FailingOptimizer()
        controller = MPCController(cruise_config, optimizer=optimizer)

        with pytest.raises(SolveFailure) as excinfo:
            controller.solve([0.0, 0.0, 0.0, 10.0, 0.0, 0.0], flat_coeffs)

        assert excinfo.value.status == 'Infeasible_Problem_Detected'
        assert optimizer.calls == 1

    def test_out_of_range_actuator_rejected(self, cruise_config, flat_coeffs):
        def edit(layout, x):
            x[layout.actuator(0, 'delta')] = 0.9

        controller = MPCController(cruise_config, optimizer=FixedOptimizer(edit))

        with pytest.raises(SolveFailure) as excinfo:
            controller.solve([0.0, 0.0, 0.0, 10.0, 0.0, 0.0], flat_coeffs)
        assert excinfo.value.status == 'actuator_out_of_bounds'

    @pytest.mark.parametrize('step, name, value', [
        (3, 'delta', 0.9),
        (5, 'a', -7.0),
        (23, 'delta', -0.5),
    ])
    def test_out_of_range_actuator_later_in_horizon_rejected(
        self, cruise_config, flat_coeffs, step, name, value
    ):
        def edit(layout, x):
            x[layout.actuator(step, name)] = value

        controller = MPCController(cruise_config, optimizer=FixedOptimizer(edit))

        with pytest.raises(SolveFailure) as excinfo:
            controller.solve([0.0, 0.0, 0.0, 10.0, 0.0, 0.0], flat_coeffs)
        assert excinfo.value.status == 'actuator_out_of_bounds'

    def test_nan_actuator_rejected(self, cruise_config, flat_coeffs):
        def edit(layout, x):
            x[layout.actuator(2, 'a')] = float('nan')

        controller = MPCController(cruise_config, optimizer=FixedOptimizer(edit))

        with pytest.raises(SolveFailure):
            controller.solve([0.0, 0.0, 0.0, 10.0, 0.0, 0.0], flat_coeffs)

    def test_relaxed_first_actuation_is_clipped(self, cruise_config, flat_coeffs):
        limit = cruise_config.steer_limit

        def edit(layout, x):
            x[layout.actuator(0, 'delta')] = limit + 1e-8
            x[layout.actuator(4, 'delta')] = -limit - 1e-8

        controller = MPCController(cruise_config, optimizer=FixedOptimizer(edit))
        result = controller.solve([0.0, 0.0, 0.0, 10.0, 0.0, 0.0], flat_coeffs)

        assert result.delta == limit

    def test_wrong_solution_size_rejected(self, cruise_config, flat_coeffs):
        controller = MPCController(cruise_config, optimizer=FixedOptimizer(size=10))

        with pytest.raises(SolveFailure):
            controller.solve([0.0, 0.0, 0.0, 10.0, 0.0, 0.0], flat_coeffs)

    def test_bad_state_is_configuration_error(self, cruise_config, flat_coeffs):
        controller = MPCController(cruise_config, optimizer=FailingOptimizer())

        with pytest.raises(ConfigurationError):
            controller.solve([0.0, 0.0, 0.0], flat_coeffs)
        assert controller.optimizer.calls == 0

    def test_extracts_first_step_and_first_actuation(self, cruise_config, flat_coeffs):
        def edit(layout, x):
            for i, name in enumerate(STATE_FIELDS):
                x[layout.state(1, name)] = i + 1.0
            x[layout.actuator(0, 'delta')] = 0.1
            x[layout.actuator(0, 'a')] = -0.5
            x[layout.actuator(1, 'delta')] = 0.3

        controller = MPCController(cruise_config, optimizer=FixedOptimizer(edit))
        result = controller.solve([0.0, 0.0, 0.0, 10.0, 0.0, 0.0], flat_coeffs)

        assert np.allclose(result.next_state, [1.0, 2.0, 3.0, 4.0, 5.0, 6.0])
        assert result.command == (pytest.approx(0.1), pytest.approx(-0.5))
