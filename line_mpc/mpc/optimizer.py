"""
Adapters around the NLP solvers.

Each optimizer exposes ``solve(formulation, x0, lbx, ubx, lbg, ubg)`` and
returns an ``OptimizerResult``; failures are reported through the result,
never by raising.
"""

import logging
import time
from dataclasses import dataclass

import casadi as ca
import numpy as np
from scipy.optimize import minimize

logger = logging.getLogger(__name__)

# Bounds at or above this magnitude are passed to SLSQP as "no bound".
_INFINITE_BOUND = 1.0e19


@dataclass
class OptimizerResult:
    success: bool
    status: str
    x: np.ndarray
    cost: float
    solve_time: float = 0.0


class IpoptOptimizer:
    """IPOPT through ``casadi.nlpsol``. Derivatives come from CasADi's AD."""

    def __init__(self, config):
        self.config = config
        self.options = {
            'ipopt.print_level': int(config.print_level),
            'ipopt.sb': 'yes',
            'ipopt.max_cpu_time': float(config.max_cpu_time),
            'print_time': 1 if config.print_level > 0 else 0,
            'error_on_fail': False,
        }

    def solve(self, formulation, x0, lbx, ubx, lbg, ubg):
        solver = ca.nlpsol('solver', 'ipopt', formulation.nlp, self.options)

        t_start = time.time()
        try:
            sol = solver(x0=x0, lbx=lbx, ubx=ubx, lbg=lbg, ubg=ubg)
        except RuntimeError as e:
            solve_time = time.time() - t_start
            logger.warning("IPOPT raised: %s", e)
            return OptimizerResult(False, str(e), np.asarray(x0, dtype=float), float('nan'), solve_time)
        solve_time = time.time() - t_start

        stats = solver.stats()
        return OptimizerResult(
            success=bool(stats.get('success', False)),
            status=str(stats.get('return_status', 'unknown')),
            x=sol['x'].full().flatten(),
            cost=float(sol['f']),
            solve_time=solve_time,
        )


class SlsqpOptimizer:
    """
    SciPy SLSQP on the same CasADi evaluator.

    Gradients and the constraint Jacobian are still exact (CasADi AD), but the
    dense SQP is slower than IPOPT on long horizons. SLSQP has no CPU-time
    option, so a solve that overruns ``max_cpu_time`` is reported as failed.
    """

    def __init__(self, config, maxiter=200, ftol=1e-8):
        self.config = config
        self.maxiter = maxiter
        self.ftol = ftol

    @staticmethod
    def _bounds(lbx, ubx):
        bounds = []
        for lo, hi in zip(lbx, ubx):
            bounds.append((
                None if lo <= -_INFINITE_BOUND else float(lo),
                None if hi >= _INFINITE_BOUND else float(hi),
            ))
        return bounds

    def _constraints(self, formulation, lbg, ubg):
        _, jac_g = formulation.jacobians()
        lbg = np.asarray(lbg, dtype=float)
        ubg = np.asarray(ubg, dtype=float)

        def g(z):
            return formulation.evaluate(z)[1]

        def jac(z):
            return np.asarray(jac_g(z).full())

        eq = np.flatnonzero(lbg == ubg)
        lower = np.flatnonzero((lbg != ubg) & (lbg > -_INFINITE_BOUND))
        upper = np.flatnonzero((lbg != ubg) & (ubg < _INFINITE_BOUND))

        constraints = []
        if eq.size:
            constraints.append({
                'type': 'eq',
                'fun': lambda z: g(z)[eq] - lbg[eq],
                'jac': lambda z: jac(z)[eq],
            })
        if lower.size:
            constraints.append({
                'type': 'ineq',
                'fun': lambda z: g(z)[lower] - lbg[lower],
                'jac': lambda z: jac(z)[lower],
            })
        if upper.size:
            constraints.append({
                'type': 'ineq',
                'fun': lambda z: ubg[upper] - g(z)[upper],
                'jac': lambda z: -jac(z)[upper],
            })
        return constraints

    def solve(self, formulation, x0, lbx, ubx, lbg, ubg):
        grad_f, _ = formulation.jacobians()

        def cost(z):
            return formulation.evaluate(z)[0]

        def cost_grad(z):
            return np.asarray(grad_f(z).full()).flatten()

        t_start = time.process_time()
        result = minimize(
            cost,
            np.asarray(x0, dtype=float),
            jac=cost_grad,
            method='SLSQP',
            bounds=self._bounds(lbx, ubx),
            constraints=self._constraints(formulation, lbg, ubg),
            options={'maxiter': self.maxiter, 'ftol': self.ftol},
        )
        solve_time = time.process_time() - t_start

        success = bool(result.success)
        status = str(result.message)
        if solve_time > self.config.max_cpu_time:
            success = False
            status = 'Maximum_CpuTime_Exceeded'
        return OptimizerResult(success, status, np.asarray(result.x, dtype=float), float(result.fun), solve_time)


def make_optimizer(config):
    if config.backend == 'slsqp':
        return SlsqpOptimizer(config)
    return IpoptOptimizer(config)
