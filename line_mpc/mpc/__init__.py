"""
MPC (Model Predictive Control) core for line following.

Available pieces:
- MPCConfig: immutable tuning parameters
- ProblemFormulation: kinematic bicycle NLP (cost, constraints, bounds)
- IpoptOptimizer / SlsqpOptimizer: solver adapters
- MPCController: one receding-horizon solve
"""

from .constants import MPCConfig
from .formulation import ProblemFormulation
from .layout import DecisionLayout
from .mpc import MPCController, MPCResult
from .optimizer import IpoptOptimizer, OptimizerResult, SlsqpOptimizer, make_optimizer

__all__ = [
    'MPCConfig', 'ProblemFormulation', 'DecisionLayout',
    'MPCController', 'MPCResult',
    'IpoptOptimizer', 'SlsqpOptimizer', 'OptimizerResult', 'make_optimizer',
]
