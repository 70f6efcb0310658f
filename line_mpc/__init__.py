"""
Receding-horizon MPC for following a waypoint path with a kinematic bicycle model.
"""

from .mpc import MPCConfig, MPCController, MPCResult
from .mpc.errors import ConfigurationError, FitError, MPCError, SolveFailure
from .sim.control_loop import ControlLoop, History, Pose, TickResult, VehicleState

__all__ = [
    'MPCConfig', 'MPCController', 'MPCResult',
    'MPCError', 'FitError', 'SolveFailure', 'ConfigurationError',
    'ControlLoop', 'History', 'Pose', 'TickResult', 'VehicleState',
]
