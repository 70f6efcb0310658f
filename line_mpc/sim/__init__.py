from .control_loop import ControlLoop, History, Pose, TickResult, VehicleState

__all__ = ['ControlLoop', 'History', 'Pose', 'TickResult', 'VehicleState']
