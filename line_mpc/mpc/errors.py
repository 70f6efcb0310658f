class MPCError(Exception):
    """Base class for controller errors."""


class FitError(MPCError):
    """Waypoints can't be fitted with the requested polynomial order."""


class ConfigurationError(MPCError):
    """Invalid tuning parameters or mismatched vector sizes."""


class SolveFailure(MPCError):
    """The optimizer returned a non-success status. No command is produced."""

    def __init__(self, status, cost=float('nan'), message=None):
        self.status = status
        self.cost = cost
        super().__init__(message or f"MPC solve failed: {status}")
