# constants.py
import dataclasses
from dataclasses import dataclass

import numpy as np

from .errors import ConfigurationError

N = 25
DT = 0.05

# Length from front to CoG that reproduces the turning radius measured in the
# simulator at constant steering and speed.
LF = 2.67

REF_CTE = 0.0
REF_EPSI = 0.0
REF_V = 40.0

STEER_LIMIT = 0.436332  # 25 deg
ACCEL_LIMIT = 1.0
STATE_BOUND = 1.0e19

MAX_CPU_TIME = 0.5
POLY_ORDER = 3

BACKENDS = ('ipopt', 'slsqp')
FALLBACKS = ('zero', 'hold')


@dataclass(frozen=True)
class MPCConfig:
    """Tuning parameters shared by the formulation, the controller and the loop."""

    horizon: int = N
    dt: float = DT
    ref_v: float = REF_V
    ref_cte: float = REF_CTE
    ref_epsi: float = REF_EPSI
    steer_limit: float = STEER_LIMIT
    accel_limit: float = ACCEL_LIMIT
    lf: float = LF
    max_cpu_time: float = MAX_CPU_TIME
    poly_order: int = POLY_ORDER
    state_bound: float = STATE_BOUND

    # Cost weights
    w_cte: float = 1.0
    w_epsi: float = 1.0
    w_v: float = 1.0
    w_delta: float = 1.0
    w_a: float = 1.0
    w_ddelta: float = 1.0
    w_da: float = 1.0

    print_level: int = 0
    backend: str = 'ipopt'
    fallback: str = 'zero'

    def __post_init__(self):
        self.validate()

    def validate(self):
        if not isinstance(self.horizon, (int, np.integer)) or self.horizon < 2:
            raise ConfigurationError(f"horizon must be an integer >= 2, got {self.horizon!r}")
        if not isinstance(self.poly_order, (int, np.integer)) or self.poly_order < 1:
            raise ConfigurationError(f"poly_order must be an integer >= 1, got {self.poly_order!r}")
        for name in ('dt', 'lf', 'steer_limit', 'accel_limit', 'state_bound', 'max_cpu_time'):
            value = getattr(self, name)
            if not np.isfinite(value) or value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value!r}")
        for f in dataclasses.fields(self):
            if f.name.startswith('w_') and not getattr(self, f.name) >= 0:
                raise ConfigurationError(f"{f.name} must be non-negative")
        if self.backend not in BACKENDS:
            raise ConfigurationError(f"unknown backend {self.backend!r}, expected one of {BACKENDS}")
        if self.fallback not in FALLBACKS:
            raise ConfigurationError(f"unknown fallback {self.fallback!r}, expected one of {FALLBACKS}")
        return self

    def replace(self, **overrides):
        """Copy with some fields overridden. Validation runs on the copy."""
        return dataclasses.replace(self, **overrides)
