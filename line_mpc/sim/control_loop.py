"""
Receding-horizon loop: re-fit, re-solve, apply the first command, repeat.

Each tick works in the vehicle frame. Waypoints are transformed around the
current global pose, the vehicle sits at the origin with zero heading, and
the predicted step-1 state is mapped back to a new global pose.

Failure policy per tick:
- FitError / ConfigurationError: no command from the solver. The fallback
  named by ``config.fallback`` is issued explicitly ('zero' commands (0, 0),
  'hold' repeats the last applied command) and the tick is marked in history.
- SolveFailure: recorded, then raised. No stale command is applied.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from ..mpc.casadi_vehicle_model import step
from ..mpc.constants import MPCConfig
from ..mpc.errors import ConfigurationError, FitError, SolveFailure
from ..mpc.mpc import MPCController
from ..mpc.tools import inverse_transform_map_coord, polyderiv, polyeval, polyfit, transform_map_coord

logger = logging.getLogger(__name__)

OK = 'ok'
FIT_ERROR = 'fit_error'
CONFIG_ERROR = 'config_error'
SOLVE_FAILURE = 'solve_failure'


@dataclass
class VehicleState:
    x: float = 0.0
    y: float = 0.0
    psi: float = 0.0
    v: float = 0.0
    cte: float = 0.0
    epsi: float = 0.0

    def as_array(self):
        return np.array([self.x, self.y, self.psi, self.v, self.cte, self.epsi])

    @classmethod
    def from_array(cls, values):
        return cls(*(float(v) for v in values))


@dataclass
class Pose:
    """Global-frame pose and speed of the vehicle."""
    x: float
    y: float
    psi: float
    v: float


@dataclass
class TickResult:
    index: int
    status: str
    command: Tuple[float, float]
    cost: float
    state: VehicleState  # local-frame state one dt ahead
    pose: Pose  # global pose after applying the command
    mpc_x: np.ndarray = field(default_factory=lambda: np.zeros(0))
    mpc_y: np.ndarray = field(default_factory=lambda: np.zeros(0))
    waypoints: Optional[Tuple[np.ndarray, np.ndarray]] = None
    error: Optional[Exception] = None

    @property
    def ok(self):
        return self.status == OK


@dataclass
class History:
    states: List[VehicleState] = field(default_factory=list)
    poses: List[Pose] = field(default_factory=list)
    deltas: List[float] = field(default_factory=list)
    accels: List[float] = field(default_factory=list)
    costs: List[float] = field(default_factory=list)
    statuses: List[str] = field(default_factory=list)
    predictions: List[Tuple[np.ndarray, np.ndarray]] = field(default_factory=list)

    def record(self, tick):
        self.states.append(tick.state)
        self.poses.append(tick.pose)
        self.deltas.append(tick.command[0])
        self.accels.append(tick.command[1])
        self.costs.append(tick.cost)
        self.statuses.append(tick.status)
        self.predictions.append((tick.mpc_x, tick.mpc_y))

    def __len__(self):
        return len(self.statuses)

    @property
    def cte(self):
        return np.array([s.cte for s in self.states])

    @property
    def epsi(self):
        return np.array([s.epsi for s in self.states])

    @property
    def v(self):
        return np.array([s.v for s in self.states])


class ControlLoop:
    def __init__(self, waypoints, pose, config=None, controller=None):
        """
        Args:
            waypoints: (M, 2) global-frame reference points, held fixed
            pose: initial global Pose (or (x, y, psi, v))
            config: MPCConfig, shared with the controller when one is built here
            controller: MPCController to use instead of a default one
        """
        if controller is not None and config is None:
            config = controller.config
        self.config = config if config is not None else MPCConfig()
        self.controller = controller if controller is not None else MPCController(self.config)

        try:
            self.waypoints = np.asarray(waypoints, dtype=float).reshape(-1, 2)
        except ValueError as e:
            raise ConfigurationError(f"waypoints must be (x, y) pairs: {e}") from e
        self.pose = pose if isinstance(pose, Pose) else Pose(*(float(p) for p in pose))

        self.history = History()
        self.last_command = None
        self._ticks = 0
        self._stopped = False

    def stop(self):
        """Stop issuing ticks; takes effect before the next one."""
        self._stopped = True

    @property
    def stopped(self):
        return self._stopped

    def local_reference(self):
        """Waypoints in the vehicle frame and the fitted polynomial."""
        xs, ys = transform_map_coord(
            self.waypoints[:, 0], self.waypoints[:, 1], self.pose.x, self.pose.y, self.pose.psi
        )
        coeffs = polyfit(xs, ys, self.config.poly_order)
        return xs, ys, coeffs

    def local_state(self, coeffs):
        """Vehicle at the origin of its own frame with zero heading."""
        # cte = f(0) - y, epsi = psi - atan(f'(0)) with x = y = psi = 0
        cte = polyeval(coeffs, 0.0)
        epsi = -np.arctan(polyeval(polyderiv(coeffs), 0.0))
        return VehicleState(0.0, 0.0, 0.0, self.pose.v, float(cte), float(epsi))

    def tick(self):
        index = self._ticks
        self._ticks += 1

        xs = ys = None
        try:
            xs, ys, coeffs = self.local_reference()
            state = self.local_state(coeffs)
            result = self.controller.solve(state.as_array(), coeffs)
        except FitError as e:
            return self._fallback(index, FIT_ERROR, e, xs, ys)
        except ConfigurationError as e:
            return self._fallback(index, CONFIG_ERROR, e, xs, ys)
        except SolveFailure as e:
            logger.warning("tick %d: %s", index, e)
            self.history.record(TickResult(
                index=index, status=SOLVE_FAILURE, command=(float('nan'), float('nan')),
                cost=e.cost, state=VehicleState(*[float('nan')] * 6), pose=self.pose,
                waypoints=(xs, ys), error=e,
            ))
            raise

        self.pose = self._advance(result.next_state)
        self.last_command = result.command
        tick = TickResult(
            index=index,
            status=OK,
            command=result.command,
            cost=result.cost,
            state=VehicleState.from_array(result.next_state),
            pose=self.pose,
            mpc_x=result.mpc_x,
            mpc_y=result.mpc_y,
            waypoints=(xs, ys),
        )
        self.history.record(tick)
        logger.debug(
            "tick %d: delta=%.4f a=%.4f cost=%.4f cte=%.4f epsi=%.4f",
            index, result.delta, result.a, result.cost, tick.state.cte, tick.state.epsi,
        )
        return tick

    def run(self, ticks):
        """Tick until ``ticks`` are done or ``stop()`` is called."""
        for _ in range(ticks):
            if self._stopped:
                break
            self.tick()
        return self.history

    def _advance(self, next_state):
        # Predicted state is in the frame of this tick; map it back to global.
        x1, y1, psi1, v1 = (float(s) for s in next_state[:4])
        gx, gy = inverse_transform_map_coord(x1, y1, self.pose.x, self.pose.y, self.pose.psi)
        return Pose(float(gx), float(gy), self.pose.psi + psi1, v1)

    def _fallback_command(self):
        if self.config.fallback == 'hold' and self.last_command is not None:
            return self.last_command
        return 0.0, 0.0

    def _fallback(self, index, status, error, xs, ys):
        command = self._fallback_command()
        logger.warning("tick %d: %s (%s), issuing %s fallback command %s",
                       index, status, error, self.config.fallback, command)

        cfg = self.config
        x1, y1, psi1, v1 = step((0.0, 0.0, 0.0, self.pose.v), command, lf=cfg.lf, dt=cfg.dt)
        self.pose = self._advance((x1, y1, psi1, v1))
        self.last_command = command
        tick = TickResult(
            index=index,
            status=status,
            command=command,
            cost=float('nan'),
            state=VehicleState(x1, y1, psi1, v1, float('nan'), float('nan')),
            pose=self.pose,
            waypoints=None if xs is None else (xs, ys),
            error=error,
        )
        self.history.record(tick)
        return tick
