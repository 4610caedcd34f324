"""
Mission phase logic: takeoff, intercept the ground target, fly to the fixed
goal, return home and land.

The machine only moves forward along the mission lifecycle. Each state owns
one outgoing edge and the predicate that fires it; nothing else assigns the
state.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from intercept_autopilot.core.config import MissionConfig
from intercept_autopilot.trajectories.cubic import planar_distance
from intercept_autopilot.utils.shared_state import TickInputs

logger = logging.getLogger(__name__)


class MissionState(Enum):
    TAKEOFF = 0
    PURSUE_TARGET = 1
    PURSUE_GOAL = 2
    RETURN = 3
    LAND = 4

    @property
    def rotation_enabled(self) -> bool:
        return self not in (MissionState.TAKEOFF, MissionState.LAND)


@dataclass(frozen=True)
class Destination:
    x: float
    y: float
    z: float
    vx: float = 0.0
    vy: float = 0.0

    @property
    def xy(self) -> Tuple[float, float]:
        return self.x, self.y


Predicate = Callable[[TickInputs], bool]


class MissionStateMachine:
    def __init__(self, config: MissionConfig):
        self.cfg = config
        self._state = MissionState.TAKEOFF

        self._transitions: Dict[MissionState, Tuple[MissionState, Predicate]] = {
            MissionState.TAKEOFF: (MissionState.PURSUE_TARGET, self._reached_height),
            MissionState.PURSUE_TARGET: (MissionState.PURSUE_GOAL, self._reached_target),
            MissionState.PURSUE_GOAL: (MissionState.RETURN, self._reached_goal),
            MissionState.RETURN: (MissionState.LAND, self._return_done),
        }

    @property
    def state(self) -> MissionState:
        return self._state

    @property
    def rotation_enabled(self) -> bool:
        return self._state.rotation_enabled

    def is_terminal(self) -> bool:
        return self._state not in self._transitions

    # ------------------------------------------------------------
    # Transition predicates
    # ------------------------------------------------------------

    def _reached_height(self, inputs: TickInputs) -> bool:
        # Tolerance, never float equality
        return abs(inputs.pose.z - self.cfg.height) <= self.cfg.height_tolerance

    def _reached_target(self, inputs: TickInputs) -> bool:
        vehicle = (inputs.pose.x, inputs.pose.y)
        target = (inputs.target.x, inputs.target.y)
        return planar_distance(vehicle, target) <= self.cfg.close_enough

    def _reached_goal(self, inputs: TickInputs) -> bool:
        vehicle = (inputs.pose.x, inputs.pose.y)
        return planar_distance(vehicle, self.cfg.goal) <= self.cfg.close_enough

    def _return_done(self, inputs: TickInputs) -> bool:
        if self.cfg.return_trigger == "home_proximity":
            vehicle = (inputs.pose.x, inputs.pose.y)
            return planar_distance(vehicle, self.cfg.home) <= self.cfg.close_enough

        # Unknown counts as finished
        return not inputs.target_mission_active

    # ------------------------------------------------------------
    # Per-tick operations
    # ------------------------------------------------------------

    def update(self, inputs: TickInputs) -> Optional[MissionState]:
        """
        Evaluate the active state's outgoing edge; take at most one
        transition. Returns the new state if one was entered.
        """
        edge = self._transitions.get(self._state)
        if edge is None:
            return None

        next_state, predicate = edge
        if not predicate(inputs):
            return None

        logger.info("%s -> %s", self._state.name, next_state.name)
        self._state = next_state
        return next_state

    def destination(self, inputs: TickInputs) -> Destination:
        cfg = self.cfg
        state = self._state

        if state is MissionState.PURSUE_TARGET:
            target = inputs.target
            if cfg.match_target_velocity:
                return Destination(target.x, target.y, cfg.height, target.vx, target.vy)
            return Destination(target.x, target.y, cfg.height)

        if state is MissionState.PURSUE_GOAL:
            return Destination(cfg.goal_x, cfg.goal_y, cfg.height)

        if state is MissionState.LAND:
            # Hold cruise height until over the launch point, then descend
            vehicle = (inputs.pose.x, inputs.pose.y)
            if planar_distance(vehicle, cfg.home) > cfg.close_enough:
                return Destination(cfg.initial_x, cfg.initial_y, cfg.height)
            return Destination(cfg.initial_x, cfg.initial_y, cfg.initial_z)

        # TAKEOFF climbs over the launch point, RETURN flies back to it
        return Destination(cfg.initial_x, cfg.initial_y, cfg.height)
