import argparse
import logging
import math
import re
from dataclasses import dataclass, fields
from typing import Optional, Tuple

from intercept_autopilot.utils.shared_state import SharedState

logger = logging.getLogger(__name__)

RETURN_TRIGGERS = ("target_mission", "home_proximity")
LOOK_AHEAD_MODES = ("time", "distance")


class ConfigError(ValueError):
    """Invalid mission configuration. Fatal: the mission must not start."""


@dataclass
class PX4Config:
    system_address: str = "udpin://0.0.0.0:14540"   # SITL default
    target_address: str = "udpin://0.0.0.0:14541"   # ground target (rover)
    prestream_setpoints: int = 20


@dataclass
class MissionConfig:
    # Flight envelope
    height: float = 2.0
    height_tolerance: float = 0.1
    average_speed: float = 2.0

    # Planner
    look_ahead: float = 1.0
    look_ahead_mode: str = "time"
    close_enough: float = 0.1
    match_target_velocity: bool = True

    # Launch point (world frame, z up)
    initial_x: float = 0.0
    initial_y: float = 0.0
    initial_z: float = 0.178

    # Fixed goal, resolved from the goals string
    goal_x: float = 0.0
    goal_y: float = 0.0

    # Loop
    main_iter_rate: float = 25.0
    verbose: bool = True
    return_trigger: str = "target_mission"

    # Safety limits
    max_speed_m_s: float = 5.0
    stale_after_s: float = 1.0

    log_filename: str = "intercept_mission_log.csv"

    @property
    def home(self) -> Tuple[float, float]:
        return self.initial_x, self.initial_y

    @property
    def goal(self) -> Tuple[float, float]:
        return self.goal_x, self.goal_y

    def validate(self) -> None:
        if not self.average_speed > 0.0:
            raise ConfigError(f"average_speed must be positive, got {self.average_speed}")
        if not self.look_ahead > 0.0:
            raise ConfigError(f"look_ahead must be positive, got {self.look_ahead}")
        if not self.main_iter_rate > 0.0:
            raise ConfigError(f"main_iter_rate must be positive, got {self.main_iter_rate}")
        if self.close_enough < 0.0 or self.height_tolerance < 0.0:
            raise ConfigError("close_enough and height_tolerance must not be negative")
        if self.look_ahead_mode not in LOOK_AHEAD_MODES:
            raise ConfigError(f"look_ahead_mode must be one of {LOOK_AHEAD_MODES}")
        if self.return_trigger not in RETURN_TRIGGERS:
            raise ConfigError(f"return_trigger must be one of {RETURN_TRIGGERS}")


def parse_goals(goal_str: str) -> Tuple[float, float]:
    """
    Parse "x1,y1 x2,y2 ..." (space and/or comma separated) and return the
    last pair, which is the final goal.
    """
    tokens = [tok for tok in re.split(r"[ ,]+", goal_str.strip()) if tok]
    if not tokens or len(tokens) % 2 != 0:
        raise ConfigError(f"Invalid goals: {goal_str!r}")

    try:
        values = [float(tok) for tok in tokens]
    except ValueError:
        raise ConfigError(f"Invalid goals: {goal_str!r}") from None

    if not all(math.isfinite(v) for v in values):
        raise ConfigError(f"Invalid goals: {goal_str!r}")

    return values[-2], values[-1]


def build_mission_config(goals: Optional[str] = None, **params) -> MissionConfig:
    known = {f.name for f in fields(MissionConfig)}
    unknown = set(params) - known
    if unknown:
        raise ConfigError(f"Unknown parameters: {', '.join(sorted(unknown))}")

    cfg = MissionConfig(**params)

    # No goals given: the goal is the launch point
    if goals is None or not goals.strip():
        cfg.goal_x, cfg.goal_y = cfg.initial_x, cfg.initial_y
    else:
        cfg.goal_x, cfg.goal_y = parse_goals(goals)

    cfg.validate()
    return cfg


def load_mission_config(
    state: SharedState,
    goals: Optional[str] = None,
    **params,
) -> Optional[MissionConfig]:
    """
    Build and validate the mission configuration once at startup.

    On a configuration error the shared run flag is cleared so this and
    every cooperating task shut down, and None is returned.
    """
    try:
        cfg = build_mission_config(goals, **params)
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        state.shutdown(f"CONFIG ERROR: {e}")
        return None

    logger.info("Last target goal is (%.3f, %.3f)", cfg.goal_x, cfg.goal_y)
    return cfg


def build_arg_parser() -> argparse.ArgumentParser:
    defaults = MissionConfig()
    px4 = PX4Config()

    p = argparse.ArgumentParser(description="Intercept-goal-return mission (PX4 offboard)")
    p.add_argument("--system-address", default=px4.system_address)
    p.add_argument("--target-address", default=px4.target_address)
    p.add_argument("--goals", default=None, help='e.g. "1.0,2.0 3.5,4.5"; last pair is used')
    p.add_argument("--height", type=float, default=defaults.height)
    p.add_argument("--height-tolerance", type=float, default=defaults.height_tolerance)
    p.add_argument("--average-speed", type=float, default=defaults.average_speed)
    p.add_argument("--look-ahead", type=float, default=defaults.look_ahead)
    p.add_argument("--look-ahead-mode", choices=LOOK_AHEAD_MODES, default=defaults.look_ahead_mode)
    p.add_argument("--close-enough", type=float, default=defaults.close_enough)
    p.add_argument("--initial-x", type=float, default=defaults.initial_x)
    p.add_argument("--initial-y", type=float, default=defaults.initial_y)
    p.add_argument("--initial-z", type=float, default=defaults.initial_z)
    p.add_argument("--main-iter-rate", type=float, default=defaults.main_iter_rate)
    p.add_argument("--return-trigger", choices=RETURN_TRIGGERS, default=defaults.return_trigger)
    p.add_argument("--no-target-velocity", dest="match_target_velocity", action="store_false")
    p.add_argument("--quiet", dest="verbose", action="store_false")
    p.add_argument("--log-filename", default=defaults.log_filename)
    return p


def mission_params_from_args(args: argparse.Namespace) -> dict:
    """Split parsed CLI args into MissionConfig keyword arguments."""
    known = {f.name for f in fields(MissionConfig)}
    return {k: v for k, v in vars(args).items() if k in known}
