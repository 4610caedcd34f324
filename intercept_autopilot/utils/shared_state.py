import math
import time
from dataclasses import dataclass, field
from typing import Optional, Tuple

NaN = float("nan")


@dataclass(frozen=True)
class Pose:
    # World frame, z up, heading in radians
    x: float = NaN
    y: float = NaN
    z: float = NaN
    heading: float = NaN

    def is_valid(self) -> bool:
        return not any(math.isnan(v) for v in (self.x, self.y, self.z))


@dataclass(frozen=True)
class Velocity:
    vx: float = NaN
    vy: float = NaN
    vz: float = NaN
    yaw_rate: float = NaN

    def is_valid(self) -> bool:
        return not any(math.isnan(v) for v in (self.vx, self.vy, self.vz))


@dataclass(frozen=True)
class TargetPose:
    x: float = NaN
    y: float = NaN
    vx: float = 0.0
    vy: float = 0.0

    def is_valid(self) -> bool:
        # Velocity feeds the planner as end velocity, so it must be finite too
        return not any(math.isnan(v) for v in (self.x, self.y, self.vx, self.vy))


@dataclass(frozen=True)
class TickInputs:
    """One consistent read of every inbound snapshot, taken at the start of a tick."""
    pose: Pose
    velocity: Velocity
    target: TargetPose
    target_mission_active: Optional[bool]
    stamp: float

    def is_valid(self) -> bool:
        return self.pose.is_valid() and self.velocity.is_valid() and self.target.is_valid()


@dataclass(frozen=True)
class TickOutput:
    state: str = ""
    rotate: bool = False
    target_point: Optional[Tuple[float, float, float]] = None
    waypoints: Tuple[Tuple[float, float, float], ...] = ()


@dataclass
class SharedState:
    # Latest telemetry snapshots (last writer wins, replaced as a whole)
    pose: Pose = field(default_factory=Pose)
    velocity: Velocity = field(default_factory=Velocity)
    target: TargetPose = field(default_factory=TargetPose)
    target_mission_active: Optional[bool] = None

    # Receive times, used by the safety watchdog
    pose_stamp: Optional[float] = None
    target_stamp: Optional[float] = None

    # Latched outputs: the last value published, for late readers
    outputs: TickOutput = field(default_factory=TickOutput)

    # Control flags
    running: bool = True
    emergency_stop: bool = False
    emergency_reason: str = ""

    # Mission markers for analysis
    mission_phase: str = "INIT"
    mission_t0_unix: Optional[float] = None

    def set_pose(self, pose: Pose) -> None:
        self.pose = pose
        self.pose_stamp = time.time()

    def set_target(self, target: TargetPose) -> None:
        self.target = target
        self.target_stamp = time.time()

    def snapshot(self) -> TickInputs:
        return TickInputs(
            pose=self.pose,
            velocity=self.velocity,
            target=self.target,
            target_mission_active=self.target_mission_active,
            stamp=time.time(),
        )

    def shutdown(self, reason: str = "") -> None:
        """Clear the run flag so every cooperating task winds down."""
        self.running = False
        if reason:
            self.emergency_reason = reason
