import asyncio
import logging
import math
from typing import Optional, Tuple

from mavsdk import System
from mavsdk.offboard import OffboardError, PositionNedYaw

from intercept_autopilot.utils.shared_state import SharedState, TickOutput

logger = logging.getLogger(__name__)

# World frame is x north, y east, z up; PX4 local frame is NED.


def world_to_ned(x: float, y: float, z: float) -> Tuple[float, float, float]:
    return x, y, -z


def ned_to_world(north: float, east: float, down: float) -> Tuple[float, float, float]:
    return north, east, -down


async def prestream_position_setpoints(
    drone: System,
    point: Tuple[float, float, float],
    yaw_deg: float = 0.0,
    n: int = 20,
):
    """PX4 requires setpoints to be streamed before starting offboard."""
    north, east, down = world_to_ned(*point)
    for _ in range(n):
        await drone.offboard.set_position_ned(PositionNedYaw(north, east, down, yaw_deg))
        await asyncio.sleep(0.05)


async def start_offboard(drone: System) -> bool:
    try:
        await drone.offboard.start()
        logger.info("Offboard started!")
        return True
    except OffboardError as e:
        logger.error("Failed to start offboard: %s", e._result.result)
        return False


async def stop_offboard_and_land(drone: System, sleep_s: float = 5.0):
    try:
        await drone.offboard.stop()
    except OffboardError as e:
        logger.warning("Failed to stop offboard: %s", e._result.result)

    logger.info("Landing...")
    await drone.action.land()
    await asyncio.sleep(sleep_s)


class OffboardSetpointPublisher:
    """
    Streams the coordinator's current target point to PX4.

    With rotation enabled the nose turns toward the target point; otherwise
    the last commanded yaw is held.
    """

    def __init__(self, drone: System, state: SharedState, yaw_deg: float = 0.0):
        self.drone = drone
        self.state = state
        self.yaw_deg = yaw_deg

    def _travel_yaw_deg(self, point: Tuple[float, float, float]) -> Optional[float]:
        pose = self.state.pose
        dx = point[0] - pose.x
        dy = point[1] - pose.y
        if math.isnan(dx) or math.isnan(dy) or math.hypot(dx, dy) < 1e-3:
            return None
        return math.degrees(math.atan2(dy, dx))

    async def __call__(self, output: TickOutput) -> None:
        if output.target_point is None:
            return

        if output.rotate:
            yaw = self._travel_yaw_deg(output.target_point)
            if yaw is not None:
                self.yaw_deg = yaw

        north, east, down = world_to_ned(*output.target_point)
        try:
            await self.drone.offboard.set_position_ned(
                PositionNedYaw(north, east, down, self.yaw_deg)
            )
        except OffboardError as e:
            # Retried with the next tick's setpoint
            logger.warning("Setpoint rejected: %s", e._result.result)
