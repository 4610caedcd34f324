import asyncio
import logging

from mavsdk import System

logger = logging.getLogger(__name__)


async def connect_px4(system_address: str, port: int = 50051) -> System:
    # One mavsdk_server per vehicle, so each System needs its own gRPC port
    drone = System(port=port)
    await drone.connect(system_address=system_address)

    logger.info("Waiting for %s to connect...", system_address)
    async for state in drone.core.connection_state():
        if state.is_connected:
            logger.info("-- Connected to %s", system_address)
            break

    return drone


async def wait_armable(drone: System, sleep_s: float = 0.5) -> None:
    logger.info("Waiting for drone to be armable...")
    async for health in drone.telemetry.health():
        if health.is_armable:
            logger.info("Drone health OK. Ready to arm!")
            break
        await asyncio.sleep(sleep_s)
