"""
Autonomous Intercept Mission

Takes off, intercepts a moving ground target, flies to a fixed goal, returns
to the launch point and lands, using PX4 Position Offboard control.

The mission logic runs in a fixed-rate tick loop (TickCoordinator); every tick
a cubic trajectory is replanned toward the active destination and its first
look-ahead point is streamed to PX4.

Tasks:
- Telemetry watchers (vehicle pose/velocity/heading, target pose, target mission)
- Tick coordinator + offboard setpoint publisher
- Safety watchdog (stale snapshots, overspeed)
- Landing monitor (ends the mission once LAND reaches the ground)
- Telemetry logging to CSV
"""

import asyncio
import logging
import sys
from contextlib import suppress

# ---- Core infrastructure ----
from intercept_autopilot.core.config import (
    MissionConfig,
    build_arg_parser,
    load_mission_config,
    mission_params_from_args,
)
from intercept_autopilot.core.mission_state import MissionState
from intercept_autopilot.core.offboard_helpers import (
    OffboardSetpointPublisher,
    prestream_position_setpoints,
    start_offboard,
    stop_offboard_and_land,
)
from intercept_autopilot.core.px4_connection import connect_px4, wait_armable
from intercept_autopilot.core.safety_watchdog import safety_watchdog
from intercept_autopilot.core.tick_coordinator import TickCoordinator

# ---- Telemetry & state ----
from intercept_autopilot.utils.shared_state import SharedState
from intercept_autopilot.utils.telemetry_logger import log_telemetry_csv
from intercept_autopilot.utils.telemetry_watchers import (
    watch_heading,
    watch_pose,
    watch_target,
    watch_target_mission,
    watch_yaw_rate,
)

logger = logging.getLogger(__name__)

# Separate mavsdk_server gRPC ports for the two systems
VEHICLE_GRPC_PORT = 50051
TARGET_GRPC_PORT = 50052


# ============================================================
# Helpers
# ============================================================

async def cancel_and_await(tasks):
    """Cancel tasks and await them to avoid warnings/unfinished coroutines."""
    for t in tasks:
        t.cancel()
    for t in tasks:
        with suppress(asyncio.CancelledError):
            await t


async def watch_landing(
    coordinator: TickCoordinator,
    cfg: MissionConfig,
    state: SharedState,
    period_s: float = 0.1,
):
    """Clear the run flag once the LAND phase has brought the vehicle down."""
    while state.running:
        await asyncio.sleep(period_s)

        if coordinator.machine.state is not MissionState.LAND:
            continue

        if state.pose.z - cfg.initial_z <= cfg.height_tolerance:
            logger.info("Touchdown at z=%.2f m", state.pose.z)
            state.running = False


# ============================================================
# Main mission entry point
# ============================================================

async def run_mission(args) -> int:
    state = SharedState()
    cfg = load_mission_config(state, goals=args.goals, **mission_params_from_args(args))
    if cfg is None:
        return 1

    # --------------------------------------------------------
    # Connect to PX4 (vehicle) and the ground target
    # --------------------------------------------------------
    drone = await connect_px4(args.system_address, port=VEHICLE_GRPC_PORT)
    target = await connect_px4(args.target_address, port=TARGET_GRPC_PORT)
    await wait_armable(drone)

    # --------------------------------------------------------
    # Watchers first, so the coordinator sees fresh snapshots
    # --------------------------------------------------------
    background_tasks = [
        asyncio.create_task(watch_pose(drone, state)),
        asyncio.create_task(watch_heading(drone, state)),
        asyncio.create_task(watch_yaw_rate(drone, state)),
        asyncio.create_task(watch_target(target, state)),
        asyncio.create_task(watch_target_mission(target, state)),
    ]

    # --------------------------------------------------------
    # Arm & start offboard over the launch point
    # --------------------------------------------------------
    home = (cfg.initial_x, cfg.initial_y, cfg.initial_z)
    await drone.action.arm()
    logger.info("Armed")

    await prestream_position_setpoints(drone, home, n=20)
    if not await start_offboard(drone):
        logger.error("Offboard start failed, aborting mission.")
        state.running = False
        await cancel_and_await(background_tasks)
        with suppress(Exception):
            await drone.action.disarm()
        return 1

    publisher = OffboardSetpointPublisher(drone, state)
    coordinator = TickCoordinator(cfg, state, publish=publisher)

    task_logger = asyncio.create_task(log_telemetry_csv(state, cfg.log_filename))
    background_tasks.append(asyncio.create_task(safety_watchdog(state, cfg)))
    background_tasks.append(asyncio.create_task(watch_landing(coordinator, cfg, state)))

    # --------------------------------------------------------
    # Execute mission
    # --------------------------------------------------------
    try:
        await coordinator.run()

    finally:
        # ----------------------------------------------------
        # Shutdown (always)
        # ----------------------------------------------------
        state.running = False

        with suppress(Exception):
            await task_logger

        await cancel_and_await(background_tasks)

        with suppress(Exception):
            await stop_offboard_and_land(drone)

    if state.emergency_stop:
        logger.warning("Mission ended (EMERGENCY) -> %s", state.emergency_reason)
        return 1

    logger.info(
        "Intercept mission completed in %s (%d ticks, %d idle).",
        coordinator.machine.state.name,
        coordinator.ticks,
        coordinator.idle_ticks,
    )
    return 0


def main(argv=None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(run_mission(args))


if __name__ == "__main__":
    sys.exit(main())
