import asyncio
import time
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from intercept_autopilot.core.config import build_arg_parser, build_mission_config
from intercept_autopilot.core.mission_state import MissionState
from intercept_autopilot.core.offboard_helpers import (
    OffboardSetpointPublisher,
    ned_to_world,
    world_to_ned,
)
from intercept_autopilot.core.safety_watchdog import check_safety, safety_watchdog
from intercept_autopilot.core.tick_coordinator import TickCoordinator
from intercept_autopilot.missions import intercept_mission
from intercept_autopilot.missions.intercept_mission import watch_landing
from intercept_autopilot.utils.shared_state import (
    Pose,
    SharedState,
    TargetPose,
    TickOutput,
    Velocity,
)


@pytest.fixture
def cfg():
    return build_mission_config(goals="8.0,-3.0", verbose=False)


def _fake_drone():
    return SimpleNamespace(offboard=SimpleNamespace(set_position_ned=AsyncMock()))


# ------------------------------------------------------------
# Safety watchdog
# ------------------------------------------------------------

def test_healthy_state_passes(cfg):
    state = SharedState()
    state.set_pose(Pose(0.0, 0.0, 2.0))
    state.velocity = Velocity(1.0, 1.0, 0.0, 0.0)
    assert check_safety(state, cfg, time.time()) is None


def test_nothing_received_yet_is_not_stale(cfg):
    assert check_safety(SharedState(), cfg, time.time()) is None


def test_stale_pose_triggers(cfg):
    state = SharedState()
    state.set_pose(Pose(0.0, 0.0, 2.0))
    reason = check_safety(state, cfg, state.pose_stamp + cfg.stale_after_s + 0.5)
    assert reason.startswith("POSE STALE")


def test_stale_target_only_matters_while_pursuing(cfg):
    state = SharedState()
    state.set_target(TargetPose(1.0, 1.0))
    later = state.target_stamp + cfg.stale_after_s + 0.5

    state.mission_phase = "PURSUE_GOAL"
    assert check_safety(state, cfg, later) is None

    state.mission_phase = "PURSUE_TARGET"
    assert check_safety(state, cfg, later).startswith("TARGET STALE")


def test_overspeed_triggers(cfg):
    state = SharedState()
    state.velocity = Velocity(4.0, 4.0, 0.0, 0.0)
    assert check_safety(state, cfg, time.time()).startswith("SPEED TOO HIGH")


def test_watchdog_clears_run_flag_on_emergency(cfg):
    state = SharedState()
    state.velocity = Velocity(10.0, 0.0, 0.0, 0.0)

    asyncio.run(asyncio.wait_for(safety_watchdog(state, cfg, period_s=0.01), timeout=2.0))

    assert state.emergency_stop is True
    assert state.running is False
    assert "SPEED" in state.emergency_reason


# ------------------------------------------------------------
# Offboard setpoints
# ------------------------------------------------------------

def test_frame_conversion():
    assert world_to_ned(1.0, 2.0, 3.0) == (1.0, 2.0, -3.0)
    assert ned_to_world(*world_to_ned(1.0, 2.0, 3.0)) == (1.0, 2.0, 3.0)


def test_publisher_faces_travel_direction_when_rotating():
    state = SharedState()
    state.set_pose(Pose(0.0, 0.0, 2.0, 0.0))
    drone = _fake_drone()
    publisher = OffboardSetpointPublisher(drone, state)

    asyncio.run(publisher(TickOutput(state="PURSUE_TARGET", rotate=True, target_point=(1.0, 1.0, 2.0))))

    sp = drone.offboard.set_position_ned.await_args.args[0]
    assert (sp.north_m, sp.east_m, sp.down_m) == (1.0, 1.0, -2.0)
    assert sp.yaw_deg == pytest.approx(45.0)


def test_publisher_holds_yaw_without_rotation():
    state = SharedState()
    state.set_pose(Pose(0.0, 0.0, 0.5, 0.0))
    drone = _fake_drone()
    publisher = OffboardSetpointPublisher(drone, state, yaw_deg=30.0)

    asyncio.run(publisher(TickOutput(state="TAKEOFF", rotate=False, target_point=(0.0, -5.0, 2.0))))

    sp = drone.offboard.set_position_ned.await_args.args[0]
    assert sp.yaw_deg == 30.0


def test_publisher_skips_empty_output():
    drone = _fake_drone()
    publisher = OffboardSetpointPublisher(drone, SharedState())

    asyncio.run(publisher(TickOutput()))

    drone.offboard.set_position_ned.assert_not_awaited()


# ------------------------------------------------------------
# Landing monitor
# ------------------------------------------------------------

def _landing_coordinator(cfg, state):
    coord = TickCoordinator(cfg, state)
    for inputs_pose, target, active in [
        (Pose(0.0, 0.0, cfg.height), TargetPose(5.0, 5.0), True),
        (Pose(5.0, 5.0, cfg.height), TargetPose(5.0, 5.0), True),
        (Pose(8.0, -3.0, cfg.height), TargetPose(5.0, 5.0), True),
        (Pose(3.0, 0.0, cfg.height), TargetPose(5.0, 5.0), False),
    ]:
        state.set_pose(inputs_pose)
        state.velocity = Velocity(0.0, 0.0, 0.0, 0.0)
        state.set_target(target)
        state.target_mission_active = active
        coord.step()
    assert coord.machine.state is MissionState.LAND
    return coord


def test_landing_monitor_stops_mission_on_touchdown(cfg):
    state = SharedState()
    coord = _landing_coordinator(cfg, state)
    state.set_pose(Pose(0.0, 0.0, cfg.initial_z + 0.05))

    asyncio.run(asyncio.wait_for(watch_landing(coord, cfg, state, period_s=0.01), timeout=2.0))

    assert state.running is False


def test_landing_monitor_ignores_ground_before_land(cfg):
    state = SharedState()
    coord = TickCoordinator(cfg, state)
    state.set_pose(Pose(0.0, 0.0, cfg.initial_z))

    async def scenario():
        task = asyncio.create_task(watch_landing(coord, cfg, state, period_s=0.01))
        await asyncio.sleep(0.05)
        still_running = state.running
        state.running = False
        await task
        return still_running

    assert asyncio.run(scenario()) is True


# ------------------------------------------------------------
# Mission exit status
# ------------------------------------------------------------

def _stub_mission_io(monkeypatch, ending):
    drone = SimpleNamespace(action=SimpleNamespace(arm=AsyncMock(), disarm=AsyncMock()))
    monkeypatch.setattr(intercept_mission, "connect_px4", AsyncMock(return_value=drone))
    monkeypatch.setattr(intercept_mission, "wait_armable", AsyncMock())
    monkeypatch.setattr(intercept_mission, "prestream_position_setpoints", AsyncMock())
    monkeypatch.setattr(intercept_mission, "start_offboard", AsyncMock(return_value=True))
    monkeypatch.setattr(intercept_mission, "stop_offboard_and_land", AsyncMock())

    async def silent_stream(vehicle, state):
        await asyncio.sleep(3600)

    for name in ("watch_pose", "watch_heading", "watch_yaw_rate", "watch_target", "watch_target_mission"):
        monkeypatch.setattr(intercept_mission, name, silent_stream)

    async def no_csv(state, filename):
        while state.running:
            await asyncio.sleep(0.01)

    monkeypatch.setattr(intercept_mission, "log_telemetry_csv", no_csv)
    monkeypatch.setattr(intercept_mission, "safety_watchdog", ending)


def _mission_args():
    return build_arg_parser().parse_args(["--goals", "1,2", "--quiet", "--main-iter-rate", "100"])


def test_run_mission_exits_nonzero_on_emergency(monkeypatch):
    async def trip(state, cfg):
        await asyncio.sleep(0.05)
        state.emergency_stop = True
        state.emergency_reason = "SPEED TOO HIGH: 9.00 m/s"
        state.running = False

    _stub_mission_io(monkeypatch, trip)
    status = asyncio.run(asyncio.wait_for(intercept_mission.run_mission(_mission_args()), timeout=5.0))

    assert status == 1
    intercept_mission.stop_offboard_and_land.assert_awaited_once()


def test_run_mission_exits_zero_on_normal_shutdown(monkeypatch):
    async def finish(state, cfg):
        await asyncio.sleep(0.05)
        state.running = False

    _stub_mission_io(monkeypatch, finish)
    status = asyncio.run(asyncio.wait_for(intercept_mission.run_mission(_mission_args()), timeout=5.0))

    assert status == 0
