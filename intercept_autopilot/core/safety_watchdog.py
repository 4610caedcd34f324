import asyncio
import logging
import math
import time
from typing import Optional

from intercept_autopilot.core.config import MissionConfig
from intercept_autopilot.utils.shared_state import SharedState

logger = logging.getLogger(__name__)


def check_safety(state: SharedState, cfg: MissionConfig, now: float) -> Optional[str]:
    """Return an emergency reason, or None while the flight is healthy."""
    # Stale estimator
    if state.pose_stamp is not None and now - state.pose_stamp > cfg.stale_after_s:
        return f"POSE STALE: {now - state.pose_stamp:.2f} s"

    # Stale tracker, only while the target is what we are flying to
    if (
        state.mission_phase == "PURSUE_TARGET"
        and state.target_stamp is not None
        and now - state.target_stamp > cfg.stale_after_s
    ):
        return f"TARGET STALE: {now - state.target_stamp:.2f} s"

    # Speed check
    vel = state.velocity
    if vel.is_valid():
        speed = math.sqrt(vel.vx * vel.vx + vel.vy * vel.vy + vel.vz * vel.vz)
        if speed > cfg.max_speed_m_s:
            return f"SPEED TOO HIGH: {speed:.2f} m/s"

    return None


async def safety_watchdog(
    state: SharedState,
    cfg: MissionConfig,
    period_s: float = 0.1,
):
    while state.running and not state.emergency_stop:
        await asyncio.sleep(period_s)

        reason = check_safety(state, cfg, time.time())
        if reason is not None:
            state.emergency_stop = True
            state.emergency_reason = reason
            break

    if state.emergency_stop:
        logger.error("SAFETY TRIGGERED -> %s", state.emergency_reason)
        state.running = False

    logger.info("Safety watchdog stopped.")
