import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from intercept_autopilot.core.config import MissionConfig
from intercept_autopilot.core.mission_state import MissionStateMachine
from intercept_autopilot.trajectories.cubic import plan_waypoints
from intercept_autopilot.utils.shared_state import SharedState, TickOutput

logger = logging.getLogger(__name__)

Publisher = Callable[[TickOutput], Awaitable[None]]


class TickCoordinator:
    """
    Runs the mission once per control tick:
    snapshot -> state machine -> planner -> latched output.
    """

    def __init__(
        self,
        config: MissionConfig,
        state: SharedState,
        machine: Optional[MissionStateMachine] = None,
        publish: Optional[Publisher] = None,
    ):
        self.cfg = config
        self.state = state
        self.machine = machine or MissionStateMachine(config)
        self.publish = publish
        self.ticks = 0
        self.idle_ticks = 0

    def step(self) -> TickOutput:
        """One tick, no sleeping. Returns the output now latched in the shared state."""
        self.ticks += 1
        inputs = self.state.snapshot()

        # Estimator or tracker not warmed up yet: keep the previous output
        if not inputs.is_valid():
            self.idle_ticks += 1
            logger.debug("Tick %d: waiting for pose/velocity/target", self.ticks)
            return self.state.outputs

        self.machine.update(inputs)
        mission_state = self.machine.state
        dest = self.machine.destination(inputs)

        pose, vel = inputs.pose, inputs.velocity
        try:
            waypoints = plan_waypoints(
                p0=(pose.x, pose.y),
                v0=(vel.vx, vel.vy),
                p1=dest.xy,
                v1=(dest.vx, dest.vy),
                speed=self.cfg.average_speed,
                look_ahead=self.cfg.look_ahead,
                close_enough=self.cfg.close_enough,
                altitude=dest.z,
                mode=self.cfg.look_ahead_mode,
            )
        except ValueError as e:
            self.idle_ticks += 1
            logger.warning("Tick %d: planning skipped: %s", self.ticks, e)
            return self.state.outputs

        output = TickOutput(
            state=mission_state.name,
            rotate=self.machine.rotation_enabled,
            target_point=waypoints[0],
            waypoints=tuple(waypoints),
        )
        self.state.outputs = output
        self.state.mission_phase = mission_state.name

        if self.cfg.verbose:
            logger.info("%s", mission_state.name)

        return output

    async def run(self) -> None:
        dt = 1.0 / self.cfg.main_iter_rate
        logger.info("===== BEGIN =====")

        next_tick = time.monotonic()
        while self.state.running:
            output = self.step()

            if self.publish is not None:
                try:
                    await self.publish(output)
                except Exception as e:
                    # Next tick publishes a fresh output
                    logger.error("Tick %d: publish failed: %s", self.ticks, e)

            # Fixed rate: sleep to the next tick boundary, never negative
            next_tick += dt
            delay = next_tick - time.monotonic()
            if delay < 0.0:
                next_tick = time.monotonic()
                delay = 0.0
            await asyncio.sleep(delay)

        logger.info("===== END =====")
