import math
from dataclasses import replace

from mavsdk import System

from .shared_state import Pose, SharedState, TargetPose, Velocity


async def watch_pose(drone: System, state: SharedState):
    """Position and linear velocity, NED converted to the z-up world frame."""
    async for data in drone.telemetry.position_velocity_ned():
        pos = data.position
        vel = data.velocity
        state.set_pose(Pose(
            x=pos.north_m,
            y=pos.east_m,
            z=-pos.down_m,
            heading=state.pose.heading,
        ))
        state.velocity = Velocity(
            vx=vel.north_m_s,
            vy=vel.east_m_s,
            vz=-vel.down_m_s,
            yaw_rate=state.velocity.yaw_rate,
        )

        if not state.running:
            break


async def watch_heading(drone: System, state: SharedState):
    async for att in drone.telemetry.attitude_euler():
        state.pose = replace(state.pose, heading=math.radians(att.yaw_deg))
        if not state.running:
            break


async def watch_yaw_rate(drone: System, state: SharedState):
    async for rate in drone.telemetry.attitude_angular_velocity_body():
        state.velocity = replace(state.velocity, yaw_rate=rate.yaw_rad_s)
        if not state.running:
            break


async def watch_target(target: System, state: SharedState):
    """Ground target position and planar velocity from the tracked vehicle."""
    async for data in target.telemetry.position_velocity_ned():
        pos = data.position
        vel = data.velocity
        state.set_target(TargetPose(
            x=pos.north_m,
            y=pos.east_m,
            vx=vel.north_m_s,
            vy=vel.east_m_s,
        ))

        if not state.running:
            break


async def watch_target_mission(target: System, state: SharedState):
    """The target's mission is active until its last item is reached."""
    async for progress in target.mission.mission_progress():
        state.target_mission_active = progress.current < progress.total
        if not state.running:
            break
