import asyncio
import csv
import logging
import math
import time
from pathlib import Path
from typing import Optional

from .shared_state import SharedState

logger = logging.getLogger(__name__)

CSV_HEADER = [
    "unix_time", "t",
    "x_m", "y_m", "z_m",
    "vx_m_s", "vy_m_s", "vz_m_s",
    "heading_deg",
    "target_x_m", "target_y_m",
    "mission_phase", "rotate",
    "target_point_x_m", "target_point_y_m", "target_point_z_m",
    "n_waypoints",
]


def default_logs_dir() -> Path:
    # intercept_autopilot/utils/telemetry_logger.py -> repo_root = parents[2]
    return Path(__file__).resolve().parents[2] / "logs"


def _fmt(v: float) -> str:
    return "" if math.isnan(v) else f"{v:.3f}"


def telemetry_row(state: SharedState, t0: float, now: float) -> list:
    pose, vel, target, out = state.pose, state.velocity, state.target, state.outputs

    heading = "" if math.isnan(pose.heading) else f"{math.degrees(pose.heading):.1f}"
    tp = out.target_point or ("", "", "")

    return [
        f"{now:.3f}", f"{now - t0:.3f}",
        _fmt(pose.x), _fmt(pose.y), _fmt(pose.z),
        _fmt(vel.vx), _fmt(vel.vy), _fmt(vel.vz),
        heading,
        _fmt(target.x), _fmt(target.y),
        state.mission_phase, int(out.rotate),
        *(f"{v:.3f}" if v != "" else "" for v in tp),
        len(out.waypoints),
    ]


async def log_telemetry_csv(
    state: SharedState,
    filename: str,
    logs_dir: Optional[Path] = None,
    rate_hz: float = 10.0,
):
    """
    Log vehicle, target and mission output to a CSV file in <repo_root>/logs/
    until the shared run flag is cleared.
    """
    logs_dir = logs_dir or default_logs_dir()
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / filename

    logger.info("Telemetry logger started -> %s", log_path)

    with open(log_path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)

        t0 = time.time()
        while state.running:
            if state.pose.is_valid():
                writer.writerow(telemetry_row(state, t0, time.time()))

            await asyncio.sleep(1.0 / rate_hz)

    logger.info("Telemetry logger stopped.")
