"""
Intercept Mission: Time-Series Analysis

1) Altitude against the cruise height
2) Horizontal speed against the cruise speed
3) Planar distance to the ground target and to the commanded point
4) Mission phase timeline
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from pathlib import Path


# --------------------------------------------------
# Paths
# --------------------------------------------------

REPO_ROOT = Path(__file__).resolve().parents[1]
CSV_PATH = REPO_ROOT / "logs" / "intercept_mission_log.csv"

OUT_DIR = REPO_ROOT / "analysis" / "outputs"
OUT_DIR.mkdir(parents=True, exist_ok=True)

OUT_PNG = OUT_DIR / "intercept_time_series.png"


# --------------------------------------------------
# Mission parameters (MUST match mission)
# --------------------------------------------------

HEIGHT_M = 2.0
AVERAGE_SPEED_M_S = 2.0

PHASES = ["TAKEOFF", "PURSUE_TARGET", "PURSUE_GOAL", "RETURN", "LAND"]


# --------------------------------------------------
# Load CSV
# --------------------------------------------------

df = pd.read_csv(CSV_PATH)
t = df["t"].values

speed_xy = np.hypot(df["vx_m_s"].values, df["vy_m_s"].values)

dist_target = np.hypot(
    df["x_m"].values - df["target_x_m"].values,
    df["y_m"].values - df["target_y_m"].values,
)

dist_cmd = np.hypot(
    df["x_m"].values - df["target_point_x_m"].values,
    df["y_m"].values - df["target_point_y_m"].values,
)

phase_idx = df["mission_phase"].map({p: i for i, p in enumerate(PHASES)}).values


# --------------------------------------------------
# Plot: 4 stacked panels
# --------------------------------------------------

fig, axs = plt.subplots(4, 1, figsize=(10, 10), sharex=True)

axs[0].plot(t, df["z_m"].values)
axs[0].axhline(HEIGHT_M, color="gray", linestyle="--", label="cruise height")
axs[0].set_ylabel("Altitude [m]")
axs[0].legend()
axs[0].grid(True)

axs[1].plot(t, speed_xy)
axs[1].axhline(AVERAGE_SPEED_M_S, color="gray", linestyle="--", label="cruise speed")
axs[1].set_ylabel("Speed XY [m/s]")
axs[1].legend()
axs[1].grid(True)

axs[2].plot(t, dist_target, label="to target")
axs[2].plot(t, dist_cmd, label="to commanded point")
axs[2].set_ylabel("Distance [m]")
axs[2].legend()
axs[2].grid(True)

axs[3].step(t, phase_idx, where="post")
axs[3].set_yticks(range(len(PHASES)))
axs[3].set_yticklabels(PHASES)
axs[3].set_xlabel("Time [s]")
axs[3].grid(True)

fig.suptitle("Intercept Mission: Time-Series Analysis", fontsize=14)

plt.tight_layout(rect=[0, 0, 1, 0.96])
plt.savefig(OUT_PNG, dpi=200)
plt.close()

print(f"Saved analysis plot → {OUT_PNG}")
