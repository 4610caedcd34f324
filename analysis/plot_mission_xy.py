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

OUT_PNG = OUT_DIR / "intercept_xy_trajectory.png"

PHASE_COLORS = {
    "TAKEOFF": "tab:gray",
    "PURSUE_TARGET": "tab:red",
    "PURSUE_GOAL": "tab:blue",
    "RETURN": "tab:green",
    "LAND": "black",
}

# --------------------------------------------------
# Load telemetry
# --------------------------------------------------

df = pd.read_csv(CSV_PATH)

# Columns:
# unix_time,t,x_m,y_m,z_m,vx_m_s,vy_m_s,vz_m_s,heading_deg,target_x_m,target_y_m,
# mission_phase,rotate,target_point_x_m,target_point_y_m,target_point_z_m,n_waypoints

# --------------------------------------------------
# Plot XY path, one colour per mission phase
# --------------------------------------------------

plt.figure(figsize=(7, 7))

for phase, color in PHASE_COLORS.items():
    seg = df[df["mission_phase"] == phase]
    if seg.empty:
        continue
    plt.plot(seg["x_m"], seg["y_m"], ".", markersize=3, color=color, label=phase)

target = df.dropna(subset=["target_x_m", "target_y_m"])
plt.plot(target["target_x_m"], target["target_y_m"], "--", color="orange",
         linewidth=1.5, label="Ground target")

plt.scatter(df["x_m"].iloc[0], df["y_m"].iloc[0], color="green", s=60, marker="^", label="Start")
plt.scatter(df["x_m"].iloc[-1], df["y_m"].iloc[-1], color="red", s=60, marker="v", label="End")

plt.axis("equal")
plt.grid(True)

plt.xlabel("x (North) [m]")
plt.ylabel("y (East) [m]")
plt.title("Intercept Mission XY Path (PX4 + MAVSDK)")

plt.legend()

# --------------------------------------------------
# Save
# --------------------------------------------------

plt.savefig(OUT_PNG, dpi=200, bbox_inches="tight")
plt.close()

print(f"Saved plot → {OUT_PNG}")
