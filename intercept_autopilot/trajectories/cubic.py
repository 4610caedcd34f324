"""
Point-to-point cubic trajectory generator.

Pure mathematical reference trajectory for autonomous UAV flight planning.
No PX4 / MAVSDK code here.

Each axis is an independent cubic Hermite polynomial

    f(t) = a0 + a1 t + a2 t^2 + a3 t^3,   t in [0, T]

fixed by the four boundary conditions f(0) = p0, f(T) = p1,
f'(0) = v0, f'(T) = v1.
"""

import math
from typing import List, Sequence, Tuple

import numpy as np

SAMPLE_MODES = ("time", "distance")

# Dense evaluation used to measure arc length in distance mode
_ARC_SAMPLES = 400


def planar_distance(a: Sequence[float], b: Sequence[float]) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


class CubicTrajectory:
    def __init__(
        self,
        p0: Sequence[float],
        v0: Sequence[float],
        p1: Sequence[float],
        v1: Sequence[float],
        duration: float,
    ):
        if duration <= 0.0:
            raise ValueError(f"duration must be positive, got {duration}")

        self.p0 = np.asarray(p0, dtype=float)
        self.v0 = np.asarray(v0, dtype=float)
        self.p1 = np.asarray(p1, dtype=float)
        self.v1 = np.asarray(v1, dtype=float)
        self.T = float(duration)

        T = self.T
        # Rows are a0..a3, columns are axes
        self.coeffs = np.vstack([
            self.p0,
            self.v0,
            (3.0 * (self.p1 - self.p0) - T * (2.0 * self.v0 + self.v1)) / T**2,
            (2.0 * (self.p0 - self.p1) + T * (self.v0 + self.v1)) / T**3,
        ])

    def duration(self) -> float:
        return self.T

    def position(self, t: float) -> np.ndarray:
        a0, a1, a2, a3 = self.coeffs
        return a0 + a1 * t + a2 * t**2 + a3 * t**3

    def velocity(self, t: float) -> np.ndarray:
        _, a1, a2, a3 = self.coeffs
        return a1 + 2.0 * a2 * t + 3.0 * a3 * t**2

    def sample_times(self, step: float) -> List[float]:
        """
        Sample times step, 2*step, ... below T, then T itself.

        Always ceil(T / step) samples, the last one exactly at T.
        """
        if step <= 0.0:
            raise ValueError(f"look-ahead step must be positive, got {step}")

        n = max(1, math.ceil(self.T / step - 1e-9))
        return [k * step for k in range(1, n)] + [self.T]

    def sample_times_by_distance(self, step: float) -> List[float]:
        """Sample times spaced by `step` of arc length, ending at T."""
        if step <= 0.0:
            raise ValueError(f"look-ahead step must be positive, got {step}")

        ts = np.linspace(0.0, self.T, _ARC_SAMPLES)
        pts = np.array([self.position(t) for t in ts])
        seg = np.linalg.norm(np.diff(pts, axis=0), axis=1)
        arc = np.concatenate([[0.0], np.cumsum(seg)])
        length = float(arc[-1])

        n = max(1, math.ceil(length / step - 1e-9))
        targets = [k * step for k in range(1, n)]
        return [float(t) for t in np.interp(targets, arc, ts)] + [self.T]

    def waypoints(self, step: float, mode: str = "time") -> List[np.ndarray]:
        if mode == "time":
            times = self.sample_times(step)
        elif mode == "distance":
            times = self.sample_times_by_distance(step)
        else:
            raise ValueError(f"unknown sample mode: {mode!r}")

        pts = [self.position(t) for t in times[:-1]]
        # Exact end point, not the polynomial value at T
        pts.append(self.p1.copy())
        return pts


def plan_waypoints(
    p0: Sequence[float],
    v0: Sequence[float],
    p1: Sequence[float],
    v1: Sequence[float],
    speed: float,
    look_ahead: float,
    close_enough: float,
    altitude: float,
    mode: str = "time",
    epsilon: float = 1e-6,
) -> List[Tuple[float, float, float]]:
    """
    Plan a planar cubic from (p0, v0) to (p1, v1) and sample it into
    (x, y, altitude) waypoints.

    Duration is the straight-line distance over the cruise speed. A
    destination closer than `close_enough` yields the single point p1.
    """
    if speed <= 0.0:
        raise ValueError(f"cruise speed must be positive, got {speed}")

    distance = planar_distance(p0, p1)
    if distance < close_enough:
        return [(float(p1[0]), float(p1[1]), float(altitude))]

    T = max(distance / speed, epsilon)
    trajectory = CubicTrajectory(p0[:2], v0[:2], p1[:2], v1[:2], T)

    return [
        (float(p[0]), float(p[1]), float(altitude))
        for p in trajectory.waypoints(look_ahead, mode)
    ]
