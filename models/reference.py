"""
Time-parameterized reference path

Waypoints come from an external sampling-based planner (geometric path,
no timing). Timing is imposed here: waypoint i arrives at t_i = i * dt,
with dt = total_time / (n - 1) unless a sampling interval is given.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np

from .errors import MalformedInputError
from .validity import StateValidityChecker


def wrap_angle(angle):
    """Wrap angle(s) into [-pi, pi)"""
    return (np.asarray(angle) + np.pi) % (2.0 * np.pi) - np.pi


@dataclass(frozen=True, eq=False)
class ReferenceTrajectory:
    """Ordered waypoints (n x 3) with uniform arrival times"""

    waypoints: np.ndarray      # (n, 3) raw x, y, theta
    dt: float                  # Sampling interval (s)

    def __post_init__(self):
        waypoints = np.array(self.waypoints, dtype=float)
        if waypoints.ndim != 2 or waypoints.shape[1] != 3:
            raise MalformedInputError(f"waypoints must have shape (n, 3), got {waypoints.shape}")
        if waypoints.shape[0] < 2:
            raise MalformedInputError(f"need at least 2 waypoints, got {waypoints.shape[0]}")
        if not np.all(np.isfinite(waypoints)):
            raise MalformedInputError("waypoints contain non-finite values")
        if not (np.isfinite(self.dt) and self.dt > 0):
            raise MalformedInputError(f"sampling interval must be > 0, got {self.dt}")

        waypoints.setflags(write=False)
        object.__setattr__(self, 'waypoints', waypoints)
        # Unwrapped heading so interpolation never takes the long way round
        unwrapped = np.unwrap(waypoints[:, 2])
        unwrapped.setflags(write=False)
        object.__setattr__(self, '_theta_unwrapped', unwrapped)

    @classmethod
    def from_waypoints(cls,
                       waypoints,
                       total_time: Optional[float] = None,
                       sampling_interval: Optional[float] = None) -> 'ReferenceTrajectory':
        """Build from raw waypoints and either a total time or a sampling interval"""
        waypoints = np.asarray(waypoints, dtype=float)
        if waypoints.ndim != 2 or waypoints.shape[0] < 2:
            raise MalformedInputError(f"need at least 2 waypoints, got shape {waypoints.shape}")

        if sampling_interval is not None:
            dt = float(sampling_interval)
        elif total_time is not None:
            dt = float(total_time) / (waypoints.shape[0] - 1)
        else:
            raise ValueError("give either total_time or sampling_interval")

        return cls(waypoints=waypoints, dt=dt)

    @classmethod
    def from_file(cls,
                  path: Union[str, Path],
                  total_time: Optional[float] = 70.0,
                  sampling_interval: Optional[float] = None,
                  strict: bool = False) -> 'ReferenceTrajectory':
        """Load a planner output file (one 'x y theta' per line)"""
        from utils.io import load_waypoints

        waypoints = load_waypoints(path, strict=strict)
        return cls.from_waypoints(waypoints, total_time=total_time, sampling_interval=sampling_interval)

    def __len__(self) -> int:
        return self.waypoints.shape[0]

    def length(self) -> int:
        """Number of waypoints"""
        return len(self)

    @property
    def total_duration(self) -> float:
        return (len(self) - 1) * self.dt

    @property
    def times(self) -> np.ndarray:
        return np.arange(len(self)) * self.dt

    @property
    def initial_state(self) -> np.ndarray:
        return self.waypoints[0].copy()

    @property
    def final_state(self) -> np.ndarray:
        return self.waypoints[-1].copy()

    def sample(self, times) -> np.ndarray:
        """
        Target states at the given times, shape (len(times), 3).

        Times are clamped to [0, total_duration]: the first waypoint before
        the start, the last waypoint held after the end. Exact hits on a
        waypoint time return that waypoint unchanged.
        """
        times = np.clip(np.atleast_1d(np.asarray(times, dtype=float)), 0.0, self.total_duration)
        grid = self.times
        wp = self.waypoints

        out = np.empty((len(times), 3))
        out[:, 0] = np.interp(times, grid, wp[:, 0])
        out[:, 1] = np.interp(times, grid, wp[:, 1])
        out[:, 2] = wrap_angle(np.interp(times, grid, self._theta_unwrapped))

        # Keep the raw waypoint (incl. theta == pi) when the time hits it
        s = times / self.dt
        nearest = np.rint(s).astype(int)
        on_node = np.abs(s - nearest) < 1e-9
        out[on_node] = wp[nearest[on_node]]
        return out

    def value_at(self, t: float) -> np.ndarray:
        """Target state at time t (clamped, constant hold after the end)"""
        return self.sample([t])[0]

    def check_validity(self, checker: StateValidityChecker) -> Tuple[np.ndarray, float]:
        """
        Audit the waypoints with the planner's validity checker.

        Returns:
            invalid_indices: waypoint indices rejected by the checker
            min_clearance: smallest clearance along the path
        """
        invalid = [i for i, wp in enumerate(self.waypoints) if not checker.is_valid(wp)]
        min_clearance = min(checker.clearance(wp) for wp in self.waypoints)
        return np.array(invalid, dtype=int), float(min_clearance)
