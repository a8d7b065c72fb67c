"""Time-parameterized trajectories for holonomic path following.

A trajectory is a set of equal-length sample arrays (time, field position,
unwrapped heading, field velocity, angular velocity), immutable once built.
Trajectories come from two places:
- Pre-built named trajectories held by a TrajectoryLibrary and loaded once
- On-the-fly generation from the current pose to a goal pose

Generated trajectories follow the waypoint polyline with a trapezoidal speed
profile along arc length, start and end at rest, and interpolate heading
linearly with distance traveled (the chassis is holonomic, so heading is
independent of the direction of travel).
"""

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import numpy.typing as npt

from .config import (
    PATH_MAX_ACCEL,
    PATH_MAX_ANG_ACCEL,
    PATH_MAX_ANG_VELOCITY,
    PATH_MAX_VELOCITY,
    PATH_MIN_DISTANCE,
    PATH_SAMPLE_PERIOD,
)
from .errors import TrajectoryGenerationError, UnknownTrajectoryError
from .geometry import ChassisVelocity, Pose, angle_error, wrap_angle


@dataclass(frozen=True)
class PathConstraints:
    """Motion bounds for trajectory generation."""

    max_velocity: float = PATH_MAX_VELOCITY
    max_accel: float = PATH_MAX_ACCEL
    max_ang_velocity: float = PATH_MAX_ANG_VELOCITY
    max_ang_accel: float = PATH_MAX_ANG_ACCEL

    def validate(self) -> None:
        for name in ("max_velocity", "max_accel", "max_ang_velocity", "max_ang_accel"):
            value = getattr(self, name)
            if not (math.isfinite(value) and value > 0.0):
                raise TrajectoryGenerationError(f"Constraint {name} must be positive, got {value}")


@dataclass(frozen=True)
class TrajectoryState:
    """One sample of a trajectory.

    Attributes:
        time: Time since trajectory start (s)
        pose: Desired field pose
        velocity: Desired field-relative chassis velocity
    """

    time: float
    pose: Pose
    velocity: ChassisVelocity


def _frozen(values: Iterable[float]) -> npt.NDArray[np.float64]:
    array = np.array(values, dtype=np.float64)
    array.setflags(write=False)
    return array


class Trajectory:
    """Immutable sampled trajectory.

    Attributes:
        name: Optional name for logging
        t: Sample times (s), strictly increasing from 0
        x, y: Field position (m)
        heading: Unwrapped heading (rad)
        vx, vy: Field-relative velocity (m/s)
        omega: Angular velocity (rad/s)
    """

    def __init__(
        self,
        t: Sequence[float],
        x: Sequence[float],
        y: Sequence[float],
        heading: Sequence[float],
        vx: Sequence[float],
        vy: Sequence[float],
        omega: Sequence[float],
        name: str = "",
    ):
        self.name = name
        self.t = _frozen(t)
        self.x = _frozen(x)
        self.y = _frozen(y)
        self.heading = _frozen(heading)
        self.vx = _frozen(vx)
        self.vy = _frozen(vy)
        self.omega = _frozen(omega)

        lengths = {len(a) for a in (self.t, self.x, self.y, self.heading, self.vx, self.vy, self.omega)}
        if len(lengths) != 1:
            raise TrajectoryGenerationError("Trajectory sample arrays differ in length")
        if len(self.t) < 2:
            raise TrajectoryGenerationError("Trajectory needs at least two samples")
        if self.t[0] != 0.0 or np.any(np.diff(self.t) <= 0.0):
            raise TrajectoryGenerationError("Trajectory times must start at 0 and increase")

    def __repr__(self) -> str:
        return f"Trajectory(name={self.name!r}, duration={self.total_time:.2f}s, samples={len(self.t)})"

    @property
    def total_time(self) -> float:
        return float(self.t[-1])

    @property
    def initial_pose(self) -> Pose:
        return Pose(float(self.x[0]), float(self.y[0]), wrap_angle(float(self.heading[0])))

    @property
    def end_pose(self) -> Pose:
        return Pose(float(self.x[-1]), float(self.y[-1]), wrap_angle(float(self.heading[-1])))

    @property
    def end_velocity(self) -> ChassisVelocity:
        return ChassisVelocity(float(self.vx[-1]), float(self.vy[-1]), float(self.omega[-1]))

    def sample(self, time: float) -> TrajectoryState:
        """Interpolate the trajectory at a time, clamped to [0, total_time].

        Args:
            time: Time since trajectory start (s)

        Returns:
            Interpolated trajectory state
        """
        time = min(max(time, 0.0), self.total_time)

        def at(values: npt.NDArray[np.float64]) -> float:
            return float(np.interp(time, self.t, values))

        return TrajectoryState(
            time=time,
            pose=Pose(at(self.x), at(self.y), wrap_angle(at(self.heading))),
            velocity=ChassisVelocity(at(self.vx), at(self.vy), at(self.omega)),
        )

    @classmethod
    def from_waypoints(
        cls,
        points: Sequence[Tuple[float, float]],
        start_heading: float,
        end_heading: float,
        constraints: PathConstraints = PathConstraints(),
        sample_period: float = PATH_SAMPLE_PERIOD,
        name: str = "",
    ) -> "Trajectory":
        """Build a rest-to-rest trajectory along a waypoint polyline.

        Args:
            points: Field (x, y) waypoints (m), at least two distinct
            start_heading: Heading at the first waypoint (rad)
            end_heading: Heading at the last waypoint (rad)
            constraints: Speed and acceleration bounds
            sample_period: Time between samples (s)
            name: Optional trajectory name

        Returns:
            Generated trajectory

        Raises:
            TrajectoryGenerationError: If the polyline is degenerate or the
                constraints are invalid
        """
        constraints.validate()
        if not sample_period > 0.0:
            raise TrajectoryGenerationError(f"sample_period must be positive, got {sample_period}")

        pts = np.array(points, dtype=np.float64)
        if pts.ndim != 2 or pts.shape[1] != 2 or len(pts) < 2 or not np.all(np.isfinite(pts)):
            raise TrajectoryGenerationError("Trajectory needs two or more finite (x, y) waypoints")
        if not (math.isfinite(start_heading) and math.isfinite(end_heading)):
            raise TrajectoryGenerationError("Trajectory headings must be finite")

        # Drop repeated waypoints, which have no direction
        segments = np.diff(pts, axis=0)
        seg_lengths = np.hypot(segments[:, 0], segments[:, 1])
        keep = np.concatenate(([True], seg_lengths > 1e-9))
        pts = pts[keep]
        segments = np.diff(pts, axis=0)
        seg_lengths = np.hypot(segments[:, 0], segments[:, 1])

        length = float(np.sum(seg_lengths))
        if len(pts) < 2 or length < PATH_MIN_DISTANCE:
            raise TrajectoryGenerationError(
                f"Degenerate trajectory: path length {length:.4f}m below {PATH_MIN_DISTANCE}m"
            )

        cumulative = np.concatenate(([0.0], np.cumsum(seg_lengths)))
        directions = segments / seg_lengths[:, None]

        turn = angle_error(end_heading, start_heading)

        # Heading rate scales with speed, so rotation bounds cap translation
        max_velocity = constraints.max_velocity
        max_accel = constraints.max_accel
        if abs(turn) > 1e-9:
            max_velocity = min(max_velocity, constraints.max_ang_velocity * length / abs(turn))
            max_accel = min(max_accel, constraints.max_ang_accel * length / abs(turn))

        t, s, v = _trapezoid_profile(length, max_velocity, max_accel, sample_period)

        segment_index = np.clip(np.searchsorted(cumulative, s, side="right") - 1, 0, len(segments) - 1)
        x = np.interp(s, cumulative, pts[:, 0])
        y = np.interp(s, cumulative, pts[:, 1])
        vx = v * directions[segment_index, 0]
        vy = v * directions[segment_index, 1]
        heading = start_heading + turn * s / length
        omega = turn * v / length

        return cls(t, x, y, heading, vx, vy, omega, name=name)


def _trapezoid_profile(
    length: float, max_velocity: float, max_accel: float, dt: float
) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Rest-to-rest trapezoidal speed profile over a distance.

    Returns:
        Tuple of (t, s, v) arrays: time, distance traveled and speed
    """
    t_accel = max_velocity / max_accel
    d_accel = 0.5 * max_accel * t_accel**2

    if 2.0 * d_accel >= length:
        # Triangle profile: never reaches max_velocity
        t_accel = math.sqrt(length / max_accel)
        peak = max_accel * t_accel
        t_cruise = 0.0
    else:
        peak = max_velocity
        t_cruise = (length - 2.0 * d_accel) / max_velocity

    total = 2.0 * t_accel + t_cruise
    d_accel = 0.5 * max_accel * t_accel**2

    t = np.arange(0.0, total, dt)
    if total - t[-1] < 1e-9:
        t = t[:-1]
    t = np.append(t, total)

    t_decel_start = t_accel + t_cruise
    t_remaining = total - t

    s = np.where(
        t < t_accel,
        0.5 * max_accel * t**2,
        np.where(
            t < t_decel_start,
            d_accel + peak * (t - t_accel),
            length - 0.5 * max_accel * t_remaining**2,
        ),
    )
    v = np.where(
        t < t_accel,
        max_accel * t,
        np.where(t < t_decel_start, peak, max_accel * t_remaining),
    )

    s = np.clip(s, 0.0, length)
    s[-1] = length
    v = np.clip(v, 0.0, peak)
    v[-1] = 0.0
    return t, s, v


def generate_trajectory(
    start: Pose,
    goal: Pose,
    constraints: PathConstraints = PathConstraints(),
    goal_heading: Optional[float] = None,
    sample_period: float = PATH_SAMPLE_PERIOD,
) -> Trajectory:
    """Generate a straight rest-to-rest trajectory from start to goal.

    Args:
        start: Starting pose (usually the live pose estimate)
        goal: Goal pose
        constraints: Speed and acceleration bounds
        goal_heading: Heading to hold at the goal. Defaults to goal.heading.
        sample_period: Time between samples (s)

    Returns:
        Generated trajectory

    Raises:
        TrajectoryGenerationError: If start and goal coincide or the
            constraints are invalid
    """
    end_heading = goal.heading if goal_heading is None else goal_heading
    return Trajectory.from_waypoints(
        [(start.x, start.y), (goal.x, goal.y)],
        start.heading,
        end_heading,
        constraints=constraints,
        sample_period=sample_period,
        name="on-the-fly",
    )


class TrajectoryLibrary:
    """Named pre-built trajectories plus on-the-fly generation.

    Named trajectories are added once at startup and never replaced.
    """

    def __init__(
        self,
        constraints: PathConstraints = PathConstraints(),
        sample_period: float = PATH_SAMPLE_PERIOD,
    ):
        self.constraints = constraints
        self.sample_period = sample_period
        self._trajectories: Dict[str, Trajectory] = {}

    def add(self, name: str, trajectory: Trajectory) -> None:
        if name in self._trajectories:
            raise ValueError(f"Trajectory '{name}' is already loaded")
        self._trajectories[name] = trajectory

    def add_waypoints(
        self,
        name: str,
        points: Sequence[Tuple[float, float]],
        start_heading: float,
        end_heading: float,
    ) -> Trajectory:
        trajectory = Trajectory.from_waypoints(
            points,
            start_heading,
            end_heading,
            constraints=self.constraints,
            sample_period=self.sample_period,
            name=name,
        )
        self.add(name, trajectory)
        return trajectory

    def get(self, name: str) -> Trajectory:
        try:
            return self._trajectories[name]
        except KeyError:
            raise UnknownTrajectoryError(f"No trajectory named '{name}'") from None

    def names(self) -> List[str]:
        return list(self._trajectories)

    def generate(self, start: Pose, goal: Pose, goal_heading: Optional[float] = None) -> Trajectory:
        return generate_trajectory(start, goal, self.constraints, goal_heading, self.sample_period)
