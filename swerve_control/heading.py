"""Closed-loop heading control for the swerve chassis.

This module provides a profiled PID controller over angle with continuous
(wrap-around) input, and the two teleop heading controllers built on it:
- HeadingLock: hold a fixed field heading
- PointFocus: keep the chassis facing a fixed field point

Both produce only the rotational component of a chassis velocity. Translation
stays under driver control.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from .config import (
    FOCUS_POINT_OFFSET,
    HEADING_KD,
    HEADING_KP,
    HEADING_MAX_ACCEL,
    HEADING_MAX_VELOCITY,
    TICK_PERIOD,
)
from .geometry import Pose, angle_error, wrap_angle


@dataclass(frozen=True)
class ProfileState:
    """Position and velocity of a motion-profile setpoint."""

    position: float = 0.0
    velocity: float = 0.0


def trapezoid_step(
    current: ProfileState,
    goal: ProfileState,
    max_velocity: float,
    max_accel: float,
    dt: float,
) -> ProfileState:
    """Advance a trapezoidal motion profile by one step.

    The setpoint accelerates toward the goal at max_accel, cruises at
    max_velocity, and decelerates so that it reaches the goal with the goal
    velocity. If a step would carry it past the goal, it lands on the goal.

    Args:
        current: Current setpoint
        goal: Target position and velocity
        max_velocity: Velocity bound (units/s)
        max_accel: Acceleration bound (units/s²)
        dt: Step length (s)

    Returns:
        Setpoint after dt
    """
    distance = goal.position - current.position
    if distance == 0.0:
        return ProfileState(goal.position, goal.velocity)
    direction = math.copysign(1.0, distance)

    # Fastest speed from which we can still brake to the goal velocity
    brake_speed = math.sqrt(goal.velocity * goal.velocity + 2.0 * max_accel * abs(distance))
    target_velocity = direction * min(max_velocity, brake_speed)

    dv = target_velocity - current.velocity
    max_dv = max_accel * dt
    dv = max(-max_dv, min(max_dv, dv))
    velocity = current.velocity + dv

    position = current.position + 0.5 * (current.velocity + velocity) * dt

    # Landed on or crossed the goal
    if (goal.position - position) * direction <= 0.0:
        return ProfileState(goal.position, goal.velocity)

    return ProfileState(position, velocity)


class ProfiledHeadingController:
    """PID controller on heading whose setpoint follows a trapezoidal profile.

    Input is continuous over a full rotation: the goal and setpoint are always
    re-expressed within half a turn of the measurement, so the controller
    always turns the short way. A heading of 359° with a goal of 1° gives a
    goal error of +2°, not -358°.

    Control law:
        error = wrap(setpoint - measurement)
        omega = kp * error + kd * d(error)/dt

    Attributes:
        kp: Proportional gain ((rad/s) per rad)
        kd: Derivative gain
        max_velocity: Profile velocity bound (rad/s)
        max_accel: Profile acceleration bound (rad/s²)
        period: Time between calculate() calls (s)
        setpoint: Current profile setpoint
        position_error: Last wrapped setpoint error (rad)
        goal_error: Last wrapped goal error (rad)
    """

    def __init__(
        self,
        kp: float = HEADING_KP,
        kd: float = HEADING_KD,
        max_velocity: float = HEADING_MAX_VELOCITY,
        max_accel: float = HEADING_MAX_ACCEL,
        period: float = TICK_PERIOD,
    ):
        self.kp = kp
        self.kd = kd
        self.max_velocity = max_velocity
        self.max_accel = max_accel
        self.period = period

        self.setpoint = ProfileState()
        self.position_error: float = 0.0
        self.goal_error: float = 0.0
        self.prev_error: Optional[float] = None

    def reset(self, measurement: float, velocity: float = 0.0) -> None:
        """Restart the profile from the measured heading and yaw rate.

        Starting from the measured rate avoids a derivative kick and a
        velocity discontinuity when the controller takes over a spinning chassis.
        """
        self.setpoint = ProfileState(measurement, velocity)
        self.position_error = 0.0
        self.goal_error = 0.0
        self.prev_error = None

    def calculate(self, measurement: float, goal: float) -> float:
        """Compute the angular velocity command for this tick.

        Args:
            measurement: Current heading (rad)
            goal: Desired heading (rad)

        Returns:
            Angular velocity command (rad/s)
        """
        self.goal_error = angle_error(goal, measurement)

        # Re-express goal and setpoint within half a turn of the measurement
        goal_state = ProfileState(measurement + self.goal_error, 0.0)
        setpoint_offset = angle_error(self.setpoint.position, measurement)
        current = ProfileState(measurement + setpoint_offset, self.setpoint.velocity)

        self.setpoint = trapezoid_step(
            current, goal_state, self.max_velocity, self.max_accel, self.period
        )

        error = angle_error(self.setpoint.position, measurement)
        if self.prev_error is None:
            derivative = 0.0
        else:
            derivative = (error - self.prev_error) / self.period
        self.prev_error = error
        self.position_error = error

        return self.kp * error + self.kd * derivative


class HeadingLock:
    """Holds a fixed field heading while translation is driver controlled."""

    def __init__(self, heading: float, controller: Optional[ProfiledHeadingController] = None):
        self.heading = wrap_angle(heading)
        self.controller = controller if controller is not None else ProfiledHeadingController()

    def start(self, measured_heading: float, yaw_rate: float) -> None:
        self.controller.reset(measured_heading, yaw_rate)

    def target(self, pose: Pose) -> float:
        return self.heading

    def calculate(self, pose: Pose) -> float:
        """Angular velocity command that steers pose.heading toward the lock."""
        return self.controller.calculate(pose.heading, self.target(pose))


class PointFocus(HeadingLock):
    """Keeps the chassis facing a fixed field point.

    The target heading is recomputed every tick as the bearing from the point
    to the chassis plus a configurable offset. With the default offset of pi
    that is the bearing from the chassis to the point, so the chassis front
    faces the point.
    """

    def __init__(
        self,
        point: Tuple[float, float],
        offset: float = FOCUS_POINT_OFFSET,
        controller: Optional[ProfiledHeadingController] = None,
    ):
        super().__init__(0.0, controller)
        self.point = (float(point[0]), float(point[1]))
        self.offset = offset

    def target(self, pose: Pose) -> float:
        away_from_point = math.atan2(pose.y - self.point[1], pose.x - self.point[0])
        return wrap_angle(away_from_point + self.offset)
