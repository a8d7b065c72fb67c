"""Holonomic trajectory follower for the swerve chassis.

This module implements closed-loop trajectory tracking that:
- Samples the trajectory at the elapsed follow time (time-based reference)
- Uses the sampled field velocity as feedforward
- Adds PID feedback on field x, field y and heading error from the pose estimate
- Converts the field-relative result into a chassis-frame velocity
"""

import math
from typing import Callable, Dict, Iterable, Optional

from .commands import Action, Resource
from .config import (
    PATH_HEADING_TOLERANCE,
    PATH_POSITION_TOLERANCE,
    PATH_ROTATION_KD,
    PATH_ROTATION_KI,
    PATH_ROTATION_KP,
    PATH_SETTLED_ANG_VELOCITY,
    PATH_SETTLED_VELOCITY,
    PATH_TRANSLATION_KD,
    PATH_TRANSLATION_KI,
    PATH_TRANSLATION_KP,
    TICK_PERIOD,
)
from .geometry import ChassisVelocity, Pose, angle_error
from .trajectory import Trajectory, TrajectoryState

PATH_DIAGNOSTIC_KEYS = (
    "elapsed",
    "position_error",
    "heading_error",
    "heading_error_deg",
    "cmd_vx",
    "cmd_vy",
    "cmd_omega",
)


class PIDController:
    """PID controller on a scalar error with integral anti-windup.

    Control law:
        u = kp * e + ki * integral(e) + kd * de/dt

    Attributes:
        kp: Proportional gain
        ki: Integral gain
        kd: Derivative gain
        period: Time between calculate() calls (s)
        integral_limit: Clamp on the accumulated integral
    """

    def __init__(
        self,
        kp: float,
        ki: float = 0.0,
        kd: float = 0.0,
        period: float = TICK_PERIOD,
        integral_limit: float = 0.5,
    ):
        self.kp = kp
        self.ki = ki
        self.kd = kd
        self.period = period
        self.integral_limit = integral_limit

        self.integral: float = 0.0
        self.prev_error: Optional[float] = None

    def calculate_error(self, error: float) -> float:
        """Compute the control output for an already-formed error."""
        self.integral += error * self.period
        self.integral = max(-self.integral_limit, min(self.integral_limit, self.integral))

        if self.prev_error is None:
            derivative = 0.0
        else:
            derivative = (error - self.prev_error) / self.period
        self.prev_error = error

        return self.kp * error + self.ki * self.integral + self.kd * derivative

    def calculate(self, measurement: float, setpoint: float) -> float:
        return self.calculate_error(setpoint - measurement)

    def reset(self) -> None:
        """Reset integral and derivative states."""
        self.integral = 0.0
        self.prev_error = None


class HolonomicDriveController:
    """Feedforward + feedback tracking controller for a holonomic chassis.

    Translation feedback acts on field x and y independently; rotation
    feedback acts on the wrapped heading error. The sum is field-relative and
    is rotated into the chassis frame with the measured heading.
    """

    def __init__(
        self,
        x_controller: Optional[PIDController] = None,
        y_controller: Optional[PIDController] = None,
        rotation_controller: Optional[PIDController] = None,
    ):
        self.x_controller = x_controller or PIDController(
            PATH_TRANSLATION_KP, PATH_TRANSLATION_KI, PATH_TRANSLATION_KD
        )
        self.y_controller = y_controller or PIDController(
            PATH_TRANSLATION_KP, PATH_TRANSLATION_KI, PATH_TRANSLATION_KD
        )
        self.rotation_controller = rotation_controller or PIDController(
            PATH_ROTATION_KP, PATH_ROTATION_KI, PATH_ROTATION_KD
        )

        self.position_error: float = 0.0
        self.heading_error: float = 0.0

    def reset(self) -> None:
        self.x_controller.reset()
        self.y_controller.reset()
        self.rotation_controller.reset()
        self.position_error = 0.0
        self.heading_error = 0.0

    def calculate(self, pose: Pose, reference: TrajectoryState) -> ChassisVelocity:
        """Compute the chassis-frame velocity command for this tick.

        Args:
            pose: Current pose estimate
            reference: Trajectory sample at the current follow time

        Returns:
            Chassis-frame velocity command
        """
        target = reference.pose
        self.position_error = pose.distance_to(target)
        self.heading_error = angle_error(target.heading, pose.heading)

        vx = reference.velocity.vx + self.x_controller.calculate(pose.x, target.x)
        vy = reference.velocity.vy + self.y_controller.calculate(pose.y, target.y)
        omega = reference.velocity.omega + self.rotation_controller.calculate_error(
            self.heading_error
        )

        return ChassisVelocity(vx, vy, omega).to_robot_relative(pose.heading)


class FollowPathAction(Action):
    """Drives the chassis along a trajectory with pose feedback.

    Follow time advances one period per tick. The action finishes when
    trajectory time is exhausted and, if require_end_tolerance is set, the
    pose is within tolerance of the end pose and the commanded velocity has
    settled. On end (finished or cancelled) it calls on_stop if given, otherwise
    it commands zero velocity through output.
    """

    def __init__(
        self,
        trajectory: Trajectory,
        pose_supplier: Callable[[], Pose],
        output: Callable[[ChassisVelocity], None],
        requirements: Iterable[Resource],
        controller: Optional[HolonomicDriveController] = None,
        period: float = TICK_PERIOD,
        require_end_tolerance: bool = True,
        position_tolerance: float = PATH_POSITION_TOLERANCE,
        heading_tolerance: float = PATH_HEADING_TOLERANCE,
        settled_velocity: float = PATH_SETTLED_VELOCITY,
        settled_ang_velocity: float = PATH_SETTLED_ANG_VELOCITY,
        on_sample: Optional[Callable[[TrajectoryState], None]] = None,
        on_stop: Optional[Callable[[], None]] = None,
    ):
        super().__init__(requirements, name=f"follow({trajectory.name or 'path'})")
        self.trajectory = trajectory
        self.pose_supplier = pose_supplier
        self.output = output
        self.controller = controller or HolonomicDriveController()
        self.period = period
        self.require_end_tolerance = require_end_tolerance
        self.position_tolerance = position_tolerance
        self.heading_tolerance = heading_tolerance
        self.settled_velocity = settled_velocity
        self.settled_ang_velocity = settled_ang_velocity
        self.on_sample = on_sample
        self.on_stop = on_stop

        self.ticks = 0
        self.last_command = ChassisVelocity()
        self.last_reference: Optional[TrajectoryState] = None

    @property
    def elapsed(self) -> float:
        return self.ticks * self.period

    def start(self) -> None:
        self.ticks = 0
        self.last_command = ChassisVelocity()
        self.last_reference = None
        self.controller.reset()

    def periodic(self) -> None:
        reference = self.trajectory.sample(self.elapsed)
        self.last_reference = reference
        if self.on_sample is not None:
            self.on_sample(reference)

        self.last_command = self.controller.calculate(self.pose_supplier(), reference)
        self.output(self.last_command)
        self.ticks += 1

    def at_end_state(self) -> bool:
        pose = self.pose_supplier()
        end = self.trajectory.end_pose
        return (
            pose.distance_to(end) <= self.position_tolerance
            and abs(angle_error(end.heading, pose.heading)) <= self.heading_tolerance
        )

    def settled(self) -> bool:
        return (
            self.last_command.speed <= self.settled_velocity
            and abs(self.last_command.omega) <= self.settled_ang_velocity
        )

    def is_finished(self) -> bool:
        if self.elapsed < self.trajectory.total_time:
            return False
        if not self.require_end_tolerance:
            return True
        return self.at_end_state() and self.settled()

    def end(self, interrupted: bool) -> None:
        if self.on_stop is not None:
            self.on_stop()
        else:
            self.output(ChassisVelocity())

    def get_diagnostics(self) -> Dict[str, float]:
        """Get tracking diagnostics for telemetry.

        Returns:
            Dictionary containing elapsed follow time, position error (m),
            heading error (rad) and commanded chassis velocity components
        """
        return {
            "elapsed": self.elapsed,
            "position_error": self.controller.position_error,
            "heading_error": self.controller.heading_error,
            "heading_error_deg": math.degrees(self.controller.heading_error),
            "cmd_vx": self.last_command.vx,
            "cmd_vy": self.last_command.vy,
            "cmd_omega": self.last_command.omega,
        }
