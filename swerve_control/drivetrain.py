"""Swerve drivetrain resource.

Owns the four modules, the gyro, the acceleration limiter, the kinematics and
the pose estimator. Every velocity command, from any source, goes through
drive(): limiter -> discretize -> inverse kinematics -> desaturate -> modules.
stop() is the one exception: it zeroes the wheels at once and resets the
limiter.

Heading conventions:
- Raw gyro: hardware reading, CCW-positive (rad)
- Offset gyro: raw minus the software zero offset, used for field-relative
  driving
- Pose heading: the estimator's heading, used for heading control and path
  following
"""

import logging
import math
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .commands import Action, DeferredAction, FunctionalAction, Resource, run, run_once, start_end
from .config import (
    FOCUS_POINT_OFFSET,
    MAX_ANG_ACCEL,
    MAX_TRANS_ACCEL,
    MAX_WHEEL_SPEED,
    MODULE_NAMES,
    PATH_MAX_ACCEL,
    PATH_MAX_ANG_ACCEL,
    PATH_MAX_ANG_VELOCITY,
    PATH_MAX_VELOCITY,
    START_POSE,
    TELEOP_CLOSED_LOOP,
    TICK_PERIOD,
)
from .errors import TrajectoryGenerationError
from .estimator import PoseEstimator
from .follower import PATH_DIAGNOSTIC_KEYS, FollowPathAction
from .geometry import ChassisVelocity, ModulePosition, ModuleState, Pose, wrap_angle
from .hardware import GyroIO, SwerveModuleIO
from .heading import HeadingLock, PointFocus
from .input_shaper import joystick_to_chassis
from .kinematics import SwerveKinematics
from .limiter import AccelerationLimiter
from .telemetry import TelemetrySink, publish
from .trajectory import PathConstraints, Trajectory, TrajectoryLibrary, TrajectoryState

Axis = Callable[[], float]
Button = Callable[[], bool]


class SwerveDrive(Resource):
    """Four-module swerve drivetrain.

    Attributes:
        modules: Module interfaces in front-left, front-right, back-left,
            back-right order
        gyro: Heading sensor
        kinematics: Chassis kinematics
        limiter: Acceleration limiter shared by every command source
        estimator: Pose estimator updated in periodic()
        trajectories: Source of on-the-fly paths
        gyro_offset: Software zero subtracted from the raw gyro (rad)
        commanded_velocity: Last chassis velocity sent to the modules
    """

    def __init__(
        self,
        modules: Sequence[SwerveModuleIO],
        gyro: GyroIO,
        kinematics: Optional[SwerveKinematics] = None,
        limiter: Optional[AccelerationLimiter] = None,
        telemetry: Optional[TelemetrySink] = None,
        initial_pose: Pose = Pose(*START_POSE),
        path_constraints: Optional[PathConstraints] = None,
        trajectories: Optional[TrajectoryLibrary] = None,
        max_wheel_speed: float = MAX_WHEEL_SPEED,
        period: float = TICK_PERIOD,
    ):
        super().__init__("drivetrain")
        if len(modules) != 4:
            raise ValueError(f"A swerve drive needs 4 modules, got {len(modules)}")

        self.modules = list(modules)
        self.gyro = gyro
        self.kinematics = kinematics or SwerveKinematics()
        self.limiter = limiter or AccelerationLimiter(MAX_TRANS_ACCEL, MAX_ANG_ACCEL, period)
        self.telemetry = telemetry
        self.path_constraints = path_constraints or PathConstraints(
            PATH_MAX_VELOCITY, PATH_MAX_ACCEL, PATH_MAX_ANG_VELOCITY, PATH_MAX_ANG_ACCEL
        )
        self.trajectories = trajectories or TrajectoryLibrary(self.path_constraints, period)
        self.max_wheel_speed = max_wheel_speed
        self.period = period

        self.gyro_offset = 0.0
        self._last_raw_gyro = 0.0
        self._last_yaw_rate = 0.0
        self.commanded_velocity = ChassisVelocity()
        self.path_target: Optional[Pose] = None
        self.path_follower: Optional[FollowPathAction] = None

        self.estimator = PoseEstimator(
            self.kinematics, self.get_raw_gyro(), self.get_positions(), initial_pose
        )

    # ---------- Drive ----------

    def drive(self, velocity: ChassisVelocity, closed_loop: bool) -> None:
        """Command a chassis-frame velocity.

        Args:
            velocity: Requested chassis-frame velocity
            closed_loop: Use velocity feedback on the drive motors
        """
        limited = self.limiter.calculate(velocity)
        current_angles = [m.get_measured_state().angle for m in self.modules]
        targets = self.kinematics.resolve(
            limited, closed_loop, self.max_wheel_speed, self.period, current_angles
        )

        self.commanded_velocity = limited
        for module, target in zip(self.modules, targets):
            module.set_target_state(target.state, target.closed_loop)

    def field_to_robot(self, velocity: ChassisVelocity) -> ChassisVelocity:
        """Rotate a field-relative request into the chassis frame."""
        return velocity.to_robot_relative(self.get_heading())

    def stop(self) -> None:
        """Zero every wheel speed immediately, holding the current wheel angles.

        Skips the acceleration limiter and restarts it from rest, so the next
        drive() ramps up from zero.
        """
        self.limiter.reset()
        self.commanded_velocity = ChassisVelocity()
        for module in self.modules:
            angle = module.get_measured_state().angle
            module.set_target_state(ModuleState(angle, 0.0), False)

    def set_x_configuration(self) -> None:
        for module in self.modules:
            module.set_x_configuration()

    def set_brake_mode(self, on: bool) -> None:
        for module in self.modules:
            module.set_brake_mode(on)

    # ---------- Pose and gyro ----------

    def get_pose(self) -> Pose:
        return self.estimator.get_pose()

    def set_pose(self, pose: Pose) -> None:
        """Declare a known pose; the estimate becomes exactly pose."""
        self.estimator.reset(pose, self.gyro.get_heading(), self.get_positions())
        logging.info(f"Pose reset to ({pose.x:.2f}, {pose.y:.2f}, {math.degrees(pose.heading):.1f}°)")

    def add_pose_correction(self, observed: Pose, confidence: float) -> Pose:
        return self.estimator.add_correction(observed, confidence)

    def get_measured_velocity(self) -> ChassisVelocity:
        return self.kinematics.to_chassis_velocity(self.get_states())

    def get_raw_gyro(self) -> float:
        """Raw gyro heading, or the last valid reading if the gyro is faulted."""
        heading = self.gyro.get_heading()
        if heading is not None and math.isfinite(heading):
            self._last_raw_gyro = heading
        return self._last_raw_gyro

    def get_heading(self) -> float:
        """Offset gyro heading used for field-relative driving."""
        return wrap_angle(self.get_raw_gyro() - self.gyro_offset)

    def get_yaw_rate(self) -> float:
        rate = self.gyro.get_yaw_rate()
        if rate is not None and math.isfinite(rate):
            self._last_yaw_rate = rate
        return self._last_yaw_rate

    def zero_gyro(self) -> None:
        """Make the current direction the field-relative forward direction."""
        self.gyro_offset = self.get_raw_gyro()
        logging.info("Gyro zeroed")

    def match_gyro_to_pose(self) -> None:
        """Align the offset gyro with the pose estimate heading."""
        self.gyro_offset = wrap_angle(self.get_raw_gyro() - self.get_pose().heading)
        logging.info(f"Gyro matched to pose heading {math.degrees(self.get_pose().heading):.1f}°")

    def get_positions(self) -> List[ModulePosition]:
        return [m.get_position() for m in self.modules]

    def get_states(self) -> List[ModuleState]:
        return [m.get_measured_state() for m in self.modules]

    def get_path_diagnostics(self) -> Dict[str, float]:
        """Tracking diagnostics of the most recently run path, zeros before any."""
        if self.path_follower is None:
            return dict.fromkeys(PATH_DIAGNOSTIC_KEYS, 0.0)
        return self.path_follower.get_diagnostics()

    # ---------- Periodic ----------

    def periodic(self) -> None:
        """Update the pose estimate and publish drivetrain telemetry."""
        self.estimator.update(self.gyro.get_heading(), self.get_positions())

        sink = self.telemetry
        publish(sink, "drivetrain/raw_gyro", self.get_raw_gyro())
        publish(sink, "drivetrain/offset_gyro", self.get_heading())
        publish(sink, "drivetrain/commanded_velocity", self.commanded_velocity.as_tuple())
        publish(sink, "drivetrain/measured_velocity", self.get_measured_velocity().as_tuple())
        publish(sink, "drivetrain/pose", self.get_pose())
        publish(sink, "drivetrain/path_target", self.path_target or self.get_pose())
        publish(sink, "drivetrain/gyro_fault", self.estimator.gyro_fault)
        publish(sink, "drivetrain/odometry_fault", self.estimator.odometry_fault)
        for key, value in self.estimator.get_diagnostics().items():
            publish(sink, f"drivetrain/estimator/{key}", value)
        for key, value in self.get_path_diagnostics().items():
            publish(sink, f"drivetrain/path/{key}", value)
        for name, module in zip(MODULE_NAMES, self.modules):
            target = module.get_target_state()
            publish(sink, f"modules/{name}/target", (target.angle, target.speed))

    # ---------- Action factories ----------

    def teleop_drive_action(self, x: Axis, y: Axis, z: Axis, boost: Button) -> Action:
        """Field-relative driving from joystick axes until cancelled."""

        def drive_from_sticks() -> None:
            request = joystick_to_chassis(x(), y(), z(), boost())
            self.drive(self.field_to_robot(request), TELEOP_CLOSED_LOOP)

        return run(drive_from_sticks, self, name="teleop_drive")

    def _heading_action(self, controller: HeadingLock, x: Axis, y: Axis, boost: Button, name: str) -> Action:
        def start() -> None:
            controller.start(self.get_pose().heading, self.get_yaw_rate())
            logging.info(f"Started {name} at angle {controller.target(self.get_pose()):.3f}")

        def periodic() -> None:
            request = joystick_to_chassis(x(), y(), 0.0, boost())
            request = request.with_omega(controller.calculate(self.get_pose()))
            self.drive(self.field_to_robot(request), False)

        return FunctionalAction(on_start=start, on_periodic=periodic, requirements=[self], name=name)

    def lock_heading_action(self, x: Axis, y: Axis, heading: float, boost: Button) -> Action:
        """Hold a field heading while the driver controls translation."""
        return self._heading_action(HeadingLock(heading), x, y, boost, "lock_heading")

    def focus_point_action(
        self,
        x: Axis,
        y: Axis,
        point: Tuple[float, float],
        boost: Button,
        offset: float = FOCUS_POINT_OFFSET,
    ) -> Action:
        """Face a field point while the driver controls translation."""
        return self._heading_action(PointFocus(point, offset), x, y, boost, "focus_point")

    def follow_path_action(self, trajectory: Trajectory, require_end_tolerance: bool = True) -> FollowPathAction:
        def record_target(state: TrajectoryState) -> None:
            self.path_target = state.pose
            self.path_follower = follower

        follower = FollowPathAction(
            trajectory,
            self.get_pose,
            lambda velocity: self.drive(velocity, True),
            [self],
            period=self.period,
            require_end_tolerance=require_end_tolerance,
            on_sample=record_target,
            on_stop=self.stop,
        )
        return follower

    def drive_to_pose_action(self, goal: Pose, goal_heading: Optional[float] = None) -> Action:
        """Generate a path from the live pose to goal when started, then follow it.

        If the path cannot be generated (already at the goal), the action stops
        the drivetrain and finishes on its first tick.
        """

        def build() -> Action:
            try:
                trajectory = self.trajectories.generate(self.get_pose(), goal, goal_heading)
            except TrajectoryGenerationError as e:
                logging.warning(f"On-the-fly path skipped: {e}")
                return run_once(self.stop, self, name="stop")
            return self.follow_path_action(trajectory)

        return DeferredAction(build, [self], name="drive_to_pose")

    def x_configuration_action(self) -> Action:
        return start_end(self.set_x_configuration, lambda: None, self, name="x_configuration")

    def zero_gyro_action(self) -> Action:
        return run_once(self.zero_gyro, self, name="zero_gyro")

    def reset_gyro_action(self) -> Action:
        return run_once(self.match_gyro_to_pose, self, name="reset_gyro")
