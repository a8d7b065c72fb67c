"""Pose estimation for the swerve chassis.

This module fuses three sources into one best-estimate field pose:
- Wheel odometry: module distance deltas every tick, converted to a chassis
  twist with the forward kinematics
- Gyro heading: replaces the odometry rotation, since the gyro drifts far
  less than differential wheel travel
- Absolute corrections (vision-style): blended in gradually with a
  confidence-weighted gain and a per-call step bound

Invalid sensor readings never raise. The last good value is kept and a fault
flag is exposed for telemetry.
"""

import logging
import math
from typing import Dict, List, Optional, Sequence

from .config import (
    CORRECTION_MAX_GAIN,
    CORRECTION_MAX_HEADING_STEP,
    CORRECTION_MAX_STEP,
    MAX_WHEEL_SPEED,
    ODOMETRY_GLITCH_FACTOR,
    TICK_PERIOD,
)
from .geometry import ModulePosition, Pose, angle_error, wrap_angle
from .kinematics import SwerveKinematics


def _finite(*values: Optional[float]) -> bool:
    return all(v is not None and math.isfinite(v) for v in values)


def _valid_positions(module_positions: Optional[Sequence[ModulePosition]]) -> bool:
    return (
        module_positions is not None
        and len(module_positions) == 4
        and all(_finite(p.angle, p.distance) for p in module_positions)
    )


class PoseEstimator:
    """Odometry + gyro pose estimator with blended absolute corrections.

    The pose heading is the gyro reading plus an internal offset, so a
    reset() or a heading correction never touches the gyro itself.

    Attributes:
        kinematics: Kinematics used to turn module deltas into chassis twists
        correction_max_gain: Blend fraction per correction at confidence 1.0
        correction_max_step: Translation bound per correction (m)
        correction_max_heading_step: Heading bound per correction (rad)
        max_module_delta: Largest physical module distance change per update (m)
        gyro_fault: True if the last gyro reading was invalid
        odometry_fault: True if the last module readings were invalid
    """

    def __init__(
        self,
        kinematics: SwerveKinematics,
        gyro_heading: float,
        module_positions: Sequence[ModulePosition],
        initial_pose: Pose = Pose(),
        correction_max_gain: float = CORRECTION_MAX_GAIN,
        correction_max_step: float = CORRECTION_MAX_STEP,
        correction_max_heading_step: float = CORRECTION_MAX_HEADING_STEP,
        max_module_delta: float = MAX_WHEEL_SPEED * TICK_PERIOD * ODOMETRY_GLITCH_FACTOR,
    ):
        """Initialize the estimator at a known pose.

        Args:
            kinematics: Swerve kinematics for the chassis
            gyro_heading: Raw gyro heading at construction (rad)
            module_positions: Module positions at construction, in module order
            initial_pose: Starting pose estimate
            correction_max_gain: Blend fraction per correction, range (0, 1)
            correction_max_step: Translation bound per correction (m)
            correction_max_heading_step: Heading bound per correction (rad)
            max_module_delta: Module distance change above which a reading is
                treated as a glitch (m)
        """
        if not 0.0 < correction_max_gain < 1.0:
            raise ValueError(f"correction_max_gain must be in (0, 1), got {correction_max_gain}")

        self.kinematics = kinematics
        self.correction_max_gain = correction_max_gain
        self.correction_max_step = correction_max_step
        self.correction_max_heading_step = correction_max_heading_step
        self.max_module_delta = max_module_delta

        self.pose = initial_pose
        self.last_gyro: float = gyro_heading if _finite(gyro_heading) else 0.0
        self.gyro_offset: float = wrap_angle(initial_pose.heading - self.last_gyro)
        # None until a valid reading arrives; update() then seeds without moving
        self.last_positions: Optional[List[ModulePosition]] = None

        # Diagnostics
        self.gyro_fault = False
        self.odometry_fault = False
        self.glitches_rejected = 0
        self.corrections_applied = 0
        self.last_correction_norm = 0.0

        self._seed_positions(module_positions)

    def update(self, gyro_heading: Optional[float], module_positions: Sequence[ModulePosition]) -> Pose:
        """Integrate one tick of odometry.

        Args:
            gyro_heading: Raw gyro heading (rad), or None if unavailable
            module_positions: Current module positions in module order

        Returns:
            Updated pose estimate
        """
        self.gyro_fault = not _finite(gyro_heading)
        if self.gyro_fault:
            heading = self.pose.heading
        else:
            self.last_gyro = gyro_heading
            heading = wrap_angle(gyro_heading + self.gyro_offset)

        self.odometry_fault = not _valid_positions(module_positions)
        if self.odometry_fault or self.last_positions is None:
            # A faulted reading keeps the last good baseline; the first valid one becomes it
            if not self.odometry_fault:
                self.last_positions = list(module_positions)
            self.pose = Pose(self.pose.x, self.pose.y, heading)
            return self.pose

        largest_delta = max(
            abs(cur.distance - prev.distance)
            for prev, cur in zip(self.last_positions, module_positions)
        )
        if largest_delta > self.max_module_delta:
            self.glitches_rejected += 1
            self.odometry_fault = True
            logging.warning(
                f"Odometry glitch rejected: module moved {largest_delta:.3f}m in one tick "
                f"(limit {self.max_module_delta:.3f}m)"
            )
            self.last_positions = list(module_positions)
            self.pose = Pose(self.pose.x, self.pose.y, heading)
            return self.pose

        dx, dy, _ = self.kinematics.to_twist(self.last_positions, module_positions)
        dtheta = angle_error(heading, self.pose.heading)
        moved = self.pose.exp(dx, dy, dtheta)

        self.pose = Pose(moved.x, moved.y, heading)
        self.last_positions = list(module_positions)
        return self.pose

    def add_correction(self, observed: Pose, confidence: float) -> Pose:
        """Blend an absolute pose observation into the estimate.

        The estimate moves toward the observation by confidence times the max
        gain, bounded per call, so a trusted observation pulls the estimate in
        over several ticks instead of snapping it.

        Args:
            observed: Independently observed field pose
            confidence: Trust in the observation, clamped to [0, 1]

        Returns:
            Updated pose estimate
        """
        if not _finite(observed.x, observed.y, observed.heading, confidence):
            logging.warning("Ignoring pose correction with non-finite values")
            return self.pose

        gain = max(0.0, min(1.0, confidence)) * self.correction_max_gain
        if gain == 0.0:
            return self.pose

        dx = (observed.x - self.pose.x) * gain
        dy = (observed.y - self.pose.y) * gain
        step = math.hypot(dx, dy)
        if step > self.correction_max_step:
            scale = self.correction_max_step / step
            dx *= scale
            dy *= scale

        dheading = angle_error(observed.heading, self.pose.heading) * gain
        dheading = max(
            -self.correction_max_heading_step, min(self.correction_max_heading_step, dheading)
        )

        # Shift the gyro offset with the heading so the next update keeps it
        self.gyro_offset = wrap_angle(self.gyro_offset + dheading)
        self.pose = Pose(
            self.pose.x + dx,
            self.pose.y + dy,
            wrap_angle(self.pose.heading + dheading),
        )

        self.corrections_applied += 1
        self.last_correction_norm = math.hypot(dx, dy)
        return self.pose

    def reset(
        self,
        pose: Pose,
        gyro_heading: Optional[float] = None,
        module_positions: Optional[Sequence[ModulePosition]] = None,
    ) -> None:
        """Discard accumulated drift and set the estimate exactly to pose.

        Args:
            pose: New pose estimate
            gyro_heading: Raw gyro heading to re-seed from. Defaults to the
                last valid reading.
            module_positions: Module positions to re-seed from. Defaults to the
                last valid reading. If invalid, the next valid reading re-seeds
                odometry without moving the pose.
        """
        if _finite(gyro_heading):
            self.last_gyro = gyro_heading
        if module_positions is not None:
            self._seed_positions(module_positions)

        self.gyro_offset = wrap_angle(pose.heading - self.last_gyro)
        self.pose = pose

    def _seed_positions(self, module_positions: Sequence[ModulePosition]) -> None:
        if _valid_positions(module_positions):
            self.last_positions = list(module_positions)
            self.odometry_fault = False
        else:
            logging.warning("Invalid module positions; odometry re-seeds on the next valid reading")
            self.last_positions = None
            self.odometry_fault = True

    def get_pose(self) -> Pose:
        return self.pose

    def get_diagnostics(self) -> Dict[str, float]:
        """Get estimator diagnostic information for telemetry.

        Returns:
            Dictionary containing:
                - gyro_fault: 1.0 if the last gyro reading was invalid
                - odometry_fault: 1.0 if the last module readings were invalid
                - glitches_rejected: Total odometry glitches dropped
                - corrections_applied: Total corrections blended in
                - correction_norm: Translation applied by the last correction (m)
                - gyro_offset: Offset between raw gyro and pose heading (rad)
        """
        return {
            "gyro_fault": float(self.gyro_fault),
            "odometry_fault": float(self.odometry_fault),
            "glitches_rejected": float(self.glitches_rejected),
            "corrections_applied": float(self.corrections_applied),
            "correction_norm": self.last_correction_norm,
            "gyro_offset": self.gyro_offset,
        }
