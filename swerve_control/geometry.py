"""Planar geometry and state types shared by the control stack.

Poses live in the field frame (+x downfield, +y left, heading CCW-positive from
+x). Chassis velocities live in the chassis frame unless a function says
otherwise.
"""

import math
from dataclasses import dataclass
from typing import Tuple


def wrap_angle(angle: float) -> float:
    """Normalize an angle to [-pi, pi].

    Args:
        angle: Angle in radians

    Returns:
        Equivalent angle in [-pi, pi]
    """
    return math.atan2(math.sin(angle), math.cos(angle))


def angle_error(target: float, measurement: float) -> float:
    """Shortest signed rotation from measurement to target (radians).

    Example:
        >>> round(math.degrees(angle_error(math.radians(1), math.radians(359))), 6)
        2.0
    """
    return wrap_angle(target - measurement)


def rotate(x: float, y: float, angle: float) -> Tuple[float, float]:
    """Rotate a 2-vector counter-clockwise by angle (radians)."""
    c = math.cos(angle)
    s = math.sin(angle)
    return x * c - y * s, x * s + y * c


@dataclass(frozen=True)
class Pose:
    """Field-frame pose: position (meters) and heading (radians)."""

    x: float = 0.0
    y: float = 0.0
    heading: float = 0.0

    def distance_to(self, other: "Pose") -> float:
        return math.hypot(other.x - self.x, other.y - self.y)

    def exp(self, dx: float, dy: float, dtheta: float) -> "Pose":
        """Apply a chassis-frame twist (constant-curvature arc) to this pose.

        Args:
            dx: Forward displacement along the arc (m)
            dy: Leftward displacement along the arc (m)
            dtheta: Heading change over the arc (rad)

        Returns:
            New pose at the end of the arc
        """
        if abs(dtheta) < 1e-9:
            s = 1.0 - dtheta * dtheta / 6.0
            c = 0.5 * dtheta
        else:
            s = math.sin(dtheta) / dtheta
            c = (1.0 - math.cos(dtheta)) / dtheta

        local_x = dx * s - dy * c
        local_y = dx * c + dy * s
        field_dx, field_dy = rotate(local_x, local_y, self.heading)

        return Pose(
            self.x + field_dx,
            self.y + field_dy,
            wrap_angle(self.heading + dtheta),
        )

    def as_tuple(self) -> Tuple[float, float, float]:
        return self.x, self.y, self.heading


@dataclass(frozen=True)
class ChassisVelocity:
    """Chassis velocity: translation (m/s) and rotation (rad/s, CCW +)."""

    vx: float = 0.0
    vy: float = 0.0
    omega: float = 0.0

    @property
    def speed(self) -> float:
        """Translation speed magnitude (m/s)."""
        return math.hypot(self.vx, self.vy)

    def with_omega(self, omega: float) -> "ChassisVelocity":
        return ChassisVelocity(self.vx, self.vy, omega)

    def to_robot_relative(self, heading: float) -> "ChassisVelocity":
        """Convert a field-relative velocity into the chassis frame.

        Args:
            heading: Current chassis heading in the field frame (rad)
        """
        vx, vy = rotate(self.vx, self.vy, -heading)
        return ChassisVelocity(vx, vy, self.omega)

    def as_tuple(self) -> Tuple[float, float, float]:
        return self.vx, self.vy, self.omega


@dataclass(frozen=True)
class ModuleState:
    """Wheel steering angle (rad, chassis frame) and drive speed (m/s)."""

    angle: float = 0.0
    speed: float = 0.0


@dataclass(frozen=True)
class ModulePosition:
    """Wheel steering angle (rad) and total distance driven (m)."""

    angle: float = 0.0
    distance: float = 0.0
