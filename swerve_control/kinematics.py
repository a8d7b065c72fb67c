"""Swerve drive kinematic model.

This module converts between chassis velocity and the four module states of a
swerve drive. For a module at (x_i, y_i) relative to chassis center, the
velocity of the wheel contact patch is:
    v_ix = vx - omega * y_i
    v_iy = vy + omega * x_i

Stacking those rows for all modules gives the inverse kinematics matrix A
(8x3). Forward kinematics uses the pseudo-inverse of A, which is the
least-squares chassis velocity for measured (possibly inconsistent) wheels.
"""

import math
from typing import List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from .config import MAX_WHEEL_SPEED, MODULE_LOCATIONS, TICK_PERIOD
from .geometry import ChassisVelocity, ModulePosition, ModuleState, rotate, wrap_angle


class ModuleTarget(NamedTuple):
    """A commanded module state tagged with its drive-control mode."""

    state: ModuleState
    closed_loop: bool


def discretize(velocity: ChassisVelocity, dt: float = TICK_PERIOD) -> ChassisVelocity:
    """Correct a velocity for rotational skew over one control period.

    Holding (vx, vy, omega) constant for dt moves the chassis along an arc,
    not a straight line, so the achieved displacement is skewed toward the
    direction of rotation. This finds the constant velocity whose arc ends at
    the pose the request intends: (vx*dt, vy*dt, omega*dt).

    Args:
        velocity: Desired chassis velocity
        dt: Control period (s)

    Returns:
        Velocity to command for the period
    """
    dtheta = velocity.omega * dt
    half = 0.5 * dtheta
    cos_minus_one = math.cos(dtheta) - 1.0

    if abs(cos_minus_one) < 1e-9:
        half_theta_by_tan = 1.0 - dtheta * dtheta / 12.0
    else:
        half_theta_by_tan = -(half * math.sin(dtheta)) / cos_minus_one

    dx = velocity.vx * dt
    dy = velocity.vy * dt

    # Log map of the target pose: rotate by -half and scale
    twist_x = dx * half_theta_by_tan + dy * half
    twist_y = -dx * half + dy * half_theta_by_tan

    return ChassisVelocity(twist_x / dt, twist_y / dt, velocity.omega)


def desaturate(states: Sequence[ModuleState], max_speed: float = MAX_WHEEL_SPEED) -> List[ModuleState]:
    """Scale all wheel speeds so the fastest one is at most max_speed.

    All speeds are scaled by the same factor, which preserves the direction and
    curvature of the commanded motion while reducing its magnitude.

    Args:
        states: Module states in module order
        max_speed: Largest allowed wheel speed (m/s)

    Returns:
        New list of module states
    """
    fastest = max((abs(s.speed) for s in states), default=0.0)
    if fastest <= max_speed or fastest == 0.0:
        return list(states)

    scale = max_speed / fastest
    return [ModuleState(s.angle, s.speed * scale) for s in states]


def optimize(target: ModuleState, current_angle: float) -> ModuleState:
    """Minimize steering travel by reversing the wheel when cheaper.

    If the target angle is more than 90° from the current angle, steering to
    the opposite angle with negated speed gives the same wheel velocity.
    """
    delta = wrap_angle(target.angle - current_angle)
    if abs(delta) > math.pi / 2.0:
        return ModuleState(wrap_angle(target.angle + math.pi), -target.speed)
    return target


class SwerveKinematics:
    """Inverse and forward kinematics for a four-module swerve drive.

    Module order is fixed by the locations passed in (front-left, front-right,
    back-left, back-right by default) and every list in or out of this class
    uses that order.

    Attributes:
        locations: Module (x, y) positions relative to chassis center (m)
        inverse_matrix: 8x3 matrix mapping (vx, vy, omega) to wheel vectors
        forward_matrix: 3x8 pseudo-inverse of inverse_matrix
    """

    def __init__(self, locations: Sequence[Tuple[float, float]] = MODULE_LOCATIONS):
        if len(locations) != 4:
            raise ValueError(f"Swerve kinematics needs 4 module locations, got {len(locations)}")

        self.locations = tuple((float(x), float(y)) for x, y in locations)

        rows = []
        for x, y in self.locations:
            rows.append([1.0, 0.0, -y])
            rows.append([0.0, 1.0, x])
        self.inverse_matrix = np.array(rows)
        self.forward_matrix = np.linalg.pinv(self.inverse_matrix)

    def to_module_states(
        self,
        velocity: ChassisVelocity,
        current_angles: Optional[Sequence[float]] = None,
    ) -> List[ModuleState]:
        """Compute the module states that realize a chassis velocity.

        Args:
            velocity: Chassis-frame velocity
            current_angles: Steering angles to hold when the chassis is
                commanded to stop. If None, stopped modules point at 0 rad.

        Returns:
            Four module states (no desaturation applied)
        """
        if velocity.vx == 0.0 and velocity.vy == 0.0 and velocity.omega == 0.0:
            angles = current_angles if current_angles is not None else [0.0] * 4
            return [ModuleState(float(a), 0.0) for a in angles]

        wheel = self.inverse_matrix @ np.array([velocity.vx, velocity.vy, velocity.omega])

        states = []
        for i in range(4):
            wx = wheel[2 * i]
            wy = wheel[2 * i + 1]
            states.append(ModuleState(math.atan2(wy, wx), math.hypot(wx, wy)))
        return states

    def to_chassis_velocity(self, states: Sequence[ModuleState]) -> ChassisVelocity:
        """Least-squares chassis velocity from measured module states."""
        wheel = np.empty(8)
        for i, state in enumerate(states):
            wheel[2 * i], wheel[2 * i + 1] = rotate(state.speed, 0.0, state.angle)

        vx, vy, omega = self.forward_matrix @ wheel
        return ChassisVelocity(float(vx), float(vy), float(omega))

    def to_twist(
        self, previous: Sequence[ModulePosition], current: Sequence[ModulePosition]
    ) -> Tuple[float, float, float]:
        """Chassis-frame displacement between two sets of module positions.

        Each module's distance delta is taken along its current steering angle.

        Returns:
            Tuple of (dx, dy, dtheta) in the chassis frame
        """
        deltas = [
            ModuleState(cur.angle, cur.distance - prev.distance)
            for prev, cur in zip(previous, current)
        ]
        twist = self.to_chassis_velocity(deltas)
        return twist.vx, twist.vy, twist.omega

    def resolve(
        self,
        velocity: ChassisVelocity,
        closed_loop: bool,
        max_wheel_speed: float = MAX_WHEEL_SPEED,
        dt: float = TICK_PERIOD,
        current_angles: Optional[Sequence[float]] = None,
    ) -> List[ModuleTarget]:
        """Full velocity-to-wheel pipeline: discretize, transform, desaturate.

        Args:
            velocity: Chassis-frame velocity request
            closed_loop: Tag for velocity-feedback (True) or feedforward-only drive
            max_wheel_speed: Desaturation limit (m/s)
            dt: Control period used for discretization (s)
            current_angles: Steering angles to hold when stopped

        Returns:
            Four module targets in module order
        """
        states = self.to_module_states(discretize(velocity, dt), current_angles)
        states = desaturate(states, max_wheel_speed)
        return [ModuleTarget(state, closed_loop) for state in states]
