"""Joystick shaping for field-oriented teleop driving.

Converts raw stick axes into a bounded chassis-velocity request. The result is
field-relative; the drivetrain rotates it into the chassis frame.
"""

import math

from .config import (
    MAX_ANG_SPEED,
    MAX_TRANS_SPEED,
    ROTATION_DEADZONE,
    TELEOP_ROTATION_GAIN,
    TELEOP_TRANSLATION_GAIN,
    TRANSLATION_DEADZONE,
)
from .geometry import ChassisVelocity


def apply_deadzone(value: float, deadzone: float) -> float:
    """Zero an axis value whose magnitude is at or below the deadzone."""
    if abs(value) <= deadzone:
        return 0.0
    return value


def square_preserving_sign(value: float) -> float:
    """Square an axis value, keeping its sign.

    Gives finer control near center while still reaching full scale at +/-1.
    """
    return math.copysign(value * value, value)


def joystick_to_chassis(
    x_translation: float,
    y_translation: float,
    z_rotation: float,
    boost: bool,
    translation_deadzone: float = TRANSLATION_DEADZONE,
    rotation_deadzone: float = ROTATION_DEADZONE,
    max_trans_speed: float = MAX_TRANS_SPEED,
    max_ang_speed: float = MAX_ANG_SPEED,
    translation_gain: float = TELEOP_TRANSLATION_GAIN,
    rotation_gain: float = TELEOP_ROTATION_GAIN,
) -> ChassisVelocity:
    """Shape raw joystick axes into a chassis-velocity request.

    Pipeline per axis: deadzone -> signed square -> scale. Translation axes are
    scaled as a vector by the max translation speed and attenuated by the
    translation gain unless boost is held. Rotation is always attenuated.

    Args:
        x_translation: Forward axis in [-1, 1] (positive = downfield)
        y_translation: Strafe axis in [-1, 1] (positive = left)
        z_rotation: Rotation axis in [-1, 1] (positive = CCW)
        boost: If True, translation is not attenuated
        translation_deadzone: Deadzone for both translation axes
        rotation_deadzone: Deadzone for the rotation axis
        max_trans_speed: Speed at full stick deflection (m/s)
        max_ang_speed: Angular speed at full stick deflection (rad/s)
        translation_gain: Translation attenuation without boost
        rotation_gain: Rotation attenuation

    Returns:
        Requested chassis velocity (field-relative)
    """
    x = square_preserving_sign(apply_deadzone(x_translation, translation_deadzone))
    y = square_preserving_sign(apply_deadzone(y_translation, translation_deadzone))
    z = square_preserving_sign(apply_deadzone(z_rotation, rotation_deadzone))

    # Full deflection on one axis is a unit vector
    vx = x * max_trans_speed
    vy = y * max_trans_speed
    if not boost:
        vx *= translation_gain
        vy *= translation_gain

    omega = z * max_ang_speed * rotation_gain

    return ChassisVelocity(vx, vy, omega)
