"""Driver controller state and the driver's button bindings.

An external input poller writes a fresh ControllerState into the
DriverController before each tick. Stick axes follow gamepad conventions
(pushing forward reads negative), so the bindings invert them.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from .config import (
    CLIMB_SPEED,
    DRIVE_TO_POINT_GOAL,
    FOCUS_POINT,
    HEADING_INTERRUPT_THRESHOLD,
    LOCK_HEADING_DIRECTIONS,
)
from .drivetrain import SwerveDrive
from .geometry import Pose
from .mechanisms import Climber
from .scheduler import Scheduler, Trigger


@dataclass(frozen=True)
class ControllerState:
    """One snapshot of a gamepad.

    Attributes:
        left_x, left_y, right_x, right_y: Stick axes in [-1, 1]
        pov: D-pad direction in degrees (0 = up, clockwise), or -1 if released
    """

    left_x: float = 0.0
    left_y: float = 0.0
    right_x: float = 0.0
    right_y: float = 0.0
    a: bool = False
    b: bool = False
    x: bool = False
    y: bool = False
    left_bumper: bool = False
    right_bumper: bool = False
    back: bool = False
    start: bool = False
    left_stick: bool = False
    right_stick: bool = False
    pov: int = -1


class DriverController:
    """Holds the latest controller snapshot for bindings and actions to read."""

    def __init__(self, state: ControllerState = ControllerState()):
        self.state = state

    def update(self, state: ControllerState) -> None:
        self.state = state

    def forward(self) -> float:
        return -self.state.left_y

    def strafe(self) -> float:
        return -self.state.left_x

    def rotation(self) -> float:
        return -self.state.right_x

    def boost(self) -> bool:
        return self.state.left_bumper

    def rotation_override(self) -> bool:
        """True while the driver is commanding rotation by hand."""
        return abs(self.state.right_x) > HEADING_INTERRUPT_THRESHOLD


def bind_driver_controls(
    scheduler: Scheduler,
    drivetrain: SwerveDrive,
    controller: DriverController,
    focus_point: Tuple[float, float] = FOCUS_POINT,
    goal: Pose = Pose(*DRIVE_TO_POINT_GOAL),
    climber: Optional[Climber] = None,
) -> None:
    """Install the default teleop drive and the driver's button bindings.

    - Left stick translates, right stick X rotates, left bumper boosts
    - D-pad locks the heading to the pressed direction until the driver rotates
    - A faces focus_point until the driver rotates
    - Y drives to goal along a path generated from the current pose
    - Right stick press zeroes the gyro
    - Start toggles the X configuration
    - Right bumper runs the climber while held, if a climber is given
    """
    c = controller

    scheduler.set_default_action(
        drivetrain, drivetrain.teleop_drive_action(c.forward, c.strafe, c.rotation, c.boost)
    )

    for direction in LOCK_HEADING_DIRECTIONS:
        lock = drivetrain.lock_heading_action(
            c.forward, c.strafe, math.radians(-direction), c.boost
        ).until(c.rotation_override)
        Trigger(scheduler, lambda d=direction: c.state.pov == d).on_true(lock)

    focus = drivetrain.focus_point_action(c.forward, c.strafe, focus_point, c.boost)
    Trigger(scheduler, lambda: c.state.a).on_true(focus.until(c.rotation_override))

    Trigger(scheduler, lambda: c.state.y).on_true(drivetrain.drive_to_pose_action(goal))
    Trigger(scheduler, lambda: c.state.right_stick).on_true(drivetrain.zero_gyro_action())
    Trigger(scheduler, lambda: c.state.start).toggle_on_true(drivetrain.x_configuration_action())

    if climber is not None:
        Trigger(scheduler, lambda: c.state.right_bumper).while_true(climber.hold_action(CLIMB_SPEED))
