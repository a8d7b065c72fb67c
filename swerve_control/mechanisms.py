"""Sub-mechanisms driven alongside the drivetrain in routines."""

import math
from typing import Optional

from .commands import Action, FunctionalAction, Resource, run_once
from .config import CLIMBER_KA, CLIMBER_KS, CLIMBER_KV, CLIMBER_MAX_VOLTAGE
from .hardware import MotorIO
from .telemetry import TelemetrySink, publish


class MotorFeedforward:
    """Static + velocity + acceleration feedforward for a DC motor.

    Control law:
        V = kS * sign(v) + kV * v + kA * a
    """

    def __init__(self, ks: float = CLIMBER_KS, kv: float = CLIMBER_KV, ka: float = CLIMBER_KA):
        self.ks = ks
        self.kv = kv
        self.ka = ka

    def calculate(self, velocity: float, acceleration: float = 0.0) -> float:
        if velocity == 0.0:
            static = 0.0
        else:
            static = math.copysign(self.ks, velocity)
        return static + self.kv * velocity + self.ka * acceleration


class Climber(Resource):
    """Single-motor climber run open loop through a feedforward.

    Attributes:
        motor: Climber motor interface
        feedforward: Velocity-to-voltage model
        max_voltage: Output clamp (V)
        voltage: Last voltage applied
    """

    def __init__(
        self,
        motor: MotorIO,
        feedforward: Optional[MotorFeedforward] = None,
        max_voltage: float = CLIMBER_MAX_VOLTAGE,
        telemetry: Optional[TelemetrySink] = None,
    ):
        super().__init__("climber")
        self.motor = motor
        self.feedforward = feedforward or MotorFeedforward()
        self.max_voltage = max_voltage
        self.telemetry = telemetry
        self.voltage = 0.0

    def set_velocity(self, velocity: float) -> None:
        volts = self.feedforward.calculate(velocity)
        self.voltage = max(-self.max_voltage, min(self.max_voltage, volts))
        self.motor.set_voltage(self.voltage)

    def stop(self) -> None:
        self.voltage = 0.0
        self.motor.set_voltage(0.0)

    def periodic(self) -> None:
        publish(self.telemetry, "climber/voltage", self.voltage)

    def drive_action(self, velocity: float) -> Action:
        """Apply the feedforward voltage for velocity once and finish.

        The motor keeps the voltage after the action ends.
        """
        return run_once(lambda: self.set_velocity(velocity), self, name=f"climber.drive({velocity})")

    def hold_action(self, velocity: float) -> Action:
        """Drive at velocity until cancelled, then zero the motor."""
        return FunctionalAction(
            on_start=lambda: self.set_velocity(velocity),
            on_end=lambda interrupted: self.stop(),
            requirements=[self],
            name=f"climber.hold({velocity})",
        )
