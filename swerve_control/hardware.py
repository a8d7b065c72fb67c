"""Hardware interfaces and simulated hardware.

The control core talks to hardware only through these narrow interfaces:
- SwerveModuleIO: one steerable, drivable wheel assembly
- GyroIO: chassis heading and yaw rate
- MotorIO: a voltage-driven sub-mechanism motor

Real implementations (motor controller and IMU drivers) live outside this
package. The simulated implementations here are ideal actuators used by the
headless simulation and the tests.
"""

import math
from typing import List, Optional, Protocol, Sequence

from .geometry import ModulePosition, ModuleState, wrap_angle
from .kinematics import SwerveKinematics, optimize


class SwerveModuleIO(Protocol):
    def get_measured_state(self) -> ModuleState: ...

    def get_position(self) -> ModulePosition: ...

    def set_target_state(self, state: ModuleState, closed_loop: bool) -> None: ...

    def get_target_state(self) -> ModuleState: ...

    def set_brake_mode(self, on: bool) -> None: ...

    def set_x_configuration(self) -> None: ...


class GyroIO(Protocol):
    def get_heading(self) -> Optional[float]: ...

    def get_yaw_rate(self) -> Optional[float]: ...


class MotorIO(Protocol):
    def set_voltage(self, volts: float) -> None: ...


class SimulatedModule:
    """Ideal swerve module: reaches its (optimized) target state instantly.

    Attributes:
        location: Module (x, y) relative to chassis center (m)
        state: Current measured state
        target: Last commanded state, as given
        distance: Total distance driven (m)
        closed_loop: Drive-control mode of the last command
        brake: Whether the drive motor brakes when idle
    """

    def __init__(self, location: Sequence[float] = (0.0, 0.0)):
        self.location = (float(location[0]), float(location[1]))
        self.state = ModuleState()
        self.target = ModuleState()
        self.distance = 0.0
        self.closed_loop = False
        self.brake = True

    def get_measured_state(self) -> ModuleState:
        return self.state

    def get_position(self) -> ModulePosition:
        return ModulePosition(self.state.angle, self.distance)

    def set_target_state(self, state: ModuleState, closed_loop: bool) -> None:
        self.target = state
        self.closed_loop = closed_loop
        self.state = optimize(state, self.state.angle)

    def get_target_state(self) -> ModuleState:
        return self.target

    def set_brake_mode(self, on: bool) -> None:
        self.brake = on

    def set_x_configuration(self) -> None:
        """Point the wheel toward chassis center so the chassis resists pushing."""
        angle = math.atan2(self.location[1], self.location[0])
        self.set_target_state(ModuleState(angle, 0.0), False)

    def advance(self, dt: float) -> None:
        self.distance += self.state.speed * dt


class SimulatedGyro:
    """Gyro that integrates a yaw rate supplied by the simulation."""

    def __init__(self, heading: float = 0.0):
        self.heading = heading
        self.yaw_rate = 0.0

    def get_heading(self) -> Optional[float]:
        return self.heading

    def get_yaw_rate(self) -> Optional[float]:
        return self.yaw_rate

    def advance(self, yaw_rate: float, dt: float) -> None:
        self.yaw_rate = yaw_rate
        self.heading = wrap_angle(self.heading + yaw_rate * dt)


class SimulatedMotor:
    """Motor that records the last applied voltage."""

    def __init__(self) -> None:
        self.voltage = 0.0

    def set_voltage(self, volts: float) -> None:
        self.voltage = volts


class SwerveSimulation:
    """Advances simulated modules and gyro by one step of chassis motion.

    The chassis yaw rate is recovered from the module states with forward
    kinematics, so the gyro and the wheel odometry always agree.
    """

    def __init__(
        self,
        kinematics: SwerveKinematics,
        modules: Optional[List[SimulatedModule]] = None,
        gyro: Optional[SimulatedGyro] = None,
    ):
        self.kinematics = kinematics
        self.modules = modules or [SimulatedModule(loc) for loc in kinematics.locations]
        self.gyro = gyro or SimulatedGyro()

    def advance(self, dt: float) -> None:
        velocity = self.kinematics.to_chassis_velocity([m.state for m in self.modules])
        for module in self.modules:
            module.advance(dt)
        self.gyro.advance(velocity.omega, dt)
