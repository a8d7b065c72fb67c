"""Robot lifecycle: modes, the periodic tick, and the fixed-period run loop.

SwerveRobot wires the drivetrain, the climber, the scheduler, the routine
selector and the driver bindings together. One call to step() is one control
tick:
1. Advance simulated hardware (simulation only)
2. Run the scheduler (resource housekeeping, bindings, actions, defaults)
3. Flush the tick's telemetry frame

An ActuatorFault is the only error that leaves step(). The robot logs it,
cancels every action, drops to disabled, and re-raises it for an external
safety system.
"""

import asyncio
import enum
import logging
from typing import Any, Optional

from .commands import Action
from .config import TERM_BLUE, TERM_RESET, TICK_PERIOD
from .drivetrain import SwerveDrive
from .errors import ActuatorFault
from .hardware import SimulatedMotor, SwerveSimulation
from .kinematics import SwerveKinematics
from .mechanisms import Climber
from .operator import DriverController, bind_driver_controls
from .routines import RoutineSelector, build_routines
from .scheduler import Scheduler
from .telemetry import TelemetrySink, flush_telemetry, publish


class Mode(enum.Enum):
    DISABLED = "disabled"
    AUTONOMOUS = "autonomous"
    TELEOP = "teleop"
    TEST = "test"


class SwerveRobot:
    """Top-level robot program.

    Attributes:
        drivetrain: Drivetrain resource
        climber: Climber resource
        controller: Driver controller snapshot holder
        scheduler: Action scheduler
        selector: Autonomous routine selector
        mode: Current operating mode
        auto_action: Routine captured at the start of autonomous
    """

    def __init__(
        self,
        drivetrain: SwerveDrive,
        climber: Climber,
        controller: Optional[DriverController] = None,
        telemetry: Optional[TelemetrySink] = None,
        simulation: Optional[SwerveSimulation] = None,
        period: float = TICK_PERIOD,
    ) -> None:
        self.drivetrain = drivetrain
        self.climber = climber
        self.controller = controller or DriverController()
        self.telemetry = telemetry
        self.simulation = simulation
        self.period = period

        self.scheduler = Scheduler()
        self.scheduler.register(drivetrain, climber)
        bind_driver_controls(self.scheduler, drivetrain, self.controller, climber=climber)

        self.selector = RoutineSelector(build_routines(drivetrain, climber))
        self.selector.on_change(lambda name, routine: logging.debug(f"Routine option now {name}"))

        self.mode = Mode.DISABLED
        self.auto_action: Optional[Action] = None
        self.should_stop = False

    @classmethod
    def simulated(cls, telemetry: Optional[TelemetrySink] = None, period: float = TICK_PERIOD) -> "SwerveRobot":
        """Build a robot on ideal simulated hardware."""
        simulation = SwerveSimulation(SwerveKinematics())
        drivetrain = SwerveDrive(
            simulation.modules,
            simulation.gyro,
            kinematics=simulation.kinematics,
            telemetry=telemetry,
            period=period,
        )
        climber = Climber(SimulatedMotor(), telemetry=telemetry)
        return cls(drivetrain, climber, telemetry=telemetry, simulation=simulation, period=period)

    @property
    def elapsed(self) -> float:
        return self.scheduler.tick_count * self.period

    # ---------- Modes ----------

    def set_mode(self, mode: Mode) -> None:
        if mode == self.mode:
            return
        getattr(self, f"{self.mode.value}_exit")()
        logging.info(f"{TERM_BLUE}Mode: {self.mode.value} → {mode.value}{TERM_RESET}")
        self.mode = mode
        getattr(self, f"{mode.value}_init")()

    def disabled_init(self) -> None:
        self.scheduler.cancel_all()
        self.drivetrain.stop()
        self.climber.stop()

    def disabled_exit(self) -> None:
        pass

    def autonomous_init(self) -> None:
        self.auto_action = self.selector.selected
        logging.info(f"Starting autonomous routine: {self.selector.selected_name}")
        self.scheduler.schedule(self.auto_action)

    def autonomous_exit(self) -> None:
        if self.auto_action is not None:
            self.scheduler.cancel(self.auto_action)

    def teleop_init(self) -> None:
        pass

    def teleop_exit(self) -> None:
        pass

    def test_init(self) -> None:
        self.scheduler.cancel_all()

    def test_exit(self) -> None:
        pass

    # ---------- Tick ----------

    def step(self) -> None:
        """Run one control tick."""
        try:
            if self.simulation is not None:
                self.simulation.advance(self.period)
            self.scheduler.run(enabled=self.mode != Mode.DISABLED)
        except ActuatorFault as e:
            logging.error(f"Actuator fault, disabling: {e}")
            self.mode = Mode.DISABLED
            for make_safe in (self.scheduler.cancel_all, self.drivetrain.stop, self.climber.stop):
                try:
                    make_safe()
                except ActuatorFault as safe_error:
                    logging.error(f"Actuator fault while making actuators safe: {safe_error}")
            raise

        publish(self.telemetry, "robot/enabled", self.mode != Mode.DISABLED)
        flush_telemetry(self.telemetry, self.elapsed)

    async def run(self, seconds: float, realtime: bool = True) -> None:
        """Tick at the fixed period for a duration, or until stop() is called.

        Args:
            seconds: How long to run (s)
            realtime: If False, ticks run back to back without sleeping
        """
        loop = asyncio.get_running_loop()
        ticks = int(round(seconds / self.period))
        next_tick = loop.time()

        for _ in range(ticks):
            if self.should_stop:
                break
            self.step()

            if realtime:
                next_tick += self.period
                delay = next_tick - loop.time()
                if delay < 0:
                    logging.debug(f"Tick overran by {-delay * 1000:.1f}ms")
                    next_tick = loop.time()
                await asyncio.sleep(max(delay, 0.0))
            else:
                await asyncio.sleep(0)

    async def run_match(self, auto_seconds: float, teleop_seconds: float, realtime: bool = True) -> None:
        """Run autonomous then teleop, then disable."""
        self.set_mode(Mode.AUTONOMOUS)
        await self.run(auto_seconds, realtime)
        if not self.should_stop:
            self.set_mode(Mode.TELEOP)
            await self.run(teleop_seconds, realtime)
        self.set_mode(Mode.DISABLED)
        self.step()

    def stop(self) -> None:
        """Signal the run loop to stop."""
        self.should_stop = True

    def __enter__(self) -> "SwerveRobot":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.set_mode(Mode.DISABLED)
