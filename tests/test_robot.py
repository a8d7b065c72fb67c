import asyncio
import unittest

from swerve_control.commands import FunctionalAction
from swerve_control.errors import ActuatorFault, RoutineRegistryError
from swerve_control.operator import ControllerState
from swerve_control.robot import Mode, SwerveRobot
from swerve_control.telemetry import MemoryTelemetry


class TestSwerveRobot(unittest.TestCase):
    def setUp(self):
        self.telemetry = MemoryTelemetry()
        self.robot = SwerveRobot.simulated(telemetry=self.telemetry)

    def step(self, count=1):
        for _ in range(count):
            self.robot.step()

    def wheel_speeds(self):
        return [abs(m.state.speed) for m in self.robot.simulation.modules]

    def drive_forward_at_boost(self, ticks):
        self.robot.set_mode(Mode.TELEOP)
        self.robot.controller.update(ControllerState(left_y=-1.0, left_bumper=True))
        self.step(ticks)
        self.assertGreater(min(self.wheel_speeds()), 1.0)

    def test_starts_disabled(self):
        self.assertEqual(self.robot.mode, Mode.DISABLED)
        self.step()
        self.assertEqual(self.robot.scheduler.scheduled, [])
        self.assertEqual(self.telemetry.latest["robot/enabled"], 0.0)
        self.assertIn("drivetrain/pose.x", self.telemetry.latest)

    def test_teleop_runs_default_drive(self):
        self.robot.set_mode(Mode.TELEOP)
        self.step()
        owner = self.robot.scheduler.owner_of(self.robot.drivetrain)
        self.assertEqual(owner.name, "teleop_drive")
        self.assertEqual(self.telemetry.latest["robot/enabled"], 1.0)

    def test_disable_while_driving_stops_wheels(self):
        self.drive_forward_at_boost(100)
        self.robot.set_mode(Mode.DISABLED)
        self.assertEqual(self.robot.scheduler.scheduled, [])
        self.assertEqual(self.wheel_speeds(), [0.0] * 4)

        x = self.robot.drivetrain.get_pose().x
        self.step(50)
        self.assertAlmostEqual(self.robot.drivetrain.get_pose().x, x)
        self.assertEqual(self.wheel_speeds(), [0.0] * 4)

    def test_cancelling_routine_mid_path_stops_wheels(self):
        self.robot.selector.select("Taxi")
        self.robot.set_mode(Mode.AUTONOMOUS)
        self.step(40)
        self.assertGreater(max(self.wheel_speeds()), 0.5)

        self.robot.scheduler.cancel(self.robot.auto_action)
        self.assertEqual(self.wheel_speeds(), [0.0] * 4)

    def test_autonomous_captures_selection_at_start(self):
        self.robot.selector.select("Taxi")
        self.robot.set_mode(Mode.AUTONOMOUS)
        self.robot.selector.select("Square")
        self.assertEqual(self.robot.auto_action.name, "Taxi")
        self.assertTrue(self.robot.scheduler.is_scheduled(self.robot.auto_action))

    def test_taxi_routine_drives_forward(self):
        self.robot.selector.select("Taxi")
        self.robot.set_mode(Mode.AUTONOMOUS)
        self.step(250)
        self.assertFalse(self.robot.scheduler.is_scheduled(self.robot.auto_action))
        pose = self.robot.drivetrain.get_pose()
        self.assertAlmostEqual(pose.x, 6.0, delta=0.05)
        self.assertAlmostEqual(pose.y, 4.0, delta=0.05)

    def test_leaving_autonomous_cancels_routine(self):
        self.robot.selector.select("Square")
        self.robot.set_mode(Mode.AUTONOMOUS)
        self.step(5)
        self.robot.set_mode(Mode.TELEOP)
        self.assertFalse(self.robot.scheduler.is_scheduled(self.robot.auto_action))

    def test_unknown_routine(self):
        with self.assertRaises(RoutineRegistryError):
            self.robot.selector.select("Moonshot")

    def test_actuator_fault_disables_and_propagates(self):
        def fault():
            raise ActuatorFault("climber motor lost")

        self.robot.set_mode(Mode.TELEOP)
        self.robot.scheduler.schedule(
            FunctionalAction(on_periodic=fault, requirements=[self.robot.climber], name="faulty")
        )
        with self.assertLogs(level="ERROR"):
            with self.assertRaises(ActuatorFault):
                self.step()
        self.assertEqual(self.robot.mode, Mode.DISABLED)
        self.assertEqual(self.robot.scheduler.scheduled, [])

    def test_actuator_fault_while_driving_stops_wheels(self):
        def fault():
            raise ActuatorFault("climber motor lost")

        self.drive_forward_at_boost(50)
        self.robot.scheduler.schedule(
            FunctionalAction(on_periodic=fault, requirements=[self.robot.climber], name="faulty")
        )
        with self.assertLogs(level="ERROR"):
            with self.assertRaises(ActuatorFault):
                self.step()
        self.assertEqual(self.wheel_speeds(), [0.0] * 4)
        self.assertEqual(self.robot.climber.voltage, 0.0)

    def test_test_mode_cancels_actions(self):
        self.robot.set_mode(Mode.TELEOP)
        self.step()
        self.robot.set_mode(Mode.TEST)
        self.assertEqual(self.robot.scheduler.scheduled, [])

    def test_run_match_without_realtime(self):
        self.robot.selector.select("Taxi And Climb")
        asyncio.run(self.robot.run_match(0.5, 0.2, realtime=False))
        self.assertEqual(self.robot.mode, Mode.DISABLED)
        # 25 autonomous + 10 teleop + 1 disabled tick
        self.assertEqual(self.robot.scheduler.tick_count, 36)
        self.assertAlmostEqual(self.robot.elapsed, 0.72)

    def test_stop_ends_run_early(self):
        self.robot.set_mode(Mode.TELEOP)
        self.robot.stop()
        asyncio.run(self.robot.run(1.0, realtime=False))
        self.assertEqual(self.robot.scheduler.tick_count, 0)

    def test_context_manager_disables(self):
        with self.robot as robot:
            robot.set_mode(Mode.TELEOP)
        self.assertEqual(self.robot.mode, Mode.DISABLED)


if __name__ == "__main__":
    unittest.main()
