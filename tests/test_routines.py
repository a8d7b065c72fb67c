import math
import unittest
from unittest.mock import MagicMock

from swerve_control.commands import Action, WaitAction
from swerve_control.drivetrain import SwerveDrive
from swerve_control.errors import RoutineRegistryError
from swerve_control.geometry import Pose
from swerve_control.hardware import SimulatedMotor, SwerveSimulation
from swerve_control.kinematics import SwerveKinematics
from swerve_control.mechanisms import Climber
from swerve_control.routines import (
    DEFAULT_ROUTINE,
    RoutineRegistry,
    RoutineSelector,
    build_routines,
    load_paths,
)
from swerve_control.trajectory import TrajectoryLibrary


class TestRoutineRegistry(unittest.TestCase):
    def setUp(self):
        self.registry = RoutineRegistry()
        self.registry.register(DEFAULT_ROUTINE, WaitAction(0))
        self.registry.register("Taxi", Action())

    def test_names_in_registration_order(self):
        self.assertEqual(self.registry.names(), [DEFAULT_ROUTINE, "Taxi"])
        self.assertEqual(len(self.registry), 2)
        self.assertIn("Taxi", self.registry)

    def test_register_names_the_routine(self):
        self.assertEqual(self.registry.get("Taxi").name, "Taxi")

    def test_duplicate_rejected(self):
        with self.assertRaises(RoutineRegistryError):
            self.registry.register("Taxi", Action())

    def test_unknown_rejected(self):
        with self.assertRaises(RoutineRegistryError):
            self.registry.get("Moonshot")


class TestRoutineSelector(unittest.TestCase):
    def setUp(self):
        self.registry = RoutineRegistry()
        self.registry.register(DEFAULT_ROUTINE, WaitAction(0))
        self.registry.register("Taxi", Action())
        self.selector = RoutineSelector(self.registry)

    def test_default_selected(self):
        self.assertEqual(self.selector.selected_name, DEFAULT_ROUTINE)
        self.assertEqual(self.selector.options(), [DEFAULT_ROUTINE, "Taxi"])

    def test_default_must_exist(self):
        with self.assertRaises(RoutineRegistryError):
            RoutineSelector(self.registry, default="Moonshot")

    def test_select_notifies_on_change_only(self):
        listener = MagicMock()
        self.selector.on_change(listener)
        self.selector.select("Taxi")
        self.selector.select("Taxi")
        listener.assert_called_once_with("Taxi", self.registry.get("Taxi"))
        self.assertIs(self.selector.selected, self.registry.get("Taxi"))

    def test_select_unknown_keeps_selection(self):
        with self.assertRaises(RoutineRegistryError):
            self.selector.select("Moonshot")
        self.assertEqual(self.selector.selected_name, DEFAULT_ROUTINE)


class TestBuiltInRoutines(unittest.TestCase):
    def setUp(self):
        sim = SwerveSimulation(SwerveKinematics())
        self.drivetrain = SwerveDrive(sim.modules, sim.gyro, kinematics=sim.kinematics)
        self.climber = Climber(SimulatedMotor())

    def test_paths_loaded(self):
        library = TrajectoryLibrary()
        load_paths(library, Pose(4.0, 4.0, 0.0))
        self.assertEqual(library.names(), ["taxi", "square1", "square2", "square3", "square4"])
        self.assertAlmostEqual(library.get("taxi").end_pose.x, 6.0)
        # The square closes on its start
        self.assertAlmostEqual(library.get("square4").end_pose.x, 4.0)
        self.assertAlmostEqual(library.get("square4").end_pose.y, 4.0)

    def test_routine_names(self):
        registry = build_routines(self.drivetrain, self.climber)
        self.assertEqual(
            registry.names(),
            ["No Auto", "Taxi", "Taxi And Climb", "Drive To Center", "Square"],
        )

    def test_requirements(self):
        registry = build_routines(self.drivetrain, self.climber)
        self.assertEqual(registry.get("No Auto").requirements, frozenset())
        self.assertEqual(registry.get("Taxi").requirements, {self.drivetrain})
        self.assertEqual(registry.get("Taxi And Climb").requirements, {self.drivetrain, self.climber})

    def test_uses_given_library(self):
        library = TrajectoryLibrary()
        load_paths(library, Pose(1.0, 1.0, math.pi))
        registry = build_routines(self.drivetrain, self.climber, library)
        self.assertIn("Square", registry)


if __name__ == "__main__":
    unittest.main()
