import math
import unittest

from swerve_control.geometry import Pose, angle_error, wrap_angle
from swerve_control.heading import (
    HeadingLock,
    PointFocus,
    ProfiledHeadingController,
    ProfileState,
    trapezoid_step,
)


class TestAngleWrap(unittest.TestCase):
    def test_359_to_1_is_plus_2_degrees(self):
        error = angle_error(math.radians(1.0), math.radians(359.0))
        self.assertAlmostEqual(math.degrees(error), 2.0)

    def test_wrap_range(self):
        for degrees in (-720, -190, 0, 181, 540):
            wrapped = wrap_angle(math.radians(degrees))
            self.assertLessEqual(abs(wrapped), math.pi)


class TestTrapezoidStep(unittest.TestCase):
    def test_accelerates_at_bound(self):
        state = trapezoid_step(ProfileState(0.0, 0.0), ProfileState(10.0, 0.0), 2.0, 1.0, 0.1)
        self.assertAlmostEqual(state.velocity, 0.1)

    def test_lands_on_goal(self):
        state = ProfileState()
        goal = ProfileState(1.0, 0.0)
        for _ in range(1000):
            state = trapezoid_step(state, goal, 2.0, 4.0, 0.02)
        self.assertEqual(state, goal)

    def test_respects_velocity_bound(self):
        state = ProfileState()
        goal = ProfileState(100.0, 0.0)
        for _ in range(500):
            state = trapezoid_step(state, goal, 2.0, 4.0, 0.02)
            self.assertLessEqual(abs(state.velocity), 2.0 + 1e-12)


class TestProfiledHeadingController(unittest.TestCase):
    def test_turns_the_short_way_across_the_wrap(self):
        controller = ProfiledHeadingController(kp=5.0, kd=0.0, max_velocity=6.0, max_accel=12.0)
        controller.reset(math.radians(359.0))
        omega = controller.calculate(math.radians(359.0), math.radians(1.0))
        self.assertGreater(omega, 0.0)
        self.assertAlmostEqual(math.degrees(controller.goal_error), 2.0)

    def test_reset_from_measured_rate_avoids_kick(self):
        controller = ProfiledHeadingController(kp=5.0, kd=0.1, max_velocity=6.0, max_accel=12.0)
        controller.reset(0.0, velocity=2.0)
        self.assertEqual(controller.setpoint, ProfileState(0.0, 2.0))
        # First call has no derivative history
        omega = controller.calculate(0.0, 0.0)
        self.assertTrue(math.isfinite(omega))
        self.assertLess(abs(omega), 1.0)

    def test_converges_on_simulated_heading(self):
        controller = ProfiledHeadingController(kp=5.0, kd=0.0, max_velocity=6.0, max_accel=12.0)
        heading = 0.0
        controller.reset(heading)
        for _ in range(300):
            heading = wrap_angle(heading + controller.calculate(heading, math.pi / 2) * 0.02)
        self.assertAlmostEqual(heading, math.pi / 2, places=3)
        self.assertLess(abs(controller.goal_error), 1e-3)


class TestHeadingLockAndFocus(unittest.TestCase):
    def test_lock_target_is_constant(self):
        lock = HeadingLock(math.radians(-90.0))
        self.assertAlmostEqual(lock.target(Pose(0.0, 0.0, 0.0)), -math.pi / 2)
        self.assertAlmostEqual(lock.target(Pose(5.0, 3.0, 1.0)), -math.pi / 2)

    def test_focus_faces_the_point_by_default(self):
        focus = PointFocus((8.0, 4.0))
        # Chassis west of the point must face east
        self.assertAlmostEqual(focus.target(Pose(4.0, 4.0, 0.0)), 0.0)
        # Chassis south of the point must face north
        self.assertAlmostEqual(focus.target(Pose(8.0, 0.0, 0.0)), math.pi / 2)

    def test_focus_offset_is_configurable(self):
        focus = PointFocus((8.0, 4.0), offset=0.0)
        self.assertAlmostEqual(abs(focus.target(Pose(4.0, 4.0, 0.0))), math.pi)

    def test_focus_target_tracks_pose(self):
        focus = PointFocus((0.0, 0.0))
        first = focus.target(Pose(1.0, 0.0, 0.0))
        second = focus.target(Pose(0.0, 1.0, 0.0))
        self.assertNotAlmostEqual(first, second)

    def test_lock_start_resets_controller(self):
        lock = HeadingLock(0.5)
        lock.start(0.2, 1.5)
        self.assertEqual(lock.controller.setpoint, ProfileState(0.2, 1.5))
        self.assertGreater(lock.calculate(Pose(0.0, 0.0, 0.2)), 0.0)


if __name__ == "__main__":
    unittest.main()
