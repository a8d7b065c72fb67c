import math
import unittest

from swerve_control.estimator import PoseEstimator
from swerve_control.geometry import ModulePosition, Pose
from swerve_control.kinematics import SwerveKinematics


def positions(distance, angle=0.0):
    return [ModulePosition(angle, distance)] * 4


class TestPoseEstimator(unittest.TestCase):
    def setUp(self):
        self.kinematics = SwerveKinematics()
        self.estimator = PoseEstimator(self.kinematics, 0.0, positions(0.0), Pose(4.0, 4.0, 0.0))

    def test_rejects_bad_gain(self):
        with self.assertRaises(ValueError):
            PoseEstimator(self.kinematics, 0.0, positions(0.0), correction_max_gain=1.5)

    def test_straight_odometry(self):
        for i in range(1, 11):
            pose = self.estimator.update(0.0, positions(0.05 * i))
        self.assertAlmostEqual(pose.x, 4.5)
        self.assertAlmostEqual(pose.y, 4.0)

    def test_odometry_rotated_by_gyro_heading(self):
        self.estimator.reset(Pose(0.0, 0.0, math.pi / 2), gyro_heading=0.0, module_positions=positions(0.0))
        pose = self.estimator.update(0.0, positions(0.1))
        self.assertAlmostEqual(pose.x, 0.0)
        self.assertAlmostEqual(pose.y, 0.1)

    def test_heading_follows_gyro_plus_offset(self):
        estimator = PoseEstimator(self.kinematics, 1.0, positions(0.0), Pose(0.0, 0.0, 0.0))
        pose = estimator.update(1.2, positions(0.0))
        self.assertAlmostEqual(pose.heading, 0.2)

    def test_reset_sets_pose_exactly(self):
        for i in range(1, 6):
            self.estimator.update(0.01 * i, positions(0.03 * i))
        target = Pose(1.25, -3.5, 0.75)
        self.estimator.reset(target)
        self.assertEqual(self.estimator.get_pose(), target)

    def test_reset_then_update_continues_from_new_pose(self):
        self.estimator.update(0.0, positions(0.05))
        self.estimator.reset(Pose(0.0, 0.0, 0.0))
        pose = self.estimator.update(0.0, positions(0.1))
        self.assertAlmostEqual(pose.x, 0.05)

    def test_gyro_fault_keeps_last_heading(self):
        self.estimator.update(0.3, positions(0.0))
        pose = self.estimator.update(float("nan"), positions(0.0))
        self.assertTrue(self.estimator.gyro_fault)
        self.assertAlmostEqual(pose.heading, 0.3)

        pose = self.estimator.update(None, positions(0.0))
        self.assertTrue(self.estimator.gyro_fault)
        self.estimator.update(0.4, positions(0.0))
        self.assertFalse(self.estimator.gyro_fault)

    def test_odometry_fault_holds_position(self):
        self.estimator.update(0.0, positions(0.05))
        pose = self.estimator.update(0.0, positions(float("nan")))
        self.assertTrue(self.estimator.odometry_fault)
        self.assertAlmostEqual(pose.x, 4.05)
        # Next valid reading differences against the last good one
        pose = self.estimator.update(0.0, positions(0.1))
        self.assertAlmostEqual(pose.x, 4.1)

    def test_reset_with_invalid_positions_reseeds_on_next_reading(self):
        with self.assertLogs(level="WARNING"):
            self.estimator.reset(Pose(1.0, 1.0, 0.0), 0.0, positions(float("nan")))
        self.assertTrue(self.estimator.odometry_fault)

        pose = self.estimator.update(0.0, positions(0.01))
        self.assertEqual(pose, Pose(1.0, 1.0, 0.0))
        self.assertFalse(self.estimator.odometry_fault)

        pose = self.estimator.update(0.0, positions(0.03))
        self.assertAlmostEqual(pose.x, 1.02)
        self.assertAlmostEqual(pose.y, 1.0)

    def test_invalid_positions_at_construction(self):
        with self.assertLogs(level="WARNING"):
            estimator = PoseEstimator(self.kinematics, 0.0, positions(float("nan"))[:3], Pose(2.0, 2.0, 0.0))
        self.assertTrue(estimator.odometry_fault)
        estimator.update(0.0, positions(0.5))
        pose = estimator.update(0.0, positions(0.52))
        self.assertAlmostEqual(pose.x, 2.02)

    def test_glitch_rejected(self):
        with self.assertLogs(level="WARNING"):
            pose = self.estimator.update(0.0, positions(5.0))
        self.assertEqual(self.estimator.glitches_rejected, 1)
        self.assertAlmostEqual(pose.x, 4.0)

    def test_correction_blends_gradually(self):
        observed = Pose(4.2, 4.0, 0.0)
        pose = self.estimator.add_correction(observed, 1.0)
        self.assertGreater(pose.x, 4.0)
        self.assertLess(pose.x, 4.2)

        for _ in range(200):
            pose = self.estimator.add_correction(observed, 1.0)
        self.assertAlmostEqual(pose.x, 4.2, places=4)

    def test_correction_step_is_bounded(self):
        pose = self.estimator.add_correction(Pose(100.0, 4.0, 0.0), 1.0)
        self.assertLessEqual(pose.x - 4.0, self.estimator.correction_max_step + 1e-12)

    def test_zero_confidence_is_ignored(self):
        pose = self.estimator.add_correction(Pose(5.0, 5.0, 1.0), 0.0)
        self.assertEqual(pose, Pose(4.0, 4.0, 0.0))

    def test_heading_correction_survives_next_update(self):
        for _ in range(50):
            self.estimator.add_correction(Pose(4.0, 4.0, 0.1), 1.0)
        corrected = self.estimator.get_pose().heading
        self.assertGreater(corrected, 0.0)
        pose = self.estimator.update(0.0, positions(0.0))
        self.assertAlmostEqual(pose.heading, corrected)

    def test_non_finite_correction_ignored(self):
        with self.assertLogs(level="WARNING"):
            pose = self.estimator.add_correction(Pose(float("nan"), 0.0, 0.0), 1.0)
        self.assertEqual(pose, Pose(4.0, 4.0, 0.0))

    def test_diagnostics(self):
        diagnostics = self.estimator.get_diagnostics()
        self.assertIn("gyro_fault", diagnostics)
        self.assertIn("corrections_applied", diagnostics)


if __name__ == "__main__":
    unittest.main()
