"""Configuration parameters for the swerve control system.

This module centralizes all configuration parameters including:
- Physical chassis and module geometry
- Chassis speed and acceleration limits
- Operator input shaping
- Heading and path-following controller gains
- Pose estimation parameters
- Telemetry and visualization settings

All parameters are documented with their purpose, valid ranges, and tuning rationale.
"""

import math

# ============================================================================
# Physical Robot Parameters
# ============================================================================

TICK_PERIOD = 0.02
"""Main control loop period (seconds).

Every periodic entry point (scheduler tick, limiter, discretization, pose
update) assumes this period. 50 Hz matches the platform's control cycle."""

WHEEL_BASE = 0.5842
"""Distance between front and back module axles (meters). 23 inches."""

TRACK_WIDTH = 0.5842
"""Distance between left and right module contact patches (meters). 23 inches."""

MODULE_LOCATIONS = (
    (WHEEL_BASE / 2.0, TRACK_WIDTH / 2.0),  # front-left
    (WHEEL_BASE / 2.0, -TRACK_WIDTH / 2.0),  # front-right
    (-WHEEL_BASE / 2.0, TRACK_WIDTH / 2.0),  # back-left
    (-WHEEL_BASE / 2.0, -TRACK_WIDTH / 2.0),  # back-right
)
"""Module positions relative to chassis center (meters), +x forward, +y left.

Order is fixed: front-left, front-right, back-left, back-right. The kinematics
matrix, the hardware list and every module-state array use this order."""

MODULE_NAMES = ("FrontLeft", "FrontRight", "BackLeft", "BackRight")
"""Telemetry names for the modules, in MODULE_LOCATIONS order."""

MAX_WHEEL_SPEED = 4.8
"""Maximum achievable wheel speed (m/s). Hardware limit used for desaturation."""


# ============================================================================
# Chassis Limits
# ============================================================================

MAX_TRANS_SPEED = 4.5
"""Maximum chassis translation speed (m/s).

Kept slightly below MAX_WHEEL_SPEED so full-stick translation leaves some
wheel-speed headroom for simultaneous rotation."""

MAX_ANG_SPEED = 2.0 * math.pi
"""Maximum chassis angular speed (rad/s). One rotation per second."""

MAX_TRANS_ACCEL = 6.0
"""Maximum chassis translation acceleration (m/s²).

Used by the acceleration limiter on every drive request.

Tuning rationale:
- Roughly 0.6 g, below the traction limit of the wheels
- Higher values cause wheel slip which corrupts odometry
"""

MAX_ANG_ACCEL = 4.0 * math.pi
"""Maximum chassis angular acceleration (rad/s²).

Shared by the acceleration limiter and the heading controllers' motion profile."""


# ============================================================================
# Operator Input Parameters
# ============================================================================

TRANSLATION_DEADZONE = 0.1
"""Joystick deadzone for translation axes (range: [0, 1]).

Axis magnitudes at or below this value are treated as zero. Covers stick
drift on worn controllers."""

ROTATION_DEADZONE = 0.1
"""Joystick deadzone for the rotation axis (range: [0, 1])."""

TELEOP_TRANSLATION_GAIN = 0.5
"""Translation attenuation when boost is not held (range: [0, 1])."""

TELEOP_ROTATION_GAIN = 0.5
"""Rotation attenuation applied to the rotation axis (range: [0, 1])."""

TELEOP_CLOSED_LOOP = False
"""Whether teleop driving uses closed-loop (velocity feedback) wheel control."""

HEADING_INTERRUPT_THRESHOLD = 0.2
"""Rotation-axis magnitude that cancels heading lock and point focus.

Once the driver twists the rotation stick past this value the heading
controller releases and the default teleop drive takes over again."""

LOCK_HEADING_DIRECTIONS = (0, 90, 180, 270)
"""D-pad directions (degrees) bound to a heading lock at -direction."""

FOCUS_POINT = (8.0, 4.0)
"""Field point (meters) the chassis tracks while point focus is active."""

DRIVE_TO_POINT_GOAL = (4.0, 4.0, 0.0)
"""Goal pose (x m, y m, heading rad) for the drive-to-point binding."""


# ============================================================================
# Heading Controller Parameters (Profiled PID)
# ============================================================================

HEADING_KP = 5.0
"""Proportional gain for heading control ((rad/s) per rad, range: [1, 10]).

Tuning rationale:
- 5.0 settles a 90° turn in well under a second within the profile limits
- Higher values oscillate once the profile setpoint reaches the goal
"""

HEADING_KD = 0.1
"""Derivative gain for heading control ((rad/s) per (rad/s))."""

HEADING_MAX_VELOCITY = MAX_ANG_SPEED
"""Motion profile velocity bound for heading setpoints (rad/s)."""

HEADING_MAX_ACCEL = MAX_ANG_ACCEL
"""Motion profile acceleration bound for heading setpoints (rad/s²)."""

FOCUS_POINT_OFFSET = math.pi
"""Rotation (rad) added to the bearing toward the focus point.

With pi the bearing is taken from the point to the chassis and then turned a
half rotation, so the chassis front faces the point. Set to 0.0 to face the
point with the back of the chassis instead."""


# ============================================================================
# Path Following Parameters (Holonomic Feedback)
# ============================================================================

PATH_TRANSLATION_KP = 5.0
"""Proportional gain for field x/y tracking error ((m/s) per m)."""

PATH_TRANSLATION_KI = 0.0
"""Integral gain for field x/y tracking error."""

PATH_TRANSLATION_KD = 0.0
"""Derivative gain for field x/y tracking error."""

PATH_ROTATION_KP = 5.0
"""Proportional gain for heading tracking error ((rad/s) per rad)."""

PATH_ROTATION_KI = 0.0
"""Integral gain for heading tracking error."""

PATH_ROTATION_KD = 0.0
"""Derivative gain for heading tracking error."""

PATH_MAX_VELOCITY = 3.0
"""Translation speed bound for generated trajectories (m/s)."""

PATH_MAX_ACCEL = 3.0
"""Translation acceleration bound for generated trajectories (m/s²).

Tuning rationale:
- Half of MAX_TRANS_ACCEL leaves the limiter room for feedback corrections
"""

PATH_MAX_ANG_VELOCITY = math.pi
"""Heading rate bound for generated trajectories (rad/s)."""

PATH_MAX_ANG_ACCEL = MAX_ANG_ACCEL
"""Heading acceleration bound for generated trajectories (rad/s²)."""

PATH_POSITION_TOLERANCE = 0.05
"""Distance to the terminal pose that counts as arrived (meters)."""

PATH_HEADING_TOLERANCE = math.radians(2.0)
"""Heading error to the terminal heading that counts as arrived (radians)."""

PATH_SETTLED_VELOCITY = 0.05
"""Commanded translation speed below which the follower counts as settled (m/s)."""

PATH_SETTLED_ANG_VELOCITY = 0.05
"""Commanded angular speed below which the follower counts as settled (rad/s)."""

PATH_SAMPLE_PERIOD = TICK_PERIOD
"""Time step for trajectory discretization (seconds)."""

PATH_MIN_DISTANCE = 0.01
"""Shortest start-to-goal distance a generated trajectory accepts (meters).

Shorter requests are degenerate and fail generation."""


# ============================================================================
# Autonomous Routine Parameters
# ============================================================================

TAXI_DISTANCE = 2.0
"""Straight-line distance driven forward by the taxi routines (meters)."""

CENTER_POSE = (8.0, 4.0, math.pi / 2.0)
"""Goal of the on-the-fly "Drive To Center" routine (x m, y m, heading rad)."""

SQUARE_SIDE = 1.5
"""Side length of the "Square" routine (meters)."""

SQUARE_PAUSE_SECONDS = 0.5
"""Pause between the sides of the "Square" routine (seconds)."""

CLIMB_SECONDS = 2.0
"""How long the climber is driven at the end of "Taxi And Climb" (seconds)."""


# ============================================================================
# Pose Estimation Parameters
# ============================================================================

START_POSE = (4.0, 4.0, 0.0)
"""Initial pose estimate (x m, y m, heading rad) before any reset."""

CORRECTION_MAX_GAIN = 0.1
"""Blend fraction applied per correction at full confidence (range: (0, 1)).

A confidence-1.0 observation moves the estimate 10% of the way toward it, so a
steady observation pulls the estimate in over tens of ticks instead of
snapping in one."""

CORRECTION_MAX_STEP = 0.05
"""Maximum translation applied by one correction (meters per call)."""

CORRECTION_MAX_HEADING_STEP = math.radians(1.0)
"""Maximum heading change applied by one correction (radians per call)."""

ODOMETRY_GLITCH_FACTOR = 1.5
"""Allowed ratio of a module's distance delta to MAX_WHEEL_SPEED * TICK_PERIOD.

Deltas above this ratio cannot be physical and are dropped as sensor faults."""


# ============================================================================
# Sub-mechanism Parameters (Climber)
# ============================================================================

CLIMBER_KS = 0.2
"""Static friction feedforward (volts)."""

CLIMBER_KV = 2.4
"""Velocity feedforward (volts per m/s)."""

CLIMBER_KA = 0.1
"""Acceleration feedforward (volts per m/s²)."""

CLIMBER_MAX_VOLTAGE = 12.0
"""Battery-limited output voltage bound (volts)."""

CLIMB_SPEED = 0.5
"""Climber speed used by autonomous routines (m/s)."""


# ============================================================================
# Visualization Colors (Monumental Branding)
# ============================================================================

MONUMENTAL_ORANGE = "#f74823"
"""Primary brand color - used for measured and estimated data."""

MONUMENTAL_BLUE = "#2374f7"
"""Secondary brand color - used for reference and commanded data."""

MONUMENTAL_CREAM = "#fffdee"
"""Light color for text and labels on dark backgrounds."""

MONUMENTAL_TAUPE = "#686a5f"
"""Neutral color for guides, grids, and secondary elements."""

MONUMENTAL_DARK_BLUE = "#0d1b2a"
"""Dark background color for dark mode displays."""

TERM_BLUE = "\033[38;2;35;116;247m"
"""Terminal color code for complementary blue (RGB: 35, 116, 247)."""

TERM_RESET = "\033[0m"
"""Terminal color reset code."""


# ============================================================================
# Telemetry Configuration
# ============================================================================

TELEMETRY_URI = "ws://localhost:5810"
"""WebSocket URI of the telemetry dashboard."""

TELEMETRY_RETRY_DELAY_SECONDS = 1
"""Initial retry delay for failed telemetry connections (seconds)."""

TELEMETRY_MAX_RETRY_DELAY_SECONDS = 60
"""Maximum retry delay with exponential backoff (seconds)."""

TELEMETRY_QUEUE_SIZE = 250
"""Frames buffered while the dashboard is unreachable (5 s at 50 Hz)."""
