"""Swerve Control - Drivetrain Control Core for a Four-Module Swerve Robot

Turns driver joystick input and autonomous trajectory goals into per-wheel
angle/speed targets, fuses wheel and gyro sensors into a pose estimate, and
sequences composable actions into autonomous routines on one fixed-period tick.

## Architecture Overview

### Motion Pipeline
Every velocity command, from any source, flows through the drivetrain:
- `input_shaper.py` - Deadzone, signed squaring and scaling of joystick axes
- `limiter.py` - Per-tick translation/rotation acceleration limiting
- `kinematics.py` - Discretization, inverse kinematics, desaturation

### Feedback
- `estimator.py` - Odometry + gyro pose estimate with blended corrections
- `heading.py` - Profiled heading controller (heading lock, point focus)
- `trajectory.py` - Immutable trajectories, on-the-fly generation, library
- `follower.py` - Feedforward + PID holonomic trajectory follower

### Orchestration
- `commands.py` - Actions and combinators (sequence, race, parallel,
  timeout, until, deferred)
- `scheduler.py` - Single-tick scheduler with exclusive resource ownership
- `routines.py` - Routine registry, selector, built-in routines
- `operator.py` - Driver controller bindings
- `robot.py` - Operating modes and the fixed-period run loop

### Hardware & Data
- `drivetrain.py` - Drivetrain resource and its action factories
- `mechanisms.py` - Climber resource
- `hardware.py` - Hardware interfaces and ideal simulated hardware
- `telemetry.py` - CSV, WebSocket and in-memory telemetry sinks
- `plot_results.py` - Post-run pose trace plots

## Quick Start

```bash
# Simulate a match running the "Taxi" routine, recording telemetry
python -m swerve_control --routine Taxi --fast

# Plot the recorded pose trace
python -m swerve_control.plot_results
```

## Configuration

All tunables are centralized in `config.py` with units and tuning notes.
"""

__version__ = "0.1.0"

from .drivetrain import SwerveDrive
from .estimator import PoseEstimator
from .kinematics import SwerveKinematics
from .robot import Mode, SwerveRobot
from .scheduler import Scheduler

__all__ = [
    "SwerveDrive",
    "PoseEstimator",
    "SwerveKinematics",
    "Scheduler",
    "SwerveRobot",
    "Mode",
]
