"""Autonomous routine registry, operator selector, and the built-in routines.

A routine is a named, fully composed action tree built once at startup. The
selector holds the operator's current choice; the robot captures that choice
once when autonomous starts.
"""

import logging
from typing import Callable, Dict, List, Optional

from .commands import Action, WaitAction, log_message, run_once
from .config import (
    CENTER_POSE,
    CLIMB_SECONDS,
    CLIMB_SPEED,
    SQUARE_PAUSE_SECONDS,
    SQUARE_SIDE,
    START_POSE,
    TAXI_DISTANCE,
)
from .drivetrain import SwerveDrive
from .errors import RoutineRegistryError
from .geometry import Pose
from .mechanisms import Climber
from .trajectory import Trajectory, TrajectoryLibrary

DEFAULT_ROUTINE = "No Auto"


class RoutineRegistry:
    """Named routines in registration order."""

    def __init__(self) -> None:
        self._routines: Dict[str, Action] = {}

    def register(self, name: str, routine: Action) -> None:
        """Register a routine under a unique name.

        Raises:
            RoutineRegistryError: If the name is already registered
        """
        if name in self._routines:
            raise RoutineRegistryError(f"Routine '{name}' is already registered")
        self._routines[name] = routine.named(name)

    def get(self, name: str) -> Action:
        try:
            return self._routines[name]
        except KeyError:
            raise RoutineRegistryError(
                f"Unknown routine '{name}'. Available: {', '.join(self._routines)}"
            ) from None

    def names(self) -> List[str]:
        return list(self._routines)

    def __contains__(self, name: object) -> bool:
        return name in self._routines

    def __len__(self) -> int:
        return len(self._routines)


class RoutineSelector:
    """Operator-facing choice of autonomous routine.

    Attributes:
        registry: Routines to choose from
        default: Name selected until the operator picks another
    """

    def __init__(self, registry: RoutineRegistry, default: str = DEFAULT_ROUTINE):
        registry.get(default)
        self.registry = registry
        self.default = default
        self._selected = default
        self._listeners: List[Callable[[str, Action], None]] = []

    @property
    def selected_name(self) -> str:
        return self._selected

    @property
    def selected(self) -> Action:
        return self.registry.get(self._selected)

    def options(self) -> List[str]:
        return self.registry.names()

    def select(self, name: str) -> None:
        """Change the selection and notify listeners if it changed.

        Raises:
            RoutineRegistryError: If no routine has that name
        """
        routine = self.registry.get(name)
        if name == self._selected:
            return
        self._selected = name
        logging.info(f"Autonomous routine selected: {name}")
        for listener in self._listeners:
            listener(name, routine)

    def on_change(self, listener: Callable[[str, Action], None]) -> None:
        self._listeners.append(listener)


# ============================================================================
# Built-in Routines
# ============================================================================


def load_paths(library: TrajectoryLibrary, start: Pose = Pose(*START_POSE)) -> None:
    """Load the named trajectories used by the built-in routines."""
    taxi_end = (start.x + TAXI_DISTANCE, start.y)
    library.add_waypoints("taxi", [(start.x, start.y), taxi_end], start.heading, start.heading)

    corners = [
        (start.x, start.y),
        (start.x + SQUARE_SIDE, start.y),
        (start.x + SQUARE_SIDE, start.y + SQUARE_SIDE),
        (start.x, start.y + SQUARE_SIDE),
        (start.x, start.y),
    ]
    for i in range(4):
        library.add_waypoints(f"square{i + 1}", corners[i : i + 2], start.heading, start.heading)


def _follow_from_start(drivetrain: SwerveDrive, trajectory: Trajectory) -> Action:
    """Seed the pose with the trajectory's start, then follow it."""
    return run_once(
        lambda: drivetrain.set_pose(trajectory.initial_pose), drivetrain, name="set_start_pose"
    ).and_then(drivetrain.follow_path_action(trajectory))


def build_routines(
    drivetrain: SwerveDrive,
    climber: Climber,
    library: Optional[TrajectoryLibrary] = None,
) -> RoutineRegistry:
    """Assemble every built-in routine.

    Args:
        drivetrain: Drivetrain resource
        climber: Climber resource
        library: Trajectory source. If None, one is created with the
            drivetrain's path constraints and the built-in paths are loaded.

    Returns:
        Registry with "No Auto" first
    """
    if library is None:
        library = TrajectoryLibrary(drivetrain.path_constraints, drivetrain.period)
        load_paths(library)

    registry = RoutineRegistry()
    registry.register(DEFAULT_ROUTINE, WaitAction(0))

    registry.register("Taxi", _follow_from_start(drivetrain, library.get("taxi")))

    registry.register(
        "Taxi And Climb",
        _follow_from_start(drivetrain, library.get("taxi")).and_then(
            climber.hold_action(CLIMB_SPEED).with_timeout(CLIMB_SECONDS),
            log_message("Climb finished"),
        ),
    )

    registry.register(
        "Drive To Center",
        drivetrain.drive_to_pose_action(Pose(*CENTER_POSE)).and_then(log_message("Reached center")),
    )

    sides: List[Action] = []
    for i in range(2, 5):
        sides.append(WaitAction(SQUARE_PAUSE_SECONDS))
        sides.append(drivetrain.follow_path_action(library.get(f"square{i}")))
    registry.register(
        "Square", _follow_from_start(drivetrain, library.get("square1")).and_then(*sides)
    )

    logging.debug(f"Registered routines: {registry.names()}")
    return registry
