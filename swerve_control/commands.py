"""Composable actions for the cooperative command scheduler.

Every action exposes the same small capability set:
- requirements: resources the action drives exclusively
- start(): called once when the action is scheduled
- periodic(): called once per tick while scheduled; must never block
- is_finished(): checked after each periodic() call
- end(interrupted): called exactly once when the action stops, with
  interrupted=True on cancellation; must leave actuators safe

Primitive actions wrap plain callables. Combinators (sequence, race,
parallel-all, timeout, until, deferred) own their children and drive them
through the same capability set, so trees compose to any depth. Waiting is
always expressed as repeated non-completion across ticks.
"""

import logging
import math
from typing import Callable, Iterable, List, Optional

from .config import TICK_PERIOD


class Resource:
    """A physical actuator group that at most one action may drive at a time.

    Subclasses override periodic() for per-tick housekeeping that must run
    regardless of which action owns them (sensor fusion, telemetry).
    """

    def __init__(self, name: Optional[str] = None):
        self.name = name or type(self).__name__

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"

    def periodic(self) -> None:
        """Per-tick housekeeping, run before any action."""


class Action:
    """Base action: no-op hooks, never finishes on its own."""

    def __init__(self, requirements: Iterable[Resource] = (), name: Optional[str] = None):
        self.requirements = frozenset(requirements)
        self._name = name
        self.composed = False

    @property
    def name(self) -> str:
        return self._name or type(self).__name__

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"

    def start(self) -> None:
        pass

    def periodic(self) -> None:
        pass

    def is_finished(self) -> bool:
        return False

    def end(self, interrupted: bool) -> None:
        pass

    # ---------- Composition helpers ----------

    def and_then(self, *others: "Action") -> "SequenceAction":
        """Run this action, then each of others in turn."""
        return SequenceAction(self, *others)

    def race_with(self, *others: "Action") -> "RaceAction":
        """Run alongside others; the first to finish cancels the rest."""
        return RaceAction(self, *others)

    def along_with(self, *others: "Action") -> "ParallelAction":
        """Run alongside others; finish when all have finished."""
        return ParallelAction(self, *others)

    def with_timeout(self, seconds: float, period: float = TICK_PERIOD) -> "RaceAction":
        """Force completion after a fixed duration."""
        return RaceAction(self, WaitAction(seconds, period), name=f"{self.name}.with_timeout({seconds})")

    def until(self, condition: Callable[[], bool]) -> "RaceAction":
        """Force completion the first tick condition() is true."""
        return RaceAction(self, WaitUntilAction(condition), name=f"{self.name}.until")

    def named(self, name: str) -> "Action":
        self._name = name
        return self


def _claim(children: Iterable[Action]) -> List[Action]:
    """Mark actions as owned by a combinator; an action has one owner."""
    claimed = []
    for child in children:
        if child.composed:
            raise ValueError(f"{child!r} is already part of another composition")
        child.composed = True
        claimed.append(child)
    return claimed


def _union(children: Iterable[Action]) -> frozenset:
    requirements: frozenset = frozenset()
    for child in children:
        requirements |= child.requirements
    return requirements


def _require_disjoint(children: Iterable[Action]) -> None:
    seen: set = set()
    for child in children:
        overlap = seen & child.requirements
        if overlap:
            raise ValueError(
                f"Concurrent actions cannot share resources: {sorted(r.name for r in overlap)}"
            )
        seen |= child.requirements


# ============================================================================
# Primitive Actions
# ============================================================================


class FunctionalAction(Action):
    """Action assembled from optional callables for each hook."""

    def __init__(
        self,
        on_start: Optional[Callable[[], None]] = None,
        on_periodic: Optional[Callable[[], None]] = None,
        on_end: Optional[Callable[[bool], None]] = None,
        is_finished: Optional[Callable[[], bool]] = None,
        requirements: Iterable[Resource] = (),
        name: Optional[str] = None,
    ):
        super().__init__(requirements, name)
        self._on_start = on_start
        self._on_periodic = on_periodic
        self._on_end = on_end
        self._is_finished = is_finished

    def start(self) -> None:
        if self._on_start is not None:
            self._on_start()

    def periodic(self) -> None:
        if self._on_periodic is not None:
            self._on_periodic()

    def is_finished(self) -> bool:
        return self._is_finished() if self._is_finished is not None else False

    def end(self, interrupted: bool) -> None:
        if self._on_end is not None:
            self._on_end(interrupted)


def run_once(fn: Callable[[], None], *requirements: Resource, name: Optional[str] = None) -> Action:
    """Action that calls fn once at start and finishes on its first tick."""
    return FunctionalAction(on_start=fn, is_finished=lambda: True, requirements=requirements, name=name)


def run(fn: Callable[[], None], *requirements: Resource, name: Optional[str] = None) -> Action:
    """Action that calls fn every tick until cancelled."""
    return FunctionalAction(on_periodic=fn, requirements=requirements, name=name)


def start_end(
    on_start: Callable[[], None],
    on_end: Callable[[], None],
    *requirements: Resource,
    name: Optional[str] = None,
) -> Action:
    """Action that calls on_start when started and on_end when stopped."""
    return FunctionalAction(
        on_start=on_start,
        on_end=lambda interrupted: on_end(),
        requirements=requirements,
        name=name,
    )


def log_message(message: str) -> Action:
    """Action that logs a message once."""
    return run_once(lambda: logging.info(message), name="log")


class WaitAction(Action):
    """Finishes after a fixed number of ticks.

    The duration is converted to whole ticks (rounded to nearest), so
    WaitAction(0) finishes on its first tick.
    """

    def __init__(self, seconds: float, period: float = TICK_PERIOD):
        if seconds < 0 or not math.isfinite(seconds):
            raise ValueError(f"Wait duration must be a non-negative number, got {seconds}")
        super().__init__(name=f"wait({seconds})")
        self.seconds = seconds
        self.ticks_required = int(round(seconds / period))
        self.ticks_elapsed = 0

    def start(self) -> None:
        self.ticks_elapsed = 0

    def periodic(self) -> None:
        self.ticks_elapsed += 1

    def is_finished(self) -> bool:
        return self.ticks_elapsed >= self.ticks_required


class WaitUntilAction(Action):
    """Finishes the first tick its condition is true."""

    def __init__(self, condition: Callable[[], bool]):
        super().__init__(name="wait_until")
        self.condition = condition

    def is_finished(self) -> bool:
        return bool(self.condition())


# ============================================================================
# Combinators
# ============================================================================


class SequenceAction(Action):
    """Runs children one after another; finishes when the last one does."""

    def __init__(self, *actions: Action, name: Optional[str] = None):
        self.actions = _claim(actions)
        super().__init__(_union(self.actions), name)
        self.index = 0

    def start(self) -> None:
        self.index = 0
        if self.actions:
            self.actions[0].start()

    def periodic(self) -> None:
        if self.index >= len(self.actions):
            return

        current = self.actions[self.index]
        current.periodic()
        if current.is_finished():
            current.end(False)
            self.index += 1
            if self.index < len(self.actions):
                self.actions[self.index].start()

    def is_finished(self) -> bool:
        return self.index >= len(self.actions)

    def end(self, interrupted: bool) -> None:
        if interrupted and self.index < len(self.actions):
            self.actions[self.index].end(True)
        self.index = len(self.actions)


class RaceAction(Action):
    """Runs children together; the first to finish cancels the others.

    Children get their periodic() call in order each tick. As soon as one
    reports finished, the remaining children are cancelled in the same tick
    and receive no further periodic() calls.
    """

    def __init__(self, *actions: Action, name: Optional[str] = None):
        if not actions:
            raise ValueError("A race needs at least one action")
        _require_disjoint(actions)
        self.actions = _claim(actions)
        super().__init__(_union(self.actions), name)
        self.winner: Optional[Action] = None
        self.running = False

    def start(self) -> None:
        self.winner = None
        self.running = True
        for action in self.actions:
            action.start()

    def periodic(self) -> None:
        if not self.running:
            return

        for action in self.actions:
            action.periodic()
            if action.is_finished():
                self.winner = action
                break

        if self.winner is not None:
            self.running = False
            for action in self.actions:
                action.end(action is not self.winner)

    def is_finished(self) -> bool:
        return self.winner is not None

    def end(self, interrupted: bool) -> None:
        if self.running:
            self.running = False
            for action in self.actions:
                action.end(True)


class ParallelAction(Action):
    """Runs children together; finishes when every child has finished."""

    def __init__(self, *actions: Action, name: Optional[str] = None):
        _require_disjoint(actions)
        self.actions = _claim(actions)
        super().__init__(_union(self.actions), name)
        self.running: List[Action] = []

    def start(self) -> None:
        self.running = list(self.actions)
        for action in self.running:
            action.start()

    def periodic(self) -> None:
        for action in list(self.running):
            action.periodic()
            if action.is_finished():
                action.end(False)
                self.running.remove(action)

    def is_finished(self) -> bool:
        return not self.running

    def end(self, interrupted: bool) -> None:
        for action in self.running:
            action.end(True)
        self.running = []


class DeferredAction(Action):
    """Builds its wrapped action from live state at the moment it starts.

    The factory is stored at composition time and invoked exactly once per
    start(), so anything it reads (such as the current pose) is the value at
    start time, not at the time the routine was assembled. Requirements must
    be declared up front because the scheduler needs them before start().
    """

    def __init__(
        self,
        factory: Callable[[], Action],
        requirements: Iterable[Resource],
        name: Optional[str] = None,
    ):
        super().__init__(requirements, name or "deferred")
        self.factory = factory
        self.action: Optional[Action] = None

    def start(self) -> None:
        action = self.factory()
        extra = action.requirements - self.requirements
        if extra:
            logging.warning(
                f"{self.name}: built action requires undeclared resources "
                f"{sorted(r.name for r in extra)}"
            )
        self.action = action
        self.action.start()

    def periodic(self) -> None:
        if self.action is not None:
            self.action.periodic()

    def is_finished(self) -> bool:
        return self.action is None or self.action.is_finished()

    def end(self, interrupted: bool) -> None:
        if self.action is not None:
            self.action.end(interrupted)
            self.action = None
