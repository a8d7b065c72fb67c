"""Single-threaded cooperative scheduler and button triggers.

One call to Scheduler.run() is one control tick:
1. Every registered resource runs its periodic() housekeeping
2. Every binding (button trigger) is polled and may schedule or cancel actions
3. Every scheduled action gets one periodic() call, in scheduling order, and
   finished actions are ended and removed
4. Resources left without an owner get their default action scheduled

Each resource has at most one owning action. Scheduling an action cancels
every action that owns one of its requirements first, running their end(True)
hook before the new action's start().

No exception other than ActuatorFault leaves run(): a failing action is logged
and cancelled so its end hook can leave actuators safe.
"""

import logging
from typing import Callable, Dict, List, Optional

from .commands import Action, Resource
from .errors import ActuatorFault


class Scheduler:
    """Cooperative action scheduler with exclusive resource ownership.

    Attributes:
        tick_count: Number of completed run() calls
    """

    def __init__(self) -> None:
        self._resources: List[Resource] = []
        self._scheduled: List[Action] = []
        self._owners: Dict[Resource, Action] = {}
        self._defaults: Dict[Resource, Action] = {}
        self._bindings: List[Callable[[], None]] = []
        self.tick_count = 0

    # ---------- Configuration ----------

    def register(self, *resources: Resource) -> None:
        """Register resources whose periodic() runs every tick."""
        for resource in resources:
            if resource not in self._resources:
                self._resources.append(resource)

    def set_default_action(self, resource: Resource, action: Action) -> None:
        """Action to schedule whenever resource has no owner.

        Raises:
            ValueError: If the action does not require the resource, or is
                part of a composition
        """
        if resource not in action.requirements:
            raise ValueError(f"Default action {action!r} must require {resource!r}")
        if action.composed:
            raise ValueError(f"{action!r} is part of a composition and cannot be a default")
        self.register(resource)
        self._defaults[resource] = action

    def add_binding(self, poll: Callable[[], None]) -> None:
        """Add a callable polled once per tick before actions run."""
        self._bindings.append(poll)

    # ---------- Scheduling ----------

    def schedule(self, action: Action) -> bool:
        """Start an action, cancelling current owners of its requirements.

        Args:
            action: Action to start

        Returns:
            True if the action is now scheduled
        """
        if action in self._scheduled:
            return True
        if action.composed:
            raise ValueError(f"{action!r} is part of a composition and cannot be scheduled directly")

        for resource in action.requirements:
            owner = self._owners.get(resource)
            if owner is not None:
                logging.debug(f"{action.name} takes {resource.name} from {owner.name}")
                self.cancel(owner)

        try:
            action.start()
        except ActuatorFault:
            raise
        except Exception as e:
            logging.error(f"Action {action.name} failed to start: {e}", exc_info=True)
            self._end(action, interrupted=True)
            return False

        self._scheduled.append(action)
        for resource in action.requirements:
            self._owners[resource] = action
        logging.debug(f"Scheduled {action.name}")
        return True

    def cancel(self, action: Action) -> None:
        """Stop a scheduled action now, running its end(True) hook once."""
        if action not in self._scheduled:
            return
        self._release(action)
        logging.debug(f"Cancelled {action.name}")
        self._end(action, interrupted=True)

    def cancel_all(self) -> None:
        for action in list(self._scheduled):
            self.cancel(action)

    def is_scheduled(self, action: Action) -> bool:
        return action in self._scheduled

    def owner_of(self, resource: Resource) -> Optional[Action]:
        return self._owners.get(resource)

    @property
    def scheduled(self) -> List[Action]:
        return list(self._scheduled)

    # ---------- Tick ----------

    def run(self, enabled: bool = True) -> None:
        """Run one control tick.

        Args:
            enabled: If False, only resource housekeeping runs and every
                scheduled action is cancelled
        """
        self.tick_count += 1

        for resource in self._resources:
            try:
                resource.periodic()
            except ActuatorFault:
                raise
            except Exception as e:
                logging.error(f"{resource.name} periodic failed: {e}", exc_info=True)

        if not enabled:
            self.cancel_all()
            return

        for poll in self._bindings:
            try:
                poll()
            except ActuatorFault:
                raise
            except Exception as e:
                logging.error(f"Trigger binding failed: {e}", exc_info=True)

        for action in list(self._scheduled):
            # May have been cancelled earlier in this tick
            if action not in self._scheduled:
                continue

            try:
                action.periodic()
                finished = action.is_finished()
            except ActuatorFault:
                raise
            except Exception as e:
                logging.error(f"Action {action.name} failed: {e}", exc_info=True)
                self.cancel(action)
                continue

            if finished:
                self._release(action)
                logging.debug(f"Finished {action.name}")
                self._end(action, interrupted=False)

        for resource, default in self._defaults.items():
            if resource not in self._owners and default not in self._scheduled:
                self.schedule(default)

    # ---------- Internals ----------

    def _release(self, action: Action) -> None:
        self._scheduled.remove(action)
        for resource in action.requirements:
            if self._owners.get(resource) is action:
                del self._owners[resource]

    def _end(self, action: Action, interrupted: bool) -> None:
        try:
            action.end(interrupted)
        except ActuatorFault:
            raise
        except Exception as e:
            logging.error(f"Action {action.name} failed to end: {e}", exc_info=True)


class Trigger:
    """Edge-detecting condition bound to a scheduler.

    The condition is sampled once per tick, before actions run.
    """

    def __init__(self, scheduler: Scheduler, condition: Callable[[], bool]):
        self.scheduler = scheduler
        self.condition = condition

    def _bind(self, on_rising: Callable[[], None], on_falling: Optional[Callable[[], None]] = None) -> None:
        state = {"last": False}

        def poll() -> None:
            current = bool(self.condition())
            if current and not state["last"]:
                on_rising()
            elif not current and state["last"] and on_falling is not None:
                on_falling()
            state["last"] = current

        self.scheduler.add_binding(poll)

    def on_true(self, action: Action) -> "Trigger":
        """Schedule action when the condition becomes true."""
        self._bind(lambda: self.scheduler.schedule(action))
        return self

    def while_true(self, action: Action) -> "Trigger":
        """Schedule action when the condition becomes true, cancel it when false."""
        self._bind(lambda: self.scheduler.schedule(action), lambda: self.scheduler.cancel(action))
        return self

    def toggle_on_true(self, action: Action) -> "Trigger":
        """Alternate between scheduling and cancelling action on each press."""

        def toggle() -> None:
            if self.scheduler.is_scheduled(action):
                self.scheduler.cancel(action)
            else:
                self.scheduler.schedule(action)

        self._bind(toggle)
        return self
