import unittest

from swerve_control.commands import Action, FunctionalAction, Resource, SequenceAction
from swerve_control.errors import ActuatorFault
from swerve_control.scheduler import Scheduler, Trigger


class RecordingAction(Action):
    """Action that logs every hook into a shared event list."""

    def __init__(self, events, name, requirements=(), finish_after=None):
        super().__init__(requirements, name)
        self.events = events
        self.finish_after = finish_after
        self.ticks = 0

    def start(self):
        self.ticks = 0
        self.events.append((self.name, "start"))

    def periodic(self):
        self.ticks += 1
        self.events.append((self.name, "periodic"))

    def is_finished(self):
        return self.finish_after is not None and self.ticks >= self.finish_after

    def end(self, interrupted):
        self.events.append((self.name, "cancel" if interrupted else "end"))


class CountingResource(Resource):
    def __init__(self, name, events=None):
        super().__init__(name)
        self.events = events if events is not None else []
        self.periodic_calls = 0

    def periodic(self):
        self.periodic_calls += 1
        self.events.append((self.name, "housekeeping"))


class TestScheduler(unittest.TestCase):
    def setUp(self):
        self.events = []
        self.scheduler = Scheduler()
        self.drive = CountingResource("drive", self.events)
        self.climber = CountingResource("climber", self.events)
        self.scheduler.register(self.drive, self.climber)

    def test_action_runs_until_finished(self):
        action = RecordingAction(self.events, "a", [self.drive], finish_after=2)
        self.scheduler.schedule(action)
        self.scheduler.run()
        self.assertTrue(self.scheduler.is_scheduled(action))
        self.scheduler.run()
        self.assertFalse(self.scheduler.is_scheduled(action))
        self.assertIsNone(self.scheduler.owner_of(self.drive))
        self.assertEqual(self.events[-1], ("a", "end"))

    def test_new_owner_cancels_old_before_starting(self):
        old = RecordingAction(self.events, "old", [self.drive])
        new = RecordingAction(self.events, "new", [self.drive])
        self.scheduler.schedule(old)
        self.scheduler.schedule(new)
        self.assertEqual(self.events[-2:], [("old", "cancel"), ("new", "start")])
        self.assertIs(self.scheduler.owner_of(self.drive), new)
        self.assertFalse(self.scheduler.is_scheduled(old))

    def test_disjoint_actions_run_together(self):
        a = RecordingAction(self.events, "a", [self.drive])
        b = RecordingAction(self.events, "b", [self.climber])
        self.scheduler.schedule(a)
        self.scheduler.schedule(b)
        self.scheduler.run()
        self.assertEqual(self.scheduler.scheduled, [a, b])

    def test_at_most_one_owner_per_resource(self):
        actions = [RecordingAction(self.events, f"a{i}", [self.drive]) for i in range(5)]
        for action in actions:
            self.scheduler.schedule(action)
            self.scheduler.run()
            owners = [a for a in self.scheduler.scheduled if self.drive in a.requirements]
            self.assertEqual(owners, [action])

    def test_tick_order(self):
        action = RecordingAction(self.events, "a", [self.drive])
        self.scheduler.schedule(action)
        self.scheduler.add_binding(lambda: self.events.append(("binding", "poll")))
        del self.events[:]
        self.scheduler.run()
        self.assertEqual(
            self.events,
            [
                ("drive", "housekeeping"),
                ("climber", "housekeeping"),
                ("binding", "poll"),
                ("a", "periodic"),
            ],
        )

    def test_default_action_scheduled_when_idle(self):
        default = RecordingAction(self.events, "default", [self.drive])
        self.scheduler.set_default_action(self.drive, default)
        self.scheduler.run()
        self.assertIs(self.scheduler.owner_of(self.drive), default)

        other = RecordingAction(self.events, "other", [self.drive], finish_after=1)
        self.scheduler.schedule(other)
        self.assertIn(("default", "cancel"), self.events)
        self.scheduler.run()
        # Other finished this tick, so the default came back
        self.assertIs(self.scheduler.owner_of(self.drive), default)

    def test_default_must_require_resource(self):
        with self.assertRaises(ValueError):
            self.scheduler.set_default_action(self.drive, RecordingAction(self.events, "x", [self.climber]))

    def test_composed_action_cannot_be_scheduled(self):
        child = RecordingAction(self.events, "child", [self.drive])
        SequenceAction(child)
        with self.assertRaises(ValueError):
            self.scheduler.schedule(child)

    def test_failing_action_is_cancelled(self):
        def explode():
            raise RuntimeError("boom")

        ended = []
        action = FunctionalAction(
            on_periodic=explode, on_end=ended.append, requirements=[self.drive], name="bad"
        )
        self.scheduler.schedule(action)
        with self.assertLogs(level="ERROR"):
            self.scheduler.run()
        self.assertFalse(self.scheduler.is_scheduled(action))
        self.assertEqual(ended, [True])

    def test_failing_start_is_not_scheduled(self):
        def explode():
            raise RuntimeError("boom")

        action = FunctionalAction(on_start=explode, requirements=[self.drive])
        with self.assertLogs(level="ERROR"):
            self.assertFalse(self.scheduler.schedule(action))
        self.assertIsNone(self.scheduler.owner_of(self.drive))

    def test_actuator_fault_propagates(self):
        def fault():
            raise ActuatorFault("drive CAN bus lost")

        self.scheduler.schedule(FunctionalAction(on_periodic=fault, requirements=[self.drive]))
        with self.assertRaises(ActuatorFault):
            self.scheduler.run()

    def test_disabled_tick_only_runs_housekeeping(self):
        action = RecordingAction(self.events, "a", [self.drive])
        self.scheduler.schedule(action)
        polled = []
        self.scheduler.add_binding(lambda: polled.append(1))
        self.scheduler.run(enabled=False)
        self.assertEqual(self.drive.periodic_calls, 1)
        self.assertEqual(polled, [])
        self.assertFalse(self.scheduler.is_scheduled(action))
        self.assertNotIn(("a", "periodic"), self.events)

    def test_cancel_all(self):
        a = RecordingAction(self.events, "a", [self.drive])
        b = RecordingAction(self.events, "b", [self.climber])
        self.scheduler.schedule(a)
        self.scheduler.schedule(b)
        self.scheduler.cancel_all()
        self.assertEqual(self.scheduler.scheduled, [])
        self.assertIn(("a", "cancel"), self.events)
        self.assertIn(("b", "cancel"), self.events)


class TestTrigger(unittest.TestCase):
    def setUp(self):
        self.events = []
        self.scheduler = Scheduler()
        self.drive = Resource("drive")
        self.pressed = False

    def button(self):
        return self.pressed

    def test_on_true_fires_on_rising_edge(self):
        action = RecordingAction(self.events, "a", [self.drive], finish_after=1)
        Trigger(self.scheduler, self.button).on_true(action)
        self.scheduler.run()
        self.assertEqual(self.events, [])

        self.pressed = True
        self.scheduler.run()
        self.assertEqual(self.events.count(("a", "start")), 1)
        # Holding does not retrigger
        self.scheduler.run()
        self.assertEqual(self.events.count(("a", "start")), 1)

    def test_while_true_cancels_on_release(self):
        action = RecordingAction(self.events, "a", [self.drive])
        Trigger(self.scheduler, self.button).while_true(action)
        self.pressed = True
        self.scheduler.run()
        self.assertTrue(self.scheduler.is_scheduled(action))
        self.pressed = False
        self.scheduler.run()
        self.assertFalse(self.scheduler.is_scheduled(action))

    def test_toggle(self):
        action = RecordingAction(self.events, "a", [self.drive])
        Trigger(self.scheduler, self.button).toggle_on_true(action)
        for pressed in (True, False, True):
            self.pressed = pressed
            self.scheduler.run()
        self.assertFalse(self.scheduler.is_scheduled(action))
        self.assertEqual(self.events.count(("a", "start")), 1)
        self.assertIn(("a", "cancel"), self.events)


if __name__ == "__main__":
    unittest.main()
