import unittest

from swerve_control.commands import (
    Action,
    DeferredAction,
    ParallelAction,
    RaceAction,
    Resource,
    SequenceAction,
    WaitAction,
    WaitUntilAction,
    run,
    run_once,
    start_end,
)


class CountingAction(Action):
    """Finishes after a fixed number of periodic calls and records its hooks."""

    def __init__(self, finish_after=None, requirements=(), name=None):
        super().__init__(requirements, name)
        self.finish_after = finish_after
        self.starts = 0
        self.ticks = 0
        self.ends = []

    def start(self):
        self.starts += 1
        self.ticks = 0

    def periodic(self):
        self.ticks += 1

    def is_finished(self):
        return self.finish_after is not None and self.ticks >= self.finish_after

    def end(self, interrupted):
        self.ends.append(interrupted)


def drive(action, max_ticks=1000):
    """Run an action the way the scheduler does, returning the tick count."""
    action.start()
    for tick in range(1, max_ticks + 1):
        action.periodic()
        if action.is_finished():
            action.end(False)
            return tick
    raise AssertionError(f"{action!r} did not finish in {max_ticks} ticks")


class TestPrimitives(unittest.TestCase):
    def test_wait_zero_finishes_first_tick(self):
        self.assertEqual(drive(WaitAction(0)), 1)

    def test_wait_counts_whole_ticks(self):
        self.assertEqual(drive(WaitAction(0.1, period=0.02)), 5)

    def test_wait_rejects_negative(self):
        with self.assertRaises(ValueError):
            WaitAction(-1.0)

    def test_run_once_calls_at_start(self):
        calls = []
        action = run_once(lambda: calls.append(1))
        self.assertEqual(drive(action), 1)
        self.assertEqual(calls, [1])

    def test_run_never_finishes(self):
        calls = []
        action = run(lambda: calls.append(1))
        action.start()
        for _ in range(5):
            action.periodic()
        self.assertFalse(action.is_finished())
        self.assertEqual(len(calls), 5)

    def test_start_end(self):
        events = []
        action = start_end(lambda: events.append("start"), lambda: events.append("end"))
        action.start()
        action.end(True)
        self.assertEqual(events, ["start", "end"])

    def test_wait_until(self):
        state = {"ready": False}
        action = WaitUntilAction(lambda: state["ready"])
        self.assertFalse(action.is_finished())
        state["ready"] = True
        self.assertTrue(action.is_finished())


class TestSequence(unittest.TestCase):
    def test_runs_in_order(self):
        first = CountingAction(2)
        second = CountingAction(3)
        self.assertEqual(drive(SequenceAction(first, second)), 5)
        self.assertEqual(first.ends, [False])
        self.assertEqual(second.ends, [False])

    def test_second_starts_only_after_first(self):
        first = CountingAction(2)
        second = CountingAction(1)
        sequence = first.and_then(second)
        sequence.start()
        self.assertEqual(second.starts, 0)
        sequence.periodic()
        sequence.periodic()
        self.assertEqual(second.starts, 1)

    def test_cancel_ends_only_current_child(self):
        first = CountingAction(1)
        second = CountingAction()
        third = CountingAction()
        sequence = SequenceAction(first, second, third)
        sequence.start()
        sequence.periodic()
        sequence.end(True)
        self.assertEqual(first.ends, [False])
        self.assertEqual(second.ends, [True])
        self.assertEqual(third.ends, [])

    def test_requirements_are_union(self):
        a, b = Resource("a"), Resource("b")
        sequence = SequenceAction(CountingAction(1, [a]), CountingAction(1, [b]))
        self.assertEqual(sequence.requirements, {a, b})

    def test_empty_sequence_finishes_immediately(self):
        self.assertEqual(drive(SequenceAction()), 1)


class TestRace(unittest.TestCase):
    def test_first_to_finish_cancels_the_rest(self):
        fast = CountingAction(3)
        slow = CountingAction(10)
        race = fast.race_with(slow)
        self.assertEqual(drive(race), 3)
        self.assertIs(race.winner, fast)
        self.assertEqual(fast.ends, [False])
        self.assertEqual(slow.ends, [True])

    def test_losers_get_no_more_periodic_calls(self):
        fast = CountingAction(3)
        slow = CountingAction(10)
        race = RaceAction(fast, slow)
        drive(race)
        self.assertEqual(slow.ticks, 2)
        race.periodic()
        self.assertEqual(slow.ticks, 2)

    def test_requirements_must_be_disjoint(self):
        shared = Resource("drive")
        with self.assertRaises(ValueError):
            RaceAction(CountingAction(1, [shared]), CountingAction(1, [shared]))

    def test_cancel_ends_every_child_once(self):
        a = CountingAction()
        b = CountingAction()
        race = RaceAction(a, b)
        race.start()
        race.periodic()
        race.end(True)
        race.end(True)
        self.assertEqual(a.ends, [True])
        self.assertEqual(b.ends, [True])

    def test_timeout(self):
        endless = CountingAction()
        self.assertEqual(drive(endless.with_timeout(0.1, period=0.02)), 5)
        self.assertEqual(endless.ends, [True])

    def test_timeout_not_reached(self):
        quick = CountingAction(2)
        self.assertEqual(drive(quick.with_timeout(1.0)), 2)
        self.assertEqual(quick.ends, [False])

    def test_until(self):
        state = {"done": False}
        endless = CountingAction()
        action = endless.until(lambda: state["done"])
        action.start()
        for _ in range(4):
            action.periodic()
        self.assertFalse(action.is_finished())
        state["done"] = True
        action.periodic()
        self.assertTrue(action.is_finished())
        self.assertEqual(endless.ends, [True])


class TestParallel(unittest.TestCase):
    def test_finishes_when_all_finish(self):
        a = CountingAction(2)
        b = CountingAction(6)
        self.assertEqual(drive(a.along_with(b)), 6)
        self.assertEqual(a.ends, [False])
        self.assertEqual(a.ticks, 2)
        self.assertEqual(b.ends, [False])

    def test_cancel_ends_running_children(self):
        a = CountingAction(1)
        b = CountingAction()
        parallel = ParallelAction(a, b)
        parallel.start()
        parallel.periodic()
        parallel.end(True)
        self.assertEqual(a.ends, [False])
        self.assertEqual(b.ends, [True])

    def test_requirements_must_be_disjoint(self):
        shared = Resource("climber")
        with self.assertRaises(ValueError):
            ParallelAction(CountingAction(1, [shared]), CountingAction(1, [shared]))


class TestDeferred(unittest.TestCase):
    def test_factory_runs_at_start(self):
        state = {"value": 1}
        built = []

        def factory():
            built.append(state["value"])
            return CountingAction(1)

        action = DeferredAction(factory, [])
        state["value"] = 2
        self.assertEqual(built, [])
        drive(action)
        self.assertEqual(built, [2])

    def test_factory_runs_once_per_start(self):
        calls = []

        def factory():
            calls.append(1)
            return CountingAction(1)

        action = DeferredAction(factory, [])
        drive(action)
        drive(action)
        self.assertEqual(len(calls), 2)

    def test_undeclared_requirements_warn(self):
        action = DeferredAction(lambda: CountingAction(1, [Resource("x")]), [])
        with self.assertLogs(level="WARNING"):
            action.start()

    def test_cancel_forwards_to_built_action(self):
        inner = CountingAction()
        action = DeferredAction(lambda: inner, [])
        action.start()
        action.periodic()
        action.end(True)
        self.assertEqual(inner.ends, [True])


class TestComposition(unittest.TestCase):
    def test_action_has_single_owner(self):
        child = CountingAction(1)
        SequenceAction(child)
        with self.assertRaises(ValueError):
            RaceAction(child)

    def test_nested_composition(self):
        inner = CountingAction(2).and_then(CountingAction(2))
        outer = SequenceAction(inner.race_with(CountingAction(100)), CountingAction(1))
        self.assertEqual(drive(outer), 5)

    def test_named(self):
        action = CountingAction().named("Taxi")
        self.assertEqual(action.name, "Taxi")


if __name__ == "__main__":
    unittest.main()
