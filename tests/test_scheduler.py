"""
tests/test_scheduler.py - Single-Loop Scheduler Tests

Validates:
- deadline ordering, insertion-order tie break
- periodic callbacks
- cancellation and teardown
"""

import pytest

from kernel.scheduler import Scheduler


@pytest.fixture
def sched():
    return Scheduler()


class TestOrdering:

    def test_fires_in_deadline_order(self, sched):
        fired = []
        sched.call_at(3.0, lambda: fired.append("c"))
        sched.call_at(1.0, lambda: fired.append("a"))
        sched.call_at(2.0, lambda: fired.append("b"))
        assert sched.advance(5.0) == 3
        assert fired == ["a", "b", "c"]

    def test_ties_break_by_insertion(self, sched):
        fired = []
        for name in "xyz":
            sched.call_at(1.0, lambda n=name: fired.append(n))
        sched.advance(1.0)
        assert fired == ["x", "y", "z"]

    def test_clock_moves_to_each_deadline(self, sched):
        seen = []
        sched.call_later(0.5, lambda: seen.append(sched.now))
        sched.call_later(1.5, lambda: seen.append(sched.now))
        sched.advance(2.0)
        assert seen == [0.5, 1.5]
        assert sched.now == 2.0

    def test_not_yet_due(self, sched):
        fired = []
        sched.call_later(2.0, lambda: fired.append(1))
        assert sched.advance(1.0) == 0
        assert fired == []
        assert sched.pending == 1


class TestPeriodic:

    def test_call_every(self, sched):
        count = []
        sched.call_every(1.0, lambda: count.append(sched.now))
        sched.advance(5.0)
        assert count == [1.0, 2.0, 3.0, 4.0, 5.0]

    def test_interleaved_periods(self, sched):
        """Tick (1.0) and breath (4.5) share one queue."""
        events = []
        sched.call_every(1.0, lambda: events.append("tick"))
        sched.call_every(4.5, lambda: events.append("breath"))
        sched.advance(5.0)
        assert events == ["tick"] * 4 + ["breath", "tick"]

    def test_rejects_non_positive_interval(self, sched):
        with pytest.raises(ValueError):
            sched.call_every(0.0, lambda: None)


class TestCancellation:

    def test_cancel_handle(self, sched):
        fired = []
        handle = sched.call_every(1.0, lambda: fired.append(1))
        sched.advance(2.0)
        sched.cancel(handle)
        sched.advance(5.0)
        assert len(fired) == 2

    def test_cancel_from_inside_callback(self, sched):
        fired = []

        def once():
            fired.append(1)
            handle.cancel()

        handle = sched.call_every(1.0, once)
        sched.advance(10.0)
        assert fired == [1]

    def test_clear_drops_everything(self, sched):
        fired = []
        sched.call_every(1.0, lambda: fired.append(1))
        sched.call_later(3.0, lambda: fired.append(2))
        sched.clear()
        assert sched.pending == 0
        assert sched.advance(10.0) == 0
        assert fired == []

    def test_no_registration_after_clear(self, sched):
        sched.clear()
        handle = sched.call_later(1.0, lambda: None)
        assert handle.cancelled
        assert sched.pending == 0


class TestRealtime:

    def test_run_realtime_uses_sleep(self, sched):
        """Fake wall clock advanced by the injected sleep."""
        clock = [0.0]

        def fake_sleep(seconds):
            clock[0] += seconds

        fired = []
        sched.call_every(1.0, lambda: fired.append(sched.now))
        sched.run_realtime(3.5, sleep=fake_sleep, clock=lambda: clock[0])
        assert fired == [1.0, 2.0, 3.0]
