"""Unit tests for AsyncGroup and the schedulers."""

import asyncio

import pytest

from resync.util.async_group import AsyncGroup
from resync.util.scheduler import AsyncioScheduler, ManualScheduler


@pytest.mark.unit
class TestAsyncGroup:
    """Fan-in of completion callbacks."""

    def test_calls_back_after_every_member(self):
        """The final callback runs once all members completed"""
        results = []
        group = AsyncGroup(results.append)
        first, second = group(), group()

        first()
        assert results == []
        second(None)

        assert results == [None]
        assert group.done

    def test_first_error_completes_immediately(self):
        """An error finishes the group at once; later members are ignored"""
        results = []
        group = AsyncGroup(results.append)
        first, second = group(), group()
        error = ValueError("nope")

        first(error)
        second(RuntimeError("later"))

        assert results == [error]

    def test_extra_results_are_ignored(self):
        """Members may be called with extra positional results"""
        results = []
        group = AsyncGroup(results.append)

        group()(None, 3)

        assert results == [None]


@pytest.mark.unit
class TestManualScheduler:
    """Deterministic clock."""

    def test_call_soon_runs_on_run_pending(self):
        """Next-tick callbacks run only when the scheduler is driven"""
        scheduler = ManualScheduler()
        calls = []
        scheduler.call_soon(lambda: calls.append("soon"))

        assert calls == []
        assert scheduler.run_pending() == 1
        assert calls == ["soon"]

    def test_call_later_runs_when_due(self):
        """Delayed callbacks run once the clock reaches their due time"""
        scheduler = ManualScheduler()
        calls = []
        scheduler.call_later(1.0, lambda: calls.append("late"))
        scheduler.call_later(0.5, lambda: calls.append("early"))

        scheduler.advance(0.4)
        assert calls == []
        scheduler.advance(0.6)

        assert calls == ["early", "late"]
        assert len(scheduler) == 0

    def test_work_scheduled_by_callbacks_runs_if_due(self):
        """Callbacks scheduled while advancing run in the same advance if due"""
        scheduler = ManualScheduler()
        calls = []
        scheduler.call_later(
            1.0, lambda: scheduler.call_soon(lambda: calls.append("chained"))
        )

        scheduler.advance(1.0)

        assert calls == ["chained"]


@pytest.mark.unit
def test_asyncio_scheduler_uses_running_loop():
    """AsyncioScheduler defers to the running event loop"""
    calls = []

    async def main():
        scheduler = AsyncioScheduler()
        scheduler.call_soon(lambda: calls.append("soon"))
        scheduler.call_later(0.01, lambda: calls.append("later"))
        await asyncio.sleep(0.05)

    asyncio.run(main())

    assert calls == ["soon", "later"]
