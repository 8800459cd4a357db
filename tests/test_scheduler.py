"""Tests for the scheduler implementations."""

import asyncio

import pytest

from werewolf_match.runtime import AsyncioScheduler, JobName, VirtualClock, VirtualScheduler


class Recorder:
    def __init__(self, clock=None):
        self.clock = clock
        self.calls = []

    async def __call__(self, args):
        self.calls.append((self.clock() if self.clock else None, args["n"]))


class TestVirtualClock:
    """Tests for VirtualClock."""

    def test_never_moves_backwards(self) -> None:
        clock = VirtualClock(1_000)
        assert clock.advance(-5) == 1_000
        assert clock.advance_to(500) == 1_000
        assert clock.advance_to(2_000) == 2_000


class TestVirtualScheduler:
    """Tests for VirtualScheduler."""

    @pytest.mark.asyncio
    async def test_runs_in_due_order(self) -> None:
        clock = VirtualClock(0)
        scheduler = VirtualScheduler(clock)
        recorder = Recorder(clock)
        scheduler.register(JobName.RUN_ROUND, recorder)

        scheduler.schedule(300, JobName.RUN_ROUND, {"n": 3})
        scheduler.schedule(100, JobName.RUN_ROUND, {"n": 1})
        scheduler.schedule(100, JobName.RUN_ROUND, {"n": 2})

        assert await scheduler.run_until_idle() == 3
        assert recorder.calls == [(100, 1), (100, 2), (300, 3)]
        assert clock() == 300

    @pytest.mark.asyncio
    async def test_jobs_can_schedule_jobs(self) -> None:
        clock = VirtualClock(0)
        scheduler = VirtualScheduler(clock)
        seen = []

        async def chain(args):
            seen.append(clock())
            if args["n"] < 3:
                scheduler.schedule(50, JobName.ADVANCE_PHASE, {"n": args["n"] + 1})

        scheduler.register(JobName.ADVANCE_PHASE, chain)
        scheduler.schedule(0, JobName.ADVANCE_PHASE, {"n": 1})
        await scheduler.run_until_idle()
        assert seen == [0, 50, 100]

    @pytest.mark.asyncio
    async def test_until_ms(self) -> None:
        clock = VirtualClock(0)
        scheduler = VirtualScheduler(clock)
        scheduler.register(JobName.RUN_ROUND, Recorder())
        scheduler.schedule(100, JobName.RUN_ROUND, {"n": 1})
        scheduler.schedule(500, JobName.RUN_ROUND, {"n": 2})
        assert await scheduler.run_until_idle(until_ms=200) == 1
        assert scheduler.pending == 1
        assert scheduler.pending_jobs()[0][0] == 500

    @pytest.mark.asyncio
    async def test_duplicate_deliveries(self) -> None:
        scheduler = VirtualScheduler(VirtualClock(0), duplicate_deliveries=True)
        recorder = Recorder()
        scheduler.register(JobName.RUN_ROUND, recorder)
        scheduler.schedule(10, JobName.RUN_ROUND, {"n": 1})
        await scheduler.run_until_idle()
        assert [n for _, n in recorder.calls] == [1, 1]
        assert len(scheduler.delivered) == 2

    @pytest.mark.asyncio
    async def test_missing_handler(self) -> None:
        scheduler = VirtualScheduler(VirtualClock(0))
        scheduler.schedule(0, JobName.RUN_ROUND, {"n": 1})
        with pytest.raises(LookupError, match="RUN_ROUND"):
            await scheduler.run_next()


class TestAsyncioScheduler:
    """Tests for AsyncioScheduler."""

    @pytest.mark.asyncio
    async def test_fires_after_delay(self) -> None:
        scheduler = AsyncioScheduler()
        recorder = Recorder()
        scheduler.register(JobName.RUN_ROUND, recorder)
        scheduler.schedule(10, JobName.RUN_ROUND, {"n": 1})
        assert not scheduler.idle

        await asyncio.wait_for(scheduler.wait_idle(), timeout=2)
        assert [n for _, n in recorder.calls] == [1]

    @pytest.mark.asyncio
    async def test_close_cancels_timers(self) -> None:
        scheduler = AsyncioScheduler()
        recorder = Recorder()
        scheduler.register(JobName.RUN_ROUND, recorder)
        scheduler.schedule(10_000, JobName.RUN_ROUND, {"n": 1})
        await scheduler.close()
        assert scheduler.idle
        assert recorder.calls == []

    @pytest.mark.asyncio
    async def test_close_waits_for_cancelled_jobs(self) -> None:
        scheduler = AsyncioScheduler()
        started = asyncio.Event()
        cancelled = []

        async def slow_job(args):
            started.set()
            try:
                await asyncio.sleep(60)
            except asyncio.CancelledError:
                cancelled.append(args["n"])
                raise

        scheduler.register(JobName.ADVANCE_PHASE, slow_job)
        scheduler.schedule(0, JobName.ADVANCE_PHASE, {"n": 7})
        await asyncio.wait_for(started.wait(), timeout=2)

        await scheduler.close()

        assert cancelled == [7]
        assert scheduler.idle
