"""Scheduler implementations.

``AsyncioScheduler`` runs jobs on real event-loop timers. ``VirtualScheduler``
is a discrete-event simulator on a ``VirtualClock``: it runs a whole match
instantly and deterministically, and can redeliver jobs to exercise
at-least-once delivery.
"""

import asyncio
import heapq
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from werewolf_match.runtime.ports import JobName

logger = logging.getLogger(__name__)

JobHandler = Callable[[dict[str, Any]], Awaitable[Any]]


def system_clock() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class VirtualClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, delta_ms: int) -> int:
        self.now_ms += max(0, delta_ms)
        return self.now_ms

    def advance_to(self, t_ms: int) -> int:
        self.now_ms = max(self.now_ms, t_ms)
        return self.now_ms


class _HandlerRegistry:
    def __init__(self):
        self._handlers: dict[JobName, JobHandler] = {}

    def register(self, job: JobName, handler: JobHandler) -> None:
        self._handlers[job] = handler

    def handler_for(self, job: JobName) -> JobHandler:
        try:
            return self._handlers[job]
        except KeyError:
            raise LookupError(f"No handler registered for {job.value}") from None


class VirtualScheduler(_HandlerRegistry):
    """Runs scheduled jobs in due-time order on a virtual clock."""

    def __init__(self, clock: VirtualClock, duplicate_deliveries: bool = False):
        super().__init__()
        self.clock = clock
        self.duplicate_deliveries = duplicate_deliveries
        self.delivered: list[tuple[int, JobName, dict[str, Any]]] = []
        self._queue: list[tuple[int, int, JobName, dict[str, Any]]] = []
        self._seq = 0

    def schedule(self, delay_ms: int, job: JobName, args: dict[str, Any]) -> None:
        due = self.clock() + max(0, delay_ms)
        self._push(due, job, dict(args))
        if self.duplicate_deliveries:
            self._push(due, job, dict(args))

    def _push(self, due: int, job: JobName, args: dict[str, Any]) -> None:
        heapq.heappush(self._queue, (due, self._seq, job, args))
        self._seq += 1

    @property
    def pending(self) -> int:
        return len(self._queue)

    def pending_jobs(self) -> list[tuple[int, JobName, dict[str, Any]]]:
        return [(due, job, args) for due, _, job, args in sorted(self._queue)]

    async def run_next(self) -> bool:
        """Advance the clock to the next due job and run it."""
        if not self._queue:
            return False
        due, _, job, args = heapq.heappop(self._queue)
        self.clock.advance_to(due)
        self.delivered.append((self.clock(), job, args))
        await self.handler_for(job)(args)
        return True

    async def run_until_idle(
        self, max_jobs: int = 100_000, until_ms: Optional[int] = None
    ) -> int:
        """Run jobs until none remain (or the next one is due after ``until_ms``)."""
        ran = 0
        while self._queue and ran < max_jobs:
            if until_ms is not None and self._queue[0][0] > until_ms:
                break
            await self.run_next()
            ran += 1
        return ran


class AsyncioScheduler(_HandlerRegistry):
    """Schedules jobs with ``loop.call_later`` on the running event loop."""

    def __init__(self):
        super().__init__()
        self._timers: set[asyncio.TimerHandle] = set()
        self._tasks: set[asyncio.Task] = set()

    def schedule(self, delay_ms: int, job: JobName, args: dict[str, Any]) -> None:
        loop = asyncio.get_running_loop()
        timer: Optional[asyncio.TimerHandle] = None

        def fire() -> None:
            self._timers.discard(timer)
            task = loop.create_task(self.handler_for(job)(dict(args)))
            self._tasks.add(task)
            task.add_done_callback(self._on_done)

        timer = loop.call_later(max(0, delay_ms) / 1000, fire)
        self._timers.add(timer)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Scheduled job failed", exc_info=error)

    @property
    def idle(self) -> bool:
        return not self._timers and not self._tasks

    async def wait_idle(self, poll_s: float = 0.01) -> None:
        while not self.idle:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            else:
                await asyncio.sleep(poll_s)

    async def close(self) -> None:
        """Cancel pending timers and running jobs, and wait for the jobs to finish."""
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
