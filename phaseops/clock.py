"""Clock and periodic job scheduling.

All suspension points in phaseops (simulated work, inter-task pauses and
dashboard timers) go through a Clock, so tests can swap in VirtualClock and
advance time deterministically.
"""

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol

logger = logging.getLogger(__name__)

JobCallback = Callable[[], Awaitable[None] | None]


class Clock(Protocol):
    """Time source with an awaitable sleep."""

    def now(self) -> datetime:
        """Current wall-clock time."""
        ...

    def monotonic(self) -> float:
        """Monotonic seconds, used for scheduling."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend the caller for the given number of seconds."""
        ...


class SystemClock:
    """Clock backed by the system time and asyncio.sleep."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).astimezone()

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(seconds, 0))


class VirtualClock:
    """Clock whose time only moves when slept on or advanced.

    Sleeping returns immediately after moving virtual time forward, so a
    daily cycle with minutes of simulated work completes instantly.

    Attributes:
        sleeps: Every duration passed to sleep(), in call order
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._start = start or datetime(2025, 10, 1, 9, 0, tzinfo=timezone.utc)
        self._elapsed = 0.0
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self._start + timedelta(seconds=self._elapsed)

    def monotonic(self) -> float:
        return self._elapsed

    def advance(self, seconds: float) -> None:
        self._elapsed += max(seconds, 0)

    def set_monotonic(self, value: float) -> None:
        if value > self._elapsed:
            self._elapsed = value

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)
        # Still yield so other coroutines get a turn
        await asyncio.sleep(0)


@dataclass
class ScheduledJob:
    """A named periodic job.

    Attributes:
        name: Unique job name
        interval_seconds: Period between runs
        callback: Sync or async callable invoked on each tick
        next_run: Monotonic time of the next run
        runs: Number of completed ticks
    """

    name: str
    interval_seconds: float
    callback: JobCallback
    next_run: float
    runs: int = 0


class JobScheduler:
    """Runs named periodic jobs one at a time against a Clock.

    Jobs never overlap: each tick runs to completion before the next due job
    starts. A job that raises is logged and keeps its schedule.

    Usage:
        scheduler = JobScheduler(clock)
        scheduler.add_job("broadcast", 10, broadcaster.broadcast_update)
        await scheduler.run_forever()        # production
        await scheduler.advance(60)          # tests, with VirtualClock
    """

    def __init__(self, clock: Clock) -> None:
        self.clock = clock
        self._jobs: dict[str, ScheduledJob] = {}

    @property
    def jobs(self) -> dict[str, ScheduledJob]:
        return dict(self._jobs)

    def add_job(self, name: str, interval_seconds: float, callback: JobCallback) -> ScheduledJob:
        """Register a periodic job; its first run is one interval from now.

        Raises:
            ValueError: If the name is taken or the interval is not positive
        """
        if name in self._jobs:
            raise ValueError(f"Job already registered: {name}")
        if interval_seconds <= 0:
            raise ValueError(f"Job interval must be positive, got {interval_seconds}")

        job = ScheduledJob(
            name=name,
            interval_seconds=interval_seconds,
            callback=callback,
            next_run=self.clock.monotonic() + interval_seconds,
        )
        self._jobs[name] = job
        return job

    def remove_job(self, name: str) -> None:
        self._jobs.pop(name, None)

    def run_count(self, name: str) -> int:
        return self._jobs[name].runs

    def _next_due(self) -> ScheduledJob | None:
        if not self._jobs:
            return None
        return min(self._jobs.values(), key=lambda job: job.next_run)

    async def run_pending(self) -> int:
        """Run every job whose next_run has passed, earliest first.

        Returns:
            Number of job ticks executed
        """
        executed = 0
        now = self.clock.monotonic()
        due = sorted(
            (job for job in self._jobs.values() if job.next_run <= now),
            key=lambda job: job.next_run,
        )
        for job in due:
            await self._run_job(job)
            executed += 1
        return executed

    async def _run_job(self, job: ScheduledJob) -> None:
        job.next_run += job.interval_seconds
        try:
            outcome = job.callback()
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception(f"Scheduled job '{job.name}' failed")
        finally:
            job.runs += 1

    async def advance(self, seconds: float) -> int:
        """Move a VirtualClock forward, firing due jobs at their exact times.

        Returns:
            Number of job ticks executed
        """
        set_monotonic = getattr(self.clock, "set_monotonic", None)
        if set_monotonic is None:
            raise TypeError("advance() requires a clock with set_monotonic()")

        target = self.clock.monotonic() + seconds
        executed = 0
        while True:
            job = self._next_due()
            if job is None or job.next_run > target:
                break
            set_monotonic(job.next_run)
            await self._run_job(job)
            executed += 1
        set_monotonic(target)
        return executed

    async def run_forever(self) -> None:
        """Sleep until the next due job and run it, until cancelled."""
        while True:
            job = self._next_due()
            if job is None:
                await self.clock.sleep(1.0)
                continue
            delay = job.next_run - self.clock.monotonic()
            if delay > 0:
                await self.clock.sleep(delay)
            await self.run_pending()
