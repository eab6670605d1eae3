"""
Rate-limited task scheduler for API-bound work.

Runs async work items under two independent caps: a maximum number of
items in flight, and a maximum number of starts inside any sliding
window of ``interval_seconds``. Each item has its own timeout. Timeouts
and errors are recorded per item and never abort the run.
"""

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable, Hashable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, TypeVar

from steam_catalog_sync.logger import get_logger

T = TypeVar("T")

WorkItem = Callable[[], Awaitable[T]]


@dataclass(frozen=True)
class SchedulerConfig:
    """Caps applied by the scheduler."""

    concurrency: int = 10
    interval_cap: int = 3
    interval_seconds: float = 1.0
    task_timeout_seconds: float | None = 2.0

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if self.interval_cap < 1:
            raise ValueError("interval_cap must be at least 1")
        if self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if self.task_timeout_seconds is not None and self.task_timeout_seconds <= 0:
            raise ValueError("task_timeout_seconds must be positive")

    @classmethod
    def from_settings(cls, section: Any) -> "SchedulerConfig":
        """Build from a settings section exposing the four cap fields."""
        return cls(
            concurrency=section.concurrency,
            interval_cap=section.interval_cap,
            interval_seconds=section.interval_seconds,
            task_timeout_seconds=section.task_timeout_seconds,
        )


class TaskStatus(str, Enum):
    """Terminal state of a scheduled work item."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass
class TaskOutcome(Generic[T]):
    """Result of one work item."""

    key: Hashable
    status: TaskStatus
    result: T | None = None
    error: str | None = None
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status == TaskStatus.SUCCEEDED


@dataclass(frozen=True)
class SchedulerSnapshot:
    """Point-in-time progress counters, for observers only."""

    queued: int
    in_flight: int
    completed: int


@dataclass
class SchedulerReport(Generic[T]):
    """All outcomes of a run, in submission order."""

    outcomes: list[TaskOutcome[T]]
    started_at: datetime
    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def succeeded(self) -> list[TaskOutcome[T]]:
        return [o for o in self.outcomes if o.status == TaskStatus.SUCCEEDED]

    @property
    def failed(self) -> list[TaskOutcome[T]]:
        return [o for o in self.outcomes if o.status == TaskStatus.FAILED]

    @property
    def timed_out(self) -> list[TaskOutcome[T]]:
        return [o for o in self.outcomes if o.status == TaskStatus.TIMED_OUT]

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()


class SlidingWindowLimiter:
    """
    Admits at most ``cap`` acquisitions inside any window of ``interval_seconds``.

    Shared by the scheduler (task starts) and by clients that must bound
    individual requests, since one task may issue several calls.

    Example:
        >>> limiter = SlidingWindowLimiter(cap=30, interval_seconds=3.0)
        >>> await limiter.acquire()
    """

    def __init__(self, cap: int, interval_seconds: float, *, name: str = "limiter") -> None:
        if cap < 1:
            raise ValueError("cap must be at least 1")
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.cap = cap
        self.interval_seconds = interval_seconds
        self._starts: deque[float] = deque()
        self._logger = get_logger(__name__, component="limiter", limiter=name)

    async def acquire(self) -> None:
        """Wait until one more acquisition fits in the sliding window."""
        window = self.interval_seconds
        while True:
            now = time.monotonic()
            while self._starts and now - self._starts[0] >= window:
                self._starts.popleft()

            if len(self._starts) < self.cap:
                self._starts.append(now)
                return

            wait_time = window - (now - self._starts[0])
            self._logger.debug("Window full, waiting", wait_seconds=round(wait_time, 3))
            await asyncio.sleep(wait_time)


class RateLimitedScheduler:
    """
    Bounded-concurrency, interval-capped runner for async work items.

    Admission keeps the timestamps of recent starts. A new item starts
    only when a concurrency slot is free and fewer than ``interval_cap``
    starts happened in the last ``interval_seconds``. Capacity a window
    could not use because every slot was busy is available as soon as a
    slot frees up.

    Example:
        >>> scheduler = RateLimitedScheduler(SchedulerConfig(concurrency=5, interval_cap=3))
        >>> report = await scheduler.run([lambda: fetch(570), lambda: fetch(730)], keys=[570, 730])
        >>> len(report.failed)
        0
    """

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        *,
        on_progress: Callable[[SchedulerSnapshot], None] | None = None,
    ) -> None:
        self.config = config or SchedulerConfig()
        self._on_progress = on_progress
        self._window = SlidingWindowLimiter(
            self.config.interval_cap,
            self.config.interval_seconds,
            name="task_starts",
        )
        self._queued = 0
        self._in_flight = 0
        self._completed = 0
        self._logger = get_logger(__name__, component="scheduler")

    def snapshot(self) -> SchedulerSnapshot:
        """Return current progress counters."""
        return SchedulerSnapshot(
            queued=self._queued,
            in_flight=self._in_flight,
            completed=self._completed,
        )

    def _emit_progress(self) -> None:
        if self._on_progress is None:
            return
        # A raising observer never costs the run its outcomes
        try:
            self._on_progress(self.snapshot())
        except Exception as e:
            self._logger.warning("Progress observer failed", error=str(e))

    async def _execute(
        self,
        key: Hashable,
        work: WorkItem[T],
        slots: asyncio.Semaphore,
    ) -> TaskOutcome[T]:
        start_time = time.perf_counter()
        timeout = self.config.task_timeout_seconds
        try:
            value = await asyncio.wait_for(work(), timeout=timeout)
            outcome: TaskOutcome[T] = TaskOutcome(key=key, status=TaskStatus.SUCCEEDED, result=value)
        except asyncio.TimeoutError:
            self._logger.warning("Task timed out", key=key, timeout_seconds=timeout)
            outcome = TaskOutcome(
                key=key,
                status=TaskStatus.TIMED_OUT,
                error=f"Timed out after {timeout}s",
            )
        except Exception as e:
            self._logger.error(
                "Task failed",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            outcome = TaskOutcome(key=key, status=TaskStatus.FAILED, error=str(e) or type(e).__name__)
        finally:
            slots.release()
            self._in_flight -= 1
            self._completed += 1

        outcome.duration_ms = (time.perf_counter() - start_time) * 1000
        self._emit_progress()
        return outcome

    async def run(
        self,
        work: Sequence[WorkItem[T]],
        *,
        keys: Sequence[Hashable] | None = None,
    ) -> SchedulerReport[T]:
        """
        Run every work item and wait for all of them to settle.

        Args:
            work: Zero-argument coroutine functions, started in order
            keys: Labels for the items (defaults to their positions)

        Returns:
            SchedulerReport[T]: Outcomes in submission order
        """
        items = list(work)
        labels = list(keys) if keys is not None else list(range(len(items)))
        if len(labels) != len(items):
            raise ValueError("keys and work must have the same length")

        started_at = datetime.now(timezone.utc)
        slots = asyncio.Semaphore(self.config.concurrency)
        tasks: list[asyncio.Task[TaskOutcome[T]]] = []

        self._queued = len(items)
        self._in_flight = 0
        self._completed = 0

        self._logger.info(
            "Starting scheduled run",
            total=len(items),
            concurrency=self.config.concurrency,
            interval_cap=self.config.interval_cap,
            interval_seconds=self.config.interval_seconds,
        )

        for key, item in zip(labels, items):
            await slots.acquire()
            await self._window.acquire()
            self._queued -= 1
            self._in_flight += 1
            self._emit_progress()
            tasks.append(asyncio.create_task(self._execute(key, item, slots)))

        outcomes = list(await asyncio.gather(*tasks))
        report = SchedulerReport(outcomes=outcomes, started_at=started_at)

        self._logger.info(
            "Scheduled run complete",
            total=len(outcomes),
            succeeded=len(report.succeeded),
            failed=len(report.failed),
            timed_out=len(report.timed_out),
            duration_seconds=round(report.duration_seconds, 2),
        )
        return report
