"""Tests for the rate-limited scheduler."""

import asyncio
import time
from collections.abc import Awaitable, Callable

import pytest

from steam_catalog_sync.ingestion.utils import (
    RateLimitedScheduler,
    SchedulerConfig,
    SchedulerSnapshot,
    SlidingWindowLimiter,
    TaskStatus,
)

# Start times are recorded inside the work item, slightly after admission
TOLERANCE = 0.05


class Recorder:
    """Work item factory that records start times and concurrency."""

    def __init__(self, duration: float = 0.0) -> None:
        self.duration = duration
        self.starts: list[float] = []
        self.active = 0
        self.peak = 0

    def item(self, value: int) -> Callable[[], Awaitable[int]]:
        async def work() -> int:
            self.starts.append(time.monotonic())
            self.active += 1
            self.peak = max(self.peak, self.active)
            try:
                await asyncio.sleep(self.duration)
            finally:
                self.active -= 1
            return value

        return work


class TestSchedulerConfig:
    """Tests for SchedulerConfig validation."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"concurrency": 0},
            {"interval_cap": 0},
            {"interval_seconds": 0},
            {"task_timeout_seconds": -1},
        ],
    )
    def test_invalid_caps(self, kwargs: dict[str, float]) -> None:
        with pytest.raises(ValueError):
            SchedulerConfig(**kwargs)  # type: ignore[arg-type]


class TestSlidingWindowLimiter:
    """Tests for SlidingWindowLimiter."""

    @pytest.mark.asyncio
    async def test_window_cap(self) -> None:
        """Test that any window holds at most `cap` acquisitions."""
        cap, window = 4, 0.3
        limiter = SlidingWindowLimiter(cap, window)
        stamps: list[float] = []

        async def acquire() -> None:
            await limiter.acquire()
            stamps.append(time.monotonic())

        await asyncio.gather(*(acquire() for _ in range(10)))

        stamps.sort()
        assert stamps[cap - 1] - stamps[0] < TOLERANCE
        for i in range(len(stamps) - cap):
            assert stamps[i + cap] - stamps[i] >= window - TOLERANCE

    @pytest.mark.parametrize(("cap", "interval"), [(0, 1.0), (1, 0.0)])
    def test_invalid(self, cap: int, interval: float) -> None:
        with pytest.raises(ValueError):
            SlidingWindowLimiter(cap, interval)


class TestRateLimitedScheduler:
    """Tests for RateLimitedScheduler."""

    @pytest.mark.asyncio
    async def test_results_in_submission_order(self) -> None:
        """Test that outcomes keep submission order and keys."""
        recorder = Recorder()
        scheduler = RateLimitedScheduler(SchedulerConfig(concurrency=5, interval_cap=10))

        report = await scheduler.run([recorder.item(i) for i in range(5)], keys=list("abcde"))

        assert [o.key for o in report.outcomes] == list("abcde")
        assert [o.result for o in report.outcomes] == [0, 1, 2, 3, 4]
        assert len(report.succeeded) == 5

    @pytest.mark.asyncio
    async def test_concurrency_cap(self) -> None:
        """Test that no more than `concurrency` items run at once."""
        recorder = Recorder(duration=0.05)
        scheduler = RateLimitedScheduler(
            SchedulerConfig(concurrency=2, interval_cap=100, interval_seconds=1.0)
        )

        await scheduler.run([recorder.item(i) for i in range(8)])

        assert recorder.peak == 2

    @pytest.mark.asyncio
    async def test_interval_cap(self) -> None:
        """Test that any window of `interval_seconds` holds at most `interval_cap` starts."""
        cap, window = 3, 0.3
        recorder = Recorder()
        scheduler = RateLimitedScheduler(
            SchedulerConfig(concurrency=10, interval_cap=cap, interval_seconds=window)
        )

        start = time.monotonic()
        await scheduler.run([recorder.item(i) for i in range(9)])
        elapsed = time.monotonic() - start

        starts = sorted(recorder.starts)
        for i in range(len(starts) - cap):
            assert starts[i + cap] - starts[i] >= window - TOLERANCE
        # 9 items at 3 per window need two full waits
        assert elapsed >= 2 * window - TOLERANCE

    @pytest.mark.asyncio
    async def test_initial_burst(self) -> None:
        """Test that up to `interval_cap` items start immediately."""
        recorder = Recorder()
        scheduler = RateLimitedScheduler(
            SchedulerConfig(concurrency=5, interval_cap=5, interval_seconds=10.0)
        )

        start = time.monotonic()
        await scheduler.run([recorder.item(i) for i in range(5)])

        assert time.monotonic() - start < 0.5

    @pytest.mark.asyncio
    async def test_unused_capacity_carries_over(self) -> None:
        """Test that a freed slot can start at once if the window has room."""
        recorder = Recorder(duration=0.2)
        scheduler = RateLimitedScheduler(
            SchedulerConfig(concurrency=1, interval_cap=3, interval_seconds=1.0)
        )

        await scheduler.run([recorder.item(i) for i in range(3)])

        # Each start waits only for the previous item, not for a new window
        gaps = [b - a for a, b in zip(recorder.starts, recorder.starts[1:])]
        assert all(gap < 0.5 for gap in gaps)

    @pytest.mark.asyncio
    async def test_timeout_is_not_fatal(self) -> None:
        """Test that a timed out item is recorded and the run continues."""
        scheduler = RateLimitedScheduler(
            SchedulerConfig(concurrency=3, interval_cap=10, task_timeout_seconds=0.05)
        )

        async def slow() -> int:
            await asyncio.sleep(1.0)
            return 0

        report = await scheduler.run([slow, Recorder().item(1), Recorder().item(2)])

        assert [o.status for o in report.outcomes] == [
            TaskStatus.TIMED_OUT,
            TaskStatus.SUCCEEDED,
            TaskStatus.SUCCEEDED,
        ]
        assert report.timed_out[0].error is not None

    @pytest.mark.asyncio
    async def test_error_is_not_fatal(self) -> None:
        """Test that an exception fails only its own item."""
        scheduler = RateLimitedScheduler(SchedulerConfig(concurrency=2, interval_cap=10))

        async def broken() -> int:
            raise RuntimeError("boom")

        report = await scheduler.run([Recorder().item(1), broken, Recorder().item(3)], keys=[1, 2, 3])

        assert len(report.succeeded) == 2
        assert len(report.failed) == 1
        assert report.failed[0].key == 2
        assert report.failed[0].error == "boom"
        assert report.failed[0].ok is False

    @pytest.mark.asyncio
    async def test_progress_snapshots(self) -> None:
        """Test that observers receive consistent counters."""
        snapshots: list[SchedulerSnapshot] = []
        recorder = Recorder(duration=0.01)
        scheduler = RateLimitedScheduler(
            SchedulerConfig(concurrency=2, interval_cap=10),
            on_progress=snapshots.append,
        )

        await scheduler.run([recorder.item(i) for i in range(4)])

        assert snapshots
        for snap in snapshots:
            assert snap.queued + snap.in_flight + snap.completed == 4
            assert snap.in_flight <= 2
        assert snapshots[-1] == SchedulerSnapshot(queued=0, in_flight=0, completed=4)
        assert scheduler.snapshot().completed == 4

    @pytest.mark.asyncio
    async def test_empty_run(self) -> None:
        scheduler = RateLimitedScheduler()
        report = await scheduler.run([])

        assert report.outcomes == []
        assert report.duration_seconds >= 0

    @pytest.mark.asyncio
    async def test_keys_length_mismatch(self) -> None:
        scheduler = RateLimitedScheduler()

        with pytest.raises(ValueError, match="same length"):
            await scheduler.run([Recorder().item(1)], keys=[1, 2])

    @pytest.mark.asyncio
    async def test_observer_fault_keeps_outcomes(self) -> None:
        """Test that a raising progress observer does not cost any outcome."""
        calls: list[SchedulerSnapshot] = []

        def observer(snapshot: SchedulerSnapshot) -> None:
            calls.append(snapshot)
            if len(calls) == 3:
                raise RuntimeError("terminal closed")

        scheduler = RateLimitedScheduler(SchedulerConfig(concurrency=2, interval_cap=10), on_progress=observer)

        report = await scheduler.run([Recorder(duration=0.01).item(i) for i in range(4)], keys=[1, 2, 3, 4])

        assert [o.key for o in report.outcomes] == [1, 2, 3, 4]
        assert [o.status for o in report.outcomes] == [TaskStatus.SUCCEEDED] * 4
        assert len(calls) > 3
        assert calls[-1].completed == 4
