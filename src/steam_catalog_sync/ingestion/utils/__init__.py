"""
Utility modules for ingestion.

Provides the rate-limited scheduler that every network-bound
step of the pipeline runs through.
"""

from steam_catalog_sync.ingestion.utils.scheduler import (
    RateLimitedScheduler,
    SchedulerConfig,
    SchedulerReport,
    SchedulerSnapshot,
    SlidingWindowLimiter,
    TaskOutcome,
    TaskStatus,
)

__all__ = [
    "RateLimitedScheduler",
    "SchedulerConfig",
    "SchedulerReport",
    "SchedulerSnapshot",
    "SlidingWindowLimiter",
    "TaskOutcome",
    "TaskStatus",
]
