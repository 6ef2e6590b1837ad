"""Periodic emission scheduling."""

from dashsync.scheduler.refresh import (
    AutoRefreshConfig,
    AutoRefreshScheduler,
    MetricsBroadcaster,
    PeriodicTask,
    asyncio_timer,
    thread_timer,
)

__all__ = [
    "AutoRefreshConfig",
    "AutoRefreshScheduler",
    "MetricsBroadcaster",
    "PeriodicTask",
    "asyncio_timer",
    "thread_timer",
]
