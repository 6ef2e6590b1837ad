"""
Live performance instrumentation for the synchronization engine.

Tracks:
- Event and error counters
- Listener counts
- Running mean of dispatch time
- A bounded memory-usage estimate
- Data refresh rate over a trailing window
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable

from dashsync.core.types import utcnow

BASE_MEMORY_USAGE = 45.0
MEMORY_PER_LISTENER = 2.0
MEMORY_FOR_SNAPSHOT = 15.0
MEMORY_PER_QUEUED_EVENT = 0.1


@dataclass
class SyncPerformanceMetrics:
    """Point-in-time engine statistics."""

    total_events: int = 0
    total_listeners: int = 0
    average_processing_time: float = 0.0
    errors_count: int = 0
    components_listening: int = 0
    memory_usage: float = 0.0
    data_refresh_rate: float = 0.0
    last_error_time: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "total_events": self.total_events,
            "total_listeners": self.total_listeners,
            "average_processing_time": self.average_processing_time,
            "errors_count": self.errors_count,
            "components_listening": self.components_listening,
            "memory_usage": self.memory_usage,
            "data_refresh_rate": self.data_refresh_rate,
            "last_error_time": (
                self.last_error_time.isoformat() if self.last_error_time else None
            ),
        }


def estimate_memory_usage(listeners: int, has_snapshot: bool, queued: int) -> float:
    """Heuristic load estimate clamped to [0, 100]."""
    usage = (
        BASE_MEMORY_USAGE
        + listeners * MEMORY_PER_LISTENER
        + (MEMORY_FOR_SNAPSHOT if has_snapshot else 0.0)
        + queued * MEMORY_PER_QUEUED_EVENT
    )
    return max(0.0, min(usage, 100.0))


class PerformanceMonitor:
    """
    Incrementally maintained SyncPerformanceMetrics.

    Example:
        monitor = PerformanceMonitor(refresh_window=60.0)
        monitor.record_event()
        monitor.record_processing_time(1.8)
        monitor.metrics().total_events  # 1
    """

    def __init__(
        self,
        refresh_window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the monitor.

        Args:
            refresh_window: Trailing window (seconds) for data_refresh_rate
            clock: Monotonic clock, injectable for tests
        """
        if refresh_window <= 0:
            raise ValueError("refresh_window must be > 0")
        self.refresh_window = refresh_window
        self._clock = clock
        self._metrics = SyncPerformanceMetrics()
        self._event_times: deque[float] = deque()

    def _clean_old_events(self, now: float) -> int:
        window_start = now - self.refresh_window
        while self._event_times and self._event_times[0] <= window_start:
            self._event_times.popleft()
        return len(self._event_times)

    def record_event(self) -> None:
        """Count one dispatched emission."""
        now = self._clock()
        self._metrics.total_events += 1
        self._event_times.append(now)
        self._clean_old_events(now)

    def record_processing_time(self, elapsed_ms: float) -> None:
        """Fold a dispatch duration into the running mean."""
        n = self._metrics.total_events
        if n <= 0:
            return
        avg = self._metrics.average_processing_time
        self._metrics.average_processing_time = avg + (elapsed_ms - avg) / n

    def record_error(self) -> None:
        self._metrics.errors_count += 1
        self._metrics.last_error_time = utcnow()

    def update_listeners(self, total: int, active: int) -> None:
        self._metrics.total_listeners = total
        self._metrics.components_listening = active

    def update_memory(self, listeners: int, has_snapshot: bool, queued: int = 0) -> None:
        self._metrics.memory_usage = estimate_memory_usage(listeners, has_snapshot, queued)

    def metrics(self) -> SyncPerformanceMetrics:
        """Copy of the current metrics with a fresh refresh rate."""
        count = self._clean_old_events(self._clock())
        self._metrics.data_refresh_rate = count / self.refresh_window
        return replace(self._metrics)

    def reset_listeners(self) -> None:
        self.update_listeners(0, 0)
