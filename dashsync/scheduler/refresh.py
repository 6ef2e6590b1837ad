"""
Cancellable periodic emission for the synchronization engine.

Provides:
- PeriodicTask: a single re-arming timer with atomic reconfiguration
- AutoRefreshScheduler: periodic DATA_GENERATED refresh events
- MetricsBroadcaster: periodic SYSTEM_METRICS_UPDATED events

The timer primitive is injectable. The default runs daemon
threading.Timer instances; asyncio_timer(loop) uses loop.call_later for
hosts that own an event loop.

Example:
    scheduler = AutoRefreshScheduler(lambda: engine.emit_data_change(
        "auto-refresh", "periodic_refresh"))
    scheduler.configure(True, 1000)
    scheduler.configure(True, 5000)  # old timer cancelled, new one armed now
    scheduler.configure(False)
"""

from __future__ import annotations

import asyncio
import math
import threading
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from dashsync.errors import ConfigurationError
from dashsync.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_REFRESH_INTERVAL_MS = 30_000
DEFAULT_METRICS_INTERVAL_MS = 5_000


class Cancellable(Protocol):
    def cancel(self) -> Any: ...


# (delay_seconds, callback) -> handle with cancel()
TimerFactory = Callable[[float, Callable[[], None]], Cancellable]


def thread_timer(delay: float, callback: Callable[[], None]) -> threading.Timer:
    """Start a daemon threading.Timer."""
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


def asyncio_timer(loop: asyncio.AbstractEventLoop) -> TimerFactory:
    """Timer factory scheduling callbacks on an event loop."""

    def factory(delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return loop.call_later(delay, callback)

    return factory


def validate_interval(interval_ms: Any) -> float:
    if isinstance(interval_ms, bool) or not isinstance(interval_ms, (int, float)):
        raise ConfigurationError(f"interval_ms must be a number, got {interval_ms!r}")
    if not math.isfinite(interval_ms) or interval_ms <= 0:
        raise ConfigurationError(f"interval_ms must be a finite number > 0, got {interval_ms}")
    return interval_ms


class PeriodicTask:
    """
    A single cancellable timer that re-arms after every tick.

    start() cancels any armed timer and arms a new one immediately, so two
    timers are never live at once. A generation counter discards callbacks
    from a timer that fired while it was being cancelled.
    """

    def __init__(
        self,
        name: str,
        action: Callable[[], Any],
        timer_factory: TimerFactory | None = None,
    ):
        self.name = name
        self._action = action
        self._timer_factory = timer_factory or thread_timer
        self._lock = threading.Lock()
        self._generation = 0
        self._handle: Cancellable | None = None
        self._interval_ms: float | None = None

    @property
    def is_running(self) -> bool:
        return self._interval_ms is not None

    @property
    def interval_ms(self) -> float | None:
        return self._interval_ms

    def start(self, interval_ms: float) -> None:
        with self._lock:
            self._cancel_locked()
            self._generation += 1
            self._interval_ms = interval_ms
            self._arm_locked(self._generation)
        logger.debug("periodic_task_started", task=self.name, interval_ms=interval_ms)

    def stop(self) -> None:
        with self._lock:
            was_running = self._interval_ms is not None
            self._cancel_locked()
            self._generation += 1
            self._interval_ms = None
        if was_running:
            logger.debug("periodic_task_stopped", task=self.name)

    def _cancel_locked(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _arm_locked(self, generation: int) -> None:
        delay = self._interval_ms / 1000.0
        self._handle = self._timer_factory(delay, lambda: self._tick(generation))

    def _tick(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._handle = None

        try:
            self._action()
        except Exception:
            logger.exception("periodic_task_failed", task=self.name)

        with self._lock:
            # start() or stop() during the action bumps the generation
            if generation == self._generation and self._handle is None:
                self._arm_locked(generation)


@dataclass(frozen=True)
class AutoRefreshConfig:
    """Periodic emission settings."""

    enabled: bool = False
    interval_ms: float = DEFAULT_REFRESH_INTERVAL_MS

    def to_dict(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "interval_ms": self.interval_ms}


class PeriodicEmitter:
    """Owns one PeriodicTask and its AutoRefreshConfig."""

    task_name = "periodic"

    def __init__(
        self,
        action: Callable[[], Any],
        default_interval_ms: float = DEFAULT_REFRESH_INTERVAL_MS,
        timer_factory: TimerFactory | None = None,
    ):
        self.default_interval_ms = validate_interval(default_interval_ms)
        self._task = PeriodicTask(self.task_name, action, timer_factory)
        self._config = AutoRefreshConfig(False, self.default_interval_ms)

    @property
    def config(self) -> AutoRefreshConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._task.is_running

    def configure(self, enabled: bool, interval_ms: float | None = None) -> None:
        """
        Enable, disable or re-time the periodic emission.

        Args:
            enabled: Whether periodic emission should run
            interval_ms: Period in milliseconds (default policy value if omitted)

        Raises:
            ConfigurationError: If interval_ms is not a positive number
        """
        interval = validate_interval(
            self.default_interval_ms if interval_ms is None else interval_ms
        )
        if enabled:
            self._task.start(interval)
        else:
            self._task.stop()
        self._config = AutoRefreshConfig(bool(enabled), interval)
        logger.info(
            f"{self.task_name}_configured",
            enabled=bool(enabled),
            interval_ms=interval,
        )

    def stop(self) -> None:
        self._task.stop()
        self._config = AutoRefreshConfig(False, self._config.interval_ms)


class AutoRefreshScheduler(PeriodicEmitter):
    """Emits a periodic_refresh DATA_GENERATED event while enabled."""

    task_name = "auto_refresh"


class MetricsBroadcaster(PeriodicEmitter):
    """Emits SYSTEM_METRICS_UPDATED with the current metrics while enabled."""

    task_name = "metrics_broadcast"

    def __init__(
        self,
        action: Callable[[], Any],
        default_interval_ms: float = DEFAULT_METRICS_INTERVAL_MS,
        timer_factory: TimerFactory | None = None,
    ):
        super().__init__(action, default_interval_ms, timer_factory)
