"""
Real-time synchronization engine for dashboard components.

Provides:
- Component registration keyed by component_id
- Priority-ordered dispatch with per-listener failure isolation
- Trampolined reentrant emission
- Last-known data snapshot for late subscribers
- Live performance metrics
- Periodic auto-refresh and metrics broadcast
"""

from __future__ import annotations

import asyncio
import functools
import heapq
import inspect
import itertools
import threading
import time
from collections.abc import Mapping
from dataclasses import replace
from enum import Enum
from typing import Any, Awaitable, Callable

from dashsync.container import SyncContext, get_engine
from dashsync.core.snapshot import DataSnapshot, DataSnapshotStore
from dashsync.core.types import (
    PRIORITY_POLICY,
    ComponentRegistration,
    EventType,
    Priority,
    SyncEvent,
    utcnow,
)
from dashsync.errors import ConfigurationError, ListenerError
from dashsync.events.registry import ComponentRegistry
from dashsync.logging_config import get_logger
from dashsync.monitoring.performance import PerformanceMonitor, SyncPerformanceMetrics
from dashsync.scheduler.refresh import (
    AutoRefreshConfig,
    AutoRefreshScheduler,
    MetricsBroadcaster,
    TimerFactory,
)

logger = get_logger(__name__)

AUTO_REFRESH_SOURCE = "auto-refresh"
AUTO_REFRESH_CHANGE = "periodic_refresh"
METRICS_SOURCE = "performance-monitor"


class EngineState(Enum):
    """Engine lifecycle states."""

    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    DISPOSED = "disposed"


async def _consume(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


# =============================================================================
# Sync Engine
# =============================================================================


class SyncEngine:
    """
    In-process publish/subscribe bus for dashboard components.

    Features:
    - Delivery in descending registration priority, ties in registration order
    - A failing listener never stops delivery to the others
    - Emissions from inside a listener are queued and dispatched after the
      current dispatch completes
    - Dispatches never interleave, including emissions from timer threads
    - After dispose() every mutating call is a logged no-op

    Example:
        engine = SyncEngine()
        engine.register_component(ComponentRegistration(
            component_id="chart-1",
            component_type="charts",
            event_types=[EventType.CHART_INTERACTION],
            listener=on_event,
            priority=6,
        ))
        engine.emit_chart_interaction("chart-src", {"series": "revenue"})
        engine.dispose()
    """

    def __init__(
        self,
        context: SyncContext | None = None,
        *,
        timer_factory: TimerFactory | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the engine.

        Args:
            context: Configuration (defaults to SyncContext())
            timer_factory: Timer primitive for periodic emission
            clock: Monotonic clock for event timestamps and refresh rate
        """
        self.context = context or SyncContext()
        self._clock = clock
        self._lock = threading.RLock()
        self._state = EngineState.UNINITIALIZED

        self._registry = ComponentRegistry()
        self._snapshot = DataSnapshotStore()
        self._monitor = PerformanceMonitor(
            refresh_window=self.context.refresh_window_s,
            clock=clock,
        )

        self._pending: list[tuple[int, int, SyncEvent]] = []
        self._sequence = itertools.count()
        self._event_counter = itertools.count(1)
        self._last_timestamp = float("-inf")
        self._dispatching = False
        self._listener_tasks: set[asyncio.Task] = set()

        self._scheduler = AutoRefreshScheduler(
            self._auto_refresh_tick,
            self.context.refresh_interval_ms,
            timer_factory,
        )
        self._metrics_broadcaster = MetricsBroadcaster(
            self._broadcast_metrics,
            self.context.metrics_interval_ms,
            timer_factory,
        )

        if self.context.auto_refresh:
            self._scheduler.configure(True)

    def __enter__(self) -> SyncEngine:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.dispose()

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def auto_refresh(self) -> AutoRefreshConfig:
        return self._scheduler.config

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register_component(self, registration: ComponentRegistration) -> str:
        """
        Register (or replace) a component subscription.

        The engine stores a copy, so the caller's object can be reused or
        mutated without affecting delivery.

        Args:
            registration: Subscription to store under its component_id

        Returns:
            The component_id

        Raises:
            ConfigurationError: If registration is not a ComponentRegistration
        """
        if not isinstance(registration, ComponentRegistration):
            raise ConfigurationError(
                f"Expected ComponentRegistration, got {type(registration).__name__}"
            )

        with self._lock:
            if self._is_disposed("register_component"):
                return registration.component_id

            registration = replace(
                registration, is_active=True, update_count=0, last_update=utcnow()
            )
            replaced = self._registry.add(registration)
            self._activate()
            self._refresh_listener_metrics()

        logger.info(
            "component_registered",
            component_id=registration.component_id,
            component_type=registration.component_type.value,
            priority=registration.priority,
            replaced=replaced,
        )
        return registration.component_id

    def unregister_component(self, component_id: str) -> None:
        """Remove a component subscription. Unknown ids are ignored."""
        if not component_id:
            raise ConfigurationError("component_id is required")

        with self._lock:
            if self._is_disposed("unregister_component"):
                return
            removed = self._registry.remove(component_id)
            if removed:
                self._refresh_listener_metrics()

        if removed:
            logger.info("component_unregistered", component_id=component_id)

    def get_registered_components(self) -> list[ComponentRegistration]:
        """Copies of the current registrations in registration order."""
        with self._lock:
            return [replace(r) for r in self._registry]

    # -------------------------------------------------------------------------
    # Emission
    # -------------------------------------------------------------------------

    def emit_event(
        self,
        event_type: EventType | str,
        source: str,
        payload: Any = None,
        priority: Priority | str | int | None = None,
    ) -> str:
        """
        Emit an event to every active subscriber of its type.

        Args:
            event_type: Event type
            source: Publisher identifier
            payload: Opaque event payload
            priority: Event priority (policy default for the type if omitted)

        Returns:
            The generated event id
        """
        event_type = EventType.coerce(event_type)
        if priority is None:
            priority = PRIORITY_POLICY[event_type]
        else:
            priority = Priority.coerce(priority)

        with self._lock:
            event = self._create_event(event_type, source, payload, priority)

            if self._is_disposed("emit_event"):
                return event.id

            self._activate()
            self._snapshot.apply(event.type, event.payload)
            heapq.heappush(self._pending, (-event.priority, next(self._sequence), event))

            if self._dispatching:
                logger.debug("event_deferred", type=event.type.value, id=event.id)
                return event.id

            self._drain()

        return event.id

    def _create_event(
        self,
        event_type: EventType,
        source: str,
        payload: Any,
        priority: Priority,
    ) -> SyncEvent:
        timestamp = max(self._clock(), self._last_timestamp)
        self._last_timestamp = timestamp
        now = utcnow()
        return SyncEvent(
            id=f"sync-{now:%Y%m%d-%H%M%S}-{next(self._event_counter)}",
            type=event_type,
            source=source,
            payload=payload,
            priority=priority,
            timestamp=timestamp,
            emitted_at=now,
        )

    # -------------------------------------------------------------------------
    # Typed Emission Helpers
    # -------------------------------------------------------------------------

    def emit_data_change(self, source: str, change_type: str, data: Any = None) -> str:
        """Emit DATA_GENERATED carrying the current snapshot."""
        with self._lock:
            snapshot = self._snapshot.snapshot()
        return self.emit_event(
            EventType.DATA_GENERATED,
            source,
            {
                "change_type": change_type,
                "data": data,
                "snapshot": snapshot.to_dict() if snapshot else None,
                "timestamp": utcnow().isoformat(),
            },
            PRIORITY_POLICY[EventType.DATA_GENERATED],
        )

    def emit_settings_change(self, source: str, settings: Any, profile: Any = None) -> str:
        """Emit SETTINGS_CHANGED."""
        return self.emit_event(
            EventType.SETTINGS_CHANGED,
            source,
            {
                "settings": settings,
                "profile": profile,
                "effective_time": utcnow().isoformat(),
            },
            PRIORITY_POLICY[EventType.SETTINGS_CHANGED],
        )

    def emit_analytics_update(
        self, source: str, analytics_data: Any, filters: Any = None
    ) -> str:
        """Emit ANALYTICS_UPDATED."""
        return self.emit_event(
            EventType.ANALYTICS_UPDATED,
            source,
            {
                "analytics_data": analytics_data,
                "filters": filters,
                "generated_at": utcnow().isoformat(),
            },
            PRIORITY_POLICY[EventType.ANALYTICS_UPDATED],
        )

    def emit_chart_interaction(self, source: str, interaction_data: Any) -> str:
        """Emit CHART_INTERACTION for cross-chart filtering."""
        if isinstance(interaction_data, Mapping):
            payload = dict(interaction_data)
        else:
            payload = {"interaction": interaction_data}
        payload["timestamp"] = utcnow().isoformat()
        return self.emit_event(
            EventType.CHART_INTERACTION,
            source,
            payload,
            PRIORITY_POLICY[EventType.CHART_INTERACTION],
        )

    def emit_filter_applied(self, source: str, filters: Any) -> str:
        """Emit FILTER_APPLIED."""
        return self.emit_event(
            EventType.FILTER_APPLIED,
            source,
            {"filters": filters, "applied_at": utcnow().isoformat()},
            PRIORITY_POLICY[EventType.FILTER_APPLIED],
        )

    def emit_persona_change(self, source: str, persona: Any) -> str:
        """Emit PERSONA_CHANGED."""
        return self.emit_event(
            EventType.PERSONA_CHANGED,
            source,
            {"persona": persona, "changed_at": utcnow().isoformat()},
            PRIORITY_POLICY[EventType.PERSONA_CHANGED],
        )

    def emit_error(self, source: str, message: str, details: Any = None) -> str:
        """Emit ERROR_OCCURRED."""
        return self.emit_event(
            EventType.ERROR_OCCURRED,
            source,
            {
                "message": message,
                "details": details,
                "occurred_at": utcnow().isoformat(),
            },
            PRIORITY_POLICY[EventType.ERROR_OCCURRED],
        )

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def _drain(self) -> None:
        """Dispatch pending events until the queue is empty."""
        self._dispatching = True
        try:
            while self._pending and self._state is not EngineState.DISPOSED:
                _, _, event = heapq.heappop(self._pending)
                self._dispatch(event)
        finally:
            self._dispatching = False

    def _dispatch(self, event: SyncEvent) -> None:
        start = time.perf_counter()
        self._monitor.record_event()

        subscribers = self._registry.subscribers(event.type)

        logger.debug(
            "event_dispatching",
            type=event.type.value,
            id=event.id,
            listeners=len(subscribers),
        )

        delivered = 0
        for registration in subscribers:
            if self._state is EngineState.DISPOSED:
                break
            if self._invoke(registration, event):
                delivered += 1

        elapsed_ms = (time.perf_counter() - start) * 1000.0
        self._monitor.record_processing_time(elapsed_ms)
        self._monitor.update_memory(
            len(self._registry), self._snapshot.has_data, len(self._pending)
        )

        logger.debug(
            "event_dispatched",
            type=event.type.value,
            id=event.id,
            delivered=delivered,
            elapsed_ms=round(elapsed_ms, 3),
        )

    def _invoke(self, registration: ComponentRegistration, event: SyncEvent) -> bool:
        """Run one listener inside its own failure boundary."""
        registration.update_count += 1
        try:
            result = registration.listener(event)
            if inspect.isawaitable(result):
                self._await_listener(registration, event, result)
        except Exception as e:
            self._record_failure(registration, event, e)
            return False

        registration.last_update = utcnow()
        return True

    def _await_listener(
        self,
        registration: ComponentRegistration,
        event: SyncEvent,
        result: Awaitable[Any],
    ) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(_consume(result))
            return

        task = loop.create_task(_consume(result))
        self._listener_tasks.add(task)
        task.add_done_callback(
            functools.partial(self._on_listener_task_done, registration, event)
        )

    def _on_listener_task_done(
        self,
        registration: ComponentRegistration,
        event: SyncEvent,
        task: asyncio.Task,
    ) -> None:
        self._listener_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            with self._lock:
                self._record_failure(registration, event, exc)

    def _record_failure(
        self,
        registration: ComponentRegistration,
        event: SyncEvent,
        exc: BaseException,
    ) -> None:
        error = ListenerError(registration.component_id, event.type, exc)
        self._monitor.record_error()
        logger.error(
            "listener_failed",
            component_id=registration.component_id,
            type=event.type.value,
            id=event.id,
            error=str(error),
            exc_info=exc,
        )

    # -------------------------------------------------------------------------
    # Periodic Emission
    # -------------------------------------------------------------------------

    def configure_auto_refresh(self, enabled: bool, interval_ms: float | None = None) -> None:
        """
        Enable, disable or re-time periodic DATA_GENERATED refresh events.

        Args:
            enabled: Whether auto-refresh should run
            interval_ms: Period in milliseconds (context default if omitted)

        Raises:
            ConfigurationError: If interval_ms is not a positive number
        """
        if self._is_disposed("configure_auto_refresh"):
            return
        self._scheduler.configure(enabled, interval_ms)

    def configure_metrics_broadcast(
        self, enabled: bool, interval_ms: float | None = None
    ) -> None:
        """Enable or disable periodic SYSTEM_METRICS_UPDATED events."""
        if self._is_disposed("configure_metrics_broadcast"):
            return
        self._metrics_broadcaster.configure(enabled, interval_ms)

    def _auto_refresh_tick(self) -> None:
        self.emit_data_change(AUTO_REFRESH_SOURCE, AUTO_REFRESH_CHANGE)

    def _broadcast_metrics(self) -> None:
        metrics = self.get_performance_metrics()
        self.emit_event(
            EventType.SYSTEM_METRICS_UPDATED,
            METRICS_SOURCE,
            {"metrics": metrics.to_dict()},
            Priority.LOW,
        )

    # -------------------------------------------------------------------------
    # Read Access
    # -------------------------------------------------------------------------

    def get_current_data_snapshot(self) -> DataSnapshot | None:
        """Read-only copy of the last-known category values, or None."""
        with self._lock:
            return self._snapshot.snapshot()

    def get_performance_metrics(self) -> SyncPerformanceMetrics:
        """Copy of the current performance metrics."""
        with self._lock:
            self._monitor.update_memory(
                len(self._registry), self._snapshot.has_data, len(self._pending)
            )
            return self._monitor.metrics()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def dispose(self) -> None:
        """Stop periodic emission, drop all registrations and pending events."""
        with self._lock:
            if self._state is EngineState.DISPOSED:
                return
            self._scheduler.stop()
            self._metrics_broadcaster.stop()
            self._registry.clear()
            self._pending.clear()
            self._state = EngineState.DISPOSED
            self._monitor.reset_listeners()

        logger.info("engine_disposed")

    def _activate(self) -> None:
        if self._state is EngineState.UNINITIALIZED:
            self._state = EngineState.ACTIVE
            logger.debug("engine_activated")

    def _is_disposed(self, operation: str) -> bool:
        if self._state is EngineState.DISPOSED:
            logger.warning("engine_disposed_call", operation=operation)
            return True
        return False

    def _refresh_listener_metrics(self) -> None:
        self._monitor.update_listeners(len(self._registry), self._registry.active_count)


# =============================================================================
# Convenience Functions
# =============================================================================


def register_component(registration: ComponentRegistration) -> str:
    """Register a component with the global engine."""
    return get_engine().register_component(registration)


def unregister_component(component_id: str) -> None:
    get_engine().unregister_component(component_id)


def emit_event(
    event_type: EventType | str,
    source: str,
    payload: Any = None,
    priority: Priority | str | int | None = None,
) -> str:
    return get_engine().emit_event(event_type, source, payload, priority)


def emit_data_change(source: str, change_type: str, data: Any = None) -> str:
    return get_engine().emit_data_change(source, change_type, data)


def emit_settings_change(source: str, settings: Any, profile: Any = None) -> str:
    return get_engine().emit_settings_change(source, settings, profile)


def emit_analytics_update(source: str, analytics_data: Any, filters: Any = None) -> str:
    return get_engine().emit_analytics_update(source, analytics_data, filters)


def emit_chart_interaction(source: str, interaction_data: Any) -> str:
    return get_engine().emit_chart_interaction(source, interaction_data)


def emit_filter_applied(source: str, filters: Any) -> str:
    return get_engine().emit_filter_applied(source, filters)


def emit_persona_change(source: str, persona: Any) -> str:
    return get_engine().emit_persona_change(source, persona)


def emit_error(source: str, message: str, details: Any = None) -> str:
    return get_engine().emit_error(source, message, details)


def configure_auto_refresh(enabled: bool, interval_ms: float | None = None) -> None:
    get_engine().configure_auto_refresh(enabled, interval_ms)


def get_current_data_snapshot() -> DataSnapshot | None:
    return get_engine().get_current_data_snapshot()


def get_performance_metrics() -> SyncPerformanceMetrics:
    return get_engine().get_performance_metrics()


def get_registered_components() -> list[ComponentRegistration]:
    return get_engine().get_registered_components()


def configure_metrics_broadcast(enabled: bool, interval_ms: float | None = None) -> None:
    get_engine().configure_metrics_broadcast(enabled, interval_ms)


def dispose() -> None:
    """Dispose the global engine. Use reset_engine() to start a fresh one."""
    get_engine().dispose()
