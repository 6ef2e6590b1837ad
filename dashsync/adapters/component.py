"""
Component-side binding to the sync engine.

A ComponentSync ties one component id to an engine: it registers the
component, keeps per-component state (update count, last update, latest
data snapshot and metrics), forwards events to the component's own
handler and offers emit helpers bound to the component id as source.
The engine stays framework-agnostic; UI code translates events into its
own state inside ``on_event``.

Example:
    with dashboard_sync(engine, "dashboard-main", on_data_update=render) as sync:
        sync.emit_filter_applied({"region": "APAC"})
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any, Callable

from dashsync.core.types import (
    ComponentRegistration,
    ComponentType,
    EventType,
    SyncEvent,
    SyncEventListener,
    utcnow,
)
from dashsync.events.bus import SyncEngine
from dashsync.logging_config import get_logger
from dashsync.monitoring.performance import SyncPerformanceMetrics

logger = get_logger(__name__)

DEFAULT_COMPONENT_PRIORITY = 5


class ComponentSync:
    """Registration handle and state for one UI component."""

    def __init__(
        self,
        engine: SyncEngine,
        component_id: str,
        component_type: ComponentType | str,
        event_types: Iterable[EventType | str],
        priority: int = DEFAULT_COMPONENT_PRIORITY,
        on_event: SyncEventListener | None = None,
        auto_register: bool = True,
    ):
        """
        Args:
            engine: Engine to bind to
            component_id: Unique component id, also used as event source
            component_type: Kind of component
            event_types: Event types to receive
            priority: Delivery priority in [0, 10]
            on_event: Handler called after the adapter updates its state
            auto_register: Register immediately
        """
        self.engine = engine
        self.component_id = component_id
        self.component_type = ComponentType(component_type)
        self.event_types = frozenset(EventType.coerce(t) for t in event_types)
        self.priority = priority
        self.on_event = on_event

        self.is_registered = False
        self.last_update: datetime | None = None
        self.update_count = 0
        self.data_snapshot: dict[str, Any] | None = None
        self.performance_metrics = SyncPerformanceMetrics()

        if auto_register:
            self.register()

    def __enter__(self) -> ComponentSync:
        if not self.is_registered:
            self.register()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.unregister()

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register(self) -> None:
        if self.is_registered:
            return

        self.engine.register_component(
            ComponentRegistration(
                component_id=self.component_id,
                component_type=self.component_type,
                event_types=self.event_types,
                listener=self._handle_event,
                priority=self.priority,
            )
        )
        self.is_registered = True

        # Catch up on data published before this component existed
        snapshot = self.engine.get_current_data_snapshot()
        if snapshot is not None:
            self.data_snapshot = snapshot.to_dict()
        self.performance_metrics = self.engine.get_performance_metrics()

        logger.debug("component_sync_registered", component_id=self.component_id)

    def unregister(self) -> None:
        if not self.is_registered:
            return
        self.engine.unregister_component(self.component_id)
        self.is_registered = False
        logger.debug("component_sync_unregistered", component_id=self.component_id)

    # -------------------------------------------------------------------------
    # Inbound
    # -------------------------------------------------------------------------

    def _handle_event(self, event: SyncEvent) -> Any:
        self.last_update = utcnow()
        self.update_count += 1

        payload = event.payload if isinstance(event.payload, dict) else {}
        if event.type is EventType.DATA_GENERATED and payload.get("snapshot"):
            self.data_snapshot = payload["snapshot"]
        elif event.type is EventType.SYSTEM_METRICS_UPDATED and payload.get("metrics"):
            self.performance_metrics = self.engine.get_performance_metrics()

        if self.on_event is None:
            return None
        # awaitables are handed back to the engine's failure boundary
        return self.on_event(event)

    # -------------------------------------------------------------------------
    # Outbound
    # -------------------------------------------------------------------------

    def emit_data_change(self, change_type: str, data: Any = None) -> str:
        return self.engine.emit_data_change(self.component_id, change_type, data)

    def emit_settings_change(self, settings: Any, profile: Any = None) -> str:
        return self.engine.emit_settings_change(self.component_id, settings, profile)

    def emit_analytics_update(self, analytics_data: Any, filters: Any = None) -> str:
        return self.engine.emit_analytics_update(self.component_id, analytics_data, filters)

    def emit_chart_interaction(self, interaction_data: Any) -> str:
        return self.engine.emit_chart_interaction(self.component_id, interaction_data)

    def emit_filter_applied(self, filters: Any) -> str:
        return self.engine.emit_filter_applied(self.component_id, filters)

    def refresh_data(self) -> str:
        return self.emit_data_change("manual_refresh")

    def configure_auto_refresh(self, enabled: bool, interval_ms: float | None = None) -> None:
        self.engine.configure_auto_refresh(enabled, interval_ms)


# =============================================================================
# Presets
# =============================================================================


def _payload_callback(
    callback: Callable[[Any], Any] | None,
    types: tuple[EventType, ...],
    extract: Callable[[Any], Any] = lambda payload: payload,
) -> SyncEventListener | None:
    if callback is None:
        return None

    def on_event(event: SyncEvent) -> None:
        if event.type in types:
            callback(extract(event.payload))

    return on_event


def dashboard_sync(
    engine: SyncEngine,
    component_id: str,
    on_data_update: Callable[[Any], Any] | None = None,
) -> ComponentSync:
    """Dashboard component: broad subscriptions at the highest priority."""
    return ComponentSync(
        engine,
        component_id,
        ComponentType.DASHBOARD,
        [
            EventType.DATA_GENERATED,
            EventType.SETTINGS_CHANGED,
            EventType.ANALYTICS_UPDATED,
            EventType.FILTER_APPLIED,
            EventType.SYSTEM_METRICS_UPDATED,
        ],
        priority=10,
        on_event=_payload_callback(on_data_update, (EventType.DATA_GENERATED,)),
    )


def analytics_sync(
    engine: SyncEngine,
    component_id: str,
    on_analytics_update: Callable[[Any], Any] | None = None,
) -> ComponentSync:
    return ComponentSync(
        engine,
        component_id,
        ComponentType.ANALYTICS,
        [
            EventType.ANALYTICS_UPDATED,
            EventType.CHART_INTERACTION,
            EventType.FILTER_APPLIED,
            EventType.DATA_GENERATED,
        ],
        priority=8,
        on_event=_payload_callback(
            on_analytics_update,
            (EventType.ANALYTICS_UPDATED, EventType.DATA_GENERATED),
        ),
    )


def settings_sync(
    engine: SyncEngine,
    component_id: str,
    on_settings_change: Callable[[Any], Any] | None = None,
) -> ComponentSync:
    return ComponentSync(
        engine,
        component_id,
        ComponentType.SETTINGS,
        [
            EventType.SETTINGS_CHANGED,
            EventType.SYSTEM_METRICS_UPDATED,
            EventType.PERFORMANCE_WARNING,
        ],
        priority=9,
        on_event=_payload_callback(
            on_settings_change,
            (EventType.SETTINGS_CHANGED,),
            lambda payload: payload.get("settings") if isinstance(payload, dict) else None,
        ),
    )


def chart_sync(
    engine: SyncEngine,
    component_id: str,
    on_interaction: Callable[[Any], Any] | None = None,
) -> ComponentSync:
    return ComponentSync(
        engine,
        component_id,
        ComponentType.CHARTS,
        [
            EventType.CHART_INTERACTION,
            EventType.FILTER_APPLIED,
            EventType.ANALYTICS_UPDATED,
            EventType.DATA_GENERATED,
        ],
        priority=6,
        on_event=_payload_callback(on_interaction, (EventType.CHART_INTERACTION,)),
    )
