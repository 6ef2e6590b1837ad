"""
Event bus for dashboard component synchronization.

Provides the sync engine, its registration and event types, and the
typed emission helpers.
"""

from dashsync.core.types import (
    PRIORITY_POLICY,
    ComponentRegistration,
    ComponentType,
    EventType,
    Priority,
    SyncEvent,
    SyncEventListener,
)
from dashsync.events.bus import (
    EngineState,
    SyncEngine,
    configure_auto_refresh,
    configure_metrics_broadcast,
    dispose,
    emit_analytics_update,
    emit_chart_interaction,
    emit_data_change,
    emit_error,
    emit_event,
    emit_filter_applied,
    emit_persona_change,
    emit_settings_change,
    get_current_data_snapshot,
    get_performance_metrics,
    get_registered_components,
    register_component,
    unregister_component,
)
from dashsync.events.registry import ComponentRegistry

__all__ = [
    "PRIORITY_POLICY",
    "ComponentRegistration",
    "ComponentRegistry",
    "ComponentType",
    "EngineState",
    "EventType",
    "Priority",
    "SyncEngine",
    "SyncEvent",
    "SyncEventListener",
    "configure_auto_refresh",
    "configure_metrics_broadcast",
    "dispose",
    "emit_analytics_update",
    "emit_chart_interaction",
    "emit_data_change",
    "emit_error",
    "emit_event",
    "emit_filter_applied",
    "emit_persona_change",
    "emit_settings_change",
    "get_current_data_snapshot",
    "get_performance_metrics",
    "get_registered_components",
    "register_component",
    "unregister_component",
]
