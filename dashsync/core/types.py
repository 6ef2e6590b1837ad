"""
Event and registration types for the synchronization engine.

Provides:
- The closed set of event types exchanged between dashboard components
- Delivery priorities and the fixed type -> priority policy
- SyncEvent and ComponentRegistration data classes
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Awaitable, Callable

from dashsync.errors import ConfigurationError

# =============================================================================
# Types & Enums
# =============================================================================


class EventType(str, Enum):
    """Closed enumeration of synchronization event types."""

    DATA_GENERATED = "DATA_GENERATED"
    SETTINGS_CHANGED = "SETTINGS_CHANGED"
    ANALYTICS_UPDATED = "ANALYTICS_UPDATED"
    SYSTEM_METRICS_UPDATED = "SYSTEM_METRICS_UPDATED"
    CHART_INTERACTION = "CHART_INTERACTION"
    FILTER_APPLIED = "FILTER_APPLIED"
    PERSONA_CHANGED = "PERSONA_CHANGED"
    ERROR_OCCURRED = "ERROR_OCCURRED"
    PERFORMANCE_WARNING = "PERFORMANCE_WARNING"

    @classmethod
    def coerce(cls, value: EventType | str) -> EventType:
        """Return the member for an EventType or its name."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise ConfigurationError(f"Unknown event type: {value!r}") from None


class Priority(IntEnum):
    """Event priority (higher = more urgent)."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3

    @classmethod
    def coerce(cls, value: Priority | str | int) -> Priority:
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.upper()]
            except KeyError:
                raise ConfigurationError(f"Unknown priority: {value!r}") from None
        try:
            return cls(value)
        except ValueError:
            raise ConfigurationError(f"Unknown priority: {value!r}") from None


class ComponentType(str, Enum):
    """Kinds of UI components that subscribe to the engine."""

    DASHBOARD = "dashboard"
    ANALYTICS = "analytics"
    SETTINGS = "settings"
    TRANSACTIONS = "transactions"
    REGULATORY = "regulatory"
    CHARTS = "charts"


# Fixed priority policy applied by the typed emission helpers and used as
# the default when emit_event is called without an explicit priority.
PRIORITY_POLICY: dict[EventType, Priority] = {
    EventType.SETTINGS_CHANGED: Priority.HIGH,
    EventType.ANALYTICS_UPDATED: Priority.MEDIUM,
    EventType.CHART_INTERACTION: Priority.MEDIUM,
    EventType.FILTER_APPLIED: Priority.MEDIUM,
    EventType.DATA_GENERATED: Priority.LOW,
    EventType.PERSONA_CHANGED: Priority.MEDIUM,
    EventType.ERROR_OCCURRED: Priority.CRITICAL,
    EventType.SYSTEM_METRICS_UPDATED: Priority.LOW,
    EventType.PERFORMANCE_WARNING: Priority.HIGH,
}

MIN_COMPONENT_PRIORITY = 0
MAX_COMPONENT_PRIORITY = 10

# Listener type: can be sync or async function
SyncEventListener = Callable[["SyncEvent"], Any] | Callable[["SyncEvent"], Awaitable[Any]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Event Data Class
# =============================================================================


@dataclass(frozen=True)
class SyncEvent:
    """
    A single typed, prioritized message broadcast through the engine.

    Attributes:
        id: Unique event ID for the engine's lifetime
        type: Event type
        source: Publisher identifier
        payload: Opaque event payload
        priority: Delivery priority
        timestamp: Monotonic emission instant (seconds)
        emitted_at: Wall-clock emission time (UTC)
    """

    id: str
    type: EventType
    source: str
    payload: Any = None
    priority: Priority = Priority.MEDIUM
    timestamp: float = 0.0
    emitted_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "type": self.type.value,
            "source": self.source,
            "payload": self.payload,
            "priority": self.priority.name.lower(),
            "timestamp": self.timestamp,
            "emitted_at": self.emitted_at.isoformat(),
        }


@dataclass
class ComponentRegistration:
    """
    A subscriber's declaration of which event types it wants.

    Attributes:
        component_id: Unique registry key
        component_type: Kind of UI component
        event_types: Event types delivered to the listener
        listener: Callback invoked with each matching SyncEvent
        priority: Delivery order weight in [0, 10], higher first
        is_active: Inactive registrations receive nothing
        last_update: Time of the last successful delivery
        update_count: Number of deliveries attempted
    """

    component_id: str
    component_type: ComponentType | str
    event_types: Iterable[EventType | str]
    listener: SyncEventListener
    priority: int = 5
    is_active: bool = True
    last_update: datetime = field(default_factory=utcnow)
    update_count: int = 0

    def __post_init__(self):
        if not isinstance(self.component_id, str) or not self.component_id.strip():
            raise ConfigurationError("component_id is required")
        try:
            self.component_type = ComponentType(self.component_type)
        except ValueError:
            raise ConfigurationError(
                f"Unknown component type: {self.component_type!r}"
            ) from None
        if isinstance(self.event_types, (str, EventType)):
            self.event_types = [self.event_types]
        self.event_types = frozenset(EventType.coerce(t) for t in self.event_types)
        if isinstance(self.priority, bool) or not isinstance(self.priority, int):
            raise ConfigurationError(f"priority must be an int, got {self.priority!r}")
        if not MIN_COMPONENT_PRIORITY <= self.priority <= MAX_COMPONENT_PRIORITY:
            raise ConfigurationError(
                f"priority must be between {MIN_COMPONENT_PRIORITY} and "
                f"{MAX_COMPONENT_PRIORITY}, got {self.priority}"
            )
        if not callable(self.listener):
            raise ConfigurationError("listener must be callable")

    def subscribes_to(self, event_type: EventType) -> bool:
        return self.is_active and event_type in self.event_types

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (listener omitted)."""
        return {
            "component_id": self.component_id,
            "component_type": self.component_type.value,
            "event_types": sorted(t.value for t in self.event_types),
            "priority": self.priority,
            "is_active": self.is_active,
            "last_update": self.last_update.isoformat(),
            "update_count": self.update_count,
        }
