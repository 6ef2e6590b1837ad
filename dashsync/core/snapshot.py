"""
Last-known payload per data category.

Late subscribers read the snapshot to catch up without waiting for the
next event.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from dashsync.core.types import EventType, utcnow

# event type -> (slot name, canonical payload key written by the typed helpers)
CATEGORY_SLOTS: dict[EventType, tuple[str, str]] = {
    EventType.ANALYTICS_UPDATED: ("analytics_data", "analytics_data"),
    EventType.SETTINGS_CHANGED: ("settings", "settings"),
    EventType.FILTER_APPLIED: ("filters", "filters"),
    EventType.SYSTEM_METRICS_UPDATED: ("system_metrics", "metrics"),
}


@dataclass(frozen=True)
class DataSnapshot:
    """Read-only copy of the cached category values."""

    analytics_data: Any = None
    settings: Any = None
    filters: Any = None
    system_metrics: Any = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "analytics_data": self.analytics_data,
            "settings": self.settings,
            "filters": self.filters,
            "system_metrics": self.system_metrics,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class DataSnapshotStore:
    """One slot per category, overwritten on every matching event."""

    def __init__(self) -> None:
        self._slots: dict[str, Any] = {}
        self._updated_at: datetime | None = None

    @staticmethod
    def category_for(event_type: EventType) -> str | None:
        slot = CATEGORY_SLOTS.get(event_type)
        return slot[0] if slot else None

    def apply(self, event_type: EventType, payload: Any) -> bool:
        """Fold an event payload into its slot. Returns False if unmapped."""
        slot = CATEGORY_SLOTS.get(event_type)
        if slot is None:
            return False
        name, key = slot
        if isinstance(payload, Mapping) and key in payload:
            payload = payload[key]
        self._slots[name] = copy.deepcopy(payload)
        self._updated_at = utcnow()
        return True

    @property
    def has_data(self) -> bool:
        return bool(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def snapshot(self) -> DataSnapshot | None:
        if not self._slots:
            return None
        return DataSnapshot(
            **copy.deepcopy(self._slots),
            updated_at=self._updated_at,
        )

    def clear(self) -> None:
        self._slots.clear()
        self._updated_at = None
