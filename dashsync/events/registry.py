"""
Keyed store of active component subscriptions.
"""

from __future__ import annotations

from collections.abc import Iterator

from dashsync.core.types import ComponentRegistration, EventType


class ComponentRegistry:
    """Maps component_id to its registration, preserving registration order.

    Re-adding an existing id replaces the entry and moves it to the end, so
    the replacement is ordered as a fresh registration.
    """

    def __init__(self) -> None:
        self._entries: dict[str, ComponentRegistration] = {}

    def add(self, registration: ComponentRegistration) -> bool:
        """Insert or replace a registration. Returns True if it replaced one."""
        replaced = self._entries.pop(registration.component_id, None) is not None
        self._entries[registration.component_id] = registration
        return replaced

    def remove(self, component_id: str) -> bool:
        return self._entries.pop(component_id, None) is not None

    def get(self, component_id: str) -> ComponentRegistration | None:
        return self._entries.get(component_id)

    def clear(self) -> None:
        self._entries.clear()

    def subscribers(self, event_type: EventType) -> list[ComponentRegistration]:
        """Active registrations for an event type, highest priority first.

        Ties keep registration order (sorted() is stable). The returned list
        is a new copy, safe to iterate while the registry changes.
        """
        matching = [r for r in self._entries.values() if r.subscribes_to(event_type)]
        return sorted(matching, key=lambda r: -r.priority)

    @property
    def active_count(self) -> int:
        return sum(1 for r in self._entries.values() if r.is_active)

    def __contains__(self, component_id: object) -> bool:
        return component_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ComponentRegistration]:
        return iter(list(self._entries.values()))
