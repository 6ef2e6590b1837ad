"""Error types for the synchronization engine."""

from __future__ import annotations

from typing import Any


class SyncError(Exception):
    """Base error for synchronization engine failures."""


class ConfigurationError(SyncError, ValueError):
    """Raised when an operation receives invalid arguments or settings."""


class ListenerError(SyncError):
    """A subscriber's listener raised or rejected during dispatch.

    Built at the per-listener boundary for logging and counting. It is
    never propagated to the emitter.
    """

    def __init__(self, component_id: str, event_type: Any, cause: BaseException):
        self.component_id = component_id
        self.event_type = event_type
        self.cause = cause
        name = getattr(event_type, "value", event_type)
        super().__init__(
            f"Listener for '{component_id}' failed on {name}: {cause!r}"
        )
