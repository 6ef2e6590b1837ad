"""Component-side bindings to the sync engine."""

from dashsync.adapters.component import (
    ComponentSync,
    analytics_sync,
    chart_sync,
    dashboard_sync,
    settings_sync,
)

__all__ = [
    "ComponentSync",
    "analytics_sync",
    "chart_sync",
    "dashboard_sync",
    "settings_sync",
]
