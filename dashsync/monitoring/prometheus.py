"""
Prometheus metrics exporter.
"""

from __future__ import annotations

from typing import Any

from dashsync.monitoring.performance import SyncPerformanceMetrics

# (metric name, metrics key, type, help)
_METRICS: list[tuple[str, str, str, str]] = [
    ("dashsync_events_total", "total_events", "counter", "Events dispatched."),
    ("dashsync_errors_total", "errors_count", "counter", "Listener failures caught."),
    ("dashsync_listeners", "total_listeners", "gauge", "Registered components."),
    ("dashsync_components_listening", "components_listening", "gauge", "Active components."),
    (
        "dashsync_average_processing_ms",
        "average_processing_time",
        "gauge",
        "Running mean dispatch time in milliseconds.",
    ),
    ("dashsync_memory_usage_percent", "memory_usage", "gauge", "Estimated memory load."),
    (
        "dashsync_data_refresh_rate",
        "data_refresh_rate",
        "gauge",
        "Events per second over the trailing window.",
    ),
]


def _line(metric: str, value: float, labels: dict[str, str] | None = None) -> str:
    if labels:
        parts = [f'{k}="{v}"' for k, v in labels.items()]
        label_str = "{" + ",".join(parts) + "}"
    else:
        label_str = ""
    return f"{metric}{label_str} {value}"


def build_prometheus_metrics(
    metrics: SyncPerformanceMetrics | dict[str, Any],
    labels: dict[str, str] | None = None,
) -> str:
    if isinstance(metrics, SyncPerformanceMetrics):
        metrics = metrics.to_dict()

    lines: list[str] = []
    for name, key, kind, help_text in _METRICS:
        lines.append(f"# HELP {name} {help_text}")
        lines.append(f"# TYPE {name} {kind}")
        if metrics.get(key) is not None:
            lines.append(_line(name, float(metrics[key]), labels))

    return "\n".join(lines) + "\n"
