from __future__ import annotations

import argparse
import json
import time
from collections.abc import Sequence
from typing import Any

from dashsync.adapters.component import (
    ComponentSync,
    analytics_sync,
    chart_sync,
    dashboard_sync,
    settings_sync,
)
from dashsync.container import SyncContext
from dashsync.events.bus import SyncEngine
from dashsync.logging_config import configure_from_context
from dashsync.monitoring.prometheus import build_prometheus_metrics


def _emit_scripted(engine: SyncEngine, index: int) -> str:
    # rotate through the typed helpers so every preset sees traffic
    step = index % 5
    if step == 0:
        return engine.emit_settings_change("cli", {"currency": "USD", "revision": index})
    if step == 1:
        return engine.emit_analytics_update(
            "cli", {"revenue": 1000 + index}, {"region": "APAC"}
        )
    if step == 2:
        return engine.emit_chart_interaction("cli", {"series": "revenue", "point": index})
    if step == 3:
        return engine.emit_filter_applied("cli", {"period": f"Q{index % 4 + 1}"})
    return engine.emit_data_change("cli", "demo_generated", {"batch": index})


def cmd_config(context: SyncContext) -> None:
    print(json.dumps(context.to_dict(), indent=2))


def cmd_simulate(
    context: SyncContext,
    events: int,
    refresh_ms: int | None,
    duration: float,
    fmt: str,
) -> None:
    if events < 0:
        raise ValueError("--events must be >= 0")

    with SyncEngine(context) as engine:
        components: list[ComponentSync] = [
            dashboard_sync(engine, "dashboard-main"),
            analytics_sync(engine, "analytics-main"),
            settings_sync(engine, "settings-main"),
            chart_sync(engine, "chart-main"),
        ]

        for i in range(events):
            _emit_scripted(engine, i)

        if refresh_ms is not None:
            engine.configure_auto_refresh(True, refresh_ms)
            time.sleep(duration)
            engine.configure_auto_refresh(False)

        metrics = engine.get_performance_metrics()

        if fmt == "prometheus":
            print(build_prometheus_metrics(metrics), end="")
            return

        report: dict[str, Any] = {
            "metrics": metrics.to_dict(),
            "components": {c.component_id: c.update_count for c in components},
        }
        print(json.dumps(report, indent=2))


def main(argv: Sequence[str] | None = None) -> None:
    p = argparse.ArgumentParser(prog="dashsync")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable DEBUG logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("config", help="Print the resolved configuration")

    sim = sub.add_parser("simulate", help="Run preset components against a scripted event mix")
    sim.add_argument("--events", type=int, default=20, help="Scripted events to emit (default: 20)")
    sim.add_argument("--refresh-ms", type=int, default=None, help="Auto-refresh interval while running")
    sim.add_argument("--duration", type=float, default=0.0, help="Seconds to keep auto-refresh running")
    sim.add_argument(
        "--format",
        choices=["json", "prometheus"],
        default="json",
        help="Output format (default: json)",
    )

    args = p.parse_args(argv)

    try:
        context = SyncContext.from_env()
        configure_from_context(context, verbose=args.verbose)

        if args.cmd == "config":
            cmd_config(context)
        elif args.cmd == "simulate":
            cmd_simulate(context, args.events, args.refresh_ms, args.duration, args.format)
    except Exception as e:
        # clean, script-friendly failure
        raise SystemExit(f"ERROR: {e}") from e


if __name__ == "__main__":
    main()
