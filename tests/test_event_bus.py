"""
Tests for the sync engine's registration, dispatch and lifecycle.
"""

from __future__ import annotations

import asyncio

import pytest

from dashsync.core.types import ComponentRegistration, EventType, Priority
from dashsync.errors import ConfigurationError
from dashsync.events.bus import EngineState, SyncEngine


def _ids(calls):
    return [component_id for component_id, _ in calls]


def test_matching_listener_called_once_and_others_not(engine, register, calls):
    register("a", [EventType.FILTER_APPLIED])
    register("b", [EventType.FILTER_APPLIED, EventType.DATA_GENERATED])
    register("c", [EventType.SETTINGS_CHANGED])

    engine.emit_event(EventType.FILTER_APPLIED, "src", {"filters": {}})

    assert sorted(_ids(calls)) == ["a", "b"]


def test_delivery_order_priority_then_registration(engine, register, calls):
    register("A", [EventType.DATA_GENERATED], priority=5)
    register("B", [EventType.DATA_GENERATED], priority=9)
    register("C", [EventType.DATA_GENERATED], priority=5)

    engine.emit_event(EventType.DATA_GENERATED, "src")

    assert _ids(calls) == ["B", "A", "C"]


def test_failing_listener_does_not_stop_delivery(engine, register, calls):
    def boom(event):
        raise RuntimeError("listener exploded")

    register("A", [EventType.CHART_INTERACTION], listener=boom)
    register("B", [EventType.CHART_INTERACTION])
    before = engine.get_performance_metrics().errors_count

    engine.emit_event(EventType.CHART_INTERACTION, "src", {})

    metrics = engine.get_performance_metrics()
    assert _ids(calls) == ["B"]
    assert metrics.errors_count == before + 1
    assert metrics.last_error_time is not None


def test_unregister_is_idempotent(engine, register):
    register("a", [EventType.DATA_GENERATED])
    register("b", [EventType.DATA_GENERATED])
    assert engine.get_performance_metrics().components_listening == 2

    engine.unregister_component("a")
    engine.unregister_component("a")

    assert engine.get_performance_metrics().components_listening == 1


def test_unregister_unknown_id_is_ignored(engine):
    engine.unregister_component("never-registered")
    assert engine.get_performance_metrics().components_listening == 0


def test_unregister_empty_id_raises(engine):
    with pytest.raises(ConfigurationError):
        engine.unregister_component("")


def test_reregister_replaces_without_duplicate_delivery(engine, register, calls):
    seen = []
    register("a", [EventType.DATA_GENERATED])
    register("a", [EventType.DATA_GENERATED], listener=lambda e: seen.append(e.id))

    event_id = engine.emit_event(EventType.DATA_GENERATED, "src")

    assert calls == []
    assert seen == [event_id]
    assert engine.get_performance_metrics().total_listeners == 1


def test_replacement_is_ordered_as_new_registration(engine, register, calls):
    register("a", [EventType.DATA_GENERATED])
    register("b", [EventType.DATA_GENERATED])
    register("a", [EventType.DATA_GENERATED])

    engine.emit_event(EventType.DATA_GENERATED, "src")

    assert _ids(calls) == ["b", "a"]


def test_caller_mutation_after_register_does_not_change_engine_state(engine, calls):
    registration = ComponentRegistration(
        component_id="a",
        component_type="analytics",
        event_types=[EventType.DATA_GENERATED],
        listener=lambda e: calls.append(("a", e)),
    )
    engine.register_component(registration)
    registration.is_active = False
    registration.priority = 0

    engine.emit_event(EventType.DATA_GENERATED, "src")

    (stored,) = engine.get_registered_components()
    assert len(calls) == 1
    assert stored.is_active is True
    assert stored.priority == 5
    assert stored.update_count == 1
    assert registration.update_count == 0
    assert engine.get_performance_metrics().components_listening == 1


def test_inactive_registration_is_reactivated_on_register(engine, calls):
    registration = ComponentRegistration(
        component_id="a",
        component_type="analytics",
        event_types=[EventType.DATA_GENERATED],
        listener=lambda e: calls.append(("a", e)),
        is_active=False,
    )
    engine.register_component(registration)

    engine.emit_event(EventType.DATA_GENERATED, "src")

    assert _ids(calls) == ["a"]
    assert engine.get_performance_metrics().components_listening == 1


def test_dispose_clears_listeners_and_later_emit_is_noop(engine, register, calls):
    register("a", [EventType.DATA_GENERATED])
    register("b", [EventType.SETTINGS_CHANGED])

    engine.dispose()
    event_id = engine.emit_event(EventType.DATA_GENERATED, "src")

    assert event_id
    assert calls == []
    assert engine.state is EngineState.DISPOSED
    assert engine.get_performance_metrics().components_listening == 0


def test_calls_after_dispose_are_noops(engine, calls):
    engine.dispose()
    engine.dispose()

    engine.register_component(
        ComponentRegistration(
            component_id="late",
            component_type="charts",
            event_types=[EventType.DATA_GENERATED],
            listener=lambda e: calls.append(("late", e)),
        )
    )
    engine.unregister_component("late")
    engine.configure_auto_refresh(True, 1000)
    engine.emit_data_change("src", "after_dispose")

    assert calls == []
    assert engine.get_registered_components() == []
    assert not engine.auto_refresh.enabled


def test_end_to_end_chart_interaction(engine, register, calls):
    register("dash", [EventType.DATA_GENERATED], priority=10)
    register("chart", [EventType.CHART_INTERACTION], priority=5)
    before = engine.get_performance_metrics().total_events

    engine.emit_chart_interaction("chart-src", {"x": 1})

    assert _ids(calls) == ["chart"]
    assert calls[0][1].payload["x"] == 1
    assert engine.get_performance_metrics().total_events == before + 1


def test_state_transitions(engine, register):
    assert engine.state is EngineState.UNINITIALIZED
    register("a", [EventType.DATA_GENERATED])
    assert engine.state is EngineState.ACTIVE
    engine.dispose()
    assert engine.state is EngineState.DISPOSED


def test_first_emit_activates_engine(engine):
    engine.emit_event(EventType.DATA_GENERATED, "src")
    assert engine.state is EngineState.ACTIVE


def test_event_ids_unique_and_timestamps_non_decreasing(engine, register, calls, timers):
    register("a", [EventType.DATA_GENERATED])

    for i in range(5):
        engine.emit_event(EventType.DATA_GENERATED, "src", {"i": i})
        timers.advance(0.5 if i % 2 else 0)

    events = [event for _, event in calls]
    assert len({e.id for e in events}) == 5
    stamps = [e.timestamp for e in events]
    assert stamps == sorted(stamps)


def test_default_priority_follows_policy(engine, register, calls):
    register("a", [EventType.ERROR_OCCURRED, EventType.DATA_GENERATED])

    engine.emit_event("ERROR_OCCURRED", "src")
    engine.emit_event(EventType.DATA_GENERATED, "src", priority="high")

    assert calls[0][1].priority is Priority.CRITICAL
    assert calls[1][1].priority is Priority.HIGH


def test_unknown_event_type_raises(engine):
    with pytest.raises(ConfigurationError):
        engine.emit_event("NOT_A_TYPE", "src")


def test_invalid_registration_raises():
    with pytest.raises(ConfigurationError):
        ComponentRegistration(
            component_id="",
            component_type="dashboard",
            event_types=[EventType.DATA_GENERATED],
            listener=lambda e: None,
        )
    with pytest.raises(ConfigurationError):
        ComponentRegistration(
            component_id="a",
            component_type="dashboard",
            event_types=[EventType.DATA_GENERATED],
            listener=lambda e: None,
            priority=11,
        )


def test_register_rejects_non_registration(engine):
    with pytest.raises(ConfigurationError):
        engine.register_component({"component_id": "a"})


def test_update_count_tracks_deliveries(engine, register):
    register("a", [EventType.DATA_GENERATED])

    engine.emit_event(EventType.DATA_GENERATED, "src")
    engine.emit_event(EventType.DATA_GENERATED, "src")

    (registration,) = engine.get_registered_components()
    assert registration.update_count == 2


# -----------------------------------------------------------------------------
# Reentrancy
# -----------------------------------------------------------------------------


def test_reentrant_emit_is_dispatched_after_current_dispatch(engine, register, calls):
    def first(event):
        calls.append(("first", event))
        engine.emit_filter_applied("first", {"region": "EMEA"})

    register("first", [EventType.SETTINGS_CHANGED], priority=9, listener=first)
    register("second", [EventType.SETTINGS_CHANGED], priority=1)
    register("filters", [EventType.FILTER_APPLIED])

    engine.emit_settings_change("src", {"theme": "dark"})

    assert _ids(calls) == ["first", "second", "filters"]
    assert engine.get_performance_metrics().total_events == 2


def test_reentrant_events_dispatch_by_priority(engine, register, calls):
    def spawner(event):
        engine.emit_event(EventType.DATA_GENERATED, "spawner")
        engine.emit_error("spawner", "bad things")

    register("spawner", [EventType.SETTINGS_CHANGED], listener=spawner)
    register("sink", [EventType.DATA_GENERATED, EventType.ERROR_OCCURRED])

    engine.emit_settings_change("src", {})

    assert [event.type for _, event in calls] == [
        EventType.ERROR_OCCURRED,
        EventType.DATA_GENERATED,
    ]


def test_unregister_during_dispatch_uses_subscriber_snapshot(engine, register, calls):
    def remover(event):
        calls.append(("remover", event))
        engine.unregister_component("victim")

    register("remover", [EventType.DATA_GENERATED], priority=9, listener=remover)
    register("victim", [EventType.DATA_GENERATED], priority=1)

    engine.emit_event(EventType.DATA_GENERATED, "src")
    engine.emit_event(EventType.DATA_GENERATED, "src")

    assert _ids(calls) == ["remover", "victim", "remover"]


def test_dispose_during_dispatch_stops_delivery(engine, register, calls):
    def disposer(event):
        calls.append(("disposer", event))
        engine.emit_event(EventType.DATA_GENERATED, "disposer")
        engine.dispose()

    register("disposer", [EventType.SETTINGS_CHANGED], priority=9, listener=disposer)
    register("after", [EventType.SETTINGS_CHANGED, EventType.DATA_GENERATED], priority=1)

    engine.emit_settings_change("src", {})

    assert _ids(calls) == ["disposer"]


# -----------------------------------------------------------------------------
# Async listeners
# -----------------------------------------------------------------------------


def test_async_listener_runs_without_loop(engine, register):
    seen = []

    async def listener(event):
        await asyncio.sleep(0)
        seen.append(event.type)

    register("a", [EventType.PERSONA_CHANGED], listener=listener)
    engine.emit_persona_change("src", {"name": "cfo"})

    assert seen == [EventType.PERSONA_CHANGED]


def test_async_listener_failure_is_counted(engine, register, calls):
    async def boom(event):
        raise ValueError("async failure")

    register("a", [EventType.FILTER_APPLIED], priority=9, listener=boom)
    register("b", [EventType.FILTER_APPLIED], priority=1)

    engine.emit_filter_applied("src", {"q": 1})

    assert _ids(calls) == ["b"]
    assert engine.get_performance_metrics().errors_count == 1


def test_async_listener_failure_inside_running_loop_is_counted(engine, register):
    async def boom(event):
        raise ValueError("async failure")

    register("a", [EventType.FILTER_APPLIED], listener=boom)

    async def scenario():
        engine.emit_filter_applied("src", {})
        assert len(engine._listener_tasks) == 1
        for _ in range(5):
            await asyncio.sleep(0)
        assert engine._listener_tasks == set()

    asyncio.run(scenario())

    assert engine.get_performance_metrics().errors_count == 1


def test_engine_context_manager_disposes():
    with SyncEngine() as engine:
        assert engine.state is EngineState.UNINITIALIZED
    assert engine.state is EngineState.DISPOSED
