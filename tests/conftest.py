"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import os

import pytest

from dashsync.container import reset_engine
from dashsync.core.types import ComponentRegistration, ComponentType
from dashsync.events.bus import SyncEngine


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "threaded: mark test as using real timer threads")


def pytest_collection_modifyitems(config, items):
    """Skip threaded tests when DASHSYNC_SKIP_THREADED=1."""
    if os.environ.get("DASHSYNC_SKIP_THREADED") not in ("1", "true", "True"):
        return
    skip = pytest.mark.skip(reason="DASHSYNC_SKIP_THREADED is set")
    for item in items:
        if "threaded" in item.keywords:
            item.add_marker(skip)


class _ManualTimer:
    def __init__(self, due: float, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class ManualTimers:
    """Timer factory driven by a manually advanced clock (seconds)."""

    def __init__(self):
        self.now = 0.0
        self.created: list[_ManualTimer] = []

    def __call__(self, delay, callback):
        timer = _ManualTimer(self.now + delay, callback)
        self.created.append(timer)
        return timer

    def clock(self) -> float:
        return self.now

    @property
    def pending(self) -> list[_ManualTimer]:
        return [t for t in self.created if not t.cancelled and not t.fired]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [t for t in self.pending if t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.now = timer.due
            timer.fired = True
            timer.callback()
        self.now = target


@pytest.fixture
def timers():
    return ManualTimers()


@pytest.fixture
def engine(timers):
    eng = SyncEngine(timer_factory=timers, clock=timers.clock)
    yield eng
    eng.dispose()


@pytest.fixture
def calls():
    """Ordered (component_id, event) deliveries recorded by default listeners."""
    return []


@pytest.fixture
def register(engine, calls):
    """Register a component whose default listener appends to ``calls``."""

    def _register(
        component_id,
        event_types,
        priority=5,
        listener=None,
        component_type=ComponentType.DASHBOARD,
    ):
        if listener is None:

            def listener(event):
                calls.append((component_id, event))

        engine.register_component(
            ComponentRegistration(
                component_id=component_id,
                component_type=component_type,
                event_types=event_types,
                listener=listener,
                priority=priority,
            )
        )
        return component_id

    return _register


@pytest.fixture(autouse=True)
def _reset_global_engine():
    yield
    reset_engine()
