"""
dashsync: real-time synchronization engine for dashboard components.

Independently rendered UI components exchange typed events through an
in-process publish/subscribe bus with priority-ordered delivery, periodic
auto-refresh, per-subscriber failure isolation and live metrics.
"""

__version__ = "0.1.0"
