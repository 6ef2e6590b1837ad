"""
Monitoring module for dashsync.

Provides engine performance metrics and their Prometheus text export.
"""

from dashsync.monitoring.performance import PerformanceMonitor, SyncPerformanceMetrics
from dashsync.monitoring.prometheus import build_prometheus_metrics

__all__ = ["PerformanceMonitor", "SyncPerformanceMetrics", "build_prometheus_metrics"]
