"""Monitoring and metrics."""

from devops_insight.monitoring.metrics import MetricsCollector, get_metrics_collector

__all__ = ["MetricsCollector", "get_metrics_collector"]
