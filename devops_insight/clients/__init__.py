"""Clients for external log, metric and generative services."""

from devops_insight.clients.log_source import CloudWatchLogSource, LogSource
from devops_insight.clients.metric_source import CloudWatchMetricSource, MetricSource
from devops_insight.clients.ollama import OllamaClient, get_ollama_client

__all__ = [
    "CloudWatchLogSource",
    "CloudWatchMetricSource",
    "LogSource",
    "MetricSource",
    "OllamaClient",
    "get_ollama_client",
]
