"""Business logic services."""

from devops_insight.services.embedding_service import EmbeddingService
from devops_insight.services.health_service import HealthCheckService
from devops_insight.services.metric_collector import MetricCollector
from devops_insight.services.metric_service import MetricService
from devops_insight.services.prediction_service import PredictionService
from devops_insight.services.project_service import ProjectService
from devops_insight.services.summary_service import SummaryService

__all__ = [
    "EmbeddingService",
    "HealthCheckService",
    "MetricCollector",
    "MetricService",
    "PredictionService",
    "ProjectService",
    "SummaryService",
]
