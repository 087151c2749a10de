"""Database models."""

from devops_insight.models.base import Base, BaseModel
from devops_insight.models.log_embedding import LogEmbeddingRecord
from devops_insight.models.log_summary import LogSummaryRecord
from devops_insight.models.metric_snapshot import MetricSnapshotRecord
from devops_insight.models.prediction_result import PredictionResultRecord
from devops_insight.models.project_configuration import ProjectConfigurationRecord

__all__ = [
    "Base",
    "BaseModel",
    "LogSummaryRecord",
    "LogEmbeddingRecord",
    "MetricSnapshotRecord",
    "PredictionResultRecord",
    "ProjectConfigurationRecord",
]
