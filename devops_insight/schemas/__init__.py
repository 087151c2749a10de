"""Pydantic schemas for pipeline data and API payloads."""

from devops_insight.schemas.health_schemas import (
    ErrorTrend,
    FailingComponent,
    HealthReport,
    PredictedFailure,
    PredictionResult,
    Recommendation,
    RiskAssessment,
    RiskLevel,
    SlowEndpoint,
)
from devops_insight.schemas.log_schemas import (
    APIResponse,
    EmbeddingRecord,
    FilteredLogEvent,
    LogProcessingResult,
    MetricSnapshot,
    ProcessingStats,
    RawLogEvent,
    Summary,
    summary_key,
)
from devops_insight.schemas.project_schemas import ProjectConfig

__all__ = [
    "APIResponse",
    "EmbeddingRecord",
    "ErrorTrend",
    "FailingComponent",
    "FilteredLogEvent",
    "HealthReport",
    "LogProcessingResult",
    "MetricSnapshot",
    "PredictedFailure",
    "PredictionResult",
    "ProjectConfig",
    "ProcessingStats",
    "RawLogEvent",
    "Recommendation",
    "RiskAssessment",
    "RiskLevel",
    "SlowEndpoint",
    "Summary",
    "summary_key",
]
