"""Dependency providers for pipeline collaborators."""

from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from devops_insight.clients.log_source import CloudWatchLogSource, LogSource
from devops_insight.clients.metric_source import CloudWatchMetricSource
from devops_insight.clients.ollama import get_ollama_client
from devops_insight.core.config import get_settings
from devops_insight.db.session import get_db, get_session_factory
from devops_insight.processing.enrichment import EnrichmentPool
from devops_insight.processing.risk_assessor import RiskAssessor
from devops_insight.services.health_service import HealthCheckService
from devops_insight.services.metric_collector import MetricCollector

_log_source: Optional[LogSource] = None
_metric_collector: Optional[MetricCollector] = None


def get_log_source() -> LogSource:
    """Get or create the log source singleton."""
    global _log_source
    if _log_source is None:
        _log_source = CloudWatchLogSource()
    return _log_source


def get_enrichment_pool() -> EnrichmentPool:
    """Build an enrichment pool on the shared Ollama client."""
    settings = get_settings()
    return EnrichmentPool(
        get_ollama_client(),
        pool_size=settings.enrichment_pool_size,
        timeout_seconds=settings.embedding_timeout_seconds,
        sample_chars=settings.embedding_text_sample_chars,
    )


def get_risk_assessor() -> RiskAssessor:
    """Build a risk assessor on the shared Ollama client."""
    settings = get_settings()
    return RiskAssessor(
        get_ollama_client(),
        timeout_seconds=settings.risk_assessment_timeout_seconds,
        narrative_timeout_seconds=settings.narrative_timeout_seconds,
        window_hours=settings.freshness_window_hours,
    )


def get_metric_collector() -> MetricCollector:
    """Get or create the background metric collector singleton."""
    global _metric_collector
    if _metric_collector is None:
        _metric_collector = MetricCollector(get_session_factory(), CloudWatchMetricSource())
    return _metric_collector


def get_health_check_service(
    db: AsyncSession = Depends(get_db),
    log_source: LogSource = Depends(get_log_source),
    enrichment_pool: EnrichmentPool = Depends(get_enrichment_pool),
    risk_assessor: RiskAssessor = Depends(get_risk_assessor),
) -> HealthCheckService:
    """Wire the pipeline for one request."""
    return HealthCheckService(db, log_source, enrichment_pool, risk_assessor)
