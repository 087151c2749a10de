"""Prometheus metrics collection."""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

from devops_insight.core.logging import get_logger

logger = get_logger(__name__)


class MetricsCollector:
    """Collects and exposes Prometheus metrics."""

    def __init__(self) -> None:
        """Initialize metrics collectors."""
        # Pipeline metrics
        self.health_checks_total = Counter(
            "health_checks_total",
            "Total health checks by outcome",
            ["outcome"],
        )

        self.log_events_ingested_total = Counter(
            "log_events_ingested_total", "Total actionable log events ingested"
        )

        self.summaries_produced_total = Counter(
            "summaries_produced_total", "Total summaries produced by aggregation"
        )

        self.pipeline_stage_duration_seconds = Histogram(
            "pipeline_stage_duration_seconds",
            "Time spent in each pipeline stage",
            ["stage"],
            buckets=[0.01, 0.1, 0.5, 1.0, 5.0, 30.0, 60.0, 120.0],
        )

        # Degradation metrics
        self.embedding_failures_total = Counter(
            "embedding_failures_total", "Total embedding calls that failed or timed out"
        )

        self.assessment_fallbacks_total = Counter(
            "assessment_fallbacks_total", "Total risk assessments replaced by the fallback"
        )

        self.upstream_failures_total = Counter(
            "upstream_failures_total",
            "Total log or metric source failures",
            ["source"],
        )

        self.persistence_failures_total = Counter(
            "persistence_failures_total", "Total failed write-backs to the store"
        )

        # API metrics
        self.api_requests_total = Counter(
            "api_requests_total",
            "Total API requests",
            ["method", "endpoint", "status_code"],
        )

        logger.info("metrics_collector_initialized")

    def record_health_check(self, outcome: str) -> None:
        """Record a health check outcome (fresh, stale or rejected)."""
        self.health_checks_total.labels(outcome=outcome).inc()

    def record_log_events(self, count: int) -> None:
        """Record ingested actionable events."""
        self.log_events_ingested_total.inc(count)

    def record_summaries(self, count: int) -> None:
        """Record produced summaries."""
        self.summaries_produced_total.inc(count)

    def observe_stage(self, stage: str, seconds: float) -> None:
        """Record the duration of a pipeline stage."""
        self.pipeline_stage_duration_seconds.labels(stage=stage).observe(seconds)

    def record_embedding_failure(self) -> None:
        """Record a failed embedding call."""
        self.embedding_failures_total.inc()

    def record_assessment_fallback(self) -> None:
        """Record a fallback risk assessment."""
        self.assessment_fallbacks_total.inc()

    def record_upstream_failure(self, source: str) -> None:
        """Record a log or metric source failure."""
        self.upstream_failures_total.labels(source=source).inc()

    def record_persistence_failure(self) -> None:
        """Record a failed write-back."""
        self.persistence_failures_total.inc()

    def record_api_request(self, method: str, endpoint: str, status_code: int) -> None:
        """Record API request."""
        self.api_requests_total.labels(
            method=method, endpoint=endpoint, status_code=status_code
        ).inc()

    def get_assessment_fallback_count(self) -> int:
        """Get assessment fallback count."""
        return int(self.assessment_fallbacks_total._value.get())

    def get_embedding_failure_count(self) -> int:
        """Get embedding failure count."""
        return int(self.embedding_failures_total._value.get())


# Global metrics collector instance
_metrics_collector: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Get or create global metrics collector."""
    global _metrics_collector

    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()

    return _metrics_collector


async def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
