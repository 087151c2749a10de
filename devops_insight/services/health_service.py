"""Health-check and log-processing pipeline orchestration."""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from devops_insight.clients.log_source import LogSource
from devops_insight.core.config import Settings, get_settings
from devops_insight.core.error_handling import ConfigurationError, PersistenceError
from devops_insight.core.logging import bind_project_context, get_logger
from devops_insight.monitoring.metrics import get_metrics_collector
from devops_insight.processing.aggregator import Aggregator
from devops_insight.processing.enrichment import EnrichmentPool
from devops_insight.processing.freshness import FreshnessDecision, FreshnessGate
from devops_insight.processing.merger import merge_summaries
from devops_insight.processing.normalizer import SignalNormalizer
from devops_insight.processing.predictor import Predictor, overall_severity
from devops_insight.processing.report import HealthReportAssembler
from devops_insight.processing.risk_assessor import RiskAssessor
from devops_insight.schemas.health_schemas import HealthReport, PredictionResult
from devops_insight.schemas.log_schemas import (
    EmbeddingRecord,
    LogProcessingResult,
    ProcessingStats,
    Summary,
)
from devops_insight.schemas.project_schemas import ProjectConfig
from devops_insight.services.embedding_service import EmbeddingService
from devops_insight.services.metric_service import MetricService
from devops_insight.services.prediction_service import PredictionService
from devops_insight.services.project_service import ProjectService
from devops_insight.services.summary_service import SummaryService

logger = get_logger(__name__)

Clock = Callable[[], int]
T = TypeVar("T")


def epoch_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


async def _timed(awaitable: Awaitable[T]) -> Tuple[T, int]:
    """Await and report the elapsed milliseconds of that await alone."""
    started = time.perf_counter()
    result = await awaitable
    return result, _elapsed_ms(started)


@dataclass
class IngestionOutcome:
    """Summaries produced by one STALE-branch ingestion."""

    window_start_ms: int
    raw_events: int = 0
    new_summaries: List[Summary] = field(default_factory=list)
    merged_summaries: List[Summary] = field(default_factory=list)
    staged_summaries: List[Summary] = field(default_factory=list)
    fetch_ms: int = 0
    processing_ms: int = 0


class HealthCheckService:
    """
    Runs the predictive health pipeline for one project.

    The entry point has two explicit branches. FRESH reuses summaries
    persisted within the freshness window. STALE fetches new log events
    from the resume point, aggregates and merges them with the persisted
    set. Both branches then assess risk, predict, persist and assemble.
    Only ConfigurationError propagates to the caller.
    """

    def __init__(
        self,
        db: AsyncSession,
        log_source: LogSource,
        enrichment_pool: EnrichmentPool,
        risk_assessor: RiskAssessor,
        settings: Optional[Settings] = None,
        clock: Clock = epoch_ms,
    ) -> None:
        """Initialize pipeline with its collaborators."""
        self.settings = settings or get_settings()
        self.clock = clock
        self.log_source = log_source
        self.enrichment_pool = enrichment_pool
        self.risk_assessor = risk_assessor

        self.projects = ProjectService(db)
        self.summaries = SummaryService(db)
        self.embeddings = EmbeddingService(db)
        self.metrics = MetricService(db)
        self.predictions = PredictionService(db)

        self.normalizer = SignalNormalizer()
        self.aggregator = Aggregator(
            normalizer=self.normalizer,
            min_span_ms=self.settings.trend_min_span_seconds * 1000,
            sample_max_chars=self.settings.sample_message_max_chars,
        )
        self.gate = FreshnessGate(
            self.summaries,
            window_ms=self.settings.freshness_window_ms,
            initial_lookback_ms=self.settings.initial_lookback_ms,
        )
        self.predictor = Predictor()

    async def _require_project(self, project_id: str, operation: str) -> ProjectConfig:
        bind_project_context(project_id, operation)
        try:
            return await self.projects.require_enabled(project_id)
        except ConfigurationError as e:
            logger.warning("project_rejected", project_id=project_id, reason=e.reason)
            get_metrics_collector().record_health_check("rejected")
            raise

    async def perform_health_check(self, project_id: str) -> HealthReport:
        """
        Produce a predictive health report.

        Args:
            project_id: Project to check

        Returns:
            Assembled health report

        Raises:
            ConfigurationError: If the project is unknown or disabled
        """
        project = await self._require_project(project_id, "health_check")
        now_ms = self.clock()
        window_start = now_ms - self.settings.freshness_window_ms

        decision = await self.gate.evaluate(project_id, now_ms)
        if decision.is_fresh:
            summaries = decision.cached_summaries
            staged: List[Summary] = []
        else:
            outcome = await self._ingest(project, decision, now_ms)
            summaries = outcome.merged_summaries
            staged = outcome.staged_summaries

        metrics = await self.metrics.get_metrics(project_id, window_start, now_ms)
        known_embeddings = await self.embeddings.get_embeddings(project_id, window_start, now_ms)

        started = time.perf_counter()
        new_embeddings, assessment = await asyncio.gather(
            self.enrichment_pool.enrich(staged),
            self.risk_assessor.assess(summaries, known_embeddings, metrics),
        )
        get_metrics_collector().observe_stage("assessment", time.perf_counter() - started)

        prediction = self.predictor.predict(project_id, assessment, summaries, metrics, now_ms)

        await self._persist(
            project_id,
            staged,
            new_embeddings,
            prediction,
            watermark_ms=None if decision.is_fresh else now_ms,
        )

        assembler = HealthReportAssembler(region=project.aws_region or self.settings.aws_region)
        report = assembler.assemble(
            project_id,
            summaries,
            metrics,
            prediction,
            now_ms,
            from_cache=decision.is_fresh,
        )

        get_metrics_collector().record_health_check(decision.state.value.lower())
        logger.info(
            "health_check_completed",
            project_id=project_id,
            state=decision.state.value,
            summaries=len(summaries),
            risk_level=report.risk_level.value,
        )
        return report

    async def process_logs(self, project_id: str) -> LogProcessingResult:
        """
        Ingest new log events and summarize them.

        Args:
            project_id: Project to process

        Returns:
            Counts, top summaries, narrative and stage durations

        Raises:
            ConfigurationError: If the project is unknown or disabled
        """
        total_started = time.perf_counter()
        project = await self._require_project(project_id, "process_logs")
        now_ms = self.clock()
        stats = ProcessingStats()

        decision = await self.gate.evaluate(project_id, now_ms)
        if decision.is_fresh:
            summaries = decision.cached_summaries
            window_start = now_ms - self.settings.freshness_window_ms
            total_logs = sum(s.occurrences for s in summaries)
            counted = summaries
            new_embeddings: List[EmbeddingRecord] = []

            started = time.perf_counter()
            narrative = await self.risk_assessor.narrate(summaries)
            stats.ai_summarization_ms = _elapsed_ms(started)
        else:
            outcome = await self._ingest(project, decision, now_ms)
            summaries = outcome.merged_summaries
            window_start = outcome.window_start_ms
            total_logs = outcome.raw_events
            counted = outcome.new_summaries
            stats.fetch_ms = outcome.fetch_ms
            stats.processing_ms = outcome.processing_ms

            (new_embeddings, stats.embedding_ms), (narrative, stats.ai_summarization_ms) = (
                await asyncio.gather(
                    _timed(self.enrichment_pool.enrich(outcome.staged_summaries)),
                    _timed(self.risk_assessor.narrate(summaries)),
                )
            )

            started = time.perf_counter()
            await self._persist(
                project_id, outcome.staged_summaries, new_embeddings, None, watermark_ms=now_ms
            )
            stats.persistence_ms = _elapsed_ms(started)

        stats.total_ms = _elapsed_ms(total_started)
        top = sorted(summaries, key=lambda s: s.occurrences, reverse=True)[:10]

        result = LogProcessingResult(
            project_id=project_id,
            total_logs=total_logs,
            error_count=sum(s.occurrences for s in counted if s.severity == "ERROR"),
            warning_count=sum(s.occurrences for s in counted if s.severity == "WARN"),
            summaries_created=len(summaries),
            embeddings_created=len(new_embeddings),
            overall_severity=overall_severity(summaries),
            ai_summary=narrative,
            top_summaries=top,
            time_window={"start_ms": window_start, "end_ms": now_ms},
            stats=stats,
        )

        logger.info(
            "log_processing_completed",
            project_id=project_id,
            state=decision.state.value,
            total_logs=total_logs,
            summaries=len(summaries),
            total_ms=stats.total_ms,
        )
        return result

    async def _ingest(
        self, project: ProjectConfig, decision: FreshnessDecision, now_ms: int
    ) -> IngestionOutcome:
        """Fetch, filter, aggregate and merge new log signal (STALE branch)."""
        resume_from = decision.resume_from_ms if decision.resume_from_ms is not None else now_ms
        window_start = resume_from + 1 if decision.has_history else resume_from
        if project.last_processed_timestamp and project.last_processed_timestamp > window_start:
            window_start = min(project.last_processed_timestamp, now_ms)
        outcome = IngestionOutcome(window_start_ms=window_start)

        started = time.perf_counter()
        raw_events = await self.log_source.fetch_events(project, window_start, now_ms)
        outcome.fetch_ms = _elapsed_ms(started)
        outcome.raw_events = len(raw_events)
        get_metrics_collector().observe_stage("fetch", outcome.fetch_ms / 1000)

        started = time.perf_counter()
        filtered = self.normalizer.filter_events(raw_events)
        outcome.new_summaries = self.aggregator.aggregate(filtered, project.project_id)

        existing = await self.summaries.get_summaries(project.project_id, resume_from, now_ms)
        outcome.merged_summaries = merge_summaries(existing, outcome.new_summaries)
        outcome.staged_summaries = await self._stage_revisions(
            project.project_id, outcome.merged_summaries, outcome.new_summaries
        )
        staged_by_key = {s.key: s for s in outcome.staged_summaries}
        outcome.merged_summaries = [
            staged_by_key.get(s.key, s) for s in outcome.merged_summaries
        ]
        outcome.processing_ms = _elapsed_ms(started)
        get_metrics_collector().observe_stage("processing", outcome.processing_ms / 1000)

        get_metrics_collector().record_log_events(len(filtered))
        get_metrics_collector().record_summaries(len(outcome.new_summaries))
        logger.info(
            "ingestion_completed",
            project_id=project.project_id,
            raw_events=len(raw_events),
            filtered_events=len(filtered),
            new_summaries=len(outcome.new_summaries),
            merged_summaries=len(outcome.merged_summaries),
        )
        return outcome

    async def _stage_revisions(
        self, project_id: str, merged: Sequence[Summary], new: Sequence[Summary]
    ) -> List[Summary]:
        """Assign the next revision to every summary touched by new events."""
        changed_keys = {s.key for s in new}
        if not changed_keys:
            return []

        latest = await self.summaries.get_revisions(project_id, sorted(changed_keys))
        return [
            s.model_copy(update={"revision": latest.get(s.key, 0) + 1})
            for s in merged
            if s.key in changed_keys
        ]

    async def _persist(
        self,
        project_id: str,
        summaries: Sequence[Summary],
        embeddings: Sequence[EmbeddingRecord],
        prediction: Optional[PredictionResult],
        watermark_ms: Optional[int],
    ) -> None:
        """Write back results; failures are logged and never raised."""
        started = time.perf_counter()
        steps = [
            ("summaries", lambda: self.summaries.save_summaries(summaries)),
            ("embeddings", lambda: self.embeddings.save_embeddings(embeddings)),
        ]
        if prediction is not None:
            steps.append(("prediction", lambda: self.predictions.save_prediction(prediction)))
        if watermark_ms is not None:
            steps.append(
                ("watermark", lambda: self.projects.update_watermark(project_id, watermark_ms))
            )

        for name, step in steps:
            try:
                await step()
            except (PersistenceError, SQLAlchemyError) as e:
                logger.error("persistence_failed", project_id=project_id, step=name, error=str(e))
                get_metrics_collector().record_persistence_failure()

        get_metrics_collector().observe_stage("persistence", time.perf_counter() - started)
