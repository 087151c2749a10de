"""Tests for the persisted stores."""

import pytest

from devops_insight.core.error_handling import (
    PersistenceError,
    ProjectDisabledError,
    ProjectNotFoundError,
)
from devops_insight.schemas.health_schemas import PredictionResult, RiskLevel
from devops_insight.schemas.log_schemas import EmbeddingRecord, MetricSnapshot
from devops_insight.schemas.project_schemas import ProjectConfig
from devops_insight.services.embedding_service import EmbeddingService
from devops_insight.services.metric_service import MetricService
from devops_insight.services.prediction_service import PredictionService
from devops_insight.services.project_service import ProjectService
from devops_insight.services.summary_service import SummaryService

NOW_MS = 1_700_000_000_000
HOUR_MS = 60 * 60 * 1000


class TestSummaryService:
    async def test_latest_revision_wins(self, test_db, make_summary):
        service = SummaryService(test_db)
        await service.save_summaries(
            [
                make_summary(occurrences=3, revision=1),
                make_summary(occurrences=8, revision=2),
            ]
        )

        summaries = await service.get_summaries("proj-1", NOW_MS - HOUR_MS, NOW_MS)

        assert len(summaries) == 1
        assert summaries[0].occurrences == 8
        assert summaries[0].revision == 2

    async def test_window_filters_on_latest_last_seen(self, test_db, make_summary):
        service = SummaryService(test_db)
        await service.save_summaries(
            [
                make_summary(
                    first_seen_ms=NOW_MS - 6 * HOUR_MS,
                    last_seen_ms=NOW_MS - 5 * HOUR_MS,
                    revision=1,
                ),
                make_summary(component="user-service", revision=1),
                make_summary(project_id="proj-2", revision=1),
            ]
        )

        summaries = await service.get_summaries("proj-1", NOW_MS - 2 * HOUR_MS, NOW_MS)

        assert [s.component for s in summaries] == ["user-service"]

    async def test_revisions_and_watermark(self, test_db, make_summary):
        service = SummaryService(test_db)
        assert await service.get_last_seen_watermark("proj-1") is None
        assert await service.get_revisions("proj-1", []) == {}

        await service.save_summaries(
            [
                make_summary(revision=1),
                make_summary(revision=2, last_seen_ms=NOW_MS - 60_000),
                make_summary(component="user-service", revision=1),
            ]
        )

        revisions = await service.get_revisions(
            "proj-1",
            ["order-service#SQLException#ERROR", "user-service#SQLException#ERROR", "missing"],
        )
        assert revisions == {
            "order-service#SQLException#ERROR": 2,
            "user-service#SQLException#ERROR": 1,
        }
        assert await service.get_last_seen_watermark("proj-1") == NOW_MS - 60_000

    async def test_unrevisioned_summary_is_rejected(self, test_db, make_summary):
        with pytest.raises(PersistenceError):
            await SummaryService(test_db).save_summaries([make_summary()])

    async def test_duplicate_revision_raises_persistence_error(self, test_db, make_summary):
        service = SummaryService(test_db)
        await service.save_summaries([make_summary(revision=1)])

        with pytest.raises(PersistenceError):
            await service.save_summaries([make_summary(revision=1)])


class TestEmbeddingAndMetricServices:
    async def test_embeddings_round_trip_by_window(self, test_db):
        service = EmbeddingService(test_db)
        record = EmbeddingRecord(
            project_id="proj-1",
            embedding_id="order-service#SQLException#ERROR@r1#emb",
            summary_id="order-service#SQLException#ERROR@r1",
            vector=[0.1, 0.2],
            error_signature="SQLException",
            severity="ERROR",
            occurrences=4,
            condensed_text="Service: order-service",
            last_seen_ms=NOW_MS - HOUR_MS,
        )

        assert await service.save_embeddings([record]) == 1
        assert await service.save_embeddings([]) == 0

        assert await service.get_embeddings("proj-1", NOW_MS - 2 * HOUR_MS, NOW_MS) == [record]
        assert await service.get_embeddings("proj-1", NOW_MS - 30 * 60_000, NOW_MS) == []

    async def test_metrics_ordered_oldest_first(self, test_db):
        service = MetricService(test_db)
        snapshots = [
            MetricSnapshot(
                project_id="proj-1",
                timestamp_ms=NOW_MS - offset,
                component="i-0abc",
                metric_name="CPUUtilization",
                value=value,
                unit="Percent",
            )
            for offset, value in ((0, 50.0), (HOUR_MS, 70.0), (3 * HOUR_MS, 10.0))
        ]
        await service.save_metrics(snapshots)

        stored = await service.get_metrics("proj-1", NOW_MS - 2 * HOUR_MS, NOW_MS)

        assert [s.value for s in stored] == [70.0, 50.0]


class TestPredictionService:
    async def test_history_newest_first_and_limited(self, test_db):
        service = PredictionService(test_db)
        for i, level in enumerate((RiskLevel.LOW, RiskLevel.HIGH, RiskLevel.CRITICAL)):
            await service.save_prediction(
                PredictionResult(
                    project_id="proj-1",
                    timestamp_ms=NOW_MS + i,
                    risk_level=level,
                    summary="s",
                    root_cause="r",
                    recommendations=["a", "b", "c"],
                    timeframe="within 4-6 hours",
                    failure_likelihood=0.5,
                )
            )

        history = await service.get_prediction_history("proj-1", limit=2)

        assert [p.risk_level for p in history] == [RiskLevel.CRITICAL, RiskLevel.HIGH]
        assert history[0].recommendations == ["a", "b", "c"]


class TestProjectService:
    async def test_require_enabled(self, test_db, project):
        service = ProjectService(test_db)

        config = await service.require_enabled("proj-1")
        assert config.log_group_names == ["/ecs/order-service"]

        with pytest.raises(ProjectNotFoundError):
            await service.require_enabled("nope")

        await service.save_configuration(ProjectConfig(project_id="off", enabled=False))
        with pytest.raises(ProjectDisabledError) as exc_info:
            await service.require_enabled("off")
        assert exc_info.value.reason == "Project is disabled"

    async def test_update_watermark(self, test_db, project):
        service = ProjectService(test_db)

        await service.update_watermark("proj-1", NOW_MS)

        assert (await service.get_configuration("proj-1")).last_processed_timestamp == NOW_MS
        with pytest.raises(PersistenceError):
            await service.update_watermark("nope", NOW_MS)
