"""Tests for the HTTP API."""

import time

import httpx
import pytest

from devops_insight.api.dependencies import (
    get_enrichment_pool,
    get_log_source,
    get_metric_collector,
    get_risk_assessor,
)
from devops_insight.clients.ollama import get_ollama_client
from devops_insight.db.session import get_db
from devops_insight.main import app
from devops_insight.processing.enrichment import EnrichmentPool
from devops_insight.processing.risk_assessor import RiskAssessor
from devops_insight.schemas.log_schemas import RawLogEvent
from devops_insight.schemas.project_schemas import ProjectConfig
from devops_insight.services.project_service import ProjectService


class UnreachableOllama:
    async def is_available(self):
        return False


class RecordingCollector:
    def __init__(self):
        self.collected = []

    async def collect(self, project_id):
        self.collected.append(project_id)
        return 0


@pytest.fixture
def collector() -> RecordingCollector:
    return RecordingCollector()


@pytest.fixture
async def client(
    test_db, log_source, fake_embedder, generator_factory, valid_assessment, collector
):
    """Create test client with pipeline overrides."""
    now_ms = int(time.time() * 1000)
    log_source.events = [
        RawLogEvent(
            source="ecs/order-service/abc",
            timestamp_ms=now_ms - 60_000,
            message="ERROR SQLException: deadlock detected",
        )
    ]

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_log_source] = lambda: log_source
    app.dependency_overrides[get_enrichment_pool] = lambda: EnrichmentPool(fake_embedder)
    app.dependency_overrides[get_risk_assessor] = lambda: RiskAssessor(
        generator_factory(response=valid_assessment)
    )
    app.dependency_overrides[get_metric_collector] = lambda: collector
    app.dependency_overrides[get_ollama_client] = lambda: UnreachableOllama()

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


async def test_root(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "running"


async def test_liveness(client):
    response = await client.get("/health/")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_readiness_reports_generation_service(client):
    response = await client.get("/health/ready")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ready",
        "database": "connected",
        "generation_service": "unavailable",
    }


async def test_health_check_report(client, project, collector):
    response = await client.get("/api/v1/projects/proj-1/health-check")

    assert response.status_code == 200
    body = response.json()
    assert body["project_id"] == "proj-1"
    assert body["risk_level"] == "HIGH"
    assert body["from_cache"] is False
    assert body["top_failing_components"][0]["name"] == "order-service"
    assert collector.collected == ["proj-1"]


async def test_unknown_project_is_404(client, log_source):
    response = await client.get("/api/v1/projects/missing/health-check")

    assert response.status_code == 404
    body = response.json()
    assert body["status_code"] == 404
    assert body["message"] == "Project not found"
    assert log_source.calls == []


async def test_disabled_project_is_400(client, test_db):
    await ProjectService(test_db).save_configuration(
        ProjectConfig(project_id="paused", enabled=False)
    )

    response = await client.post("/api/v1/projects/paused/logs/process")

    assert response.status_code == 400
    assert response.json()["message"] == "Project is disabled"


async def test_process_logs(client, project):
    response = await client.post("/api/v1/projects/proj-1/logs/process")

    assert response.status_code == 200
    body = response.json()
    assert body["total_logs"] == 1
    assert body["summaries_created"] == 1
    assert body["top_summaries"][0]["error_signature"] == "SQLException"


async def test_prediction_history(client, project):
    await client.get("/api/v1/projects/proj-1/health-check")
    await client.get("/api/v1/projects/proj-1/health-check")

    response = await client.get("/api/v1/projects/proj-1/predictions", params={"limit": 1})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Retrieved 1 predictions"
    assert len(body["data"]) == 1
    assert body["data"][0]["risk_level"] == "HIGH"


async def test_metrics_endpoint(client):
    response = await client.get("/metrics")

    assert response.status_code == 200
    assert "health_checks_total" in response.text
