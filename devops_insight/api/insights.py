"""Predictive health and log-processing endpoints."""

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from devops_insight.api.dependencies import get_health_check_service, get_metric_collector
from devops_insight.core.config import get_settings
from devops_insight.core.logging import get_logger
from devops_insight.db.session import get_db
from devops_insight.schemas.health_schemas import HealthReport
from devops_insight.schemas.log_schemas import APIResponse, LogProcessingResult
from devops_insight.services.health_service import HealthCheckService
from devops_insight.services.metric_collector import MetricCollector
from devops_insight.services.prediction_service import PredictionService

router = APIRouter()
logger = get_logger(__name__)


@router.get("/projects/{project_id}/health-check", response_model=HealthReport)
async def health_check(
    project_id: str,
    background_tasks: BackgroundTasks,
    service: HealthCheckService = Depends(get_health_check_service),
    collector: MetricCollector = Depends(get_metric_collector),
) -> HealthReport:
    """
    Run the predictive health pipeline for a project.

    Metrics for the next check are collected in the background after the
    response is sent.
    """
    report = await service.perform_health_check(project_id)

    if get_settings().enable_background_metrics:
        background_tasks.add_task(collector.collect, project_id)
        logger.debug("metric_collection_scheduled", project_id=project_id)

    return report


@router.post("/projects/{project_id}/logs/process", response_model=LogProcessingResult)
async def process_logs(
    project_id: str,
    service: HealthCheckService = Depends(get_health_check_service),
) -> LogProcessingResult:
    """Ingest new log events for a project and summarize them."""
    return await service.process_logs(project_id)


@router.get("/projects/{project_id}/predictions", response_model=APIResponse)
async def get_predictions(
    project_id: str,
    limit: int = Query(20, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """Get recent prediction history for a project."""
    history = await PredictionService(db).get_prediction_history(project_id, limit=limit)

    return APIResponse(
        data=[p.model_dump(mode="json") for p in history],
        status_code=200,
        message=f"Retrieved {len(history)} predictions",
    )
