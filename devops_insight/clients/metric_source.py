"""Metric source collaborators backed by CloudWatch metrics."""

import asyncio
from datetime import datetime, timezone
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Protocol

import boto3
from botocore.config import Config

from devops_insight.core.config import Settings, get_settings
from devops_insight.core.error_handling import UpstreamUnavailableError
from devops_insight.core.logging import get_logger
from devops_insight.monitoring.metrics import get_metrics_collector
from devops_insight.schemas.log_schemas import MetricSnapshot
from devops_insight.schemas.project_schemas import ProjectConfig

logger = get_logger(__name__)

ClientFactory = Callable[[str], Any]


class MetricSource(Protocol):
    """Fetches metric datapoints for a project's components."""

    async def fetch_metrics(
        self, project: ProjectConfig, start_ms: int, end_ms: int
    ) -> List[MetricSnapshot]:
        ...


def _default_client_factory(region: str, timeout_seconds: float) -> Any:
    config = Config(
        connect_timeout=timeout_seconds,
        read_timeout=timeout_seconds,
        retries={"total_max_attempts": 1},
    )
    return boto3.client("cloudwatch", region_name=region, config=config)


def _to_datetime(epoch_ms: int) -> datetime:
    return datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)


class CloudWatchMetricSource:
    """Reads Average statistics for every (component, metric name) pair."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        """Initialize metric source."""
        self.settings = settings or get_settings()
        self.client_factory = client_factory or partial(
            _default_client_factory, timeout_seconds=self.settings.metric_fetch_timeout_seconds
        )
        self._clients: Dict[str, Any] = {}

    def _client(self, region: str) -> Any:
        if region not in self._clients:
            self._clients[region] = self.client_factory(region)
        return self._clients[region]

    async def fetch_metrics(
        self, project: ProjectConfig, start_ms: int, end_ms: int
    ) -> List[MetricSnapshot]:
        """
        Fetch datapoints for all configured components.

        Args:
            project: Project configuration
            start_ms: Window start (epoch ms)
            end_ms: Window end (epoch ms)

        Returns:
            Snapshots from every pair that could be read
        """
        client = self._client(project.aws_region or self.settings.aws_region)
        snapshots: List[MetricSnapshot] = []

        for component in project.components:
            for metric_name in self.settings.metric_names:
                try:
                    datapoints = await asyncio.wait_for(
                        asyncio.to_thread(
                            self._read_metric, client, component, metric_name, start_ms, end_ms
                        ),
                        timeout=self.settings.metric_fetch_timeout_seconds,
                    )
                except Exception as e:
                    error = UpstreamUnavailableError(
                        "cloudwatch_metrics", f"{component}/{metric_name}", e
                    )
                    logger.error(
                        "metric_fetch_failed",
                        project_id=project.project_id,
                        component=component,
                        metric_name=metric_name,
                        error=str(error),
                    )
                    get_metrics_collector().record_upstream_failure("metrics")
                    continue

                snapshots.extend(
                    MetricSnapshot(
                        project_id=project.project_id,
                        timestamp_ms=int(point["Timestamp"].timestamp() * 1000),
                        component=component,
                        metric_name=metric_name,
                        value=float(point["Average"]),
                        unit=point.get("Unit", "None"),
                    )
                    for point in datapoints
                )

        logger.info(
            "metrics_fetched",
            project_id=project.project_id,
            components=len(project.components),
            snapshots=len(snapshots),
        )
        return snapshots

    def _read_metric(
        self, client: Any, component: str, metric_name: str, start_ms: int, end_ms: int
    ) -> List[Dict[str, Any]]:
        response = client.get_metric_statistics(
            Namespace=self.settings.metric_namespace,
            MetricName=metric_name,
            Dimensions=[{"Name": "InstanceId", "Value": component}],
            StartTime=_to_datetime(start_ms),
            EndTime=_to_datetime(end_ms),
            Period=self.settings.metric_period_seconds,
            Statistics=["Average"],
        )
        return response.get("Datapoints", [])
