"""Background metric collection for the next health check."""

from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import async_sessionmaker

from devops_insight.clients.metric_source import MetricSource
from devops_insight.core.config import Settings, get_settings
from devops_insight.core.logging import get_logger
from devops_insight.schemas.log_schemas import MetricSnapshot
from devops_insight.services.health_service import Clock, epoch_ms
from devops_insight.services.metric_service import MetricService
from devops_insight.services.project_service import ProjectService

logger = get_logger(__name__)


def average_snapshots(
    snapshots: Sequence[MetricSnapshot], timestamp_ms: int
) -> List[MetricSnapshot]:
    """Collapse datapoints into one averaged snapshot per (component, metric)."""
    grouped: Dict[Tuple[str, str], List[MetricSnapshot]] = defaultdict(list)
    for s in snapshots:
        grouped[(s.component, s.metric_name)].append(s)

    return [
        MetricSnapshot(
            project_id=points[0].project_id,
            timestamp_ms=timestamp_ms,
            component=component,
            metric_name=metric_name,
            value=sum(p.value for p in points) / len(points),
            unit=points[0].unit,
        )
        for (component, metric_name), points in grouped.items()
    ]


class MetricCollector:
    """
    Fire-and-forget collector scheduled after a health check returns.

    It opens its own session, so it can outlive the request that
    scheduled it. Failures are logged and never raised.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        metric_source: MetricSource,
        settings: Optional[Settings] = None,
        clock: Clock = epoch_ms,
    ) -> None:
        """Initialize collector."""
        self.session_factory = session_factory
        self.metric_source = metric_source
        self.settings = settings or get_settings()
        self.clock = clock

    async def collect(self, project_id: str) -> int:
        """
        Fetch and store averaged metrics for one project.

        Args:
            project_id: Project to collect for

        Returns:
            Number of snapshots stored
        """
        now_ms = self.clock()
        start_ms = now_ms - self.settings.metric_lookback_minutes * 60 * 1000

        try:
            async with self.session_factory() as db:
                project = await ProjectService(db).get_configuration(project_id)
                if project is None or not project.enabled or not project.components:
                    logger.info("metric_collection_skipped", project_id=project_id)
                    return 0

                datapoints = await self.metric_source.fetch_metrics(project, start_ms, now_ms)
                snapshots = average_snapshots(datapoints, now_ms)
                stored = await MetricService(db).save_metrics(snapshots)
        except Exception as e:
            logger.error(
                "metric_collection_failed", project_id=project_id, error=str(e), exc_info=True
            )
            return 0

        logger.info("metric_collection_completed", project_id=project_id, stored=stored)
        return stored
