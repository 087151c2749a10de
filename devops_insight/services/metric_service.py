"""Service for metric snapshot storage."""

from typing import List, Sequence

from sqlalchemy import and_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from devops_insight.core.error_handling import PersistenceError
from devops_insight.core.logging import get_logger
from devops_insight.models.metric_snapshot import MetricSnapshotRecord
from devops_insight.schemas.log_schemas import MetricSnapshot

logger = get_logger(__name__)


class MetricService:
    """Append-only metric snapshot store partitioned by project."""

    def __init__(self, db: AsyncSession) -> None:
        """Initialize service with database session."""
        self.db = db

    async def get_metrics(
        self, project_id: str, start_ms: int, end_ms: int
    ) -> List[MetricSnapshot]:
        """Get snapshots within a window, oldest first."""
        query = (
            select(MetricSnapshotRecord)
            .where(
                and_(
                    MetricSnapshotRecord.project_id == project_id,
                    MetricSnapshotRecord.timestamp_ms >= start_ms,
                    MetricSnapshotRecord.timestamp_ms <= end_ms,
                )
            )
            .order_by(MetricSnapshotRecord.timestamp_ms.asc())
        )
        result = await self.db.execute(query)
        return [MetricSnapshot.model_validate(r) for r in result.scalars().all()]

    async def save_metrics(self, snapshots: Sequence[MetricSnapshot]) -> int:
        """
        Persist metric snapshots.

        Raises:
            PersistenceError: If the write fails
        """
        if not snapshots:
            return 0

        self.db.add_all(
            MetricSnapshotRecord(
                project_id=s.project_id,
                timestamp_ms=s.timestamp_ms,
                component=s.component,
                metric_name=s.metric_name,
                value=s.value,
                unit=s.unit,
            )
            for s in snapshots
        )

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(f"failed to save metrics: {e}") from e

        logger.info("metrics_saved", project_id=snapshots[0].project_id, count=len(snapshots))
        return len(snapshots)
