"""Service for log summary storage."""

from typing import Dict, List, Optional, Sequence

from sqlalchemy import and_, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from devops_insight.core.error_handling import PersistenceError
from devops_insight.core.logging import get_logger
from devops_insight.models.log_summary import LogSummaryRecord
from devops_insight.schemas.log_schemas import Summary

logger = get_logger(__name__)


class SummaryService:
    """
    Revisioned summary store partitioned by project.

    Reads see only the latest revision of each summary key. Writes append
    rows; nothing is updated in place.
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize service with database session."""
        self.db = db

    def _latest_revisions(self, project_id: str):
        return (
            select(
                LogSummaryRecord.summary_key,
                func.max(LogSummaryRecord.revision).label("revision"),
            )
            .where(LogSummaryRecord.project_id == project_id)
            .group_by(LogSummaryRecord.summary_key)
            .subquery()
        )

    async def get_summaries(self, project_id: str, start_ms: int, end_ms: int) -> List[Summary]:
        """
        Get the latest revision of every summary last seen within a window.

        Args:
            project_id: Partition key
            start_ms: Inclusive lower bound on last_seen_ms
            end_ms: Inclusive upper bound on last_seen_ms

        Returns:
            Summaries ordered by last_seen_ms descending
        """
        latest = self._latest_revisions(project_id)
        query = (
            select(LogSummaryRecord)
            .join(
                latest,
                and_(
                    LogSummaryRecord.summary_key == latest.c.summary_key,
                    LogSummaryRecord.revision == latest.c.revision,
                ),
            )
            .where(
                and_(
                    LogSummaryRecord.project_id == project_id,
                    LogSummaryRecord.last_seen_ms >= start_ms,
                    LogSummaryRecord.last_seen_ms <= end_ms,
                )
            )
            .order_by(LogSummaryRecord.last_seen_ms.desc())
        )

        result = await self.db.execute(query)
        return [Summary.model_validate(record) for record in result.scalars().all()]

    async def get_revisions(self, project_id: str, keys: Sequence[str]) -> Dict[str, int]:
        """Get the latest persisted revision of each given key."""
        if not keys:
            return {}
        result = await self.db.execute(
            select(
                LogSummaryRecord.summary_key,
                func.max(LogSummaryRecord.revision),
            )
            .where(
                and_(
                    LogSummaryRecord.project_id == project_id,
                    LogSummaryRecord.summary_key.in_(list(keys)),
                )
            )
            .group_by(LogSummaryRecord.summary_key)
        )
        return {key: revision for key, revision in result.all()}

    async def get_last_seen_watermark(self, project_id: str) -> Optional[int]:
        """Get the newest last_seen_ms persisted for a project."""
        result = await self.db.execute(
            select(func.max(LogSummaryRecord.last_seen_ms)).where(
                LogSummaryRecord.project_id == project_id
            )
        )
        return result.scalar_one_or_none()

    async def save_summaries(self, summaries: Sequence[Summary]) -> int:
        """
        Append one row per summary at its revision.

        Args:
            summaries: Summaries carrying the revision to write (>= 1)

        Returns:
            Number of rows written

        Raises:
            PersistenceError: If the write fails
        """
        if not summaries:
            return 0

        for s in summaries:
            if s.revision < 1:
                raise PersistenceError(f"summary {s.key} has no revision assigned")

        self.db.add_all(
            LogSummaryRecord(
                project_id=s.project_id,
                summary_key=s.key,
                revision=s.revision,
                component=s.component,
                error_signature=s.error_signature,
                severity=s.severity,
                occurrences=s.occurrences,
                first_seen_ms=s.first_seen_ms,
                last_seen_ms=s.last_seen_ms,
                sample_message=s.sample_message,
                trend_score=s.trend_score,
            )
            for s in summaries
        )

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(f"failed to save summaries: {e}") from e

        logger.info("summaries_saved", project_id=summaries[0].project_id, count=len(summaries))
        return len(summaries)
