"""Service for embedding record storage."""

from typing import List, Sequence

from sqlalchemy import and_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from devops_insight.core.error_handling import PersistenceError
from devops_insight.core.logging import get_logger
from devops_insight.models.log_embedding import LogEmbeddingRecord
from devops_insight.schemas.log_schemas import EmbeddingRecord

logger = get_logger(__name__)


class EmbeddingService:
    """Append-only embedding store partitioned by project."""

    def __init__(self, db: AsyncSession) -> None:
        """Initialize service with database session."""
        self.db = db

    async def get_embeddings(
        self, project_id: str, start_ms: int, end_ms: int
    ) -> List[EmbeddingRecord]:
        """Get embeddings whose source summary was last seen within a window."""
        query = (
            select(LogEmbeddingRecord)
            .where(
                and_(
                    LogEmbeddingRecord.project_id == project_id,
                    LogEmbeddingRecord.last_seen_ms >= start_ms,
                    LogEmbeddingRecord.last_seen_ms <= end_ms,
                )
            )
            .order_by(LogEmbeddingRecord.last_seen_ms.desc())
        )
        result = await self.db.execute(query)
        return [EmbeddingRecord.model_validate(r) for r in result.scalars().all()]

    async def save_embeddings(self, records: Sequence[EmbeddingRecord]) -> int:
        """
        Persist embedding records.

        Raises:
            PersistenceError: If the write fails
        """
        if not records:
            return 0

        self.db.add_all(
            LogEmbeddingRecord(
                project_id=r.project_id,
                embedding_id=r.embedding_id,
                summary_id=r.summary_id,
                vector=list(r.vector),
                error_signature=r.error_signature,
                severity=r.severity,
                occurrences=r.occurrences,
                condensed_text=r.condensed_text,
                last_seen_ms=r.last_seen_ms,
            )
            for r in records
        )

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(f"failed to save embeddings: {e}") from e

        logger.info("embeddings_saved", project_id=records[0].project_id, count=len(records))
        return len(records)
