"""Service for prediction history."""

from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from devops_insight.core.error_handling import PersistenceError
from devops_insight.core.logging import get_logger
from devops_insight.models.prediction_result import PredictionResultRecord
from devops_insight.schemas.health_schemas import PredictionResult

logger = get_logger(__name__)


class PredictionService:
    """Append-only prediction history partitioned by project."""

    def __init__(self, db: AsyncSession) -> None:
        """Initialize service with database session."""
        self.db = db

    async def save_prediction(self, prediction: PredictionResult) -> None:
        """
        Append one prediction.

        Raises:
            PersistenceError: If the write fails
        """
        self.db.add(
            PredictionResultRecord(
                project_id=prediction.project_id,
                timestamp_ms=prediction.timestamp_ms,
                risk_level=prediction.risk_level.value,
                summary=prediction.summary,
                root_cause=prediction.root_cause,
                recommendations=list(prediction.recommendations),
                timeframe=prediction.timeframe,
                failure_likelihood=prediction.failure_likelihood,
                log_count=prediction.log_count,
                error_count=prediction.error_count,
                warning_count=prediction.warning_count,
            )
        )

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(f"failed to save prediction: {e}") from e

        logger.info(
            "prediction_saved",
            project_id=prediction.project_id,
            risk_level=prediction.risk_level.value,
        )

    async def get_prediction_history(
        self, project_id: str, limit: int = 20
    ) -> List[PredictionResult]:
        """Get the most recent predictions, newest first."""
        query = (
            select(PredictionResultRecord)
            .where(PredictionResultRecord.project_id == project_id)
            .order_by(PredictionResultRecord.timestamp_ms.desc())
            .limit(limit)
        )
        result = await self.db.execute(query)
        return [PredictionResult.model_validate(r) for r in result.scalars().all()]
