"""Prediction result database model."""

from typing import List

from sqlalchemy import JSON, BigInteger, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from devops_insight.models.base import BaseModel


class PredictionResultRecord(BaseModel):
    """
    Outcome of one health-check run.

    Append-only history: every run adds a row, nothing is updated.
    """

    __tablename__ = "prediction_results"

    timestamp_ms: Mapped[int] = mapped_column(
        BigInteger, nullable=False, comment="Run epoch ms"
    )

    risk_level: Mapped[str] = mapped_column(
        String(16), nullable=False, comment="LOW, MEDIUM, HIGH or CRITICAL"
    )

    summary: Mapped[str] = mapped_column(Text, nullable=False)

    root_cause: Mapped[str] = mapped_column(Text, nullable=False)

    recommendations: Mapped[List[str]] = mapped_column(
        JSON, nullable=False, comment="Assessor recommendations"
    )

    timeframe: Mapped[str] = mapped_column(String(64), nullable=False)

    failure_likelihood: Mapped[float] = mapped_column(
        Float, nullable=False, comment="Failure likelihood (0.0-1.0)"
    )

    log_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    warning_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (Index("idx_prediction_project_timestamp", "project_id", "timestamp_ms"),)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<PredictionResultRecord(project={self.project_id}, risk={self.risk_level}, "
            f"likelihood={self.failure_likelihood})>"
        )
