"""Log summary database model."""

from sqlalchemy import BigInteger, Float, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from devops_insight.models.base import BaseModel


class LogSummaryRecord(BaseModel):
    """
    One revision of a deduplicated incident summary.

    A summary is identified within a project by ``summary_key``
    (component#signature#severity). Each merge appends a new row with the
    next ``revision``; readers take the highest revision per key.
    """

    __tablename__ = "log_summaries"

    summary_key: Mapped[str] = mapped_column(
        String(512), nullable=False, comment="component#signature#severity"
    )

    revision: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, comment="Monotonic revision per key"
    )

    component: Mapped[str] = mapped_column(
        String(255), nullable=False, index=True, comment="Originating component"
    )

    error_signature: Mapped[str] = mapped_column(
        String(255), nullable=False, comment="Normalized error fingerprint"
    )

    severity: Mapped[str] = mapped_column(
        String(16), nullable=False, comment="ERROR or WARN"
    )

    occurrences: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, comment="Number of grouped events"
    )

    first_seen_ms: Mapped[int] = mapped_column(
        BigInteger, nullable=False, comment="Earliest event epoch ms"
    )

    last_seen_ms: Mapped[int] = mapped_column(
        BigInteger, nullable=False, index=True, comment="Latest event epoch ms"
    )

    sample_message: Mapped[str] = mapped_column(
        Text, nullable=False, default="", comment="Message sampled at last_seen_ms"
    )

    trend_score: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0, comment="Rate delta in events per minute"
    )

    __table_args__ = (
        UniqueConstraint("project_id", "summary_key", "revision", name="uq_summary_revision"),
        Index("idx_summary_project_key", "project_id", "summary_key"),
        Index("idx_summary_project_last_seen", "project_id", "last_seen_ms"),
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<LogSummaryRecord(project={self.project_id}, key={self.summary_key}, "
            f"revision={self.revision}, occurrences={self.occurrences})>"
        )
