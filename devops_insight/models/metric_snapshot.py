"""Metric snapshot database model."""

from sqlalchemy import BigInteger, Float, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from devops_insight.models.base import BaseModel


class MetricSnapshotRecord(BaseModel):
    """Averaged infrastructure metric datapoint. Append-only."""

    __tablename__ = "metric_snapshots"

    timestamp_ms: Mapped[int] = mapped_column(
        BigInteger, nullable=False, comment="Datapoint epoch ms"
    )

    component: Mapped[str] = mapped_column(
        String(255), nullable=False, comment="Instance or service identifier"
    )

    metric_name: Mapped[str] = mapped_column(
        String(128), nullable=False, index=True, comment="e.g. CPUUtilization"
    )

    value: Mapped[float] = mapped_column(Float, nullable=False)

    unit: Mapped[str] = mapped_column(String(32), nullable=False, default="None")

    __table_args__ = (Index("idx_metric_project_timestamp", "project_id", "timestamp_ms"),)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<MetricSnapshotRecord(component={self.component}, "
            f"metric={self.metric_name}, value={self.value})>"
        )
