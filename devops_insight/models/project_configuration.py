"""Project configuration database model."""

from typing import List, Optional

from sqlalchemy import JSON, BigInteger, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from devops_insight.models.base import BaseModel


class ProjectConfigurationRecord(BaseModel):
    """Monitoring configuration and ingestion watermark of one project."""

    __tablename__ = "project_configurations"

    project_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    enabled: Mapped[bool] = mapped_column(default=True, nullable=False)

    aws_region: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    log_group_names: Mapped[List[str]] = mapped_column(
        JSON, nullable=False, default=list, comment="Explicit log groups"
    )

    log_group_keywords: Mapped[List[str]] = mapped_column(
        JSON, nullable=False, default=list, comment="Name fragments used in auto-discovery"
    )

    default_log_group: Mapped[Optional[str]] = mapped_column(
        String(512), nullable=True, comment="Fallback when discovery finds nothing"
    )

    components: Mapped[List[str]] = mapped_column(
        JSON, nullable=False, default=list, comment="Metric component identifiers"
    )

    last_processed_timestamp: Mapped[Optional[int]] = mapped_column(
        BigInteger, nullable=True, comment="Resume watermark epoch ms"
    )

    __table_args__ = (UniqueConstraint("project_id", name="uq_project_configuration"),)

    def __repr__(self) -> str:
        """String representation."""
        return f"<ProjectConfigurationRecord(project={self.project_id}, enabled={self.enabled})>"
