"""Service for project configuration and ingestion watermarks."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from devops_insight.core.error_handling import (
    PersistenceError,
    ProjectDisabledError,
    ProjectNotFoundError,
)
from devops_insight.core.logging import get_logger
from devops_insight.models.project_configuration import ProjectConfigurationRecord
from devops_insight.schemas.project_schemas import ProjectConfig

logger = get_logger(__name__)


class ProjectService:
    """Resolves project configuration and records the resume watermark."""

    def __init__(self, db: AsyncSession) -> None:
        """Initialize service with database session."""
        self.db = db

    async def _get_record(self, project_id: str) -> Optional[ProjectConfigurationRecord]:
        result = await self.db.execute(
            select(ProjectConfigurationRecord).where(
                ProjectConfigurationRecord.project_id == project_id
            )
        )
        return result.scalar_one_or_none()

    async def get_configuration(self, project_id: str) -> Optional[ProjectConfig]:
        """Get a project's configuration, or None if unknown."""
        record = await self._get_record(project_id)
        return ProjectConfig.model_validate(record) if record else None

    async def require_enabled(self, project_id: str) -> ProjectConfig:
        """
        Get the configuration of a project that is allowed to run.

        Raises:
            ProjectNotFoundError: If no configuration exists
            ProjectDisabledError: If the project is disabled
        """
        config = await self.get_configuration(project_id)
        if config is None:
            raise ProjectNotFoundError(project_id)
        if not config.enabled:
            raise ProjectDisabledError(project_id)
        return config

    async def save_configuration(self, config: ProjectConfig) -> ProjectConfig:
        """Create or replace a project's configuration."""
        record = await self._get_record(config.project_id)
        if record is None:
            record = ProjectConfigurationRecord(project_id=config.project_id)
            self.db.add(record)

        record.project_name = config.project_name
        record.enabled = config.enabled
        record.aws_region = config.aws_region
        record.log_group_names = list(config.log_group_names)
        record.log_group_keywords = list(config.log_group_keywords)
        record.default_log_group = config.default_log_group
        record.components = list(config.components)
        record.last_processed_timestamp = config.last_processed_timestamp

        await self.db.commit()
        await self.db.refresh(record)
        logger.info("project_configuration_saved", project_id=config.project_id)
        return ProjectConfig.model_validate(record)

    async def update_watermark(self, project_id: str, timestamp_ms: int) -> None:
        """
        Record the last processed timestamp.

        Raises:
            PersistenceError: If the write fails
        """
        record = await self._get_record(project_id)
        if record is None:
            raise PersistenceError(f"cannot update watermark of unknown project {project_id}")

        record.last_processed_timestamp = timestamp_ms
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(f"failed to update watermark: {e}") from e

        logger.info("watermark_updated", project_id=project_id, timestamp_ms=timestamp_ms)
