"""Pydantic schemas for project configuration."""

from typing import List, Optional

from pydantic import BaseModel, Field


class ProjectConfig(BaseModel):
    """Monitoring configuration resolved for one project."""

    project_id: str
    project_name: str = ""
    enabled: bool = True
    aws_region: Optional[str] = None
    log_group_names: List[str] = Field(default_factory=list)
    log_group_keywords: List[str] = Field(default_factory=list)
    default_log_group: Optional[str] = None
    components: List[str] = Field(default_factory=list)
    last_processed_timestamp: Optional[int] = None

    model_config = {"from_attributes": True}
