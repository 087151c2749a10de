"""Failure taxonomy for the insight pipeline and retry helpers.

Only ``ConfigurationError`` is allowed to cross the pipeline boundary.
Every other class is absorbed where it happens and degraded to empty or
fallback data so a health check always produces a usable report.
"""

import logging
from typing import Optional

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

# tenacity's logging hooks expect a stdlib logger
_retry_logger = logging.getLogger(__name__)


class InsightError(Exception):
    """Base class for pipeline failures."""


class ConfigurationError(InsightError):
    """Project is unknown or not allowed to run. Fatal to the invocation."""

    def __init__(self, project_id: str, reason: str) -> None:
        self.project_id = project_id
        self.reason = reason
        super().__init__(f"{reason}: {project_id}")


class ProjectNotFoundError(ConfigurationError):
    """No configuration exists for the project."""

    def __init__(self, project_id: str) -> None:
        super().__init__(project_id, "Project not found")


class ProjectDisabledError(ConfigurationError):
    """The project exists but is disabled."""

    def __init__(self, project_id: str) -> None:
        super().__init__(project_id, "Project is disabled")


class UpstreamUnavailableError(InsightError):
    """A log or metric source call failed for one group or component."""

    def __init__(self, source: str, target: str, cause: Optional[Exception] = None) -> None:
        self.source = source
        self.target = target
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"{source} unavailable for {target}{detail}")


class EnrichmentError(InsightError):
    """One embedding call failed or timed out."""


class AssessmentError(InsightError):
    """Generation call failed, timed out or returned non-conforming output."""


class PersistenceError(InsightError):
    """Write-back to the persisted store failed."""


def with_retry(
    max_attempts: int = 3,
    min_wait: int = 1,
    max_wait: int = 10,
    exceptions: tuple = (Exception,),
):
    """
    Decorator for retry logic with exponential backoff.

    The final failure is re-raised unchanged so callers can classify it.

    Usage:
        @with_retry(max_attempts=3, exceptions=(ConnectionError,))
        async def risky_operation():
            ...
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(exceptions),
        before_sleep=before_sleep_log(_retry_logger, logging.WARNING),
        reraise=True,
    )
