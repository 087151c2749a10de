"""Log source collaborators backed by CloudWatch Logs."""

import asyncio
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Protocol

import boto3
from botocore.config import Config

from devops_insight.core.config import Settings, get_settings
from devops_insight.core.error_handling import UpstreamUnavailableError, with_retry
from devops_insight.core.logging import get_logger
from devops_insight.monitoring.metrics import get_metrics_collector
from devops_insight.schemas.log_schemas import RawLogEvent
from devops_insight.schemas.project_schemas import ProjectConfig

logger = get_logger(__name__)

ClientFactory = Callable[[str], Any]


class LogSource(Protocol):
    """Fetches raw log lines for a project within a time window."""

    async def fetch_events(
        self, project: ProjectConfig, start_ms: int, end_ms: int
    ) -> List[RawLogEvent]:
        ...


def _default_client_factory(region: str, timeout_seconds: float) -> Any:
    config = Config(
        connect_timeout=timeout_seconds,
        read_timeout=timeout_seconds,
        retries={"total_max_attempts": 1},
    )
    return boto3.client("logs", region_name=region, config=config)


class CloudWatchLogSource:
    """
    Reads events from CloudWatch Logs groups.

    Groups are resolved in order: the project's explicit list, prefix
    discovery filtered by the project's keywords, the project's default
    group, then the configured default. A failing group contributes no
    events and does not stop the others.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client_factory: Optional[ClientFactory] = None,
        retry_min_wait: int = 1,
    ) -> None:
        """Initialize log source."""
        self.settings = settings or get_settings()
        self.client_factory = client_factory or partial(
            _default_client_factory, timeout_seconds=self.settings.log_fetch_timeout_seconds
        )
        self.retry_min_wait = retry_min_wait
        self._clients: Dict[str, Any] = {}

    def _client(self, region: str) -> Any:
        if region not in self._clients:
            self._clients[region] = self.client_factory(region)
        return self._clients[region]

    async def fetch_events(
        self, project: ProjectConfig, start_ms: int, end_ms: int
    ) -> List[RawLogEvent]:
        """
        Fetch raw events from every resolved log group.

        Args:
            project: Project configuration
            start_ms: Window start (epoch ms)
            end_ms: Window end (epoch ms)

        Returns:
            Events from all groups that could be read
        """
        client = self._client(project.aws_region or self.settings.aws_region)
        log_groups = await self.resolve_log_groups(project, client)

        fetch_group = with_retry(
            max_attempts=self.settings.log_fetch_retry_attempts,
            min_wait=self.retry_min_wait,
        )(self._fetch_group)

        events: List[RawLogEvent] = []
        for log_group in log_groups:
            try:
                group_events = await fetch_group(client, log_group, start_ms, end_ms)
            except Exception as e:
                error = UpstreamUnavailableError("cloudwatch_logs", log_group, e)
                logger.error(
                    "log_group_fetch_failed",
                    project_id=project.project_id,
                    log_group=log_group,
                    error=str(error),
                )
                get_metrics_collector().record_upstream_failure("logs")
                continue

            logger.info(
                "log_group_fetched",
                project_id=project.project_id,
                log_group=log_group,
                events=len(group_events),
            )
            events.extend(group_events)

        return events

    async def resolve_log_groups(self, project: ProjectConfig, client: Any) -> List[str]:
        """Resolve which log groups to read for a project."""
        if project.log_group_names:
            return list(project.log_group_names)

        try:
            discovered = await asyncio.wait_for(
                asyncio.to_thread(self._discover_log_groups, client, project.log_group_keywords),
                timeout=self.settings.log_fetch_timeout_seconds,
            )
        except Exception as e:
            logger.warning(
                "log_group_discovery_failed", project_id=project.project_id, error=str(e)
            )
            get_metrics_collector().record_upstream_failure("logs")
            discovered = []

        if discovered:
            logger.info(
                "log_groups_discovered", project_id=project.project_id, log_groups=discovered
            )
            return discovered

        fallback = project.default_log_group or self.settings.default_log_group
        logger.info("log_group_fallback", project_id=project.project_id, log_group=fallback)
        return [fallback]

    def _discover_log_groups(self, client: Any, keywords: List[str]) -> List[str]:
        paginator = client.get_paginator("describe_log_groups")
        names = []
        for page in paginator.paginate(logGroupNamePrefix=self.settings.log_group_discovery_prefix):
            for group in page.get("logGroups", []):
                name = group["logGroupName"]
                lowered = name.lower()
                if not keywords or any(k.lower() in lowered for k in keywords):
                    names.append(name)
        return names

    async def _fetch_group(
        self, client: Any, log_group: str, start_ms: int, end_ms: int
    ) -> List[RawLogEvent]:
        return await asyncio.wait_for(
            asyncio.to_thread(self._read_group, client, log_group, start_ms, end_ms),
            timeout=self.settings.log_fetch_timeout_seconds,
        )

    def _read_group(
        self, client: Any, log_group: str, start_ms: int, end_ms: int
    ) -> List[RawLogEvent]:
        """Read the most recent streams of one group (blocking)."""
        streams = client.describe_log_streams(
            logGroupName=log_group,
            orderBy="LastEventTime",
            descending=True,
            limit=self.settings.max_log_streams,
        ).get("logStreams", [])

        events: List[RawLogEvent] = []
        for stream in streams:
            stream_name = stream["logStreamName"]
            events.extend(self._read_stream(client, log_group, stream_name, start_ms, end_ms))
        return events

    def _read_stream(
        self, client: Any, log_group: str, stream_name: str, start_ms: int, end_ms: int
    ) -> List[RawLogEvent]:
        """Page through one stream up to the per-stream event cap (blocking)."""
        limit = self.settings.max_events_per_stream
        events: List[RawLogEvent] = []
        token: Optional[str] = None

        while len(events) < limit:
            kwargs: Dict[str, Any] = {
                "logGroupName": log_group,
                "logStreamName": stream_name,
                "startTime": start_ms,
                "endTime": end_ms,
                "startFromHead": True,
            }
            if token:
                kwargs["nextToken"] = token

            response = client.get_log_events(**kwargs)
            for event in response.get("events", []):
                events.append(
                    RawLogEvent(
                        source=stream_name,
                        timestamp_ms=event["timestamp"],
                        message=event.get("message", ""),
                    )
                )

            next_token = response.get("nextForwardToken")
            # an unchanged token marks the end of the stream
            if not next_token or next_token == token:
                break
            token = next_token

        return events[:limit]
