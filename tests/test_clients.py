"""Tests for the CloudWatch log and metric sources."""

import threading
import time
from datetime import datetime, timezone

from devops_insight.clients.log_source import CloudWatchLogSource
from devops_insight.clients.metric_source import CloudWatchMetricSource
from devops_insight.schemas.project_schemas import ProjectConfig

NOW_MS = 1_700_000_000_000


class FakePaginator:
    def __init__(self, pages):
        self.pages = pages
        self.kwargs = None

    def paginate(self, **kwargs):
        self.kwargs = kwargs
        return iter(self.pages)


class FakeLogsClient:
    """Serves pages of events per stream, following nextForwardToken."""

    def __init__(self, streams=None, group_names=None, failing_groups=()):
        self.streams = streams or {}
        self.group_names = group_names or []
        self.failing_groups = set(failing_groups)
        groups = [{"logGroupName": n} for n in self.group_names]
        self.paginator = FakePaginator([{"logGroups": groups}])
        self.stream_requests = []

    def get_paginator(self, name):
        assert name == "describe_log_groups"
        return self.paginator

    def describe_log_streams(self, logGroupName, **kwargs):
        if logGroupName in self.failing_groups:
            raise ConnectionError("throttled")
        self.stream_requests.append((logGroupName, kwargs))
        return {"logStreams": [{"logStreamName": name} for name in self.streams]}

    def get_log_events(self, logStreamName, nextToken=None, **kwargs):
        pages = self.streams[logStreamName]
        index = int(nextToken) if nextToken else 0
        if index >= len(pages):
            return {"events": [], "nextForwardToken": str(index)}
        return {"events": pages[index], "nextForwardToken": str(index + 1)}


def _events(*pairs):
    return [{"timestamp": ts, "message": msg} for ts, msg in pairs]


def _source(settings, client):
    return CloudWatchLogSource(settings=settings, client_factory=lambda region: client)


async def test_reads_all_pages_of_each_stream(settings):
    client = FakeLogsClient(
        streams={
            "ecs/order-service/1": [
                _events((NOW_MS, "ERROR a"), (NOW_MS + 1, "INFO b")),
                _events((NOW_MS + 2, "WARN c")),
            ],
            "ecs/user-service/2": [_events((NOW_MS + 3, "ERROR d"))],
        }
    )
    project = ProjectConfig(project_id="proj-1", log_group_names=["/ecs/app"])

    events = await _source(settings, client).fetch_events(project, NOW_MS - 1, NOW_MS + 10)

    assert [e.message for e in events] == ["ERROR a", "INFO b", "WARN c", "ERROR d"]
    assert events[0].source == "ecs/order-service/1"
    assert client.stream_requests[0][1]["orderBy"] == "LastEventTime"


async def test_per_stream_cap(settings):
    settings.max_events_per_stream = 2
    client = FakeLogsClient(
        streams={"s/a-service/1": [_events(*[(NOW_MS + i, f"ERROR {i}") for i in range(5)])]}
    )
    project = ProjectConfig(project_id="proj-1", log_group_names=["/ecs/app"])

    events = await _source(settings, client).fetch_events(project, NOW_MS, NOW_MS + 10)

    assert len(events) == 2


async def test_failing_group_is_isolated(settings):
    client = FakeLogsClient(
        streams={"s/a-service/1": [_events((NOW_MS, "ERROR ok"))]},
        failing_groups={"/ecs/broken"},
    )
    project = ProjectConfig(project_id="proj-1", log_group_names=["/ecs/broken", "/ecs/fine"])

    events = await _source(settings, client).fetch_events(project, NOW_MS, NOW_MS + 10)

    assert [e.message for e in events] == ["ERROR ok"]


async def test_log_group_resolution_order(settings):
    client = FakeLogsClient(group_names=["/ecs/checkout-api", "/ecs/batch-jobs"])
    source = _source(settings, client)

    explicit = ProjectConfig(project_id="p", log_group_names=["/custom/group"])
    assert await source.resolve_log_groups(explicit, client) == ["/custom/group"]

    keyworded = ProjectConfig(project_id="p", log_group_keywords=["checkout"])
    assert await source.resolve_log_groups(keyworded, client) == ["/ecs/checkout-api"]
    assert client.paginator.kwargs == {"logGroupNamePrefix": settings.log_group_discovery_prefix}

    unmatched = ProjectConfig(
        project_id="p", log_group_keywords=["billing"], default_log_group="/ecs/billing"
    )
    assert await source.resolve_log_groups(unmatched, client) == ["/ecs/billing"]

    bare = ProjectConfig(project_id="p", log_group_keywords=["billing"])
    assert await source.resolve_log_groups(bare, client) == [settings.default_log_group]


class FakeCloudWatchClient:
    def __init__(self, failing_metric=None):
        self.failing_metric = failing_metric
        self.requests = []

    def get_metric_statistics(self, **kwargs):
        self.requests.append(kwargs)
        if kwargs["MetricName"] == self.failing_metric:
            raise ConnectionError("throttled")
        stamp = datetime.fromtimestamp(NOW_MS / 1000, tz=timezone.utc)
        return {"Datapoints": [{"Timestamp": stamp, "Average": 42.5, "Unit": "Percent"}]}


async def test_metric_source_isolates_failures(settings):
    client = FakeCloudWatchClient(failing_metric="MemoryUtilization")
    source = CloudWatchMetricSource(settings=settings, client_factory=lambda region: client)
    project = ProjectConfig(project_id="proj-1", components=["i-0abc", "i-0def"])

    snapshots = await source.fetch_metrics(project, NOW_MS - 3_600_000, NOW_MS)

    assert len(client.requests) == 4
    assert [(s.component, s.metric_name) for s in snapshots] == [
        ("i-0abc", "CPUUtilization"),
        ("i-0def", "CPUUtilization"),
    ]
    assert snapshots[0].timestamp_ms == NOW_MS
    assert snapshots[0].value == 42.5
    assert client.requests[0]["Dimensions"] == [{"Name": "InstanceId", "Value": "i-0abc"}]


class HangingLogsClient(FakeLogsClient):
    """Blocks describe_log_streams for one group until released."""

    def __init__(self, hung_group, **kwargs):
        super().__init__(**kwargs)
        self.hung_group = hung_group
        self.release = threading.Event()

    def describe_log_streams(self, logGroupName, **kwargs):
        if logGroupName == self.hung_group:
            self.release.wait(timeout=5)
        return super().describe_log_streams(logGroupName, **kwargs)


async def test_hung_log_group_is_cut_off(settings):
    settings.log_fetch_timeout_seconds = 0.1
    client = HangingLogsClient(
        "/ecs/hung", streams={"s/a-service/1": [_events((NOW_MS, "ERROR ok"))]}
    )
    project = ProjectConfig(project_id="proj-1", log_group_names=["/ecs/hung", "/ecs/fine"])

    started = time.perf_counter()
    try:
        events = await _source(settings, client).fetch_events(project, NOW_MS, NOW_MS + 10)
    finally:
        client.release.set()

    assert time.perf_counter() - started < 2.0
    assert [e.message for e in events] == ["ERROR ok"]


class HangingCloudWatchClient(FakeCloudWatchClient):
    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def get_metric_statistics(self, **kwargs):
        if kwargs["MetricName"] == "CPUUtilization":
            self.release.wait(timeout=5)
        return super().get_metric_statistics(**kwargs)


async def test_hung_metric_read_is_cut_off(settings):
    settings.metric_fetch_timeout_seconds = 0.1
    client = HangingCloudWatchClient()
    source = CloudWatchMetricSource(settings=settings, client_factory=lambda region: client)
    project = ProjectConfig(project_id="proj-1", components=["i-0abc"])

    started = time.perf_counter()
    try:
        snapshots = await source.fetch_metrics(project, NOW_MS - 3_600_000, NOW_MS)
    finally:
        client.release.set()

    assert time.perf_counter() - started < 2.0
    assert [s.metric_name for s in snapshots] == ["MemoryUtilization"]


def test_default_clients_carry_timeouts(settings):
    settings.log_fetch_timeout_seconds = 7.0
    settings.metric_fetch_timeout_seconds = 9.0

    logs_client = CloudWatchLogSource(settings=settings)._client("eu-west-1")
    metrics_client = CloudWatchMetricSource(settings=settings)._client("eu-west-1")

    assert logs_client.meta.config.read_timeout == 7.0
    assert logs_client.meta.config.connect_timeout == 7.0
    assert metrics_client.meta.config.read_timeout == 9.0
    assert metrics_client.meta.config.connect_timeout == 9.0
