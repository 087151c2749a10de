"""Pytest configuration and fixtures."""

import asyncio
import os
from typing import AsyncGenerator, Callable, List, Optional

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from devops_insight.core.config import Settings
from devops_insight.models.base import Base
from devops_insight.schemas.log_schemas import RawLogEvent, Summary
from devops_insight.schemas.project_schemas import ProjectConfig
from devops_insight.services.project_service import ProjectService

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

NOW_MS = 1_700_000_000_000
HOUR_MS = 60 * 60 * 1000
MINUTE_MS = 60 * 1000

PROJECT_ID = "proj-1"


class FakeLogSource:
    """Log source returning canned events and recording every window asked for."""

    def __init__(self, events: Optional[List[RawLogEvent]] = None) -> None:
        self.events = list(events or [])
        self.calls: List[tuple] = []

    async def fetch_events(self, project, start_ms, end_ms):
        self.calls.append((project.project_id, start_ms, end_ms))
        return [e for e in self.events if start_ms <= e.timestamp_ms <= end_ms]


class FakeEmbedder:
    """Embedder returning a fixed vector, failing for texts containing a marker."""

    def __init__(self, fail_marker: Optional[str] = None, delay: float = 0.0) -> None:
        self.fail_marker = fail_marker
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self.texts: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.texts.append(text)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.fail_marker and self.fail_marker in text:
                raise ConnectionError("embedding service unreachable")
            return [0.1, 0.2, 0.3]
        finally:
            self.in_flight -= 1


class FakeGenerator:
    """Text generator returning a canned response or raising."""

    def __init__(
        self, response: str = "", error: Optional[Exception] = None, delay: float = 0.0
    ) -> None:
        self.response = response
        self.error = error
        self.delay = delay
        self.prompts: List[str] = []

    async def generate(self, prompt: str, timeout_seconds: float) -> str:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response


VALID_ASSESSMENT = (
    '{"rootCause": "Connection pool saturation in order-service", '
    '"riskLevel": "HIGH", '
    '"summary": "Order processing is degrading under database pressure.", '
    '"recommendations": ["Raise pool size", "Add query timeouts", "Review indexes"]}'
)


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment-level cache."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        environment="development",
        log_fetch_retry_attempts=1,
    )


@pytest.fixture
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    """Session factory bound to the test engine."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def project(test_db) -> ProjectConfig:
    """An enabled project with one explicit log group and one component."""
    return await ProjectService(test_db).save_configuration(
        ProjectConfig(
            project_id=PROJECT_ID,
            project_name="Checkout",
            enabled=True,
            aws_region="eu-west-1",
            log_group_names=["/ecs/order-service"],
            components=["i-0abc"],
        )
    )


@pytest.fixture
def make_summary() -> Callable[..., Summary]:
    """Factory for summaries with sensible defaults."""

    def _make(**overrides) -> Summary:
        values = {
            "project_id": PROJECT_ID,
            "component": "order-service",
            "error_signature": "SQLException",
            "severity": "ERROR",
            "occurrences": 5,
            "first_seen_ms": NOW_MS - 30 * MINUTE_MS,
            "last_seen_ms": NOW_MS - 10 * MINUTE_MS,
            "sample_message": "ERROR SQLException: connection reset",
            "trend_score": 0.0,
        }
        values.update(overrides)
        return Summary(**values)

    return _make


@pytest.fixture
def make_event() -> Callable[..., RawLogEvent]:
    """Factory for raw log events."""

    def _make(
        message: str, timestamp_ms: int = NOW_MS - MINUTE_MS, source: str = ""
    ) -> RawLogEvent:
        return RawLogEvent(
            source=source or "ecs/order-service/abc123",
            timestamp_ms=timestamp_ms,
            message=message,
        )

    return _make


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    """Embedder that always succeeds."""
    return FakeEmbedder()


@pytest.fixture
def embedder_factory():
    """The fake embedder class, for tests that need failure or delay."""
    return FakeEmbedder


@pytest.fixture
def generator_factory():
    """The fake generator class."""
    return FakeGenerator


@pytest.fixture
def valid_assessment() -> str:
    """A conforming generation response."""
    return VALID_ASSESSMENT


@pytest.fixture
def log_source() -> FakeLogSource:
    """Log source with no events until a test assigns some."""
    return FakeLogSource()
