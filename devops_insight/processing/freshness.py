"""Freshness gate deciding between cached summaries and re-ingestion."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Protocol

from devops_insight.core.logging import get_logger
from devops_insight.schemas.log_schemas import Summary

logger = get_logger(__name__)


class SummaryReader(Protocol):
    """Read side of the summary store used by the gate."""

    async def get_summaries(self, project_id: str, start_ms: int, end_ms: int) -> List[Summary]:
        ...

    async def get_last_seen_watermark(self, project_id: str) -> Optional[int]:
        ...


class FreshnessState(str, Enum):
    """Pipeline entry branch."""

    FRESH = "FRESH"
    STALE = "STALE"


@dataclass(frozen=True)
class FreshnessDecision:
    """Outcome of the freshness check."""

    state: FreshnessState
    cached_summaries: List[Summary] = field(default_factory=list)
    resume_from_ms: Optional[int] = None
    has_history: bool = False

    @property
    def is_fresh(self) -> bool:
        """Whether cached summaries can be used without re-ingestion."""
        return self.state is FreshnessState.FRESH


class FreshnessGate:
    """
    Decides whether persisted summaries are recent enough to skip ingestion.

    FRESH carries the cached summaries of the window. STALE carries the
    timestamp to resume ingestion from: the newest persisted lastSeen, or
    the initial lookback when the project has never been ingested. An event
    stamped exactly at a persisted lastSeen is already counted.
    """

    def __init__(self, store: SummaryReader, window_ms: int, initial_lookback_ms: int) -> None:
        """Initialize gate."""
        self.store = store
        self.window_ms = window_ms
        self.initial_lookback_ms = initial_lookback_ms

    async def evaluate(self, project_id: str, now_ms: int) -> FreshnessDecision:
        """
        Check the persisted store for summaries within the window.

        Args:
            project_id: Project to check
            now_ms: Current time in epoch ms

        Returns:
            FRESH or STALE decision
        """
        cached = await self.store.get_summaries(project_id, now_ms - self.window_ms, now_ms)
        if cached:
            logger.info("freshness_fresh", project_id=project_id, cached=len(cached))
            return FreshnessDecision(state=FreshnessState.FRESH, cached_summaries=cached)

        watermark = await self.store.get_last_seen_watermark(project_id)
        resume_from = watermark if watermark is not None else now_ms - self.initial_lookback_ms

        logger.info(
            "freshness_stale",
            project_id=project_id,
            resume_from_ms=resume_from,
            has_history=watermark is not None,
        )
        return FreshnessDecision(
            state=FreshnessState.STALE,
            resume_from_ms=resume_from,
            has_history=watermark is not None,
        )
