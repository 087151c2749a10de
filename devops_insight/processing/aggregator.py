"""Grouping of normalized events into trend-scored Summaries."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from devops_insight.core.logging import get_logger
from devops_insight.processing.normalizer import SignalNormalizer
from devops_insight.schemas.log_schemas import FilteredLogEvent, Summary, summary_key

logger = get_logger(__name__)

MS_PER_MINUTE = 60_000


def calculate_trend(timestamps: Sequence[int], min_span_ms: int = MS_PER_MINUTE) -> float:
    """
    Estimate whether event frequency is accelerating.

    The sorted timestamps are split at their midpoint and each half's rate
    is taken over half the total span. Rates are events per minute.

    Args:
        timestamps: Event timestamps in epoch ms, any order
        min_span_ms: Spans shorter than this carry no direction

    Returns:
        Second-half rate minus first-half rate, 0.0 when undetermined
    """
    if len(timestamps) < 2:
        return 0.0

    ordered = sorted(timestamps)
    span_ms = ordered[-1] - ordered[0]
    if span_ms < min_span_ms:
        return 0.0

    midpoint = len(ordered) // 2
    half_span_minutes = (span_ms / 2) / MS_PER_MINUTE

    first_rate = midpoint / half_span_minutes
    second_rate = (len(ordered) - midpoint) / half_span_minutes
    return second_rate - first_rate


@dataclass
class _Group:
    component: str
    severity: str
    error_signature: str
    timestamps: List[int] = field(default_factory=list)
    sample_message: str = ""
    sample_timestamp: Optional[int] = None

    def add(self, timestamp_ms: int, message: str) -> None:
        self.timestamps.append(timestamp_ms)
        if self.sample_timestamp is None or timestamp_ms >= self.sample_timestamp:
            self.sample_timestamp = timestamp_ms
            self.sample_message = message


class Aggregator:
    """Groups filtered events by component#signature#severity."""

    def __init__(
        self,
        normalizer: Optional[SignalNormalizer] = None,
        min_span_ms: int = MS_PER_MINUTE,
        sample_max_chars: int = 500,
    ) -> None:
        """Initialize aggregator."""
        self.normalizer = normalizer or SignalNormalizer()
        self.min_span_ms = min_span_ms
        self.sample_max_chars = sample_max_chars

    def aggregate(self, events: Sequence[FilteredLogEvent], project_id: str) -> List[Summary]:
        """
        Build one Summary per group of events.

        The sample message is taken from the most recent event in the group.

        Args:
            events: Filtered events of one fetch window
            project_id: Owning project

        Returns:
            Unpersisted summaries (revision 0)
        """
        groups: Dict[str, _Group] = {}

        for event in events:
            signal = self.normalizer.normalize(event)
            key = summary_key(signal.component, signal.error_signature, signal.severity)
            group = groups.get(key)
            if group is None:
                group = _Group(
                    component=signal.component,
                    severity=signal.severity,
                    error_signature=signal.error_signature,
                )
                groups[key] = group
            group.add(event.timestamp_ms, event.message)

        summaries = [
            Summary(
                project_id=project_id,
                component=g.component,
                error_signature=g.error_signature,
                severity=g.severity,
                occurrences=len(g.timestamps),
                first_seen_ms=min(g.timestamps),
                last_seen_ms=max(g.timestamps),
                sample_message=g.sample_message[: self.sample_max_chars],
                trend_score=calculate_trend(g.timestamps, self.min_span_ms),
            )
            for g in groups.values()
        ]

        logger.info(
            "events_aggregated",
            project_id=project_id,
            events=len(events),
            summaries=len(summaries),
        )
        return summaries
