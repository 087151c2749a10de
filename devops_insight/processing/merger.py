"""Merging of persisted and freshly aggregated Summaries."""

from typing import Dict, List, Sequence

from devops_insight.core.logging import get_logger
from devops_insight.schemas.log_schemas import Summary

logger = get_logger(__name__)


def merge_pair(existing: Summary, new: Summary) -> Summary:
    """Combine two summaries sharing a key into a new one."""
    total = existing.occurrences + new.occurrences
    weighted_trend = (
        existing.trend_score * existing.occurrences + new.trend_score * new.occurrences
    ) / total

    return Summary(
        project_id=existing.project_id,
        component=existing.component,
        error_signature=existing.error_signature,
        severity=existing.severity,
        occurrences=total,
        first_seen_ms=min(existing.first_seen_ms, new.first_seen_ms),
        last_seen_ms=max(existing.last_seen_ms, new.last_seen_ms),
        sample_message=new.sample_message or existing.sample_message,
        trend_score=weighted_trend,
        revision=existing.revision,
    )


def merge_summaries(existing: Sequence[Summary], new: Sequence[Summary]) -> List[Summary]:
    """
    Merge two Summary sets keyed by component#signature#severity.

    Neither input is mutated. Merged entries keep the existing revision so
    the store can append the next one.

    Args:
        existing: Summaries loaded from the persisted store
        new: Summaries from the current aggregation

    Returns:
        A new list with one Summary per key
    """
    if not new:
        return list(existing)
    if not existing:
        return list(new)

    merged: Dict[str, Summary] = {s.key: s for s in existing}
    overlapping = 0

    for summary in new:
        current = merged.get(summary.key)
        if current is None:
            merged[summary.key] = summary
        else:
            merged[summary.key] = merge_pair(current, summary)
            overlapping += 1

    logger.info(
        "summaries_merged",
        existing=len(existing),
        new=len(new),
        overlapping=overlapping,
        merged=len(merged),
    )
    return list(merged.values())
