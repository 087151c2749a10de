"""Tests for the freshness gate."""

from devops_insight.processing.freshness import FreshnessGate, FreshnessState

NOW_MS = 1_700_000_000_000
HOUR_MS = 60 * 60 * 1000


class InMemorySummaryStore:
    def __init__(self, summaries=None):
        self.summaries = list(summaries or [])
        self.windows = []

    async def get_summaries(self, project_id, start_ms, end_ms):
        self.windows.append((start_ms, end_ms))
        return [
            s
            for s in self.summaries
            if s.project_id == project_id and start_ms <= s.last_seen_ms <= end_ms
        ]

    async def get_last_seen_watermark(self, project_id):
        seen = [s.last_seen_ms for s in self.summaries if s.project_id == project_id]
        return max(seen) if seen else None


def _gate(store):
    return FreshnessGate(store, window_ms=2 * HOUR_MS, initial_lookback_ms=24 * HOUR_MS)


async def test_fresh_when_summaries_within_window(make_summary):
    recent = make_summary(last_seen_ms=NOW_MS - HOUR_MS, first_seen_ms=NOW_MS - HOUR_MS)
    store = InMemorySummaryStore([recent])

    decision = await _gate(store).evaluate("proj-1", NOW_MS)

    assert decision.state is FreshnessState.FRESH
    assert decision.is_fresh
    assert decision.cached_summaries == [recent]
    assert store.windows == [(NOW_MS - 2 * HOUR_MS, NOW_MS)]


async def test_stale_resumes_from_watermark(make_summary):
    old = make_summary(last_seen_ms=NOW_MS - 5 * HOUR_MS, first_seen_ms=NOW_MS - 6 * HOUR_MS)
    store = InMemorySummaryStore([old])

    decision = await _gate(store).evaluate("proj-1", NOW_MS)

    assert decision.state is FreshnessState.STALE
    assert not decision.is_fresh
    assert decision.cached_summaries == []
    assert decision.resume_from_ms == NOW_MS - 5 * HOUR_MS
    assert decision.has_history is True


async def test_stale_without_history_uses_initial_lookback():
    decision = await _gate(InMemorySummaryStore()).evaluate("proj-1", NOW_MS)

    assert decision.state is FreshnessState.STALE
    assert decision.resume_from_ms == NOW_MS - 24 * HOUR_MS
    assert decision.has_history is False


async def test_other_projects_do_not_count(make_summary):
    foreign = make_summary(project_id="proj-2", last_seen_ms=NOW_MS, first_seen_ms=NOW_MS)

    decision = await _gate(InMemorySummaryStore([foreign])).evaluate("proj-1", NOW_MS)

    assert decision.state is FreshnessState.STALE
