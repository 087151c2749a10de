"""Tests for summary merging."""

import pytest

from devops_insight.processing.merger import merge_summaries


def test_empty_sides_pass_through(make_summary):
    existing = [make_summary()]
    new = [make_summary(component="payment-service")]

    assert merge_summaries(existing, []) == existing
    assert merge_summaries([], new) == new
    assert merge_summaries([], []) == []


def test_weighted_trend(make_summary):
    existing = make_summary(occurrences=5, trend_score=0.1, revision=3)
    new = make_summary(occurrences=3, trend_score=0.5)

    merged = merge_summaries([existing], [new])

    assert len(merged) == 1
    assert merged[0].occurrences == 8
    assert merged[0].trend_score == pytest.approx(0.25)
    assert merged[0].revision == 3


def test_window_widens_and_sample_prefers_new(make_summary):
    existing = make_summary(
        first_seen_ms=1_000, last_seen_ms=5_000, sample_message="ERROR SQLException old"
    )
    new = make_summary(
        first_seen_ms=3_000, last_seen_ms=9_000, sample_message="ERROR SQLException new"
    )

    merged = merge_summaries([existing], [new])[0]

    assert merged.first_seen_ms == 1_000
    assert merged.last_seen_ms == 9_000
    assert merged.sample_message == "ERROR SQLException new"


def test_empty_new_sample_keeps_existing(make_summary):
    existing = make_summary(sample_message="ERROR SQLException old")
    new = make_summary(sample_message="")

    assert merge_summaries([existing], [new])[0].sample_message == "ERROR SQLException old"


def test_occurrences_conserved_and_inputs_untouched(make_summary):
    existing = [
        make_summary(occurrences=4),
        make_summary(component="payment-service", occurrences=2),
    ]
    new = [
        make_summary(occurrences=6),
        make_summary(severity="WARN", occurrences=1),
    ]
    existing_before = [s.model_copy() for s in existing]
    new_before = [s.model_copy() for s in new]

    merged = merge_summaries(existing, new)

    assert len(merged) == 3
    assert sum(s.occurrences for s in merged) == 13
    assert existing == existing_before
    assert new == new_before
