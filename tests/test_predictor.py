"""Tests for failure likelihood and timeframe prediction."""

import pytest

from devops_insight.processing.predictor import (
    Predictor,
    determine_timeframe,
    failure_likelihood,
    overall_severity,
    weighted_average_trend,
)
from devops_insight.schemas.health_schemas import RiskAssessment, RiskLevel
from devops_insight.schemas.log_schemas import MetricSnapshot

NOW_MS = 1_700_000_000_000


def _cpu(value, component="i-0abc"):
    return MetricSnapshot(
        project_id="proj-1",
        timestamp_ms=NOW_MS,
        component=component,
        metric_name="CPUUtilization",
        value=value,
        unit="Percent",
    )


def test_weighted_average_trend(make_summary):
    summaries = [
        make_summary(occurrences=1, trend_score=1.0),
        make_summary(component="b-service", occurrences=3, trend_score=-1.0),
    ]

    assert weighted_average_trend(summaries) == pytest.approx(-0.5)
    assert weighted_average_trend([]) == 0.0


@pytest.mark.parametrize("trend", [-0.4, 0.0, 0.6])
@pytest.mark.parametrize("cpu", [10.0, 95.0])
def test_likelihood_is_monotonic_in_risk_level(make_summary, trend, cpu):
    summaries = [make_summary(trend_score=trend)]
    metrics = [_cpu(cpu)]

    values = [
        failure_likelihood(level, summaries, metrics)
        for level in (RiskLevel.CRITICAL, RiskLevel.HIGH, RiskLevel.MEDIUM, RiskLevel.LOW)
    ]

    assert values == sorted(values, reverse=True)


def test_likelihood_is_clamped(make_summary):
    likelihood = failure_likelihood(
        RiskLevel.CRITICAL, [make_summary(trend_score=0.3)], [_cpu(95.0)]
    )
    assert likelihood == 1.0


def test_likelihood_increments(make_summary):
    flat = [make_summary(trend_score=0.0)]
    rising = [make_summary(trend_score=0.2)]

    assert failure_likelihood(RiskLevel.LOW, flat, []) == pytest.approx(0.1)
    assert failure_likelihood(RiskLevel.LOW, rising, []) == pytest.approx(0.2)
    assert failure_likelihood(RiskLevel.LOW, flat, [_cpu(81.0)]) == pytest.approx(0.25)
    assert failure_likelihood(RiskLevel.LOW, flat, [_cpu(80.0)]) == pytest.approx(0.1)


def test_cpu_pressure_averages_all_components(make_summary):
    metrics = [_cpu(95.0), _cpu(60.0, component="i-0def")]

    assert failure_likelihood(RiskLevel.MEDIUM, [], metrics) == pytest.approx(0.4)


def test_unrecognized_level_uses_default():
    assert failure_likelihood("SEVERE", [], []) == pytest.approx(0.4)


@pytest.mark.parametrize(
    "level,likelihood,trend,expected",
    [
        (RiskLevel.CRITICAL, 0.9, 0.0, "within 1-2 hours"),
        (RiskLevel.CRITICAL, 0.8, 0.6, "within 4-6 hours"),
        (RiskLevel.CRITICAL, 0.8, 0.0, "low risk, no immediate failure expected"),
        (RiskLevel.HIGH, 0.7, 0.0, "within 4-6 hours"),
        (RiskLevel.MEDIUM, 0.4, 0.0, "within 12-24 hours"),
        (RiskLevel.LOW, 0.1, 0.9, "low risk, no immediate failure expected"),
    ],
)
def test_timeframe_table(make_summary, level, likelihood, trend, expected):
    assert determine_timeframe(level, likelihood, [make_summary(trend_score=trend)]) == expected


def test_overall_severity(make_summary):
    assert overall_severity([]) == "LOW"
    assert overall_severity([make_summary(severity="WARN", occurrences=500)]) == "LOW"
    assert overall_severity([make_summary(occurrences=1)]) == "MEDIUM"

    busy = [make_summary(component=f"s{i}-service", occurrences=30) for i in range(4)]
    assert overall_severity(busy) == "HIGH"

    burning = [make_summary(component=f"s{i}-service", occurrences=60) for i in range(6)]
    assert overall_severity(burning) == "CRITICAL"


def test_predict_counts_by_severity(make_summary):
    assessment = RiskAssessment(
        root_cause="Pool exhaustion",
        risk_level=RiskLevel.HIGH,
        summary="Degrading",
        recommendations=["a", "b", "c"],
    )
    summaries = [
        make_summary(occurrences=7),
        make_summary(severity="WARN", occurrences=3),
    ]

    prediction = Predictor().predict("proj-1", assessment, summaries, [], NOW_MS)

    assert prediction.project_id == "proj-1"
    assert prediction.timestamp_ms == NOW_MS
    assert prediction.risk_level is RiskLevel.HIGH
    assert prediction.failure_likelihood == pytest.approx(0.7)
    assert prediction.timeframe == "within 4-6 hours"
    assert (prediction.log_count, prediction.error_count, prediction.warning_count) == (10, 7, 3)
    assert prediction.recommendations == ["a", "b", "c"]
