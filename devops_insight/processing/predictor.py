"""Failure likelihood, timeframe and overall severity estimation."""

from typing import Sequence, Union

from devops_insight.core.logging import get_logger
from devops_insight.schemas.health_schemas import PredictionResult, RiskAssessment, RiskLevel
from devops_insight.schemas.log_schemas import MetricSnapshot, Summary

logger = get_logger(__name__)

BASE_LIKELIHOOD = {
    "CRITICAL": 0.9,
    "HIGH": 0.7,
    "MEDIUM": 0.4,
    "LOW": 0.1,
}
DEFAULT_LIKELIHOOD = 0.4
TREND_INCREMENT = 0.1
CPU_PRESSURE_INCREMENT = 0.15
CPU_PRESSURE_THRESHOLD = 80.0
ESCALATING_TREND = 0.5

CPU_METRIC = "CPUUtilization"


def _level_name(risk_level: Union[RiskLevel, str]) -> str:
    return risk_level.value if isinstance(risk_level, RiskLevel) else str(risk_level)


def weighted_average_trend(summaries: Sequence[Summary]) -> float:
    """Occurrence-weighted mean trend score, 0.0 for an empty set."""
    total = sum(s.occurrences for s in summaries)
    if total == 0:
        return 0.0
    return sum(s.trend_score * s.occurrences for s in summaries) / total


def average_metric(metrics: Sequence[MetricSnapshot], metric_name: str) -> float:
    """Mean value of one metric across all components, 0.0 if absent."""
    values = [m.value for m in metrics if m.metric_name == metric_name]
    return sum(values) / len(values) if values else 0.0


def failure_likelihood(
    risk_level: Union[RiskLevel, str],
    summaries: Sequence[Summary],
    metrics: Sequence[MetricSnapshot],
) -> float:
    """
    Combine qualitative risk with trend and CPU pressure.

    Args:
        risk_level: Assessed risk level
        summaries: Summaries of the window
        metrics: Metric snapshots of the window

    Returns:
        Likelihood clamped to [0.0, 1.0]
    """
    level = _level_name(risk_level)
    likelihood = BASE_LIKELIHOOD.get(level)
    if likelihood is None:
        logger.warning("unexpected_risk_level", risk_level=level, default=DEFAULT_LIKELIHOOD)
        likelihood = DEFAULT_LIKELIHOOD

    if weighted_average_trend(summaries) > 0:
        likelihood += TREND_INCREMENT

    if average_metric(metrics, CPU_METRIC) > CPU_PRESSURE_THRESHOLD:
        likelihood += CPU_PRESSURE_INCREMENT

    return min(1.0, max(0.0, likelihood))


def determine_timeframe(
    risk_level: Union[RiskLevel, str], likelihood: float, summaries: Sequence[Summary]
) -> str:
    """Map risk level, likelihood and escalation to a qualitative timeframe."""
    level = _level_name(risk_level)
    escalating = any(s.trend_score > ESCALATING_TREND for s in summaries)

    if level == "CRITICAL" and likelihood > 0.8:
        return "within 1-2 hours"
    if level == "HIGH" or (level == "CRITICAL" and escalating):
        return "within 4-6 hours"
    if level == "MEDIUM":
        return "within 12-24 hours"
    return "low risk, no immediate failure expected"


def overall_severity(summaries: Sequence[Summary]) -> str:
    """Classify a summary set as LOW, MEDIUM, HIGH or CRITICAL."""
    errors = [s for s in summaries if s.severity == "ERROR"]
    critical = [s for s in errors if s.occurrences > 50 or s.trend_score > ESCALATING_TREND]
    if len(critical) > 5:
        return "CRITICAL"
    if len([s for s in errors if s.occurrences > 20]) > 3:
        return "HIGH"
    if errors:
        return "MEDIUM"
    return "LOW"


class Predictor:
    """Turns a risk assessment into a persisted prediction."""

    def predict(
        self,
        project_id: str,
        assessment: RiskAssessment,
        summaries: Sequence[Summary],
        metrics: Sequence[MetricSnapshot],
        now_ms: int,
    ) -> PredictionResult:
        """
        Build the prediction for one health check.

        Args:
            project_id: Owning project
            assessment: Risk assessment (generated or fallback)
            summaries: Summaries of the window
            metrics: Metric snapshots of the window
            now_ms: Run timestamp

        Returns:
            Prediction with likelihood, timeframe and volume counts
        """
        likelihood = failure_likelihood(assessment.risk_level, summaries, metrics)
        timeframe = determine_timeframe(assessment.risk_level, likelihood, summaries)

        prediction = PredictionResult(
            project_id=project_id,
            timestamp_ms=now_ms,
            risk_level=assessment.risk_level,
            summary=assessment.summary,
            root_cause=assessment.root_cause,
            recommendations=list(assessment.recommendations),
            timeframe=timeframe,
            failure_likelihood=likelihood,
            log_count=sum(s.occurrences for s in summaries),
            error_count=sum(s.occurrences for s in summaries if s.severity == "ERROR"),
            warning_count=sum(s.occurrences for s in summaries if s.severity == "WARN"),
        )

        logger.info(
            "prediction_generated",
            project_id=project_id,
            risk_level=assessment.risk_level.value,
            failure_likelihood=round(likelihood, 3),
            timeframe=timeframe,
        )
        return prediction
