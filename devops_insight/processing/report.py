"""Health report assembly from merged summaries and metrics."""

import re
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from devops_insight.core.logging import get_logger
from devops_insight.processing.predictor import average_metric
from devops_insight.schemas.health_schemas import (
    ErrorTrend,
    FailingComponent,
    HealthReport,
    PredictedFailure,
    PredictionResult,
    Recommendation,
    SlowEndpoint,
)
from devops_insight.schemas.log_schemas import MetricSnapshot, Summary

logger = get_logger(__name__)

HOUR_MS = 60 * 60 * 1000
MINUTE_MS = 60 * 1000

LATENCY_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*ms\b", re.IGNORECASE)
SLOW_KEYWORDS = ("timeout", "slow", "response time", "latency")
ENDPOINT_KEYWORDS = (
    ("order", "/api/v1/orders"),
    ("payment", "/api/v1/payments"),
    ("user", "/api/v1/users"),
    ("checkout", "/api/v1/checkout"),
)
PRIORITY_RANK = {"critical": 3, "high": 2, "medium": 1}

MAX_FAILING_COMPONENTS = 5
MAX_SLOW_ENDPOINTS = 5
MAX_PREDICTED_FAILURES = 5
MAX_RECOMMENDATIONS = 5


def format_time_ago(timestamp_ms: int, now_ms: int) -> str:
    """Render the distance between two instants as human text."""
    minutes = max(0, now_ms - timestamp_ms) // MINUTE_MS
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes} mins ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours} hours ago"
    return f"{hours // 24} days ago"


def extract_endpoint(text: str) -> str:
    """Find an API path in text, or map keywords to a canonical path."""
    start = text.find("/api/")
    if start != -1:
        end = text.find(" ", start)
        if end == -1:
            end = min(start + 50, len(text))
        return text[start:end].strip()

    lowered = text.lower()
    for keyword, path in ENDPOINT_KEYWORDS:
        if keyword in lowered:
            return path

    return "/api/v1/" + re.sub(r"[^a-z]", "", lowered[:20])


def prediction_text(signature: str) -> str:
    """Describe the failure a signature is heading towards."""
    lowered = signature.lower()
    if "database" in lowered or "connection pool" in lowered:
        return "Database connection pool exhaustion"
    if "memory" in lowered or "heap" in lowered:
        return "Memory exhaustion and OOM errors"
    if "timeout" in lowered:
        return "Service timeout and degraded performance"
    if "null" in lowered:
        return "NullPointerException cascade failure"
    return f"{signature[:60]} - cascading failure"


def preventive_action(signature: str) -> str:
    """Canned mitigation for a signature."""
    lowered = signature.lower()
    if "database" in lowered or "connection" in lowered:
        return "Scale up connection pool immediately"
    if "memory" in lowered:
        return "Increase memory allocation and restart services"
    if "timeout" in lowered:
        return "Increase timeout thresholds and optimize queries"
    if "cpu" in lowered:
        return "Scale horizontal instances"
    return "Review and fix root cause immediately"


def _percent_change(current: int, previous: int) -> Tuple[str, int]:
    """Direction and absolute percentage change between two counts."""
    if current == 0 and previous == 0:
        return "stable", 0
    if previous == 0:
        return "up", 100
    change = (current - previous) / previous * 100
    direction = "up" if change > 5 else "down" if change < -5 else "stable"
    return direction, int(round(abs(change)))


def _format_change(direction: str, magnitude: int) -> str:
    if direction == "up":
        return f"+{magnitude}%"
    if direction == "down":
        return f"-{magnitude}%"
    return f"{magnitude}%"


@dataclass
class _EndpointGroup:
    summaries: List[Summary] = field(default_factory=list)

    @property
    def dominant_signature(self) -> str:
        return max(self.summaries, key=lambda s: s.occurrences).error_signature


class HealthReportAssembler:
    """
    Derives the five report projections from summaries and metrics.

    Each projection is computed independently. With neither summaries nor
    metrics the assembler returns a fixed healthy report.
    """

    def __init__(self, region: str = "eu-west-1") -> None:
        """Initialize assembler."""
        self.region = region

    def assemble(
        self,
        project_id: str,
        summaries: Sequence[Summary],
        metrics: Sequence[MetricSnapshot],
        prediction: PredictionResult,
        now_ms: int,
        from_cache: bool = False,
    ) -> HealthReport:
        """
        Build the health report.

        Args:
            project_id: Owning project
            summaries: Merged summaries of the window
            metrics: Metric snapshots of the window
            prediction: Prediction of this run
            now_ms: Report timestamp
            from_cache: Whether summaries came from the freshness cache

        Returns:
            Assembled report
        """
        if not summaries and not metrics:
            logger.info("health_report_default", project_id=project_id)
            return self._report(
                project_id, prediction, now_ms, from_cache, **self._default_projections()
            )

        failing = self.build_failing_components(summaries, now_ms)
        slow = self.build_slow_endpoints(summaries)
        report = self._report(
            project_id,
            prediction,
            now_ms,
            from_cache,
            top_failing_components=failing,
            error_trends=self.build_error_trends(summaries, now_ms),
            slow_endpoints=slow,
            predicted_failures=self.build_predicted_failures(summaries, failing, slow),
            recommendations=self.build_recommendations(summaries, metrics, prediction),
        )

        logger.info(
            "health_report_assembled",
            project_id=project_id,
            failing_components=len(report.top_failing_components),
            slow_endpoints=len(report.slow_endpoints),
            predicted_failures=len(report.predicted_failures),
            recommendations=len(report.recommendations),
        )
        return report

    def _report(
        self,
        project_id: str,
        prediction: PredictionResult,
        now_ms: int,
        from_cache: bool,
        **projections,
    ) -> HealthReport:
        return HealthReport(
            project_id=project_id,
            generated_at_ms=now_ms,
            from_cache=from_cache,
            risk_level=prediction.risk_level,
            failure_likelihood=prediction.failure_likelihood,
            timeframe=prediction.timeframe,
            root_cause=prediction.root_cause,
            summary=prediction.summary,
            **projections,
        )

    def build_failing_components(
        self, summaries: Sequence[Summary], now_ms: int
    ) -> List[FailingComponent]:
        """Per-component failure counts, trend direction and status."""
        by_component: Dict[str, List[Summary]] = defaultdict(list)
        for s in summaries:
            by_component[s.component].append(s)

        components = []
        for name, items in by_component.items():
            failure_count = sum(s.occurrences for s in items)
            critical_errors = sum(s.occurrences for s in items if s.severity == "ERROR")
            avg_trend = sum(s.trend_score for s in items) / len(items)

            if avg_trend > 0.2:
                trend = "up"
            elif avg_trend < -0.2:
                trend = "down"
            else:
                trend = "stable"

            if critical_errors > 50 or avg_trend > 0.5:
                status = "critical"
            elif critical_errors > 10 or avg_trend > 0.2:
                status = "warning"
            else:
                status = "stable"

            components.append(
                FailingComponent(
                    name=name,
                    failure_count=failure_count,
                    failure_rate=round(failure_count / 60.0, 2),
                    trend=trend,
                    trend_value=round(abs(avg_trend) * 100, 2),
                    last_failure=format_time_ago(max(s.last_seen_ms for s in items), now_ms),
                    critical_errors=critical_errors,
                    status=status,
                )
            )

        components.sort(key=lambda c: c.failure_count, reverse=True)
        return components[:MAX_FAILING_COMPONENTS]

    def build_error_trends(self, summaries: Sequence[Summary], now_ms: int) -> List[ErrorTrend]:
        """Last hour and last six hours against their preceding windows."""
        peak_time = self._peak_hour(summaries, now_ms)

        def window_counts(start_ms: int, end_ms: int) -> Tuple[int, int]:
            errors = warnings = 0
            for s in summaries:
                if start_ms <= s.last_seen_ms < end_ms:
                    if s.severity == "ERROR":
                        errors += s.occurrences
                    else:
                        warnings += s.occurrences
            return errors, warnings

        trends = []
        for label, hours, error_limit, warning_limit in (
            ("Last Hour", 1, 50, 100),
            ("Last 6 Hours", 6, 150, 300),
        ):
            span = hours * HOUR_MS
            # inclusive of events stamped exactly at now
            errors, warnings = window_counts(now_ms - span, now_ms + 1)
            prev_errors, prev_warnings = window_counts(now_ms - 2 * span, now_ms - span)
            direction, magnitude = _percent_change(errors + warnings, prev_errors + prev_warnings)

            high = direction == "up" and (errors > error_limit or warnings > warning_limit)
            trends.append(
                ErrorTrend(
                    timeframe=label,
                    errors=errors,
                    warnings=warnings,
                    change=_format_change(direction, magnitude),
                    severity="high" if high else "medium",
                    peak_time=peak_time,
                )
            )
        return trends

    def _peak_hour(self, summaries: Sequence[Summary], now_ms: int) -> str:
        """Start of the hour bucket in the last six hours with most ERROR events."""
        buckets = [0] * 6
        start_ms = now_ms - 6 * HOUR_MS
        for s in summaries:
            if s.severity != "ERROR" or not start_ms <= s.last_seen_ms <= now_ms:
                continue
            index = min(5, (s.last_seen_ms - start_ms) // HOUR_MS)
            buckets[index] += s.occurrences

        if not any(buckets):
            return "N/A"

        peak_index = buckets.index(max(buckets))
        peak_ms = start_ms + peak_index * HOUR_MS
        peak_start = datetime.fromtimestamp(peak_ms / 1000, tz=timezone.utc)
        return peak_start.strftime("%H:%M")

    def _group_slow(self, summaries: Sequence[Summary]) -> Dict[str, _EndpointGroup]:
        groups: Dict[str, _EndpointGroup] = defaultdict(_EndpointGroup)
        for s in summaries:
            haystack = f"{s.error_signature} {s.sample_message}".lower()
            if not any(keyword in haystack for keyword in SLOW_KEYWORDS):
                continue
            endpoint_source = s.sample_message if "/api/" in s.sample_message else s.error_signature
            groups[extract_endpoint(endpoint_source)].summaries.append(s)
        return groups

    def build_slow_endpoints(self, summaries: Sequence[Summary]) -> List[SlowEndpoint]:
        """Latency statistics for endpoints with timeout or latency signals."""
        endpoints = []
        for endpoint, group in self._group_slow(summaries).items():
            request_count = sum(s.occurrences for s in group.summaries)
            error_count = sum(s.occurrences for s in group.summaries if s.severity == "ERROR")
            error_rate = error_count * 100.0 / request_count if request_count else 0.0

            latencies = [
                float(token)
                for s in group.summaries
                for token in LATENCY_PATTERN.findall(s.sample_message)
            ]
            if latencies:
                values = np.asarray(latencies)
                avg = int(round(float(values.mean())))
                p95 = int(round(float(np.percentile(values, 95))))
                p99 = int(round(float(np.percentile(values, 99))))
            else:
                avg = 2000 + error_count * 10
                p95 = avg + 1500
                p99 = p95 + 2000

            if p95 > 4000 or error_rate > 10:
                status = "critical"
            elif p95 > 2500 or error_rate > 5:
                status = "warning"
            else:
                status = "healthy"

            endpoints.append(
                SlowEndpoint(
                    endpoint=endpoint,
                    avg_response_time_ms=avg,
                    p95_response_time_ms=p95,
                    p99_response_time_ms=p99,
                    request_count=request_count,
                    error_rate=round(error_rate, 2),
                    status=status,
                    slowest_region=self.region,
                )
            )

        endpoints.sort(key=lambda e: e.p95_response_time_ms, reverse=True)
        return endpoints[:MAX_SLOW_ENDPOINTS]

    def build_predicted_failures(
        self,
        summaries: Sequence[Summary],
        failing: Sequence[FailingComponent],
        slow: Sequence[SlowEndpoint],
    ) -> List[PredictedFailure]:
        """Correlate critical components and degraded endpoints into predictions."""
        predictions = []

        for component in failing:
            if component.status != "critical":
                continue
            top = self._top_summary(summaries, component.name)
            if top is None:
                continue
            probability = min(
                100, int(round(component.failure_rate * 10 + component.trend_value))
            )
            predictions.append(
                self._prediction(
                    component.name, top.error_signature, probability, top.occurrences
                )
            )

        slow_groups = self._group_slow(summaries)
        for endpoint in slow:
            if endpoint.status not in ("critical", "warning"):
                continue
            group = slow_groups.get(endpoint.endpoint)
            signature = group.dominant_signature if group else "timeout"
            probability = min(
                100, int(round(endpoint.error_rate + endpoint.p95_response_time_ms / 100))
            )
            predictions.append(
                self._prediction(endpoint.endpoint, signature, probability, endpoint.request_count)
            )

        predictions.sort(key=lambda p: p.probability, reverse=True)
        return predictions[:MAX_PREDICTED_FAILURES]

    @staticmethod
    def _top_summary(summaries: Sequence[Summary], component: str) -> Optional[Summary]:
        candidates = [s for s in summaries if s.component == component]
        errors = [s for s in candidates if s.severity == "ERROR"] or candidates
        return max(errors, key=lambda s: s.occurrences) if errors else None

    @staticmethod
    def _prediction(
        component: str, signature: str, probability: int, occurrences: int
    ) -> PredictedFailure:
        if probability > 80:
            timeframe, impact, severity = "Within 15 minutes", "High", "critical"
        elif probability > 60:
            timeframe, impact, severity = "Within 1 hour", "Medium", "high"
        else:
            timeframe, impact, severity = "Within 4 hours", "Low", "medium"

        return PredictedFailure(
            component=component,
            prediction=prediction_text(signature),
            probability=probability,
            timeframe=timeframe,
            impact=impact,
            affected_users=f"~{occurrences * 10}",
            preventive_action=preventive_action(signature),
            severity=severity,
        )

    def build_recommendations(
        self,
        summaries: Sequence[Summary],
        metrics: Sequence[MetricSnapshot],
        prediction: PredictionResult,
    ) -> List[Recommendation]:
        """Rule-based items plus the assessor's recommendations, ranked."""
        recommendations = []

        avg_cpu = average_metric(metrics, "CPUUtilization")
        if avg_cpu > 70:
            recommendations.append(
                Recommendation(
                    title="Scale CPU Resources",
                    priority="critical" if avg_cpu > 85 else "high",
                    impact=f"Prevents {round((avg_cpu - 50) * 2)}% of performance degradation",
                    effort="Low",
                    estimated_time="10 minutes",
                    category="Performance",
                    steps=[
                        "Increase instance size or add more instances",
                        "Enable auto-scaling based on CPU threshold",
                        "Review and optimize CPU-intensive operations",
                    ],
                    roi="High - Improves response time by ~40%",
                )
            )

        avg_memory = average_metric(metrics, "MemoryUtilization")
        if avg_memory > 70:
            recommendations.append(
                Recommendation(
                    title="Increase Memory Allocation",
                    priority="critical" if avg_memory > 85 else "high",
                    impact=f"Prevents OOM errors affecting ~{int(avg_memory * 100)} requests/min",
                    effort="Low",
                    estimated_time="15 minutes",
                    category="Capacity",
                    steps=[
                        "Increase instance memory allocation",
                        "Review memory leaks in application",
                        "Implement memory profiling and monitoring",
                    ],
                    roi=f"High - Prevents ~${int(avg_memory * 1000)} in lost revenue",
                )
            )

        db_terms = ("database", "connection", "pool")
        db_summaries = [
            s for s in summaries if any(t in s.error_signature.lower() for t in db_terms)
        ]
        if db_summaries:
            has_database = any("database" in s.error_signature.lower() for s in db_summaries)
            recommendations.append(
                Recommendation(
                    title="Increase Database Connection Pool",
                    priority="critical",
                    impact=f"Prevents {94 if has_database else 80}% of predicted database failures",
                    effort="Low",
                    estimated_time="15 minutes",
                    category="Database",
                    steps=[
                        "Increase max_connections in database config",
                        "Scale connection pool from 20 to 50",
                        "Implement connection pooling monitoring",
                        "Add connection timeout alerts",
                    ],
                    roi="High - Prevents ~$50K in lost revenue",
                )
            )

        for text in prediction.recommendations:
            recommendations.append(
                Recommendation(
                    title=text,
                    priority="medium",
                    impact="Improves overall system stability",
                    effort="Medium",
                    estimated_time="30 minutes",
                    category="General",
                    steps=["Review and implement recommendation"],
                    roi="Medium - Proactive maintenance",
                )
            )

        # stable sort keeps rule order within a priority
        recommendations.sort(key=lambda r: PRIORITY_RANK.get(r.priority, 0), reverse=True)
        return recommendations[:MAX_RECOMMENDATIONS]

    @staticmethod
    def _default_projections() -> dict:
        """Fixed healthy report used when there is no signal at all."""
        return {
            "top_failing_components": [
                FailingComponent(
                    name="all-services",
                    failure_count=0,
                    failure_rate=0.0,
                    trend="stable",
                    trend_value=0.0,
                    last_failure="N/A",
                    critical_errors=0,
                    status="stable",
                )
            ],
            "error_trends": [
                ErrorTrend(
                    timeframe="Last Hour",
                    errors=0,
                    warnings=0,
                    change="0%",
                    severity="low",
                    peak_time="N/A",
                )
            ],
            "slow_endpoints": [],
            "predicted_failures": [],
            "recommendations": [
                Recommendation(
                    title="Continue Monitoring System Health",
                    priority="medium",
                    impact="Maintains system stability and early detection",
                    effort="Low",
                    estimated_time="Ongoing",
                    category="Monitoring",
                    steps=[
                        "Ensure logging is properly configured",
                        "Verify health endpoints are responding",
                        "Monitor key metrics regularly",
                    ],
                    roi="High - Prevents unexpected downtime",
                ),
                Recommendation(
                    title="Implement Proactive Alerting",
                    priority="medium",
                    impact="Early detection of issues before they become critical",
                    effort="Medium",
                    estimated_time="1 hour",
                    category="Monitoring",
                    steps=[
                        "Set up alerts for key metrics",
                        "Configure notification channels",
                        "Define alert thresholds",
                    ],
                    roi="Medium - Reduces MTTR by 60%",
                ),
            ],
        }
