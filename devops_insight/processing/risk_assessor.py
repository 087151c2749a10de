"""Generative risk assessment with deterministic fallback."""

import asyncio
import json
import re
from collections import defaultdict
from typing import Dict, List, Protocol, Sequence

from pydantic import ValidationError

from devops_insight.core.error_handling import AssessmentError
from devops_insight.core.logging import get_logger
from devops_insight.monitoring.metrics import get_metrics_collector
from devops_insight.schemas.health_schemas import RiskAssessment, RiskLevel
from devops_insight.schemas.log_schemas import EmbeddingRecord, MetricSnapshot, Summary

logger = get_logger(__name__)

FALLBACK_ASSESSMENT = RiskAssessment(
    root_cause="Unable to perform AI analysis",
    risk_level=RiskLevel.MEDIUM,
    summary="Check system logs manually",
    recommendations=[
        "Review error logs",
        "Check system resources",
        "Monitor application health",
    ],
)

NARRATIVE_UNAVAILABLE = "AI summarization temporarily unavailable."
NARRATIVE_FAILED = "Unable to generate AI summary due to technical issues."
NARRATIVE_EMPTY = "No errors or warnings detected in the logs."

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class TextGenerator(Protocol):
    """Anything that completes a prompt."""

    async def generate(self, prompt: str, timeout_seconds: float) -> str:
        ...


def parse_assessment(raw: str) -> RiskAssessment:
    """
    Validate a generation response against the RiskAssessment contract.

    Args:
        raw: Raw completion text

    Returns:
        Validated assessment

    Raises:
        AssessmentError: If the text is not a conforming JSON object
    """
    text = _CODE_FENCE.sub("", (raw or "").strip())
    if not text:
        raise AssessmentError("generation service returned an empty response")

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise AssessmentError(f"response is not valid JSON: {e.msg}") from e

    if not isinstance(payload, dict):
        raise AssessmentError("response is not a JSON object")

    try:
        return RiskAssessment.model_validate(payload)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise AssessmentError(f"response violates contract: {', '.join(fields)}") from e


class RiskAssessor:
    """
    Asks the generation service for a structured risk assessment.

    Every failure (network, timeout, non-conforming output) resolves to
    the fixed fallback assessment. ``assess`` and ``narrate`` never raise.
    """

    def __init__(
        self,
        generator: TextGenerator,
        timeout_seconds: float = 120.0,
        narrative_timeout_seconds: float = 60.0,
        window_hours: int = 2,
    ) -> None:
        """Initialize risk assessor."""
        self.generator = generator
        self.timeout_seconds = timeout_seconds
        self.narrative_timeout_seconds = narrative_timeout_seconds
        self.window_hours = window_hours

    async def assess(
        self,
        summaries: Sequence[Summary],
        embeddings: Sequence[EmbeddingRecord],
        metrics: Sequence[MetricSnapshot],
    ) -> RiskAssessment:
        """
        Produce a risk assessment for the current signal.

        Args:
            summaries: Merged summaries of the window
            embeddings: Embedding records available for the window
            metrics: Metric snapshots of the window

        Returns:
            Parsed assessment, or the fallback on any failure
        """
        prompt = self.build_prompt(summaries, embeddings, metrics)

        try:
            raw = await self._generate(prompt, self.timeout_seconds)
            assessment = parse_assessment(raw)
        except AssessmentError as e:
            logger.warning("risk_assessment_fallback", error=str(e))
            get_metrics_collector().record_assessment_fallback()
            return FALLBACK_ASSESSMENT

        logger.info(
            "risk_assessment_completed",
            risk_level=assessment.risk_level.value,
            summaries=len(summaries),
            embeddings=len(embeddings),
        )
        return assessment

    async def narrate(self, summaries: Sequence[Summary]) -> str:
        """Ask for a short narrative of the top summaries."""
        if not summaries:
            return NARRATIVE_EMPTY

        top = sorted(summaries, key=lambda s: s.occurrences, reverse=True)[:10]
        lines = ["Analyze these log summaries and provide a brief 2-3 sentence summary:", ""]
        lines.extend(
            f"- {s.severity}: {s.error_signature} "
            f"({s.occurrences} occurrences, trend: {s.trend_score:.2f})"
            for s in top
        )

        try:
            text = (await self._generate("\n".join(lines), self.narrative_timeout_seconds)).strip()
        except AssessmentError as e:
            logger.warning("narrative_generation_failed", error=str(e))
            return NARRATIVE_FAILED

        return text or NARRATIVE_UNAVAILABLE

    async def _generate(self, prompt: str, timeout_seconds: float) -> str:
        """Call the generator under an outer timeout."""
        try:
            return await asyncio.wait_for(
                self.generator.generate(prompt, timeout_seconds), timeout=timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise AssessmentError(f"generation timed out after {timeout_seconds}s") from e
        except AssessmentError:
            raise
        except Exception as e:
            raise AssessmentError(str(e) or type(e).__name__) from e

    def build_prompt(
        self,
        summaries: Sequence[Summary],
        embeddings: Sequence[EmbeddingRecord],
        metrics: Sequence[MetricSnapshot],
    ) -> str:
        """Build the assessment prompt from all three signal sources."""
        prompt_parts = [
            "You are an advanced DevOps AI assistant performing comprehensive health "
            "analysis and failure prediction.",
            "",
            "You have access to historical log patterns (via embeddings), current error "
            "summaries, and system metrics.",
            "Analyze ALL the following data sources and respond with ONLY a JSON object "
            "(no markdown, no extra text):",
            "",
        ]
        prompt_parts.extend(self._pattern_section(embeddings))
        prompt_parts.extend(self._summary_section(summaries))
        prompt_parts.extend(self._metric_section(metrics))
        prompt_parts.extend(
            [
                "",
                "=== DATA CONTEXT ===",
                f"Time Window: Last {self.window_hours} hours (real-time health check)",
                f"Error Patterns Analyzed: {len(embeddings)} unique signatures",
                f"Recent Issues: {len(summaries)} log summaries",
                f"Metrics Data Points: {len(metrics)} snapshots",
                "",
                "=== REQUIRED JSON RESPONSE FORMAT ===",
                "{",
                '  "rootCause": "Comprehensive root cause analysis based on error patterns, '
                'trends, and metrics (2-3 sentences)",',
                '  "riskLevel": "LOW|MEDIUM|HIGH|CRITICAL",',
                '  "summary": "Overall system health summary with forward-looking insights '
                '(3-4 sentences)",',
                '  "recommendations": [',
                '    "Immediate action 1 (if any critical issues)",',
                '    "Short-term recommendation 2 (preventive measures)",',
                '    "Long-term recommendation 3 (system improvements)"',
                "  ]",
                "}",
                "",
                "=== CRITICAL ANALYSIS RULES ===",
                "1. Respond with VALID JSON ONLY (no markdown, no code blocks)",
                "2. riskLevel must be one of: LOW, MEDIUM, HIGH, CRITICAL",
                "3. Consider error TRENDS heavily - increasing trends indicate growing problems",
                "4. If errors are INCREASING (positive trend > 0.3): raise risk level",
                "5. If metrics show resource exhaustion (>80%): minimum MEDIUM risk",
                "6. If metrics show critical levels (>90%): minimum HIGH risk",
                "7. Cross-correlate: errors + high metrics = higher risk than either alone",
                "8. Use embedding patterns to identify recurring vs. new issues",
                "9. Provide exactly 3 actionable recommendations prioritized by urgency",
                "10. If system is healthy: acknowledge it but suggest proactive monitoring",
                "",
                "DECISION MATRIX:",
                "- No errors + normal metrics (<60%) -> LOW",
                "- Few errors + normal metrics -> LOW to MEDIUM",
                "- Increasing errors + normal metrics -> MEDIUM",
                "- Many errors + high metrics (>80%) -> HIGH",
                "- Critical errors + critical metrics (>90%) -> CRITICAL",
                "- Recurring patterns from embeddings + new errors -> Escalate risk",
            ]
        )
        return "\n".join(prompt_parts)

    def _pattern_section(self, embeddings: Sequence[EmbeddingRecord]) -> List[str]:
        """Ranked error-pattern statistics from embedding records."""
        lines = ["=== ERROR PATTERN ANALYSIS (Embeddings-Based) ==="]
        if not embeddings:
            lines.append("No historical error patterns available in embeddings database.")
            return lines

        by_signature: Dict[str, List[EmbeddingRecord]] = defaultdict(list)
        for record in embeddings:
            by_signature[record.error_signature].append(record)

        ranked = sorted(
            by_signature.items(),
            key=lambda item: sum(r.occurrences for r in item[1]),
            reverse=True,
        )[:10]

        lines.append(f"Total unique error patterns: {len(by_signature)}")
        lines.append(f"Total error occurrences tracked: {sum(r.occurrences for r in embeddings)}")
        lines.append("")
        lines.append("Top 10 Error Patterns (by frequency):")
        for rank, (signature, records) in enumerate(ranked, start=1):
            total = sum(r.occurrences for r in records)
            lines.append(f"{rank}. [{records[0].severity}] {signature}")
            lines.append(f"   Occurrences: {total} | Pattern: {records[0].condensed_text[:150]}")
        lines.append("")
        return lines

    def _summary_section(self, summaries: Sequence[Summary]) -> List[str]:
        """Top summaries ordered by trend, escalating first."""
        lines = ["=== RECENT ERROR AND WARNING LOG SUMMARIES ==="]
        if not summaries:
            lines.append(
                f"No errors or warnings detected in the current time window "
                f"(last {self.window_hours} hours)."
            )
            return lines

        lines.append(f"Total log summaries: {len(summaries)}")
        lines.append("")
        lines.append("Top 15 Issues (by trend - escalating errors shown first):")
        for s in sorted(summaries, key=lambda s: s.trend_score, reverse=True)[:15]:
            direction = "INCREASING" if s.trend_score > 0 else "DECREASING"
            lines.append(f"- [{s.severity}] Service: {s.component}")
            lines.append(f"  Error: {s.error_signature}")
            lines.append(
                f"  Occurrences: {s.occurrences} | Trend Score: {s.trend_score:.2f} "
                f"({abs(s.trend_score) * 100:.0f}% {direction})"
            )
            if s.sample_message:
                lines.append(f"  Sample: {s.sample_message[:200]}")
            lines.append("")
        return lines

    def _metric_section(self, metrics: Sequence[MetricSnapshot]) -> List[str]:
        """Per-component average, max and min for each metric."""
        lines = ["=== SYSTEM METRICS & PERFORMANCE ==="]
        if not metrics:
            lines.append("No metrics available.")
            return lines

        grouped: Dict[str, Dict[str, List[float]]] = defaultdict(lambda: defaultdict(list))
        for snapshot in metrics:
            grouped[snapshot.component][snapshot.metric_name].append(snapshot.value)

        for component, by_name in grouped.items():
            lines.append(f"- Service: {component}")
            for metric_name, values in by_name.items():
                avg = sum(values) / len(values)
                line = (
                    f"  {metric_name}: Avg={avg:.2f}%, Max={max(values):.2f}%, "
                    f"Min={min(values):.2f}%"
                )
                if avg > 90:
                    line += " CRITICAL"
                elif avg > 80:
                    line += " HIGH"
                lines.append(line)
        return lines
