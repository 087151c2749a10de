"""Signal normalization: actionable filter, severity, component and signature."""

import re
from dataclasses import dataclass
from typing import Iterable, List

from devops_insight.core.logging import get_logger
from devops_insight.schemas.log_schemas import FilteredLogEvent, RawLogEvent

logger = get_logger(__name__)

ERROR_PATTERN = re.compile(
    r"(\w+Exception|\w+Error|Failed|Timeout|5\d{2}\s|Connection\s+refused|Out\s+of\s+memory)",
    re.IGNORECASE,
)
HTTP_5XX_PATTERN = re.compile(r"\b5\d{2}\b")
ACTIONABLE_KEYWORDS = ("ERROR", "WARN", "EXCEPTION", "TIMEOUT")
COMPONENT_MARKERS = ("service", "-api", "-app")

UNKNOWN_COMPONENT = "unknown-service"
UNCLASSIFIED_SIGNATURE = "unclassified"
SIGNATURE_FALLBACK_CHARS = 50


@dataclass(frozen=True)
class NormalizedSignal:
    """Grouping attributes extracted from one filtered event."""

    component: str
    severity: str
    error_signature: str


class SignalNormalizer:
    """
    Turns raw log lines into grouping attributes.

    Severity is only ever ERROR or WARN: anything that reached the
    normalizer already passed the actionable filter.
    """

    def is_actionable(self, message: str) -> bool:
        """Check whether a raw line carries an error or warning signal."""
        upper = message.upper()
        if any(keyword in upper for keyword in ACTIONABLE_KEYWORDS):
            return True
        return bool(HTTP_5XX_PATTERN.search(message))

    def filter_events(self, events: Iterable[RawLogEvent]) -> List[FilteredLogEvent]:
        """
        Keep only actionable events.

        Args:
            events: Raw events from the log source

        Returns:
            Filtered events in input order
        """
        filtered = [
            FilteredLogEvent(source=e.source, timestamp_ms=e.timestamp_ms, message=e.message)
            for e in events
            if e.message and self.is_actionable(e.message)
        ]
        logger.debug("events_filtered", kept=len(filtered))
        return filtered

    def classify_severity(self, message: str) -> str:
        """Classify a filtered message as ERROR or WARN."""
        upper = message.upper()
        if "ERROR" in upper or "EXCEPTION" in upper:
            return "ERROR"
        if HTTP_5XX_PATTERN.search(message):
            return "ERROR"
        if "WARN" in upper:
            return "WARN"
        return "WARN"

    def extract_component(self, source: str) -> str:
        """
        Derive the component name from a stream identifier.

        A path segment naming a service, API or app wins; otherwise the
        last non-empty segment is used.
        """
        if not source or "/" not in source:
            return UNKNOWN_COMPONENT

        segments = [s for s in source.split("/") if s]
        if not segments:
            return UNKNOWN_COMPONENT

        for segment in segments:
            lowered = segment.lower()
            if any(marker in lowered for marker in COMPONENT_MARKERS):
                return segment

        return segments[-1]

    def extract_signature(self, message: str) -> str:
        """
        Extract a lossy error fingerprint from a message.

        Distinct messages sharing a failure token collapse to one signature.
        """
        match = ERROR_PATTERN.search(message)
        if match:
            return match.group(1).strip()

        head = message[:SIGNATURE_FALLBACK_CHARS]
        cleaned = re.sub(r"[^a-zA-Z0-9\s]", "", head)
        cleaned = re.sub(r"\s+", " ", cleaned).strip()
        return cleaned or UNCLASSIFIED_SIGNATURE

    def normalize(self, event: FilteredLogEvent) -> NormalizedSignal:
        """Extract component, severity and signature from one event."""
        return NormalizedSignal(
            component=self.extract_component(event.source),
            severity=self.classify_severity(event.message),
            error_signature=self.extract_signature(event.message),
        )
