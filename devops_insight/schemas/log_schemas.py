"""Pydantic schemas for log signal data."""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

SummarySeverity = Literal["ERROR", "WARN"]


class RawLogEvent(BaseModel):
    """One log line as returned by the log source."""

    source: str = Field(..., description="Originating stream identifier")
    timestamp_ms: int = Field(..., ge=0)
    message: str

    model_config = {"frozen": True}


class FilteredLogEvent(RawLogEvent):
    """A raw event that passed the actionable-signal filter."""


class Summary(BaseModel):
    """
    Deduplicated incident record for one (component, signature, severity).

    Instances are immutable. Merging produces a new Summary; ``revision``
    is 0 until the summary has been persisted.
    """

    project_id: str
    component: str
    error_signature: str
    severity: SummarySeverity
    occurrences: int = Field(..., ge=1)
    first_seen_ms: int
    last_seen_ms: int
    sample_message: str = Field(default="", max_length=500)
    trend_score: float = 0.0
    revision: int = Field(default=0, ge=0)

    model_config = {"frozen": True, "from_attributes": True}

    @model_validator(mode="after")
    def validate_window(self) -> "Summary":
        """Ensure first_seen_ms <= last_seen_ms."""
        if self.first_seen_ms > self.last_seen_ms:
            raise ValueError("first_seen_ms must not be after last_seen_ms")
        return self

    @property
    def key(self) -> str:
        """Identity key within a project."""
        return summary_key(self.component, self.error_signature, self.severity)

    @property
    def summary_id(self) -> str:
        """Versioned identifier of this revision."""
        return f"{self.key}@r{self.revision}"


def summary_key(component: str, error_signature: str, severity: str) -> str:
    """Build the component#signature#severity identity key."""
    return f"{component}#{error_signature}#{severity}"


class EmbeddingRecord(BaseModel):
    """Semantic vector derived from one Summary."""

    project_id: str
    embedding_id: str
    summary_id: str
    vector: List[float]
    error_signature: str
    severity: str
    occurrences: int
    condensed_text: str
    last_seen_ms: int

    model_config = {"frozen": True, "from_attributes": True}


class MetricSnapshot(BaseModel):
    """Averaged infrastructure metric datapoint."""

    project_id: str
    timestamp_ms: int
    component: str
    metric_name: str
    value: float
    unit: str = "None"

    model_config = {"frozen": True, "from_attributes": True}


class ProcessingStats(BaseModel):
    """Stage durations of one log-processing run, in milliseconds."""

    fetch_ms: int = 0
    processing_ms: int = 0
    embedding_ms: int = 0
    ai_summarization_ms: int = 0
    persistence_ms: int = 0
    total_ms: int = 0


class LogProcessingResult(BaseModel):
    """Outcome of the log-processing operation."""

    project_id: str
    total_logs: int
    error_count: int
    warning_count: int
    summaries_created: int
    embeddings_created: int
    overall_severity: str
    ai_summary: str
    top_summaries: List[Summary]
    time_window: Dict[str, int]
    stats: ProcessingStats


class APIResponse(BaseModel):
    """Standard API response wrapper."""

    data: Optional[dict | list] = None
    status_code: int
    message: str
    errors: Optional[List[str]] = None

    model_config = {"from_attributes": True}
