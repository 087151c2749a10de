"""Pydantic schemas for risk assessment and health reports."""

from enum import Enum
from typing import Any, List

from pydantic import BaseModel, Field, field_validator


class RiskLevel(str, Enum):
    """Risk classification accepted from the generation service."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class RiskAssessment(BaseModel):
    """
    Output contract of the generation service.

    Field names follow the JSON the model is asked to produce; every field
    is required and ``recommendations`` must hold exactly three strings.
    """

    root_cause: str = Field(..., alias="rootCause", min_length=1)
    risk_level: RiskLevel = Field(..., alias="riskLevel")
    summary: str = Field(..., min_length=1)
    recommendations: List[str] = Field(..., min_length=3, max_length=3)

    model_config = {"frozen": True, "populate_by_name": True}

    @field_validator("risk_level", mode="before")
    @classmethod
    def normalize_risk_level(cls, v: Any) -> Any:
        """Accept case and whitespace variations of the enum names."""
        if isinstance(v, str):
            return v.strip().upper()
        return v


class PredictionResult(BaseModel):
    """Persisted outcome of one health check."""

    project_id: str
    timestamp_ms: int
    risk_level: RiskLevel
    summary: str
    root_cause: str
    recommendations: List[str]
    timeframe: str
    failure_likelihood: float = Field(..., ge=0.0, le=1.0)
    log_count: int = 0
    error_count: int = 0
    warning_count: int = 0

    model_config = {"from_attributes": True}


class FailingComponent(BaseModel):
    """Per-component failure projection."""

    name: str
    failure_count: int
    failure_rate: float
    trend: str
    trend_value: float
    last_failure: str
    critical_errors: int
    status: str


class ErrorTrend(BaseModel):
    """Error and warning volume for one comparison window."""

    timeframe: str
    errors: int
    warnings: int
    change: str
    severity: str
    peak_time: str


class SlowEndpoint(BaseModel):
    """Latency projection for one endpoint."""

    endpoint: str
    avg_response_time_ms: int
    p95_response_time_ms: int
    p99_response_time_ms: int
    request_count: int
    error_rate: float
    status: str
    slowest_region: str


class PredictedFailure(BaseModel):
    """Human-readable near-term failure prediction."""

    component: str
    prediction: str
    probability: int = Field(..., ge=0, le=100)
    timeframe: str
    impact: str
    affected_users: str
    preventive_action: str
    severity: str


class Recommendation(BaseModel):
    """Ranked remediation item."""

    title: str
    priority: str
    impact: str
    effort: str
    estimated_time: str
    category: str
    steps: List[str]
    roi: str


class HealthReport(BaseModel):
    """Assembled predictive health view returned by a health check."""

    project_id: str
    generated_at_ms: int
    from_cache: bool
    risk_level: RiskLevel
    failure_likelihood: float
    timeframe: str
    root_cause: str
    summary: str
    top_failing_components: List[FailingComponent]
    error_trends: List[ErrorTrend]
    slow_endpoints: List[SlowEndpoint]
    predicted_failures: List[PredictedFailure]
    recommendations: List[Recommendation]
