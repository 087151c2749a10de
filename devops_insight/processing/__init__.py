"""Log signal processing stages."""

from devops_insight.processing.aggregator import Aggregator, calculate_trend
from devops_insight.processing.enrichment import EnrichmentPool
from devops_insight.processing.freshness import FreshnessDecision, FreshnessGate, FreshnessState
from devops_insight.processing.merger import merge_summaries
from devops_insight.processing.normalizer import SignalNormalizer
from devops_insight.processing.predictor import Predictor
from devops_insight.processing.report import HealthReportAssembler
from devops_insight.processing.risk_assessor import RiskAssessor

__all__ = [
    "Aggregator",
    "EnrichmentPool",
    "FreshnessDecision",
    "FreshnessGate",
    "FreshnessState",
    "HealthReportAssembler",
    "Predictor",
    "RiskAssessor",
    "SignalNormalizer",
    "calculate_trend",
    "merge_summaries",
]
