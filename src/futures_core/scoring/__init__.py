"""Neutral multi-factor scoring."""

from .models import (
    DEFAULT_FACTOR_WEIGHTS,
    FactorName,
    FactorScore,
    FactorStats,
    ReliabilityCheck,
    ScoringResult,
    SignalAction,
    SignalClassification,
    SignalStrength,
    SignalThresholds,
)
from .neutral_scorer import NeutralScorer

__all__ = [
    "DEFAULT_FACTOR_WEIGHTS",
    "FactorName",
    "FactorScore",
    "FactorStats",
    "NeutralScorer",
    "ReliabilityCheck",
    "ScoringResult",
    "SignalAction",
    "SignalClassification",
    "SignalStrength",
    "SignalThresholds",
]
