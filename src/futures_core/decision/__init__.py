"""Decision engine: signal classification, sizing requests and ranking."""

from .decision_engine import DecisionEngine
from .models import OpportunityStats, OpportunityValidation, PreparedOrder, TradingOpportunity
from .settings import DecisionSettings, merge_settings

__all__ = [
    "DecisionEngine",
    "DecisionSettings",
    "OpportunityStats",
    "OpportunityValidation",
    "PreparedOrder",
    "TradingOpportunity",
    "merge_settings",
]
