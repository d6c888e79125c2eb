# src/futures_core/scoring/models.py
"""Data models for the neutral scoring system."""
from dataclasses import dataclass, field
from enum import Enum


class FactorName(str, Enum):
    """Named analytic factors that feed the weighted signal."""

    TECHNICAL = "Technical"
    SENTIMENT = "Sentiment"
    ONCHAIN = "OnChain"
    DERIVATIVES = "Derivatives"
    MACRO = "Macro"
    SMART_MONEY = "SmartMoney"
    COINGECKO = "CoinGecko"
    FEAR_GREED = "FearGreed"
    NEWS = "News"


# Nominal weights sum to 1.05 and are not renormalized; confidence is measured
# against this configured total.
DEFAULT_FACTOR_WEIGHTS: dict[str, float] = {
    FactorName.TECHNICAL.value: 0.40,
    FactorName.SENTIMENT.value: 0.08,
    FactorName.ONCHAIN.value: 0.15,
    FactorName.DERIVATIVES.value: 0.27,
    FactorName.MACRO.value: 0.05,
    FactorName.SMART_MONEY.value: 0.05,
    FactorName.COINGECKO.value: 0.02,
    FactorName.FEAR_GREED.value: 0.02,
    FactorName.NEWS.value: 0.01,
}


class SignalAction(str, Enum):
    """Trade action derived from a weighted score."""

    STRONG_BUY = "STRONG_BUY"
    BUY = "BUY"
    HOLD = "HOLD"
    SELL = "SELL"
    STRONG_SELL = "STRONG_SELL"

    @property
    def is_buy(self) -> bool:
        return "BUY" in self.value


class SignalStrength(str, Enum):
    """Strength band of a classified signal."""

    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"


@dataclass
class FactorScore:
    """A single factor's contribution to the weighted signal.

    Attributes:
        name: Factor name (e.g. "Technical").
        score: Factor score, or None when the source had no data.
        weight: Effective weight for this computation (0 when score is None).
        original_weight: Nominal configured weight, kept for confidence.
    """

    name: str
    score: float | None
    weight: float
    original_weight: float


@dataclass
class ScoringResult:
    """Outcome of aggregating factor scores.

    Attributes:
        weighted_score: Weighted mean over available factors (0 if none).
        confidence_pct: Share of nominal weight covered by data, 0-100.
        factors: Processed factors with effective weights.
        total_weight: Sum of nominal weights of all factors.
        valid_factors: Number of factors that had data.
        used_weight: Sum of weights of factors that had data.
    """

    weighted_score: float
    confidence_pct: int
    factors: list[FactorScore]
    total_weight: float
    valid_factors: int
    used_weight: float = 0.0


@dataclass
class SignalThresholds:
    """Thresholds used to classify a weighted score."""

    min_confidence: float = 45
    strong_buy: float = 3.0
    buy: float = 1.5
    sell: float = -1.5
    strong_sell: float = -3.0


@dataclass
class SignalClassification:
    """Classified trade signal.

    Attributes:
        action: Resulting action.
        strength: Strength band of the action.
        reason: Explanation when the action is HOLD.
    """

    action: SignalAction
    strength: SignalStrength
    reason: str | None = None


@dataclass
class FactorStats:
    """Coverage statistics for a set of factors."""

    total_factors: int
    valid_factors: int
    invalid_factors: int
    total_weight: float
    used_weight: float
    coverage: float  # 0-100


@dataclass
class ReliabilityCheck:
    """Whether a scoring result is trustworthy enough to act on."""

    reliable: bool
    reason: str | None = None
    recommendations: list[str] = field(default_factory=list)
