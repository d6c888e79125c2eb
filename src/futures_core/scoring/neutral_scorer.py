# src/futures_core/scoring/neutral_scorer.py
"""Neutral multi-factor scorer.

Missing data is neutral: a factor without a score contributes nothing to the
weighted mean and only lowers confidence. It is never replaced by a synthetic
negative value.
"""
import logging
import math
from collections.abc import Mapping
from typing import Any

from futures_core.scoring.models import (
    DEFAULT_FACTOR_WEIGHTS,
    FactorScore,
    FactorStats,
    ReliabilityCheck,
    ScoringResult,
    SignalAction,
    SignalClassification,
    SignalStrength,
    SignalThresholds,
)

logger = logging.getLogger(__name__)


def _normalize_key(name: str) -> str:
    return name.replace("_", "").replace("-", "").replace(" ", "").lower()


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class NeutralScorer:
    """Aggregates named factor scores into a weighted signal and confidence.

    Attributes:
        factor_weights: Nominal weight per factor name, in evaluation order.
    """

    MIN_RELIABLE_CONFIDENCE = 30
    MIN_RELIABLE_FACTORS = 2

    def __init__(self, factor_weights: Mapping[str, float] | None = None):
        """Initialize the scorer.

        Args:
            factor_weights: Nominal weights keyed by factor name. Defaults to
                DEFAULT_FACTOR_WEIGHTS.
        """
        self.factor_weights = dict(factor_weights or DEFAULT_FACTOR_WEIGHTS)
        self._aliases = {_normalize_key(name): name for name in self.factor_weights}

    @staticmethod
    def sanitize_score(value: Any) -> float | None:
        """Coerce a raw factor input to a finite float or None.

        Args:
            value: Raw input from an indicator source.

        Returns:
            The value as float, or None for missing, non-numeric, NaN or
            infinite input.
        """
        if value is None or isinstance(value, bool):
            return None
        try:
            score = float(value)
        except (TypeError, ValueError):
            return None
        if not math.isfinite(score):
            return None
        return score

    def create_factors(self, inputs: Mapping[str, float | None]) -> list[FactorScore]:
        """Build one FactorScore per configured factor from raw inputs.

        Input keys are matched case-insensitively and ignoring underscores,
        so "on_chain", "onchain" and "OnChain" all address the same factor.

        Args:
            inputs: Factor scores keyed by factor name.

        Returns:
            Factors in configured order; absent inputs get score None.
        """
        resolved: dict[str, float | None] = {}
        for key, value in inputs.items():
            name = self._aliases.get(_normalize_key(str(key)))
            if name is None:
                logger.debug(f"Ignoring unknown factor input '{key}'")
                continue
            resolved[name] = value

        return [
            FactorScore(
                name=name,
                score=resolved.get(name),
                weight=weight,
                original_weight=weight,
            )
            for name, weight in self.factor_weights.items()
        ]

    def compute_weighted_signal(self, factors: list[FactorScore]) -> ScoringResult:
        """Compute the weighted score over factors that have data.

        Args:
            factors: Factors to aggregate.

        Returns:
            ScoringResult with weighted score and confidence percentage.
        """
        numerator = 0.0
        denominator = 0.0
        total_weight = 0.0
        valid_factors = 0
        processed: list[FactorScore] = []

        for factor in factors:
            item = FactorScore(
                name=factor.name,
                score=factor.score,
                weight=factor.weight,
                original_weight=factor.original_weight,
            )

            if factor.score is None or not math.isfinite(factor.score):
                item.weight = 0.0
                logger.debug(f"{factor.name}: no data, weight set to 0")
            else:
                numerator += factor.score * factor.weight
                denominator += factor.weight
                valid_factors += 1

            total_weight += factor.original_weight
            processed.append(item)

        weighted_score = 0.0 if denominator == 0 else numerator / denominator

        if denominator == 0 or total_weight <= 0:
            confidence_pct = 0
        else:
            confidence_pct = _round_half_up(min(100.0, denominator / total_weight * 100))

        logger.debug(
            f"Weighted score {weighted_score:.2f}, confidence {confidence_pct}% "
            f"({valid_factors}/{len(factors)} factors, weight {denominator:.2f}/{total_weight:.2f})"
        )

        return ScoringResult(
            weighted_score=weighted_score,
            confidence_pct=confidence_pct,
            factors=processed,
            total_weight=total_weight,
            valid_factors=valid_factors,
            used_weight=denominator,
        )

    def process_inputs(self, inputs: Mapping[str, Any]) -> ScoringResult:
        """Sanitize raw inputs and compute the weighted signal."""
        sanitized = {key: self.sanitize_score(value) for key, value in inputs.items()}
        return self.compute_weighted_signal(self.create_factors(sanitized))

    def classify_signal(
        self,
        weighted_score: float,
        confidence_pct: float,
        thresholds: SignalThresholds | None = None,
    ) -> SignalClassification:
        """Classify a weighted score into a trade action.

        Confidence is checked first: below the minimum the result is always
        HOLD, whatever the score. Otherwise the score is compared against
        strong buy, buy, strong sell and sell thresholds in that order.

        Args:
            weighted_score: Weighted score from compute_weighted_signal.
            confidence_pct: Confidence percentage 0-100.
            thresholds: Classification thresholds. Defaults to SignalThresholds().

        Returns:
            SignalClassification with action, strength and optional reason.
        """
        t = thresholds or SignalThresholds()

        if confidence_pct < t.min_confidence:
            return SignalClassification(
                action=SignalAction.HOLD,
                strength=SignalStrength.WEAK,
                reason=f"Low confidence: {confidence_pct}% < {t.min_confidence}%",
            )

        if weighted_score >= t.strong_buy:
            return SignalClassification(SignalAction.STRONG_BUY, SignalStrength.STRONG)
        if weighted_score >= t.buy:
            return SignalClassification(SignalAction.BUY, SignalStrength.MODERATE)
        if weighted_score <= t.strong_sell:
            return SignalClassification(SignalAction.STRONG_SELL, SignalStrength.STRONG)
        if weighted_score <= t.sell:
            return SignalClassification(SignalAction.SELL, SignalStrength.MODERATE)

        return SignalClassification(
            action=SignalAction.HOLD,
            strength=SignalStrength.WEAK,
            reason=f"Neutral score: {weighted_score:.2f}",
        )

    def get_factor_stats(self, factors: list[FactorScore]) -> FactorStats:
        """Summarize how much of the nominal weight is backed by data."""
        valid = [f for f in factors if f.score is not None and math.isfinite(f.score)]
        total_weight = sum(f.original_weight for f in factors)
        used_weight = sum(f.weight for f in valid)
        coverage = used_weight / total_weight * 100 if total_weight > 0 else 0.0

        return FactorStats(
            total_factors=len(factors),
            valid_factors=len(valid),
            invalid_factors=len(factors) - len(valid),
            total_weight=total_weight,
            used_weight=used_weight,
            coverage=coverage,
        )

    def is_result_reliable(self, result: ScoringResult) -> ReliabilityCheck:
        """Judge whether a scoring result has enough data behind it.

        Args:
            result: Result to check.

        Returns:
            ReliabilityCheck; recommendations list data-coverage issues.
        """
        if result.confidence_pct < self.MIN_RELIABLE_CONFIDENCE:
            return ReliabilityCheck(
                reliable=False,
                reason=f"Confidence too low: {result.confidence_pct}%",
                recommendations=[
                    "Increase data coverage",
                    "Check connectivity with external data sources",
                ],
            )

        recommendations = []
        if result.valid_factors < 3:
            recommendations.append("Few valid factors, consider a higher confidence threshold")

        coverage = result.used_weight / result.total_weight * 100 if result.total_weight > 0 else 0.0
        if coverage < 50:
            recommendations.append("Low data coverage, check external data sources")

        return ReliabilityCheck(
            reliable=result.valid_factors >= self.MIN_RELIABLE_FACTORS,
            recommendations=recommendations,
        )
