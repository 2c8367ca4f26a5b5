"""Risk aggregation - weighted trust score, risk tier, and recommendations"""

import math
from typing import Dict, List, Mapping, Optional

from kyc_gateway.domain.exceptions import InvalidInputError
from kyc_gateway.domain.models import (
    BIOMETRIC_CATEGORIES,
    CATEGORY_COMPONENT,
    RiskFactors,
    RiskScoreResult,
    RiskTier,
    SignalCategory,
    SignalResult,
    WeightComponent,
    Weights,
)
from kyc_gateway.domain.scorers import ANTI_SPOOFING_FAILED, clamp
from kyc_gateway.domain.weighting import (
    compute_adaptive_weights,
    present_components,
    redistribute_weights,
    validate_weights,
)

DOCUMENT_FRAUD_CONCERN = 50
LIVENESS_CONCERN = 60
HIGH_CONFIDENCE_SCORE = 85

MANUAL_REVIEW_RECOMMENDED = "Manual review recommended"
ADDITIONAL_STEPS_REQUIRED = "Additional verification steps required"
DOCUMENT_AUTHENTICITY_CONCERNS = "Document authenticity concerns detected"
LIVENESS_FAILED = "Liveness verification failed - possible spoofing attempt"
ANTI_SPOOFING_CHECK_FAILED = "Anti-spoofing check failed"
HIGH_CONFIDENCE = "Verification successful - high confidence"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def determine_risk_tier(trust_score: float) -> RiskTier:
    """
    Map trust score to a fixed risk tier, independent of tenant policy.

    - >= 85: LOW
    - >= 65: MEDIUM
    - >= 40: HIGH
    - else:  CRITICAL
    """
    if trust_score >= 85:
        return RiskTier.LOW
    if trust_score >= 65:
        return RiskTier.MEDIUM
    if trust_score >= 40:
        return RiskTier.HIGH
    return RiskTier.CRITICAL


def validate_factors(factors: RiskFactors) -> None:
    """Reject bundles whose entries are not well-formed SignalResults"""
    if not isinstance(factors, RiskFactors):
        raise InvalidInputError("factors must be a RiskFactors bundle")

    for category in SignalCategory:
        result = factors.get(category)
        if result is None:
            continue
        if not isinstance(result, SignalResult):
            raise InvalidInputError(f"{category.value} must be a SignalResult")
        if result.category != category:
            raise InvalidInputError(
                f"{category.value} slot holds a {result.category.value} signal"
            )
        if not 0 <= result.normalized_score <= 100:
            raise InvalidInputError(f"{category.value} score out of range: {result.normalized_score}")
        if not 0 <= result.confidence <= 1:
            raise InvalidInputError(f"{category.value} confidence out of range: {result.confidence}")


def biometric_score(factors: RiskFactors) -> Optional[float]:
    """Confidence-weighted mean of the supplied biometric modalities"""
    results = [r for c in BIOMETRIC_CATEGORIES if (r := factors.get(c)) is not None]
    if not results:
        return None

    total_confidence = math.fsum(r.confidence for r in results)
    if total_confidence <= 0:
        return math.fsum(r.normalized_score for r in results) / len(results)
    return math.fsum(r.normalized_score * r.confidence for r in results) / total_confidence


def component_scores(factors: RiskFactors) -> Dict[WeightComponent, float]:
    scores: Dict[WeightComponent, float] = {}
    for category, result in factors.present().items():
        component = CATEGORY_COMPONENT.get(category)
        if component is None or component is WeightComponent.BIOMETRIC:
            continue
        scores[component] = result.normalized_score

    bio = biometric_score(factors)
    if bio is not None:
        scores[WeightComponent.BIOMETRIC] = bio
    return scores


def generate_recommendations(factors: RiskFactors, trust_score: int, risk_tier: RiskTier) -> List[str]:
    """Deterministic, de-duplicated recommendations in evaluation order"""
    recommendations: List[str] = []

    def add(text: str) -> None:
        if text not in recommendations:
            recommendations.append(text)

    if risk_tier in (RiskTier.HIGH, RiskTier.CRITICAL):
        add(MANUAL_REVIEW_RECOMMENDED)
        add(ADDITIONAL_STEPS_REQUIRED)

    if factors.document is not None and factors.document.metrics.get("fraud_score", 0) > DOCUMENT_FRAUD_CONCERN:
        add(DOCUMENT_AUTHENTICITY_CONCERNS)

    if factors.face is not None:
        if factors.face.metrics.get("liveness_score", 100) < LIVENESS_CONCERN:
            add(LIVENESS_FAILED)
        if factors.face.has_flag(ANTI_SPOOFING_FAILED):
            add(ANTI_SPOOFING_CHECK_FAILED)

    if trust_score > HIGH_CONFIDENCE_SCORE:
        add(HIGH_CONFIDENCE)

    return recommendations


def aggregate(factors: RiskFactors, weights: Optional[Mapping[WeightComponent, float]] = None) -> RiskScoreResult:
    """
    Combine scored signals into a single trust score.

    trust_score = round(sum(weight_i * score_i)), clamped to [0, 100], with
    weights renormalized over the components actually supplied.
    """
    validate_factors(factors)

    if weights is None:
        weights = compute_adaptive_weights(factors)
    else:
        validate_weights(weights)

    effective: Weights = redistribute_weights(weights, present_components(factors))
    scores = component_scores(factors)

    weighted = math.fsum(effective[component] * scores[component] for component in effective)
    trust_score = int(clamp(round_half_up(weighted)))
    risk_tier = determine_risk_tier(trust_score)

    breakdown = {
        category: round_half_up(result.normalized_score)
        for category, result in factors.present().items()
    }

    return RiskScoreResult(
        trust_score=trust_score,
        risk_tier=risk_tier,
        breakdown=breakdown,
        weights=effective,
        recommendations=tuple(generate_recommendations(factors, trust_score, risk_tier)),
    )
