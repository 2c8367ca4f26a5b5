"""Adaptive weighting - how much each evidence component counts toward trust"""

import math
from typing import Iterable, Mapping, Set

from kyc_gateway.domain.exceptions import InvalidInputError
from kyc_gateway.domain.models import (
    CATEGORY_COMPONENT,
    RiskFactors,
    WeightComponent,
    Weights,
)

BASE_WEIGHTS: Mapping[WeightComponent, float] = {
    WeightComponent.DOCUMENT: 0.40,
    WeightComponent.BIOMETRIC: 0.40,
    WeightComponent.BEHAVIORAL: 0.10,
    WeightComponent.HISTORICAL: 0.10,
}

WEIGHT_SHIFT = 0.05
HIGH_OCR_CONFIDENCE = 90
HIGH_LIVENESS = 90
ESTABLISHED_HISTORY = 5


def present_components(factors: RiskFactors) -> Set[WeightComponent]:
    """Weight components backed by at least one supplied signal"""
    return {
        CATEGORY_COMPONENT[category]
        for category in factors.present()
        if category in CATEGORY_COMPONENT
    }


def _shift(weights: Weights, to: WeightComponent, from_: WeightComponent) -> None:
    weights[to] += WEIGHT_SHIFT
    weights[from_] -= WEIGHT_SHIFT


def compute_adaptive_weights(factors: RiskFactors) -> Weights:
    """
    Base weights with confidence-driven adjustments.

    Adjustments compose additively:
    - OCR confidence > 90: +0.05 document, borrowed from biometric
    - Face liveness > 90: +0.05 biometric, borrowed from behavioral
    - More than 5 prior verifications: +0.05 historical, borrowed from document

    Weights are not yet renormalized for absent components.
    """
    weights: Weights = dict(BASE_WEIGHTS)

    if factors.document is not None and factors.document.metrics.get("ocr_confidence", 0) > HIGH_OCR_CONFIDENCE:
        _shift(weights, WeightComponent.DOCUMENT, WeightComponent.BIOMETRIC)

    if factors.face is not None and factors.face.metrics.get("liveness_score", 0) > HIGH_LIVENESS:
        _shift(weights, WeightComponent.BIOMETRIC, WeightComponent.BEHAVIORAL)

    if (
        factors.historical is not None
        and factors.historical.metrics.get("prior_verifications", 0) > ESTABLISHED_HISTORY
    ):
        _shift(weights, WeightComponent.HISTORICAL, WeightComponent.DOCUMENT)

    return {component: max(0.0, weight) for component, weight in weights.items()}


def validate_weights(weights: Mapping[WeightComponent, float]) -> None:
    for component, weight in weights.items():
        if not isinstance(component, WeightComponent):
            raise InvalidInputError(f"Unknown weight component: {component!r}")
        if not isinstance(weight, (int, float)) or math.isnan(weight) or weight < 0 or weight > 1:
            raise InvalidInputError(f"Weight for {component.value} must be within [0, 1], got {weight!r}")


def redistribute_weights(
    weights: Mapping[WeightComponent, float],
    present: Iterable[WeightComponent],
) -> Weights:
    """
    Drop absent components and scale the rest so they sum to 1.0.

    Absent weight is spread proportionally, so a missing signal never
    counts as a zero score.
    """
    present = set(present)
    kept = {component: weights.get(component, 0.0) for component in WeightComponent if component in present}
    total = math.fsum(kept.values())
    if total <= 0:
        raise InvalidInputError("No weighted evidence available to aggregate")
    return {component: weight / total for component, weight in kept.items()}
