"""Unit tests for adaptive weighting"""

import math
import pytest
from kyc_gateway.domain.exceptions import InvalidInputError
from kyc_gateway.domain.models import RiskFactors, SignalCategory, SignalResult, WeightComponent
from kyc_gateway.domain.weighting import (
    BASE_WEIGHTS,
    compute_adaptive_weights,
    present_components,
    redistribute_weights,
    validate_weights,
)

W = WeightComponent


def signal(category: SignalCategory, score: float = 80, **metrics) -> SignalResult:
    return SignalResult(category=category, normalized_score=score, confidence=0.9, metrics=metrics)


def test_base_weights_sum_to_one():
    """Test base weights are a distribution"""
    assert math.fsum(BASE_WEIGHTS.values()) == pytest.approx(1.0)


def test_adaptive_weights_without_adjustments():
    """Test ordinary confidence leaves base weights untouched"""
    factors = RiskFactors(
        document=signal(SignalCategory.DOCUMENT, ocr_confidence=80),
        face=signal(SignalCategory.FACE, liveness_score=80),
    )

    assert compute_adaptive_weights(factors) == pytest.approx(dict(BASE_WEIGHTS))


def test_adaptive_weights_high_ocr_and_liveness():
    """Test high OCR and liveness shift weight toward document and biometric"""
    factors = RiskFactors(
        document=signal(SignalCategory.DOCUMENT, ocr_confidence=95),
        face=signal(SignalCategory.FACE, liveness_score=95),
    )

    weights = compute_adaptive_weights(factors)

    assert weights[W.DOCUMENT] == pytest.approx(0.45)
    assert weights[W.BIOMETRIC] == pytest.approx(0.40)
    assert weights[W.BEHAVIORAL] == pytest.approx(0.05)
    assert weights[W.HISTORICAL] == pytest.approx(0.10)
    assert math.fsum(weights.values()) == pytest.approx(1.0)


def test_adaptive_weights_established_history():
    """Test more than five prior verifications borrow weight from document"""
    factors = RiskFactors(
        document=signal(SignalCategory.DOCUMENT, ocr_confidence=80),
        historical=signal(SignalCategory.HISTORICAL, prior_verifications=6),
    )

    weights = compute_adaptive_weights(factors)

    assert weights[W.HISTORICAL] == pytest.approx(0.15)
    assert weights[W.DOCUMENT] == pytest.approx(0.35)


def test_present_components_groups_biometrics():
    """Test all biometric modalities map to one component; screening signals map to none"""
    factors = RiskFactors(
        face=signal(SignalCategory.FACE),
        voice=signal(SignalCategory.VOICE),
        synthetic_identity=signal(SignalCategory.SYNTHETIC_IDENTITY),
    )

    assert present_components(factors) == {W.BIOMETRIC}


def test_redistribute_document_and_face_only():
    """Test weights renormalize to 1.0 over the components present"""
    weights = {W.DOCUMENT: 0.45, W.BIOMETRIC: 0.40, W.BEHAVIORAL: 0.05, W.HISTORICAL: 0.10}

    effective = redistribute_weights(weights, {W.DOCUMENT, W.BIOMETRIC})

    assert set(effective) == {W.DOCUMENT, W.BIOMETRIC}
    assert math.fsum(effective.values()) == pytest.approx(1.0)
    assert effective[W.DOCUMENT] == pytest.approx(0.45 / 0.85)


def test_redistribute_without_evidence_raises():
    """Test nothing to weight is invalid input"""
    with pytest.raises(InvalidInputError):
        redistribute_weights(dict(BASE_WEIGHTS), set())


@pytest.mark.parametrize("bad", [-0.1, 1.5, float("nan")])
def test_validate_weights_rejects_out_of_range(bad):
    """Test weights outside [0, 1] are rejected"""
    with pytest.raises(InvalidInputError):
        validate_weights({W.DOCUMENT: bad})
