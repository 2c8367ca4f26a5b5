"""Per-signal scorers - turn raw producer output into normalized SignalResults.

Every scorer is total: malformed or missing numbers are coerced to safe
defaults that lower the sub-score instead of raising.
"""

import math
from datetime import date
from typing import Any, List, Optional

from kyc_gateway.domain.models import (
    DocumentAnalysis,
    ExtractedDocumentData,
    FaceAnalysis,
    FingerprintAnalysis,
    HistoricalData,
    PalmVeinAnalysis,
    SecurityFeatures,
    SignalCategory,
    SignalResult,
    VoiceAnalysis,
)
from kyc_gateway.utils.date_utils import days_between, parse_document_date

# Flags consumed by aggregation and fraud-alert emission
TAMPERING_DETECTED = "TAMPERING_DETECTED"
DOCUMENT_EXPIRED = "DOCUMENT_EXPIRED"
DOCUMENT_EXPIRING = "DOCUMENT_EXPIRING"
LOW_OCR_CONFIDENCE = "LOW_OCR_CONFIDENCE"
LIVENESS_FAILURE = "LIVENESS_FAILURE"
ANTI_SPOOFING_FAILED = "ANTI_SPOOFING_FAILED"
FACE_MISMATCH = "FACE_MISMATCH"
BIOMETRIC_SPOOFING = "BIOMETRIC_SPOOFING"
BIOMETRIC_MISMATCH = "BIOMETRIC_MISMATCH"
LOW_SAMPLE_QUALITY = "LOW_SAMPLE_QUALITY"
PRIOR_FRAUD = "PRIOR_FRAUD"

LIVENESS_FAILURE_THRESHOLD = 60
AI_TAMPERING_THRESHOLD = 70
TAMPERING_FRAUD_FLOOR = 50
EXPIRY_WARNING_DAYS = 30


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def as_float(value: Any, default: float = 0.0) -> float:
    """Coerce producer numbers; None, NaN and non-numerics become default"""
    if isinstance(value, bool):
        return float(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def is_tampered(security: SecurityFeatures) -> bool:
    return bool(security.tampered_detected) or as_float(security.ai_tampering_score) > AI_TAMPERING_THRESHOLD


def derive_document_fraud_score(analysis: DocumentAnalysis) -> float:
    """
    Fraud likelihood (0-100) from extracted fields and security features.

    Used when the document producer does not report its own fraud score.
    Starts from 100 and removes suspicion for each positive indicator.
    """
    data = analysis.extracted_data or ExtractedDocumentData()
    security = analysis.security_features or SecurityFeatures()
    ocr_confidence = as_float(analysis.confidence)

    fraud_score = 100.0

    # Positive indicators
    if data.document_number:
        fraud_score -= 20
    if data.name:
        fraud_score -= 10
    if data.date_of_birth:
        fraud_score -= 15
    if security.hologram_detected:
        fraud_score -= 15
    if security.watermark_detected:
        fraud_score -= 10
    if security.microtext_detected:
        fraud_score -= 5
    if security.uv_features_detected:
        fraud_score -= 5
    if ocr_confidence > 80:
        fraud_score -= 20
    if ocr_confidence > 90:
        fraud_score -= 10

    # Negative indicators
    if is_tampered(security):
        fraud_score += 50
    if ocr_confidence < 50:
        fraud_score += 30

    return clamp(fraud_score)


def score_document(analysis: DocumentAnalysis, today: Optional[date] = None) -> SignalResult:
    """
    Score document authenticity.

    score = clamp(100 - fraud + (ocr_confidence - 50) / 2, 0, 100)
    """
    today = today or date.today()
    data = analysis.extracted_data or ExtractedDocumentData()
    security = analysis.security_features or SecurityFeatures()
    ocr_confidence = clamp(as_float(analysis.confidence))

    if analysis.fraud_score is None:
        fraud_score = derive_document_fraud_score(analysis)
    else:
        fraud_score = clamp(as_float(analysis.fraud_score, default=100.0))

    flags = set()
    indicators: List[str] = []

    if is_tampered(security):
        flags.add(TAMPERING_DETECTED)
        indicators.append("Document tampering detected")
        fraud_score = max(fraud_score, TAMPERING_FRAUD_FLOOR)

    expiry = parse_document_date(data.expiry_date)
    if expiry is not None:
        days_left = days_between(today, expiry)
        if days_left < 0:
            flags.add(DOCUMENT_EXPIRED)
            indicators.append("Document expired")
            fraud_score += 30
        elif days_left <= EXPIRY_WARNING_DAYS:
            flags.add(DOCUMENT_EXPIRING)
            indicators.append(f"Document expires in {days_left} days")
            fraud_score += 10

    if ocr_confidence < 50:
        flags.add(LOW_OCR_CONFIDENCE)
        indicators.append("Low OCR confidence")

    fraud_score = clamp(fraud_score)
    score = clamp(100 - fraud_score + (ocr_confidence - 50) / 2)

    return SignalResult(
        category=SignalCategory.DOCUMENT,
        normalized_score=score,
        confidence=ocr_confidence / 100,
        flags=frozenset(flags),
        raw_confidence=ocr_confidence,
        metrics={"fraud_score": fraud_score, "ocr_confidence": ocr_confidence},
        indicators=tuple(indicators),
    )


def score_face(analysis: FaceAnalysis) -> SignalResult:
    """Score face match, rewarding strong liveness and passed anti-spoofing"""
    match_confidence = clamp(as_float(analysis.confidence))
    liveness = clamp(as_float(analysis.liveness_score))

    score = match_confidence
    if liveness > 80:
        score += 10
    if liveness > 90:
        score += 5
    if analysis.anti_spoofing_passed is True:
        score += 10
    if liveness < 50:
        score -= 30

    flags = set()
    indicators: List[str] = []
    if liveness < LIVENESS_FAILURE_THRESHOLD:
        flags.add(LIVENESS_FAILURE)
        indicators.append(f"Liveness score {liveness:.0f} below {LIVENESS_FAILURE_THRESHOLD}")
    if analysis.anti_spoofing_passed is not True:
        flags.add(ANTI_SPOOFING_FAILED)
        indicators.append("Anti-spoofing check failed")
    if analysis.is_match is not True:
        flags.add(FACE_MISMATCH)
        indicators.append("Selfie does not match document photo")

    return SignalResult(
        category=SignalCategory.FACE,
        normalized_score=clamp(score),
        confidence=match_confidence / 100,
        flags=frozenset(flags),
        raw_confidence=match_confidence,
        metrics={"liveness_score": liveness, "match_confidence": match_confidence},
        indicators=tuple(indicators),
    )


def score_fingerprint(analysis: FingerprintAnalysis) -> SignalResult:
    confidence = clamp(as_float(analysis.confidence))
    quality = clamp(as_float(analysis.quality))
    minutiae = as_float(analysis.minutiae_count)

    score = confidence
    flags = set()
    indicators: List[str] = []

    if quality < 40:
        score -= 20
        flags.add(LOW_SAMPLE_QUALITY)
        indicators.append("Low fingerprint quality")
    if minutiae < 12:
        score -= 10
        indicators.append("Too few minutiae points")
    if analysis.spoofing_detected:
        score -= 40
        flags.add(BIOMETRIC_SPOOFING)
        indicators.append("Fingerprint spoofing detected")
    if not analysis.is_match:
        flags.add(BIOMETRIC_MISMATCH)

    return SignalResult(
        category=SignalCategory.FINGERPRINT,
        normalized_score=clamp(score),
        confidence=confidence / 100,
        flags=frozenset(flags),
        raw_confidence=confidence,
        metrics={"quality": quality, "minutiae_count": minutiae},
        indicators=tuple(indicators),
    )


def score_palm_vein(analysis: PalmVeinAnalysis) -> SignalResult:
    confidence = clamp(as_float(analysis.confidence))
    quality = clamp(as_float(analysis.vein_pattern_quality))

    score = confidence
    flags = set()
    indicators: List[str] = []

    if quality < 50:
        score -= 15
        flags.add(LOW_SAMPLE_QUALITY)
        indicators.append("Low vein pattern quality")
    if not analysis.is_live:
        score -= 40
        flags.add(BIOMETRIC_SPOOFING)
        indicators.append("Palm vein liveness check failed")
    if not analysis.is_match:
        flags.add(BIOMETRIC_MISMATCH)

    return SignalResult(
        category=SignalCategory.PALM_VEIN,
        normalized_score=clamp(score),
        confidence=confidence / 100,
        flags=frozenset(flags),
        raw_confidence=confidence,
        metrics={"quality": quality},
        indicators=tuple(indicators),
    )


def score_voice(analysis: VoiceAnalysis) -> SignalResult:
    confidence = clamp(as_float(analysis.confidence))
    quality = clamp(as_float(analysis.voiceprint_quality))

    score = confidence
    flags = set()
    indicators: List[str] = []

    if quality < 50:
        score -= 15
        flags.add(LOW_SAMPLE_QUALITY)
        indicators.append("Low voiceprint quality")
    if not analysis.is_live:
        score -= 30
        indicators.append("Voice liveness check failed")
    if analysis.spoofing_detected:
        score -= 40
        flags.add(BIOMETRIC_SPOOFING)
        indicators.append("Voice replay or synthesis detected")
    if not analysis.is_match:
        flags.add(BIOMETRIC_MISMATCH)

    return SignalResult(
        category=SignalCategory.VOICE,
        normalized_score=clamp(score),
        confidence=confidence / 100,
        flags=frozenset(flags),
        raw_confidence=confidence,
        metrics={"quality": quality},
        indicators=tuple(indicators),
    )


def score_historical(history: HistoricalData) -> SignalResult:
    """
    Score prior verification history.

    New users sit at a neutral 50; success pulls toward 100 and prior fraud
    attempts are penalized harder than successes are rewarded.
    """
    previous = max(0, int(as_float(history.previous_verifications)))
    fraud_attempts = max(0, int(as_float(history.fraud_attempts)))
    successful = max(0, int(as_float(history.successful_verifications)))

    total = previous + fraud_attempts
    if total == 0:
        score = 50.0
    else:
        success_rate = successful / total
        fraud_rate = fraud_attempts / total
        score = clamp(50 + success_rate * 50 - fraud_rate * 70)

    flags = set()
    indicators: List[str] = []
    if fraud_attempts > 0:
        flags.add(PRIOR_FRAUD)
        indicators.append(f"{fraud_attempts} prior fraud attempt(s)")

    return SignalResult(
        category=SignalCategory.HISTORICAL,
        normalized_score=score,
        confidence=min(1.0, total / 10),
        flags=frozenset(flags),
        metrics={
            "prior_verifications": float(previous),
            "fraud_attempts": float(fraud_attempts),
            "successful_verifications": float(successful),
        },
        indicators=tuple(indicators),
    )
