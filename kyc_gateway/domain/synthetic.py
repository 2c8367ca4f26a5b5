"""Synthetic identity detection - stitched-together or generated identities"""

import re
from datetime import date
from typing import List, Optional, Tuple

from kyc_gateway.domain.models import (
    BehavioralPattern,
    DeepfakeAnalysis,
    ExtractedDocumentData,
    SignalCategory,
    SignalResult,
    SyntheticIdentityResult,
)
from kyc_gateway.domain.scorers import clamp
from kyc_gateway.utils.date_utils import age_in_years, days_between, parse_document_date

SYNTHETIC_IDENTITY = "SYNTHETIC_IDENTITY"

AI_GENERATED_RISK = 40
INCONSISTENT_DATA_RISK = 25
SUSPICIOUS_PATTERN_RISK = 20
SYNTHETIC_THRESHOLD = 50

REQUIRED_FIELDS = ("name", "date_of_birth", "document_number")
REPEATED_DIGITS = re.compile(r"(\d)\1{3,}")


def check_data_consistency(data: ExtractedDocumentData, today: date) -> List[str]:
    """Internal inconsistencies typical of fabricated documents"""
    issues: List[str] = []

    if data.name and len(data.name.strip()) < 3:
        issues.append("Unusually short name")

    dob = parse_document_date(data.date_of_birth)
    if dob is not None:
        age = age_in_years(dob, today)
        if age < 18 or age > 120:
            issues.append("Suspicious age detected")

    if data.document_number and REPEATED_DIGITS.search(data.document_number):
        issues.append("Sequential pattern in document number")

    missing = [name for name in REQUIRED_FIELDS if not getattr(data, name)]
    if len(missing) > 1:
        issues.append("Multiple required fields missing")

    return issues


def detect_suspicious_patterns(
    data: ExtractedDocumentData,
    behavioral: Optional[BehavioralPattern],
    today: date,
) -> List[str]:
    patterns: List[str] = []

    issued = parse_document_date(data.issue_date)
    if issued is not None and days_between(issued, today) < 30:
        patterns.append("Very recently issued document")

    if behavioral is not None:
        if 0 < behavioral.timing.session_duration < 60:
            patterns.append("Unusually fast verification attempt")
        if "headless" in (behavioral.device_fingerprint or "").lower():
            patterns.append("Headless browser detected")

    if data.address and "po box" in data.address.lower():
        patterns.append("PO Box address detected")

    return patterns


def detect_synthetic_identity(
    document_data: Optional[ExtractedDocumentData],
    deepfake: Optional[DeepfakeAnalysis] = None,
    behavioral: Optional[BehavioralPattern] = None,
    today: Optional[date] = None,
) -> SyntheticIdentityResult:
    """
    Accumulate synthetic-identity risk from three independent detectors.

    Risk score contributions:
    - 40: AI-generated or deepfake face
    - 25: internally inconsistent document fields
    - 20: suspicious timing, device, or address patterns

    Declared synthetic above 50.
    """
    today = today or date.today()
    data = document_data or ExtractedDocumentData()
    deepfake = deepfake or DeepfakeAnalysis()

    indicators: List[str] = []
    risk_score = 0

    ai_generated = bool(deepfake.is_ai_generated or deepfake.is_deepfake)
    if ai_generated:
        indicators.append("AI-generated face detected")
        risk_score += AI_GENERATED_RISK

    issues = check_data_consistency(data, today)
    if issues:
        indicators.extend(issues)
        risk_score += INCONSISTENT_DATA_RISK

    patterns = detect_suspicious_patterns(data, behavioral, today)
    if patterns:
        indicators.extend(patterns)
        risk_score += SUSPICIOUS_PATTERN_RISK

    return SyntheticIdentityResult(
        is_synthetic=risk_score > SYNTHETIC_THRESHOLD,
        confidence=min(0.95, risk_score / 100),
        indicators=indicators,
        risk_score=min(100, risk_score),
        ai_generated=bool(deepfake.is_ai_generated),
        deepfake_detected=bool(deepfake.is_deepfake),
        inconsistent_data=bool(issues),
        suspicious_patterns=bool(patterns),
    )


def score_synthetic_identity(result: SyntheticIdentityResult) -> SignalResult:
    """Expose the detection as a screening signal; trust is the inverse of risk"""
    flags: Tuple[str, ...] = (SYNTHETIC_IDENTITY,) if result.is_synthetic else ()
    return SignalResult(
        category=SignalCategory.SYNTHETIC_IDENTITY,
        normalized_score=clamp(100 - result.risk_score),
        confidence=result.confidence,
        flags=frozenset(flags),
        metrics={"risk_score": float(result.risk_score)},
        indicators=tuple(result.indicators),
    )
