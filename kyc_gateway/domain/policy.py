"""Industry policy engine - thresholds, required checks, and fraud alert emission"""

import hashlib
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Protocol, Tuple

from kyc_gateway.domain.behavioral import BEHAVIORAL_ANOMALY
from kyc_gateway.domain.exceptions import InvalidInputError, PolicyNotFoundError
from kyc_gateway.domain.models import (
    FraudAlert,
    Industry,
    IndustryPolicy,
    Outcome,
    RiskFactors,
    RiskThresholds,
    Severity,
    SignalCategory,
)
from kyc_gateway.domain.scorers import BIOMETRIC_SPOOFING, LIVENESS_FAILURE, TAMPERING_DETECTED
from kyc_gateway.domain.synthetic import SYNTHETIC_IDENTITY

# Check names as configured per industry; the ones that map to a signal gate decisions
SIGNAL_CHECKS: Dict[str, SignalCategory] = {
    "document_verification": SignalCategory.DOCUMENT,
    "face_verification": SignalCategory.FACE,
    "liveness_detection": SignalCategory.FACE,
    "fingerprint_verification": SignalCategory.FINGERPRINT,
    "palm_vein_verification": SignalCategory.PALM_VEIN,
    "voice_verification": SignalCategory.VOICE,
    "behavioral_analytics": SignalCategory.BEHAVIORAL,
    "synthetic_identity_detection": SignalCategory.SYNTHETIC_IDENTITY,
}
EXTERNAL_CHECKS = (
    "blockchain_audit",
    "aml_screening",
    "sanctions_screening",
    "pep_screening",
    "credit_check",
    "address_verification",
)

_ALL_CHECKS_BUT_CREDIT = frozenset(SIGNAL_CHECKS) | (frozenset(EXTERNAL_CHECKS) - {"credit_check"})
_GOVERNMENT_COMPLIANCE = frozenset({"gdpr", "kyc_aml", "ccpa", "sox"})

INDUSTRY_PRESETS: Dict[Industry, Dict[str, Any]] = {
    Industry.BANKING: {
        "verification_levels": {"basic", "enhanced", "superior"},
        "checks": {
            "document_verification", "face_verification", "liveness_detection",
            "behavioral_analytics", "synthetic_identity_detection", "blockchain_audit",
            "aml_screening", "sanctions_screening", "pep_screening", "credit_check",
            "address_verification",
        },
        "thresholds": (90, 70, 50),
        "compliance": {"gdpr", "kyc_aml", "ccpa", "pci", "sox"},
        "retention_days": 2555,
        "reverification_period_days": 365,
        "alert_severities": {Severity.HIGH, Severity.CRITICAL},
    },
    Industry.GOVERNMENT: {
        "verification_levels": {"basic", "enhanced", "superior"},
        "checks": _ALL_CHECKS_BUT_CREDIT,
        "thresholds": (95, 80, 60),
        "compliance": _GOVERNMENT_COMPLIANCE,
        "retention_days": 3650,
        "reverification_period_days": 180,
        "alert_severities": {Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL},
    },
    Industry.CRYPTOCURRENCY: {
        "verification_levels": {"basic", "enhanced", "superior"},
        "checks": {
            "document_verification", "face_verification", "liveness_detection",
            "behavioral_analytics", "synthetic_identity_detection", "blockchain_audit",
            "aml_screening", "sanctions_screening", "pep_screening", "address_verification",
        },
        "thresholds": (85, 65, 45),
        "compliance": {"gdpr", "kyc_aml", "ccpa"},
        "retention_days": 1825,
        "reverification_period_days": 180,
        "alert_severities": {Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL},
    },
    Industry.FINTECH: {
        "verification_levels": {"basic", "enhanced"},
        "checks": {
            "document_verification", "face_verification", "liveness_detection",
            "behavioral_analytics", "synthetic_identity_detection", "blockchain_audit",
            "aml_screening", "sanctions_screening", "credit_check", "address_verification",
        },
        "thresholds": (85, 65, 45),
        "compliance": {"gdpr", "kyc_aml", "ccpa", "pci"},
        "retention_days": 2555,
        "reverification_period_days": 365,
        "alert_severities": {Severity.HIGH, Severity.CRITICAL},
    },
    Industry.ECOMMERCE: {
        "verification_levels": {"basic"},
        "checks": {"behavioral_analytics", "address_verification"},
        "thresholds": (70, 50, 30),
        "compliance": {"gdpr", "ccpa", "pci"},
        "retention_days": 730,
        "reverification_period_days": 730,
        "alert_severities": {Severity.CRITICAL},
    },
    Industry.HEALTHCARE: {
        "verification_levels": {"basic", "enhanced"},
        "checks": {
            "document_verification", "face_verification", "liveness_detection",
            "synthetic_identity_detection", "blockchain_audit", "address_verification",
        },
        "thresholds": (85, 70, 50),
        "compliance": {"gdpr", "ccpa", "hipaa"},
        "retention_days": 2555,
        "reverification_period_days": 730,
        "alert_severities": {Severity.HIGH, Severity.CRITICAL},
    },
}

# Fraud alert triggers: (signal category, flag on the signal, alert type, severity, description)
ALERT_RULES: Tuple[Tuple[SignalCategory, str, str, Severity, str], ...] = (
    (SignalCategory.SYNTHETIC_IDENTITY, SYNTHETIC_IDENTITY, "SYNTHETIC_IDENTITY", Severity.CRITICAL,
     "Synthetic identity indicators detected"),
    (SignalCategory.DOCUMENT, TAMPERING_DETECTED, "DOCUMENT_TAMPERING", Severity.HIGH,
     "Document tampering detected"),
    (SignalCategory.FACE, LIVENESS_FAILURE, "LIVENESS_FAILURE", Severity.HIGH,
     "Face liveness check failed"),
    (SignalCategory.FINGERPRINT, BIOMETRIC_SPOOFING, "BIOMETRIC_SPOOFING", Severity.HIGH,
     "Fingerprint spoofing detected"),
    (SignalCategory.PALM_VEIN, BIOMETRIC_SPOOFING, "BIOMETRIC_SPOOFING", Severity.HIGH,
     "Palm vein liveness check failed"),
    (SignalCategory.VOICE, BIOMETRIC_SPOOFING, "BIOMETRIC_SPOOFING", Severity.HIGH,
     "Voice spoofing detected"),
    (SignalCategory.BEHAVIORAL, BEHAVIORAL_ANOMALY, "BEHAVIORAL_ANOMALY", Severity.MEDIUM,
     "Anomalous session behavior"),
)

ACTION_SEVERITIES = frozenset({Severity.HIGH, Severity.CRITICAL})


class PolicyStore(Protocol):
    """Tenant policy lookup; the engine never mutates what it returns"""

    def get(self, tenant_id: str) -> IndustryPolicy:
        ...


class InMemoryPolicyStore:
    def __init__(self, policies: Optional[Mapping[str, IndustryPolicy]] = None):
        self._policies = dict(policies or {})

    def get(self, tenant_id: str) -> IndustryPolicy:
        try:
            return self._policies[tenant_id]
        except KeyError:
            raise PolicyNotFoundError(f"No policy configured for tenant {tenant_id!r}") from None

    def put(self, policy: IndustryPolicy) -> None:
        self._policies[policy.tenant_id] = policy


def parse_industry(industry: Any) -> Industry:
    try:
        return Industry(str(getattr(industry, "value", industry)).upper())
    except ValueError:
        raise PolicyNotFoundError(f"Unknown industry: {industry!r}") from None


def required_signals(checks: Iterable[str]) -> FrozenSet[SignalCategory]:
    return frozenset(SIGNAL_CHECKS[name] for name in checks if name in SIGNAL_CHECKS)


def build_policy(
    tenant_id: str,
    industry: Any,
    *,
    thresholds: Optional[RiskThresholds] = None,
    enforce_government_baseline: bool = True,
) -> IndustryPolicy:
    """
    Build a tenant policy from an industry preset.

    With the government baseline enforced, every tenant additionally requires
    face verification with liveness and inherits the government compliance
    flags, retention, re-verification period, and alert severities.

    Raises:
        PolicyNotFoundError: Unknown industry
        InvalidInputError: Threshold override is not monotonic
    """
    industry = parse_industry(industry)
    preset = INDUSTRY_PRESETS[industry]
    checks = set(preset["checks"])
    compliance = frozenset(preset["compliance"])
    retention_days = preset["retention_days"]
    reverification_days = preset["reverification_period_days"]
    severities = frozenset(preset["alert_severities"])

    if enforce_government_baseline:
        government = INDUSTRY_PRESETS[Industry.GOVERNMENT]
        checks |= {"face_verification", "liveness_detection"}
        compliance = frozenset(government["compliance"])
        retention_days = government["retention_days"]
        reverification_days = government["reverification_period_days"]
        severities = frozenset(government["alert_severities"])

    policy = IndustryPolicy(
        tenant_id=tenant_id,
        industry=industry,
        required_checks=required_signals(checks),
        thresholds=thresholds or RiskThresholds(*preset["thresholds"]),
        fraud_alert_severities=severities,
        retention_days=retention_days,
        reverification_period_days=reverification_days,
        compliance_flags=compliance,
        verification_levels=frozenset(preset["verification_levels"]),
        external_checks=frozenset(name for name in checks if name in EXTERNAL_CHECKS),
    )
    validate_policy(policy)
    return policy


def validate_policy(policy: IndustryPolicy) -> None:
    """
    Raises:
        InvalidInputError: thresholds out of [0, 100] or not
            auto_approve > manual_review > auto_reject
    """
    if not isinstance(policy, IndustryPolicy):
        raise InvalidInputError("policy must be an IndustryPolicy")

    t = policy.thresholds
    for name in ("auto_approve", "manual_review", "auto_reject"):
        value = getattr(t, name)
        if not isinstance(value, (int, float)) or not 0 <= value <= 100:
            raise InvalidInputError(f"Threshold {name} must be within [0, 100], got {value!r}")
    if not t.auto_approve > t.manual_review > t.auto_reject:
        raise InvalidInputError(
            "Thresholds must satisfy auto_approve > manual_review > auto_reject, got "
            f"{t.auto_approve} / {t.manual_review} / {t.auto_reject}"
        )
    if policy.retention_days < 0 or policy.reverification_period_days < 0:
        raise InvalidInputError("Retention periods must be non-negative")


def decide(trust_score: float, policy: IndustryPolicy) -> Outcome:
    """
    Two-threshold split:
    - trust >= auto_approve:                   APPROVED
    - manual_review <= trust < auto_approve:   MANUAL_REVIEW
    - trust < manual_review:                   REJECTED

    auto_reject does not change the outcome; see is_below_auto_reject.
    """
    if trust_score >= policy.thresholds.auto_approve:
        return Outcome.APPROVED
    if trust_score >= policy.thresholds.manual_review:
        return Outcome.MANUAL_REVIEW
    return Outcome.REJECTED


def is_below_auto_reject(trust_score: float, policy: IndustryPolicy) -> bool:
    return trust_score < policy.thresholds.auto_reject


def missing_required_checks(factors: RiskFactors, policy: IndustryPolicy) -> Tuple[SignalCategory, ...]:
    return tuple(
        category
        for category in SignalCategory
        if category in policy.required_checks and factors.get(category) is None
    )


def apply_required_checks(outcome: Outcome, missing: Tuple[SignalCategory, ...]) -> Outcome:
    """Missing required evidence can never auto-approve"""
    if missing and outcome is Outcome.APPROVED:
        return Outcome.MANUAL_REVIEW
    return outcome


def alert_id_for(verification_id: str, alert_type: str, category: SignalCategory) -> str:
    digest = hashlib.sha256(f"{verification_id}:{alert_type}:{category.value}".encode("utf-8")).hexdigest()
    return f"ALT-{digest[:16]}"


def build_fraud_alerts(
    user_id: str,
    verification_id: str,
    factors: RiskFactors,
    policy: IndustryPolicy,
    timestamp: datetime,
) -> Tuple[FraudAlert, ...]:
    """Emit an alert for each triggered signal whose severity the policy allows"""
    alerts: List[FraudAlert] = []
    for category, flag, alert_type, severity, description in ALERT_RULES:
        result = factors.get(category)
        if result is None or not result.has_flag(flag):
            continue
        if severity not in policy.fraud_alert_severities:
            continue
        alerts.append(
            FraudAlert(
                alert_id=alert_id_for(verification_id, alert_type, category),
                user_id=user_id,
                verification_id=verification_id,
                severity=severity,
                alert_type=alert_type,
                category=category,
                description=description,
                indicators=result.indicators or (flag,),
                requires_action=severity in ACTION_SEVERITIES,
                timestamp=timestamp,
            )
        )
    return tuple(alerts)
