"""Plain-dict conversion for decisions, used for hashing and persistence"""

import json
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, Mapping

from kyc_gateway.domain.models import (
    BehavioralPattern,
    Decision,
    FraudAlert,
    Industry,
    IndustryPolicy,
    MouseMovement,
    NavigationPattern,
    Outcome,
    RiskScoreResult,
    RiskThresholds,
    RiskTier,
    Severity,
    SignalCategory,
    TimeBasedMetrics,
    TypingPattern,
    WeightComponent,
)


def canonical_json(data: Any) -> str:
    """Stable JSON: sorted keys, no whitespace"""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)


def risk_score_to_dict(result: RiskScoreResult) -> Dict[str, Any]:
    return {
        "trust_score": result.trust_score,
        "risk_tier": result.risk_tier.value,
        "breakdown": {category.value: score for category, score in result.breakdown.items()},
        "weights": {component.value: weight for component, weight in result.weights.items()},
        "recommendations": list(result.recommendations),
    }


def risk_score_from_dict(data: Mapping[str, Any]) -> RiskScoreResult:
    return RiskScoreResult(
        trust_score=int(data["trust_score"]),
        risk_tier=RiskTier(data["risk_tier"]),
        breakdown={SignalCategory(k): int(v) for k, v in data["breakdown"].items()},
        weights={WeightComponent(k): float(v) for k, v in data["weights"].items()},
        recommendations=tuple(data["recommendations"]),
    )


def policy_to_dict(policy: IndustryPolicy) -> Dict[str, Any]:
    return {
        "tenant_id": policy.tenant_id,
        "industry": policy.industry.value,
        "required_checks": sorted(c.value for c in policy.required_checks),
        "thresholds": {
            "auto_approve": policy.thresholds.auto_approve,
            "manual_review": policy.thresholds.manual_review,
            "auto_reject": policy.thresholds.auto_reject,
        },
        "fraud_alert_severities": sorted(s.value for s in policy.fraud_alert_severities),
        "retention_days": policy.retention_days,
        "reverification_period_days": policy.reverification_period_days,
        "compliance_flags": sorted(policy.compliance_flags),
        "verification_levels": sorted(policy.verification_levels),
        "external_checks": sorted(policy.external_checks),
    }


def policy_from_dict(data: Mapping[str, Any]) -> IndustryPolicy:
    thresholds = data["thresholds"]
    return IndustryPolicy(
        tenant_id=data["tenant_id"],
        industry=Industry(data["industry"]),
        required_checks=frozenset(SignalCategory(c) for c in data["required_checks"]),
        thresholds=RiskThresholds(
            auto_approve=thresholds["auto_approve"],
            manual_review=thresholds["manual_review"],
            auto_reject=thresholds["auto_reject"],
        ),
        fraud_alert_severities=frozenset(Severity(s) for s in data["fraud_alert_severities"]),
        retention_days=int(data["retention_days"]),
        reverification_period_days=int(data["reverification_period_days"]),
        compliance_flags=frozenset(data.get("compliance_flags", ())),
        verification_levels=frozenset(data.get("verification_levels", ())),
        external_checks=frozenset(data.get("external_checks", ())),
    )


def fraud_alert_to_dict(alert: FraudAlert) -> Dict[str, Any]:
    return {
        "alert_id": alert.alert_id,
        "user_id": alert.user_id,
        "verification_id": alert.verification_id,
        "severity": alert.severity.value,
        "alert_type": alert.alert_type,
        "category": alert.category.value,
        "description": alert.description,
        "indicators": list(alert.indicators),
        "requires_action": alert.requires_action,
        "timestamp": alert.timestamp.isoformat(),
    }


def fraud_alert_from_dict(data: Mapping[str, Any]) -> FraudAlert:
    return FraudAlert(
        alert_id=data["alert_id"],
        user_id=data["user_id"],
        verification_id=data["verification_id"],
        severity=Severity(data["severity"]),
        alert_type=data["alert_type"],
        category=SignalCategory(data["category"]),
        description=data["description"],
        indicators=tuple(data["indicators"]),
        requires_action=bool(data["requires_action"]),
        timestamp=datetime.fromisoformat(data["timestamp"]),
    )


def decision_to_dict(decision: Decision) -> Dict[str, Any]:
    return {
        "verification_id": decision.verification_id,
        "user_id": decision.user_id,
        "outcome": decision.outcome.value,
        "risk_score": risk_score_to_dict(decision.risk_score),
        "policy": policy_to_dict(decision.policy),
        "timestamp": decision.timestamp.isoformat(),
        "missing_checks": [c.value for c in decision.missing_checks],
        "fraud_alerts": [fraud_alert_to_dict(a) for a in decision.fraud_alerts],
        "below_auto_reject": decision.below_auto_reject,
    }


def decision_from_dict(data: Mapping[str, Any]) -> Decision:
    return Decision(
        verification_id=data["verification_id"],
        user_id=data["user_id"],
        outcome=Outcome(data["outcome"]),
        risk_score=risk_score_from_dict(data["risk_score"]),
        policy=policy_from_dict(data["policy"]),
        timestamp=datetime.fromisoformat(data["timestamp"]),
        missing_checks=tuple(SignalCategory(c) for c in data.get("missing_checks", ())),
        fraud_alerts=tuple(fraud_alert_from_dict(a) for a in data.get("fraud_alerts", ())),
        below_auto_reject=bool(data.get("below_auto_reject", False)),
    )


def behavioral_pattern_to_dict(pattern: BehavioralPattern) -> Dict[str, Any]:
    data = asdict(pattern)
    data["captured_at"] = pattern.captured_at.isoformat()
    return data


def behavioral_pattern_from_dict(data: Mapping[str, Any]) -> BehavioralPattern:
    return BehavioralPattern(
        user_id=data["user_id"],
        session_id=data["session_id"],
        device_fingerprint=data["device_fingerprint"],
        typing=TypingPattern(**data["typing"]),
        mouse=MouseMovement(**data["mouse"]),
        navigation=NavigationPattern(**data["navigation"]),
        timing=TimeBasedMetrics(**data["timing"]),
        captured_at=datetime.fromisoformat(data["captured_at"]),
    )
