"""Unit tests for the industry policy engine"""

import pytest
from dataclasses import replace
from datetime import date, datetime, timezone
from kyc_gateway.domain.exceptions import InvalidInputError, PolicyNotFoundError
from kyc_gateway.domain.models import (
    Industry,
    IndustryPolicy,
    Outcome,
    RiskFactors,
    RiskThresholds,
    Severity,
    SignalCategory,
)
from kyc_gateway.domain.policy import (
    ALERT_RULES,
    InMemoryPolicyStore,
    alert_id_for,
    apply_required_checks,
    build_fraud_alerts,
    build_policy,
    decide,
    is_below_auto_reject,
    missing_required_checks,
    validate_policy,
)
from kyc_gateway.domain.scorers import score_document, score_face

TODAY = date(2025, 6, 1)
NOW = datetime(2025, 6, 1, 14, 30, tzinfo=timezone.utc)


def test_build_banking_policy_with_government_baseline():
    """Test banking preset with the government overlay"""
    policy = build_policy("bank_1", "banking")

    assert policy.industry == Industry.BANKING
    assert policy.thresholds == RiskThresholds(90, 70, 50)
    assert {
        SignalCategory.DOCUMENT,
        SignalCategory.FACE,
        SignalCategory.BEHAVIORAL,
        SignalCategory.SYNTHETIC_IDENTITY,
    } <= policy.required_checks
    assert policy.retention_days == 3650
    assert policy.reverification_period_days == 180
    assert policy.fraud_alert_severities == {Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL}
    assert "aml_screening" in policy.external_checks


def test_build_ecommerce_policy_without_baseline():
    """Test ecommerce preset on its own requires only behavioral analytics"""
    policy = build_policy("shop_1", Industry.ECOMMERCE, enforce_government_baseline=False)

    assert policy.required_checks == {SignalCategory.BEHAVIORAL}
    assert policy.thresholds == RiskThresholds(70, 50, 30)
    assert policy.fraud_alert_severities == {Severity.CRITICAL}
    assert policy.retention_days == 730


def test_government_baseline_adds_face_to_ecommerce():
    """Test the baseline overlay forces face verification for every tenant"""
    policy = build_policy("shop_1", Industry.ECOMMERCE)

    assert SignalCategory.FACE in policy.required_checks
    assert "hipaa" not in policy.compliance_flags
    assert policy.compliance_flags == {"gdpr", "kyc_aml", "ccpa", "sox"}


def test_unknown_industry_raises():
    """Test unknown industry never falls back to a default"""
    with pytest.raises(PolicyNotFoundError):
        build_policy("t", "casino")


def test_threshold_override_must_be_monotonic():
    """Test override thresholds must satisfy approve > review > reject"""
    with pytest.raises(InvalidInputError):
        build_policy("t", Industry.FINTECH, thresholds=RiskThresholds(60, 70, 30))
    with pytest.raises(InvalidInputError):
        build_policy("t", Industry.FINTECH, thresholds=RiskThresholds(120, 70, 30))


def test_validate_policy_accepts_presets():
    """Test every preset yields a valid policy"""
    for industry in Industry:
        validate_policy(build_policy("t", industry))


@pytest.mark.parametrize(
    "score,expected",
    [(100, Outcome.APPROVED), (85, Outcome.APPROVED), (84, Outcome.MANUAL_REVIEW),
     (65, Outcome.MANUAL_REVIEW), (64, Outcome.REJECTED), (0, Outcome.REJECTED)],
)
def test_decide_boundaries(basic_policy: IndustryPolicy, score, expected):
    """Test two-threshold split at auto_approve and manual_review"""
    assert decide(score, basic_policy) == expected


def test_auto_reject_is_reporting_only(basic_policy: IndustryPolicy):
    """Test scores below auto_reject are flagged but still simply REJECTED"""
    assert decide(30, basic_policy) == Outcome.REJECTED
    assert is_below_auto_reject(30, basic_policy)
    assert not is_below_auto_reject(50, basic_policy)


def test_decide_is_monotone_in_thresholds(basic_policy: IndustryPolicy):
    """Test raising auto_approve never turns a non-approval into an approval"""
    stricter = replace(basic_policy, thresholds=RiskThresholds(95, 65, 45))
    for score in range(101):
        if decide(score, basic_policy) != Outcome.APPROVED:
            assert decide(score, stricter) != Outcome.APPROVED


def test_missing_required_check_blocks_approval(basic_policy: IndustryPolicy, good_face):
    """Test a missing required signal downgrades APPROVED to MANUAL_REVIEW"""
    factors = RiskFactors(face=score_face(good_face))

    missing = missing_required_checks(factors, basic_policy)

    assert missing == (SignalCategory.DOCUMENT,)
    assert apply_required_checks(Outcome.APPROVED, missing) == Outcome.MANUAL_REVIEW
    assert apply_required_checks(Outcome.REJECTED, missing) == Outcome.REJECTED
    assert apply_required_checks(Outcome.APPROVED, ()) == Outcome.APPROVED


def test_liveness_failure_raises_high_alert(basic_policy: IndustryPolicy, good_document, good_face):
    """Test liveness 40 emits one HIGH LIVENESS_FAILURE alert that requires action"""
    factors = RiskFactors(
        document=score_document(good_document, today=TODAY),
        face=score_face(replace(good_face, liveness_score=40, is_live=False)),
    )

    alerts = build_fraud_alerts("user_1", "VER-1", factors, basic_policy, NOW)

    assert len(alerts) == 1
    alert = alerts[0]
    assert alert.alert_type == "LIVENESS_FAILURE"
    assert alert.severity == Severity.HIGH
    assert alert.category == SignalCategory.FACE
    assert alert.requires_action
    assert alert.alert_id == alert_id_for("VER-1", "LIVENESS_FAILURE", SignalCategory.FACE)
    assert alert.timestamp == NOW


def test_alerts_filtered_by_policy_severities(basic_policy: IndustryPolicy, good_document, good_face):
    """Test a policy that only wants CRITICAL alerts suppresses HIGH ones"""
    critical_only = replace(basic_policy, fraud_alert_severities=frozenset({Severity.CRITICAL}))
    factors = RiskFactors(
        document=score_document(good_document, today=TODAY),
        face=score_face(replace(good_face, liveness_score=40)),
    )

    assert build_fraud_alerts("user_1", "VER-1", factors, critical_only, NOW) == ()


def test_alert_ids_are_deterministic():
    """Test alert id depends only on verification, type, and category"""
    a = alert_id_for("VER-1", "DOCUMENT_TAMPERING", SignalCategory.DOCUMENT)

    assert a == alert_id_for("VER-1", "DOCUMENT_TAMPERING", SignalCategory.DOCUMENT)
    assert a != alert_id_for("VER-2", "DOCUMENT_TAMPERING", SignalCategory.DOCUMENT)
    assert a.startswith("ALT-") and len(a) == 20


def test_in_memory_policy_store(basic_policy: IndustryPolicy):
    """Test store lookup and missing tenant"""
    store = InMemoryPolicyStore()
    store.put(basic_policy)

    assert store.get("tenant_basic") is basic_policy
    with pytest.raises(PolicyNotFoundError):
        store.get("unknown")


def test_alert_rules_are_keyed_by_category_and_flag():
    """Test each alert rule names a category, a flag, a type, a severity, and a description"""
    for category, flag, alert_type, severity, description in ALERT_RULES:
        assert isinstance(category, SignalCategory)
        assert isinstance(severity, Severity)
        assert flag and alert_type.isupper() and description

    keys = [(category, flag) for category, flag, *_ in ALERT_RULES]
    assert len(keys) == len(set(keys))
