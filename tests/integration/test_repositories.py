"""Integration tests for the SQL repositories"""

import pytest
from dataclasses import replace
from datetime import datetime, timezone
from unittest.mock import patch
from sqlalchemy.orm import Session
from kyc_gateway.domain.audit import HashChainLedger
from kyc_gateway.domain.engine import evaluate
from kyc_gateway.domain.exceptions import InvalidInputError, LedgerWriteError, PolicyNotFoundError
from kyc_gateway.domain.models import Industry, RiskFactors, RiskThresholds, SignalCategory
from kyc_gateway.domain.scorers import score_document, score_face
from kyc_gateway.infrastructure.database.models import LedgerBlock
from kyc_gateway.infrastructure.database.repositories import (
    BehavioralBaselineRepository,
    DecisionRepository,
    FraudAlertRepository,
    LedgerRepository,
    TenantPolicyRepository,
)

NOW = datetime(2025, 6, 1, 14, 30, tzinfo=timezone.utc)


@pytest.fixture
def decide(db: Session, good_document, good_face, basic_policy):
    """Evaluate and persist a decision through the SQL stores"""

    def _decide(face=good_face, verification_id=None):
        factors = RiskFactors(document=score_document(good_document, today=NOW.date()), face=score_face(face))
        return evaluate(
            "user_1",
            factors,
            basic_policy,
            ledger=HashChainLedger(LedgerRepository(db)),
            decisions=DecisionRepository(db),
            verification_id=verification_id,
            now=NOW,
        )

    return _decide


def test_decision_round_trip(db: Session, decide):
    """Test a saved decision reads back unchanged"""
    decision = decide()
    db.commit()

    repo = DecisionRepository(db)
    assert repo.get(decision.verification_id) == decision
    assert repo.list_for_user("user_1") == [decision]
    assert repo.get("VER-missing") is None


def test_duplicate_save_is_ignored(db: Session, decide):
    """Test saving a known verification id keeps the first decision"""
    decision = decide(verification_id="VER-dup")
    repo = DecisionRepository(db)

    repo.save(replace(decision, user_id="someone_else"))
    db.commit()

    assert repo.get("VER-dup").user_id == "user_1"
    assert repo.list_for_user("someone_else") == []


def test_ledger_detects_tampered_payload(db: Session, decide, good_face):
    """Test editing a stored block payload breaks chain integrity"""
    decide()
    decide(face=replace(good_face, liveness_score=40))
    db.commit()

    ledger = HashChainLedger(LedgerRepository(db))
    assert ledger.verify_chain_integrity().is_valid
    assert [r.index for r in ledger.records()] == [0, 1, 2]

    block = db.query(LedgerBlock).filter(LedgerBlock.block_index == 1).one()
    block.payload = {**block.payload, "outcome": "APPROVED"}
    db.commit()

    report = ledger.verify_chain_integrity()
    assert not report.is_valid
    assert 1 in report.corrupted_indices


def test_alert_resolution(db: Session, decide, good_face):
    """Test alerts are stored with the decision and resolve once"""
    decision = decide(face=replace(good_face, liveness_score=40))
    db.commit()
    alert_id = decision.fraud_alerts[0].alert_id
    repo = FraudAlertRepository(db)

    assert [a.alert_id for a in repo.list_alerts(unresolved_only=True)] == [alert_id]

    repo.resolve_alert(alert_id, "admin_1")
    repo.resolve_alert(alert_id, "admin_2")
    db.commit()

    stored = repo.get_alert(alert_id)
    assert stored.resolved
    assert stored.resolved_by == "admin_1"
    assert repo.list_alerts(unresolved_only=True) == []
    assert repo.resolve_alert("ALT-missing", "admin_1") is None


def test_behavioral_baseline_round_trip(db: Session, make_pattern):
    """Test baseline samples come back oldest first"""
    repo = BehavioralBaselineRepository(db)
    later = make_pattern(session_id="sess_2", captured_at=NOW.replace(hour=16))
    earlier = make_pattern(session_id="sess_1")

    repo.append("user_1", later)
    repo.append("user_1", earlier)
    db.commit()

    assert [p.session_id for p in repo.history("user_1")] == ["sess_1", "sess_2"]
    assert repo.history("user_2") == []


def test_tenant_policy_upsert_and_get(db: Session):
    """Test tenant policy storage applies presets and overrides"""
    repo = TenantPolicyRepository(db, enforce_government_baseline=False)

    with pytest.raises(PolicyNotFoundError):
        repo.get("tenant_x")

    repo.upsert("tenant_x", "banking")
    db.commit()
    policy = repo.get("tenant_x")
    assert policy.industry == Industry.BANKING
    assert policy.thresholds == RiskThresholds(auto_approve=90, manual_review=70, auto_reject=50)
    assert SignalCategory.BEHAVIORAL in policy.required_checks

    repo.upsert("tenant_x", Industry.BANKING, thresholds=RiskThresholds(auto_approve=80, manual_review=60, auto_reject=40))
    db.commit()
    assert repo.get("tenant_x").thresholds.auto_approve == 80


def test_tenant_policy_rejects_bad_input(db: Session):
    """Test invalid industry and thresholds write nothing"""
    repo = TenantPolicyRepository(db)

    with pytest.raises(PolicyNotFoundError):
        repo.upsert("tenant_y", "casino")

    with pytest.raises(InvalidInputError):
        repo.upsert("tenant_y", "fintech", thresholds=RiskThresholds(auto_approve=50, manual_review=60, auto_reject=40))

    with pytest.raises(PolicyNotFoundError):
        repo.get("tenant_y")


def test_failed_save_discards_sql_ledger_blocks(db: Session, good_document, good_face, basic_policy):
    """Test a decision save failure removes the blocks appended for it"""
    ledger = HashChainLedger(LedgerRepository(db))
    decisions = DecisionRepository(db)
    factors = RiskFactors(document=score_document(good_document, today=NOW.date()), face=score_face(good_face))

    with patch.object(DecisionRepository, "save", side_effect=RuntimeError("disk full")):
        with pytest.raises(LedgerWriteError):
            evaluate("user_1", factors, basic_policy, ledger=ledger, decisions=decisions, now=NOW)

    assert ledger.records() == []
    assert db.query(LedgerBlock).count() == 0
