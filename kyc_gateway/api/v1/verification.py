"""Verification endpoints - run a KYC verification and read stored decisions"""

import time
import logging
from fastapi import APIRouter, Depends, HTTPException, BackgroundTasks, Query, Request
from sqlalchemy.orm import Session

from kyc_gateway.api.v1.schemas import HistoryItem, HistoryResponse, VerificationRequest, VerificationResponse
from kyc_gateway.api.dependencies import get_compliance_client, get_request_id, get_signal_producer
from kyc_gateway.infrastructure.database.session import get_db
from kyc_gateway.infrastructure.database.repositories import (
    BehavioralBaselineRepository,
    DecisionRepository,
    LedgerRepository,
    TenantPolicyRepository,
)
from kyc_gateway.infrastructure.clients.signals import SignalProducerClient
from kyc_gateway.infrastructure.clients.compliance import ComplianceWebhookClient
from kyc_gateway.domain.audit import HashChainLedger
from kyc_gateway.domain.engine import historical_from_decisions
from kyc_gateway.domain.exceptions import (
    InvalidInputError,
    LedgerWriteError,
    PolicyNotFoundError,
    SignalUnavailableError,
)
from kyc_gateway.domain.models import SignalCategory
from kyc_gateway.domain.pipeline import VerificationCaptures, run_verification
from kyc_gateway.domain.serialization import fraud_alert_to_dict
from kyc_gateway.infrastructure.observability.metrics import (
    ledger_write_failures_counter,
    record_decision,
    signal_unavailable_counter,
)
from kyc_gateway.infrastructure.observability.logging import log_decision
from kyc_gateway.config import settings

router = APIRouter()


def _count_unavailable(category: SignalCategory) -> None:
    signal_unavailable_counter.labels(category=category.value).inc()


@router.post("/verifications", response_model=VerificationResponse)
async def create_verification(
    request_body: VerificationRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    producer: SignalProducerClient = Depends(get_signal_producer),
    compliance_client: ComplianceWebhookClient = Depends(get_compliance_client),
):
    """
    Run a KYC verification against the tenant's policy.

    Flow:
    1. Load tenant policy and the user's prior decisions
    2. Collect document, biometric, and deepfake signals concurrently
    3. Score, aggregate, decide, and raise fraud alerts
    4. Append decision + alerts to the audit chain and persist, in one transaction
    5. Push actionable alerts to the compliance webhook after commit
    6. Return the decision
    """
    start_time = time.time()
    request_id = get_request_id(request)
    user_id = request_body.user_id

    try:
        # 1. Policy and history
        policy = TenantPolicyRepository(db).get(request_body.tenant_id)
        decision_repo = DecisionRepository(db)

        replayed = (
            request_body.verification_id is not None
            and decision_repo.get(request_body.verification_id) is not None
        )
        prior = decision_repo.list_for_user(user_id)

        captures = VerificationCaptures(
            document_capture_id=request_body.document_capture_id,
            selfie_capture_id=request_body.selfie_capture_id,
            fingerprint_capture_id=request_body.fingerprint_capture_id,
            palm_vein_capture_id=request_body.palm_vein_capture_id,
            voice_capture_id=request_body.voice_capture_id,
            behavioral_pattern=(
                request_body.behavioral.to_domain(user_id) if request_body.behavioral is not None else None
            ),
        )

        # 2-4. Collect, score, decide, audit, persist
        decision = await run_verification(
            user_id,
            captures,
            policy,
            producer=producer,
            ledger=HashChainLedger(LedgerRepository(db)),
            decisions=decision_repo,
            baseline_store=BehavioralBaselineRepository(db),
            historical=historical_from_decisions(prior) if prior else None,
            verification_id=request_body.verification_id,
            timeout=settings.signal_timeout_seconds,
            on_unavailable=_count_unavailable,
        )

        db.commit()

    except PolicyNotFoundError as e:
        db.rollback()
        logging.warning(f"Policy not found: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=404, detail=str(e))

    except SignalUnavailableError as e:
        db.rollback()
        logging.error(f"No signals available: {e}", extra={"request_id": request_id, "user_id": user_id})
        raise HTTPException(status_code=503, detail="Signal producers unavailable")

    except InvalidInputError as e:
        db.rollback()
        logging.warning(f"Invalid verification input: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    except LedgerWriteError as e:
        ledger_write_failures_counter.inc()
        db.rollback()
        logging.error(f"Audit write failed: {e}", extra={"request_id": request_id, "user_id": user_id})
        raise HTTPException(status_code=503, detail="Audit ledger unavailable")

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    if not replayed:
        # 5. Notify compliance of alerts that need a human
        for alert in decision.fraud_alerts:
            if alert.requires_action:
                background_tasks.add_task(
                    compliance_client.send_fraud_alert,
                    {"event": "FRAUD_ALERT", "tenant_id": policy.tenant_id, **fraud_alert_to_dict(alert)},
                )

        # Record metrics and logs
        duration_ms = (time.time() - start_time) * 1000
        score = decision.risk_score
        record_decision(decision.outcome.value, score.risk_tier.value, score.trust_score, decision.fraud_alerts)
        log_decision(
            request_id,
            user_id,
            decision.verification_id,
            decision.outcome.value,
            score.trust_score,
            score.risk_tier.value,
            [a.alert_type for a in decision.fraud_alerts],
            duration_ms,
        )

    return VerificationResponse.from_decision(decision)


@router.get("/verifications/history", response_model=HistoryResponse)
def get_verification_history(
    user_id: str = Query(..., description="User identifier"),
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
):
    """
    Retrieve a user's verification decisions.

    Returns:
        Most recent decisions, newest first
    """
    decisions = DecisionRepository(db).list_for_user(user_id)[-limit:]

    history_items = [
        HistoryItem(
            verification_id=d.verification_id,
            outcome=d.outcome.value,
            trust_score=d.risk_score.trust_score,
            risk_tier=d.risk_score.risk_tier.value,
            fraud_alert_count=len(d.fraud_alerts),
            timestamp=d.timestamp.isoformat(),
        )
        for d in reversed(decisions)
    ]

    return HistoryResponse(user_id=user_id, decisions=history_items)


@router.get("/verifications/{verification_id}", response_model=VerificationResponse)
def get_verification(verification_id: str, db: Session = Depends(get_db)):
    """Fetch a stored decision by verification id"""
    decision = DecisionRepository(db).get(verification_id)
    if decision is None:
        raise HTTPException(status_code=404, detail="Verification not found")
    return VerificationResponse.from_decision(decision)
