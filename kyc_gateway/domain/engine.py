"""Risk decision engine - threads risk factors and tenant policy through the pure steps"""

import secrets
import threading
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol, Sequence

from kyc_gateway.domain.aggregation import aggregate, validate_factors
from kyc_gateway.domain.audit import FRAUD_ALERT_RECORD, VERIFICATION_RECORD, HashChainLedger
from kyc_gateway.domain.exceptions import LedgerWriteError
from kyc_gateway.domain.models import Decision, HistoricalData, Outcome, RiskFactors, Severity, IndustryPolicy
from kyc_gateway.domain.policy import (
    apply_required_checks,
    build_fraud_alerts,
    decide,
    is_below_auto_reject,
    missing_required_checks,
    validate_policy,
)
from kyc_gateway.domain.serialization import decision_to_dict, fraud_alert_to_dict


class DecisionStore(Protocol):
    """Write-once decision persistence keyed by verification id"""

    def get(self, verification_id: str) -> Optional[Decision]:
        ...

    def save(self, decision: Decision) -> None:
        ...

    def list_for_user(self, user_id: str) -> List[Decision]:
        ...


class InMemoryDecisionStore:
    def __init__(self) -> None:
        self._decisions: Dict[str, Decision] = {}
        self._lock = threading.Lock()

    def get(self, verification_id: str) -> Optional[Decision]:
        return self._decisions.get(verification_id)

    def save(self, decision: Decision) -> None:
        with self._lock:
            # Duplicate writes for the same verification are ignored
            self._decisions.setdefault(decision.verification_id, decision)

    def list_for_user(self, user_id: str) -> List[Decision]:
        return sorted(
            (d for d in self._decisions.values() if d.user_id == user_id),
            key=lambda d: d.timestamp,
        )


def generate_verification_id() -> str:
    return f"VER-{int(time.time() * 1000)}-{secrets.token_hex(5)}"


def historical_from_decisions(decisions: Sequence[Decision]) -> HistoricalData:
    """
    Summarize a user's prior decisions.

    A prior attempt counts as fraud when it was rejected with a HIGH or
    CRITICAL alert; everything else is an ordinary previous verification.
    """
    fraud_attempts = 0
    previous = 0
    successful = 0
    for decision in decisions:
        flagged = any(a.severity in (Severity.HIGH, Severity.CRITICAL) for a in decision.fraud_alerts)
        if decision.outcome is Outcome.REJECTED and flagged:
            fraud_attempts += 1
            continue
        previous += 1
        if decision.outcome is Outcome.APPROVED:
            successful += 1
    return HistoricalData(
        previous_verifications=previous,
        fraud_attempts=fraud_attempts,
        successful_verifications=successful,
    )


def evaluate(
    user_id: str,
    factors: RiskFactors,
    policy: IndustryPolicy,
    *,
    ledger: HashChainLedger,
    decisions: DecisionStore,
    verification_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Decision:
    """
    Produce, audit, and persist a Decision.

    Flow:
    1. Return the stored decision if this verification id was already decided
    2. Validate factors and policy (nothing is written on invalid input)
    3. Aggregate -> decide -> gate on required checks -> build fraud alerts
    4. Append the decision and each alert to the audit ledger
    5. Persist the decision; on failure the audit blocks from step 4 are discarded

    Raises:
        InvalidInputError: malformed factors or policy
        LedgerWriteError: audit or persistence failed; nothing is written
    """
    if verification_id is not None:
        existing = decisions.get(verification_id)
        if existing is not None:
            return existing

    validate_factors(factors)
    validate_policy(policy)

    verification_id = verification_id or generate_verification_id()
    timestamp = now or datetime.now(timezone.utc)

    risk_score = aggregate(factors)
    missing = missing_required_checks(factors, policy)
    outcome = apply_required_checks(decide(risk_score.trust_score, policy), missing)
    alerts = build_fraud_alerts(user_id, verification_id, factors, policy, timestamp)

    decision = Decision(
        verification_id=verification_id,
        user_id=user_id,
        outcome=outcome,
        risk_score=risk_score,
        policy=policy,
        timestamp=timestamp,
        missing_checks=missing,
        fraud_alerts=alerts,
        below_auto_reject=is_below_auto_reject(risk_score.trust_score, policy),
    )

    # Audit blocks are discarded again if anything after them fails
    try:
        with ledger.atomic():
            ledger.append(user_id, verification_id, VERIFICATION_RECORD, decision_to_dict(decision), timestamp)
            for alert in alerts:
                ledger.append(user_id, verification_id, FRAUD_ALERT_RECORD, fraud_alert_to_dict(alert), timestamp)
            decisions.save(decision)
    except LedgerWriteError:
        raise
    except Exception as e:
        raise LedgerWriteError(f"Failed to persist decision {verification_id}: {e}") from e

    return decision
