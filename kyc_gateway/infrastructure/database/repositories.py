"""Data access layer for decisions, fraud alerts, the audit chain, baselines, and tenant policy"""

from datetime import datetime, timezone
from typing import List, Optional
from sqlalchemy.orm import Session
from kyc_gateway.infrastructure.database.models import (
    BehavioralSample,
    FraudAlertRecord,
    LedgerBlock,
    TenantPolicy,
    VerificationDecision,
)
from kyc_gateway.domain.exceptions import PolicyNotFoundError
from kyc_gateway.domain.models import BehavioralPattern, Decision, FraudAlert, IndustryPolicy, LedgerRecord, RiskThresholds
from kyc_gateway.domain.policy import build_policy, parse_industry
from kyc_gateway.domain.serialization import (
    behavioral_pattern_from_dict,
    behavioral_pattern_to_dict,
    decision_from_dict,
    decision_to_dict,
)
from kyc_gateway.config import settings


class DecisionRepository:
    """Write-once decision storage keyed by verification id"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, verification_id: str) -> Optional[Decision]:
        row = (
            self.db.query(VerificationDecision)
            .filter(VerificationDecision.verification_id == verification_id)
            .first()
        )
        return decision_from_dict(row.decision) if row else None

    def save(self, decision: Decision) -> None:
        """Persist a decision and its fraud alerts; a known verification id is ignored"""
        if self.get(decision.verification_id) is not None:
            return

        self.db.add(
            VerificationDecision(
                verification_id=decision.verification_id,
                user_id=decision.user_id,
                tenant_id=decision.policy.tenant_id,
                outcome=decision.outcome.value,
                trust_score=decision.risk_score.trust_score,
                risk_tier=decision.risk_score.risk_tier.value,
                decision=decision_to_dict(decision),
                decided_at=decision.timestamp,
            )
        )

        alerts = FraudAlertRepository(self.db)
        for alert in decision.fraud_alerts:
            alerts.create_alert(alert)

        self.db.flush()  # Surface unique violations inside the request transaction

    def list_for_user(self, user_id: str, limit: Optional[int] = None) -> List[Decision]:
        """Decisions for a user, oldest first"""
        query = (
            self.db.query(VerificationDecision)
            .filter(VerificationDecision.user_id == user_id)
            .order_by(VerificationDecision.decided_at.asc())
        )
        if limit is not None:
            query = query.limit(limit)
        return [decision_from_dict(row.decision) for row in query.all()]


class FraudAlertRepository:
    """Repository for fraud alerts"""

    def __init__(self, db: Session):
        self.db = db

    def create_alert(self, alert: FraudAlert) -> FraudAlertRecord:
        db_alert = FraudAlertRecord(
            alert_id=alert.alert_id,
            verification_id=alert.verification_id,
            user_id=alert.user_id,
            severity=alert.severity.value,
            alert_type=alert.alert_type,
            category=alert.category.value,
            description=alert.description,
            indicators=list(alert.indicators),
            requires_action=alert.requires_action,
            raised_at=alert.timestamp,
        )
        self.db.add(db_alert)
        return db_alert

    def list_alerts(
        self,
        user_id: Optional[str] = None,
        severity: Optional[str] = None,
        unresolved_only: bool = False,
        limit: int = 100,
    ) -> List[FraudAlertRecord]:
        """Fetch alerts, newest first"""
        query = self.db.query(FraudAlertRecord)
        if user_id is not None:
            query = query.filter(FraudAlertRecord.user_id == user_id)
        if severity is not None:
            query = query.filter(FraudAlertRecord.severity == severity)
        if unresolved_only:
            query = query.filter(FraudAlertRecord.resolved.is_(False))
        return query.order_by(FraudAlertRecord.raised_at.desc()).limit(limit).all()

    def get_alert(self, alert_id: str) -> Optional[FraudAlertRecord]:
        return self.db.query(FraudAlertRecord).filter(FraudAlertRecord.alert_id == alert_id).first()

    def resolve_alert(self, alert_id: str, resolved_by: str) -> Optional[FraudAlertRecord]:
        """Mark an alert resolved; resolving twice keeps the first resolution"""
        db_alert = self.get_alert(alert_id)
        if db_alert is None:
            return None
        if not db_alert.resolved:
            db_alert.resolved = True
            db_alert.resolved_by = resolved_by
            db_alert.resolved_at = datetime.now(timezone.utc)
            self.db.flush()
        return db_alert


def _to_record(block: LedgerBlock) -> LedgerRecord:
    return LedgerRecord(
        index=block.block_index,
        record_id=block.record_id,
        user_id=block.user_id,
        verification_id=block.verification_id,
        kind=block.kind,
        timestamp=block.timestamp,
        payload=block.payload,
        data_hash=block.data_hash,
        previous_hash=block.previous_hash,
        block_hash=block.block_hash,
    )


class LedgerRepository:
    """SQL-backed hash chain storage"""

    def __init__(self, db: Session):
        self.db = db

    def last(self) -> Optional[LedgerRecord]:
        block = self.db.query(LedgerBlock).order_by(LedgerBlock.block_index.desc()).first()
        return _to_record(block) if block else None

    def add(self, record: LedgerRecord) -> None:
        self.db.add(
            LedgerBlock(
                block_index=record.index,
                record_id=record.record_id,
                user_id=record.user_id,
                verification_id=record.verification_id,
                kind=record.kind,
                timestamp=record.timestamp,
                payload=dict(record.payload),
                data_hash=record.data_hash,
                previous_hash=record.previous_hash,
                block_hash=record.block_hash,
            )
        )
        self.db.flush()  # A racing writer fails here on the unique block index

    def records(self) -> List[LedgerRecord]:
        blocks = self.db.query(LedgerBlock).order_by(LedgerBlock.block_index.asc()).all()
        return [_to_record(b) for b in blocks]

    def discard_from(self, index: int) -> None:
        self.db.query(LedgerBlock).filter(LedgerBlock.block_index >= index).delete(synchronize_session="fetch")


class BehavioralBaselineRepository:
    """Append-only behavioral baseline storage"""

    def __init__(self, db: Session):
        self.db = db

    def history(self, user_id: str) -> List[BehavioralPattern]:
        samples = (
            self.db.query(BehavioralSample)
            .filter(BehavioralSample.user_id == user_id)
            .order_by(BehavioralSample.captured_at.asc())
            .all()
        )
        return [behavioral_pattern_from_dict(s.pattern) for s in samples]

    def append(self, user_id: str, pattern: BehavioralPattern) -> None:
        self.db.add(
            BehavioralSample(
                user_id=user_id,
                session_id=pattern.session_id,
                pattern=behavioral_pattern_to_dict(pattern),
                captured_at=pattern.captured_at,
            )
        )
        self.db.flush()


class TenantPolicyRepository:
    """Tenant policy lookup and configuration"""

    def __init__(self, db: Session, enforce_government_baseline: Optional[bool] = None):
        self.db = db
        self.enforce_government_baseline = (
            settings.enforce_government_baseline
            if enforce_government_baseline is None
            else enforce_government_baseline
        )

    def _build(self, row: TenantPolicy) -> IndustryPolicy:
        thresholds = None
        if row.auto_approve is not None:
            thresholds = RiskThresholds(
                auto_approve=row.auto_approve,
                manual_review=row.manual_review,
                auto_reject=row.auto_reject,
            )
        return build_policy(
            row.tenant_id,
            row.industry,
            thresholds=thresholds,
            enforce_government_baseline=self.enforce_government_baseline,
        )

    def get(self, tenant_id: str) -> IndustryPolicy:
        """
        Raises:
            PolicyNotFoundError: Tenant has no configured policy
        """
        row = self.db.query(TenantPolicy).filter(TenantPolicy.tenant_id == tenant_id).first()
        if row is None:
            raise PolicyNotFoundError(f"No policy configured for tenant {tenant_id!r}")
        return self._build(row)

    def upsert(self, tenant_id: str, industry, thresholds: Optional[RiskThresholds] = None) -> IndustryPolicy:
        """
        Store a tenant's industry and threshold overrides.

        The resulting policy is built and validated before anything is written.

        Raises:
            PolicyNotFoundError: Unknown industry
            InvalidInputError: Thresholds out of range or not monotonic
        """
        industry = parse_industry(industry)
        policy = build_policy(
            tenant_id,
            industry,
            thresholds=thresholds,
            enforce_government_baseline=self.enforce_government_baseline,
        )

        row = self.db.query(TenantPolicy).filter(TenantPolicy.tenant_id == tenant_id).first()
        if row is None:
            row = TenantPolicy(tenant_id=tenant_id)
            self.db.add(row)
        row.industry = industry.value
        row.auto_approve = thresholds.auto_approve if thresholds else None
        row.manual_review = thresholds.manual_review if thresholds else None
        row.auto_reject = thresholds.auto_reject if thresholds else None
        self.db.flush()
        return policy
