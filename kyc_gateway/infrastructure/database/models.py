"""SQLAlchemy ORM models for decisions, alerts, the audit chain, baselines, and tenant policy"""

import uuid
from sqlalchemy import Column, String, Boolean, Float, DateTime, Integer, Text, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class VerificationDecision(Base):
    """Write-once verification decision"""

    __tablename__ = "verification_decision"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    verification_id = Column(String(64), nullable=False, unique=True)
    user_id = Column(Text, nullable=False, index=True)
    tenant_id = Column(Text, nullable=False, index=True)
    outcome = Column(Text, nullable=False)
    trust_score = Column(Integer, nullable=False)
    risk_tier = Column(Text, nullable=False)
    decision = Column(JSON, nullable=False)  # full serialized Decision
    decided_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class FraudAlertRecord(Base):
    """Fraud alert raised by a decision; resolving never deletes"""

    __tablename__ = "fraud_alert"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    alert_id = Column(String(32), nullable=False, unique=True)
    verification_id = Column(String(64), nullable=False, index=True)
    user_id = Column(Text, nullable=False, index=True)
    severity = Column(Text, nullable=False)
    alert_type = Column(Text, nullable=False)
    category = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    indicators = Column(JSON, nullable=False)
    requires_action = Column(Boolean, nullable=False, default=False)
    resolved = Column(Boolean, nullable=False, default=False)
    resolved_by = Column(Text, nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    raised_at = Column(DateTime(timezone=True), nullable=False)


class LedgerBlock(Base):
    """One block of the audit hash chain"""

    __tablename__ = "ledger_block"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    block_index = Column(Integer, nullable=False, unique=True)  # concurrent appends collide here
    record_id = Column(String(32), nullable=False, unique=True)
    user_id = Column(Text, nullable=False, index=True)
    verification_id = Column(String(64), nullable=False, index=True)
    kind = Column(Text, nullable=False)
    timestamp = Column(Text, nullable=False)  # hashed verbatim
    payload = Column(JSON, nullable=False)
    data_hash = Column(String(64), nullable=False)
    previous_hash = Column(String(64), nullable=False)
    block_hash = Column(String(64), nullable=False)


class BehavioralSample(Base):
    """Append-only behavioral baseline sample"""

    __tablename__ = "behavioral_sample"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    session_id = Column(Text, nullable=False)
    pattern = Column(JSON, nullable=False)
    captured_at = Column(DateTime(timezone=True), nullable=False)


class TenantPolicy(Base):
    """Tenant industry selection with optional threshold overrides"""

    __tablename__ = "tenant_policy"

    tenant_id = Column(Text, primary_key=True)
    industry = Column(Text, nullable=False)
    auto_approve = Column(Float, nullable=True)
    manual_review = Column(Float, nullable=True)
    auto_reject = Column(Float, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
