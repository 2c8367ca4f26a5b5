"""Audit trail endpoints - chain integrity and per-user history"""

import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from kyc_gateway.api.v1.schemas import AuditHistoryResponse, AuditRecordSchema, IntegrityResponse
from kyc_gateway.api.dependencies import require_permission
from kyc_gateway.infrastructure.database.session import get_db
from kyc_gateway.infrastructure.database.repositories import LedgerRepository
from kyc_gateway.domain.audit import HashChainLedger
from kyc_gateway.domain.rbac import Permission

router = APIRouter(dependencies=[Depends(require_permission(Permission.VIEW_BLOCKCHAIN_AUDIT))])


@router.get("/audit/integrity", response_model=IntegrityResponse)
def verify_integrity(db: Session = Depends(get_db)):
    """
    Recompute every block hash and link.

    Returns:
        Validity flag and the blocks that no longer verify
    """
    report = HashChainLedger(LedgerRepository(db)).verify_chain_integrity()
    if not report.is_valid:
        logging.error(
            "Audit chain integrity check failed",
            extra={"corrupted_record_ids": list(report.corrupted_record_ids), "length": report.length},
        )
    return IntegrityResponse(
        is_valid=report.is_valid,
        length=report.length,
        corrupted_indices=list(report.corrupted_indices),
        corrupted_record_ids=list(report.corrupted_record_ids),
    )


@router.get("/audit/history", response_model=AuditHistoryResponse)
def get_audit_history(user_id: str = Query(..., description="User identifier"), db: Session = Depends(get_db)):
    records = HashChainLedger(LedgerRepository(db)).history(user_id)
    return AuditHistoryResponse(
        user_id=user_id,
        records=[
            AuditRecordSchema(
                index=r.index,
                record_id=r.record_id,
                verification_id=r.verification_id,
                kind=r.kind,
                timestamp=r.timestamp,
                data_hash=r.data_hash,
                previous_hash=r.previous_hash,
                block_hash=r.block_hash,
            )
            for r in records
        ],
    )
