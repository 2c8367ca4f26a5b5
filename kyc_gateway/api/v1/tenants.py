"""Tenant policy configuration"""

import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from kyc_gateway.api.v1.schemas import PolicyResponse, PolicyUpdateRequest
from kyc_gateway.api.dependencies import require_permission
from kyc_gateway.infrastructure.database.session import get_db
from kyc_gateway.infrastructure.database.repositories import TenantPolicyRepository
from kyc_gateway.domain.exceptions import InvalidInputError, PolicyNotFoundError
from kyc_gateway.domain.rbac import Permission, Role
from kyc_gateway.domain.serialization import policy_to_dict

router = APIRouter()


@router.get("/tenants/{tenant_id}/policy", response_model=PolicyResponse)
def get_policy(tenant_id: str, db: Session = Depends(get_db)):
    """Return the effective policy, including industry preset and baseline overlay"""
    try:
        policy = TenantPolicyRepository(db).get(tenant_id)
    except PolicyNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return PolicyResponse(**policy_to_dict(policy))


@router.put("/tenants/{tenant_id}/policy", response_model=PolicyResponse)
def put_policy(
    tenant_id: str,
    request_body: PolicyUpdateRequest,
    db: Session = Depends(get_db),
    role: Role = Depends(require_permission(Permission.CONFIGURE_INDUSTRY, Permission.CONFIGURE_THRESHOLDS)),
):
    """
    Select the tenant's industry and optionally override its thresholds.

    Thresholds must satisfy auto_approve > manual_review > auto_reject.
    """
    try:
        policy = TenantPolicyRepository(db).upsert(
            tenant_id,
            request_body.industry,
            thresholds=request_body.thresholds.to_domain() if request_body.thresholds else None,
        )
        db.commit()
    except InvalidInputError as e:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(e))
    except PolicyNotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))

    logging.info(
        "Tenant policy updated",
        extra={"tenant_id": tenant_id, "industry": policy.industry.value, "role": role.value},
    )
    return PolicyResponse(**policy_to_dict(policy))
