"""Fraud alert listing and review"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from kyc_gateway.api.v1.schemas import AlertItem, AlertListResponse, ResolveAlertRequest
from kyc_gateway.api.dependencies import require_permission
from kyc_gateway.infrastructure.database.session import get_db
from kyc_gateway.infrastructure.database.repositories import FraudAlertRepository
from kyc_gateway.infrastructure.database.models import FraudAlertRecord
from kyc_gateway.domain.models import Severity
from kyc_gateway.domain.rbac import Permission

router = APIRouter()


def _to_item(alert: FraudAlertRecord) -> AlertItem:
    return AlertItem(
        alert_id=alert.alert_id,
        user_id=alert.user_id,
        verification_id=alert.verification_id,
        severity=alert.severity,
        alert_type=alert.alert_type,
        category=alert.category,
        description=alert.description,
        indicators=alert.indicators,
        requires_action=alert.requires_action,
        resolved=alert.resolved,
        resolved_by=alert.resolved_by,
        raised_at=alert.raised_at.isoformat(),
    )


@router.get(
    "/alerts",
    response_model=AlertListResponse,
    dependencies=[Depends(require_permission(Permission.VIEW_FRAUD_ALERTS))],
)
def list_alerts(
    user_id: Optional[str] = Query(None),
    severity: Optional[Severity] = Query(None),
    unresolved_only: bool = Query(False),
    db: Session = Depends(get_db),
):
    """List fraud alerts, newest first"""
    alerts = FraudAlertRepository(db).list_alerts(
        user_id=user_id,
        severity=severity.value if severity else None,
        unresolved_only=unresolved_only,
    )
    return AlertListResponse(alerts=[_to_item(a) for a in alerts])


@router.post(
    "/alerts/{alert_id}/resolve",
    response_model=AlertItem,
    dependencies=[Depends(require_permission(Permission.MANAGE_FRAUD_ALERTS))],
)
def resolve_alert(alert_id: str, request_body: ResolveAlertRequest, db: Session = Depends(get_db)):
    """Mark an alert as reviewed; the alert itself is never removed"""
    alert = FraudAlertRepository(db).resolve_alert(alert_id, request_body.resolved_by)
    if alert is None:
        raise HTTPException(status_code=404, detail="Alert not found")
    db.commit()
    return _to_item(alert)
