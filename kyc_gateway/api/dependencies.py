"""Dependency injection for FastAPI endpoints"""

from typing import Optional
from fastapi import Depends, Header, HTTPException, Request
from kyc_gateway.domain.rbac import Permission, Role, has_any_permission
from kyc_gateway.infrastructure.clients.signals import SignalProducerClient
from kyc_gateway.infrastructure.clients.compliance import ComplianceWebhookClient


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_signal_producer() -> SignalProducerClient:
    """Provide signal producer client instance"""
    return SignalProducerClient()


def get_compliance_client() -> ComplianceWebhookClient:
    """Provide compliance webhook client instance"""
    return ComplianceWebhookClient()


def get_role(x_role: Optional[str] = Header(None)) -> Role:
    """Resolve the caller's role from the X-Role header"""
    if x_role is None:
        raise HTTPException(status_code=401, detail="Missing X-Role header")
    try:
        return Role(x_role.lower())
    except ValueError:
        raise HTTPException(status_code=403, detail=f"Unknown role: {x_role}")


def require_permission(*permissions: Permission):
    """Dependency factory: the caller's role must grant at least one of the permissions"""

    def checker(role: Role = Depends(get_role)) -> Role:
        if not has_any_permission(role, permissions):
            raise HTTPException(
                status_code=403,
                detail=f"Role {role.value} lacks permission: {' or '.join(p.value for p in permissions)}",
            )
        return role

    return checker
