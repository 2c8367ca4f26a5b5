"""Role-based access control for tenant administration and audit access"""

from enum import Enum
from typing import Dict, FrozenSet, Iterable


class Permission(str, Enum):
    VIEW_DASHBOARD = "view_dashboard"
    VIEW_VERIFICATIONS = "view_verifications"
    MANAGE_VERIFICATIONS = "manage_verifications"
    VIEW_MEMBERS = "view_members"
    INVITE_MEMBERS = "invite_members"
    REMOVE_MEMBERS = "remove_members"
    MANAGE_ROLES = "manage_roles"
    CONFIGURE_INDUSTRY = "configure_industry"
    CONFIGURE_THRESHOLDS = "configure_thresholds"
    VIEW_FRAUD_ALERTS = "view_fraud_alerts"
    MANAGE_FRAUD_ALERTS = "manage_fraud_alerts"
    VIEW_BLOCKCHAIN_AUDIT = "view_blockchain_audit"
    MANAGE_PRIVACY_SETTINGS = "manage_privacy_settings"
    VIEW_ANALYTICS = "view_analytics"
    EXPORT_DATA = "export_data"
    MANAGE_BILLING = "manage_billing"
    MANAGE_ORGANIZATION = "manage_organization"


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    MANAGER = "manager"
    REVIEWER = "reviewer"
    VIEWER = "viewer"


P = Permission

ROLE_PERMISSIONS: Dict[Role, FrozenSet[Permission]] = {
    Role.SUPER_ADMIN: frozenset(Permission),
    Role.ADMIN: frozenset({
        P.VIEW_DASHBOARD, P.VIEW_VERIFICATIONS, P.MANAGE_VERIFICATIONS, P.VIEW_MEMBERS,
        P.INVITE_MEMBERS, P.REMOVE_MEMBERS, P.CONFIGURE_INDUSTRY, P.CONFIGURE_THRESHOLDS,
        P.VIEW_FRAUD_ALERTS, P.MANAGE_FRAUD_ALERTS, P.VIEW_BLOCKCHAIN_AUDIT, P.VIEW_ANALYTICS,
        P.EXPORT_DATA,
    }),
    Role.MANAGER: frozenset({
        P.VIEW_DASHBOARD, P.VIEW_VERIFICATIONS, P.MANAGE_VERIFICATIONS, P.VIEW_MEMBERS,
        P.VIEW_FRAUD_ALERTS, P.VIEW_ANALYTICS,
    }),
    Role.REVIEWER: frozenset({
        P.VIEW_DASHBOARD, P.VIEW_VERIFICATIONS, P.VIEW_MEMBERS, P.VIEW_FRAUD_ALERTS, P.VIEW_ANALYTICS,
    }),
    Role.VIEWER: frozenset({P.VIEW_DASHBOARD, P.VIEW_VERIFICATIONS, P.VIEW_ANALYTICS}),
}


def has_permission(role: Role, permission: Permission) -> bool:
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


def has_any_permission(role: Role, permissions: Iterable[Permission]) -> bool:
    return any(has_permission(role, p) for p in permissions)
