# Overview: Service-layer operations for permissions; resource checks and the security event log.

"""
Permission Service

WHY: Admin routes are guarded by one resource tag each (see
storefront.permissions.Resource). This module answers "may this admin touch
that resource?" and records every denial in the security event log.

DESIGN:
- Permissions live on the admin record as a list of resource tags
- super_admin bypasses every per-resource check
- Denials are logged before ForbiddenError is raised
"""

from __future__ import annotations

from ..extensions import db
from ..errors import ForbiddenError
from ..models import Admin, SecurityEvent
from ..permissions import Resource


def log_security_event(
    event_type: str,
    success: bool,
    *,
    admin_id: int | None = None,
    customer_id: int | None = None,
    store_id: int | None = None,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Append a security event to the audit trail.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED
    - LOGIN_SUCCESS
    - LOGOUT
    - CROSS_TENANT_ACCESS_DENIED
    - ADMIN_PASSWORD_RESET
    """
    event = SecurityEvent(
        admin_id=admin_id,
        customer_id=customer_id,
        store_id=store_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.session.add(event)
    db.session.commit()
    return event


def get_admin_permissions(admin: Admin) -> set[str]:
    if admin.is_super_admin:
        return {r.value for r in Resource}
    return {str(p) for p in (admin.permissions or [])}


def has_permission(admin: Admin, resource: Resource) -> bool:
    if admin.is_super_admin:
        return True
    return Resource(resource).value in get_admin_permissions(admin)


def require_permission(
    admin: Admin,
    resource: Resource,
    *,
    path: str | None = None,
    action: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Raise ForbiddenError unless the admin holds the resource tag.

    The denial is logged with the admin's store for tenant-scoped auditing.
    """
    resource = Resource(resource)
    if has_permission(admin, resource):
        return

    log_security_event(
        "PERMISSION_DENIED",
        False,
        admin_id=admin.id,
        store_id=admin.store_id,
        resource=path,
        action=action,
        reason=f"Missing permission: {resource.value}",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    raise ForbiddenError("Permission denied", required_permission=resource.value)
