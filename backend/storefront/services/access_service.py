# Overview: Access control gate; classifies bearer credentials and binds the tenant scope.

"""
Access Control Gate

WHY: Every non-public route needs three answers before any data is touched:
who is calling (admin, super admin or customer), which store they may act
on, and whether they hold the permission for the target resource.

SECURITY:
- Missing, malformed, unknown, expired or wrong-class credentials -> 401
- Blocked customers, disabled/pending admins -> 401
- Store admins and customers are bound to their own store. A store named by
  the request (header, query, subdomain, path) never widens that scope: when
  it disagrees with the bound store, the bound store wins and the attempt is
  logged as a cross-tenant event.
- Super admins skip per-resource checks and may target any store through
  X-Store-ID / ?storeId=.
"""

from __future__ import annotations

from ..extensions import db
from ..errors import BadRequestError, NotFoundError, UnauthorizedError
from ..models import AdminStatus, CustomerStatus, Store, StoreStatus, SubjectType
from . import session_service
from .session_service import SessionContext
from .store_resolver import StoreSignals, has_store_signal, parse_store_id, resolve_store
from .tenant_service import Principal, StoreContext, log_cross_tenant_attempt


def parse_bearer_token(auth_header: str | None) -> str:
    if not auth_header or not auth_header.startswith("Bearer "):
        raise UnauthorizedError("Authentication required")
    token = auth_header.split(" ", 1)[1].strip()
    if not token:
        raise UnauthorizedError("Authentication required")
    return token


def authenticate(token: str, expected_class: str) -> SessionContext:
    """Validate the token and check it belongs to the route's subject class."""
    context = session_service.validate_session(token)
    if context is None:
        raise UnauthorizedError("Invalid or expired token")

    if context.subject_type != expected_class:
        raise UnauthorizedError(f"Not authorized as {expected_class}")

    if context.subject_type == SubjectType.CUSTOMER:
        if context.customer.status == CustomerStatus.BLOCKED:
            raise UnauthorizedError("Account is blocked")
    else:
        if context.admin.status != AdminStatus.ACTIVE:
            raise UnauthorizedError("Account is not active")

    return context


def _reconcile_bound_store(
    ctx: StoreContext,
    signals: StoreSignals,
    *,
    api_subdomain: str | None,
    path: str | None,
    ip_address: str | None,
) -> None:
    """Log (never honour) a request-named store that differs from the bound one."""
    if not has_store_signal(signals, api_subdomain):
        return
    try:
        requested = resolve_store(signals, api_subdomain=api_subdomain, allow_fallback=False)
    except (BadRequestError, NotFoundError):
        return
    if requested.store_id != ctx.store_id:
        log_cross_tenant_attempt(
            ctx,
            requested.store_id,
            f"{ctx.principal} bound to store {ctx.store_id} named store {requested.store_id}",
            resource=path,
            ip_address=ip_address,
        )


def admin_scope(
    context: SessionContext,
    signals: StoreSignals,
    *,
    store_required: bool = True,
    api_subdomain: str | None = None,
    path: str | None = None,
    ip_address: str | None = None,
) -> StoreContext:
    admin = context.admin

    if admin.is_super_admin:
        if signals.store_id in (None, ""):
            if store_required:
                raise BadRequestError("Store not specified")
            return StoreContext(None, Principal.SUPER_ADMIN, admin=admin)
        store_id = parse_store_id(signals.store_id)
        if db.session.get(Store, store_id) is None:
            raise NotFoundError("Store not found")
        return StoreContext(store_id, Principal.SUPER_ADMIN, admin=admin, source="store_id")

    if admin.store_id is None:
        raise UnauthorizedError("Admin is not bound to a store")
    # Pending stores stay open to their admins for setup before activation
    store = db.session.get(Store, admin.store_id)
    if store is None or store.status == StoreStatus.DISABLED:
        raise UnauthorizedError("Store is disabled")

    ctx = StoreContext(admin.store_id, Principal.ADMIN, admin=admin, source="credential")
    _reconcile_bound_store(ctx, signals, api_subdomain=api_subdomain, path=path, ip_address=ip_address)
    return ctx


def customer_scope(
    context: SessionContext,
    signals: StoreSignals,
    *,
    api_subdomain: str | None = None,
    path: str | None = None,
    ip_address: str | None = None,
) -> StoreContext:
    customer = context.customer
    store = db.session.get(Store, customer.store_id)
    if store is None or store.status != StoreStatus.ACTIVE:
        raise UnauthorizedError("Store is not active")

    ctx = StoreContext(customer.store_id, Principal.CUSTOMER, customer=customer, source="credential")
    _reconcile_bound_store(ctx, signals, api_subdomain=api_subdomain, path=path, ip_address=ip_address)
    return ctx
