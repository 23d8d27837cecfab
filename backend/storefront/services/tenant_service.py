"""
Multi-Tenant Service: Store Context and Scoping Helpers

WHY: Every tenant-scoped read or write must filter by the resolved store.
The store is never read from ambient request state inside a service: routes
receive a StoreContext from the access decorators and hand it to every
service call explicitly.

SECURITY INVARIANTS:
1. Tenant-scoped queries go through scoped_query(), which always applies
   Model.store_id == ctx.store_id
2. Entity lookups outside the resolved store surface as NotFound (never
   reveal that the entity exists in another store)
3. Cross-tenant attempts are logged as security events

USAGE:
    from storefront.services.tenant_service import scoped_query, get_scoped

    orders = scoped_query(Order, ctx).filter(Order.status == "pending").all()
    order = get_scoped(Order, order_id, ctx, label="Order")
"""

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..errors import BadRequestError, NotFoundError
from ..models import Admin, Customer
from .permission_service import log_security_event


class Principal:
    PUBLIC = "public"
    CUSTOMER = "customer"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


@dataclass(frozen=True)
class StoreContext:
    """
    Explicit tenant capability passed to every data-access call.

    store_id is None only for super admins acting outside a store (store
    administration routes). Tenant-scoped helpers refuse such a context.
    """
    store_id: int | None
    principal: str = Principal.PUBLIC
    admin: Admin | None = None
    customer: Customer | None = None
    source: str | None = None

    @property
    def admin_id(self) -> int | None:
        return self.admin.id if self.admin is not None else None

    @property
    def customer_id(self) -> int | None:
        return self.customer.id if self.customer is not None else None

    @property
    def is_super_admin(self) -> bool:
        return self.principal == Principal.SUPER_ADMIN

    def require_store_id(self) -> int:
        if self.store_id is None:
            raise BadRequestError("Store not specified")
        return self.store_id


def scoped_query(model, ctx: StoreContext):
    """Base query for a tenant-owned model, filtered to the context's store."""
    store_id = ctx.require_store_id()
    return db.session.query(model).filter(model.store_id == store_id)


def get_scoped(model, entity_id, ctx: StoreContext, *, label: str | None = None):
    """
    Fetch one tenant-owned row by id inside the context's store.

    Raises NotFoundError when the row is missing or belongs to another store.
    """
    label = label or model.__name__
    try:
        entity_id = int(entity_id)
    except (TypeError, ValueError):
        raise NotFoundError(f"{label} not found")
    entity = scoped_query(model, ctx).filter(model.id == entity_id).first()
    if entity is None:
        raise NotFoundError(f"{label} not found")
    return entity


def log_cross_tenant_attempt(
    ctx: StoreContext,
    attempted_store_id: int | None,
    reason: str,
    *,
    resource: str | None = None,
    ip_address: str | None = None,
) -> None:
    log_security_event(
        "CROSS_TENANT_ACCESS_DENIED",
        False,
        admin_id=ctx.admin_id,
        customer_id=ctx.customer_id,
        store_id=ctx.store_id,
        resource=resource,
        action=f"attempted_store={attempted_store_id}",
        reason=reason,
        ip_address=ip_address,
    )
