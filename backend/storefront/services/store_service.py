from __future__ import annotations

import re

from sqlalchemy import func

from ..extensions import db
from ..errors import BadRequestError, ConflictError, NotFoundError
from ..models import (
    Admin,
    Category,
    Customer,
    DocumentSequence,
    FooterSetting,
    Order,
    Page,
    PaymentGateway,
    Product,
    ProductType,
    PromoBanner,
    SessionToken,
    ShippingSetting,
    ShippingZone,
    Store,
    StoreStatus,
    STORE_STATUSES,
    TaxSetting,
)
from ..permissions import AdminRole
from . import auth_service, session_service
from .concurrency import lock_for_update, run_with_retry
from .permission_service import log_security_event
from .query_filters import paginate, search_any, text_equals
from .store_resolver import find_active_store, find_default_store

SLUG_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,62}[a-z0-9])?$")

DEFAULT_STORE_SETTINGS = {
    "currency": "INR",
    "timezone": "Asia/Kolkata",
    "language": "en",
}
DEFAULT_COMMISSION_RATE = 8.0

# Deleted with the store, children first
STORE_OWNED_MODELS = (
    PaymentGateway,
    TaxSetting,
    ShippingSetting,
    PromoBanner,
    Page,
    FooterSetting,
    Product,
    ProductType,
    Category,
    DocumentSequence,
)

STORE_MUTABLE_FIELDS = {"name", "description", "logo_url", "favicon_url", "contact_email", "contact_phone"}


def normalize_slug(slug: str | None) -> str:
    slug = (slug or "").strip().lower()
    if not SLUG_RE.match(slug):
        raise BadRequestError("slug must be lowercase letters, digits and hyphens")
    return slug


def _parse_commission(value) -> float:
    try:
        rate = float(value)
    except (TypeError, ValueError):
        raise BadRequestError("commission_rate must be a number")
    if rate < 0 or rate > 100:
        raise BadRequestError("commission_rate must be between 0 and 100")
    return rate


def _theme_from(theme: dict | None) -> dict | None:
    if not isinstance(theme, dict):
        return None
    picked = {k: theme[k] for k in ("primary_color", "secondary_color") if theme.get(k)}
    return picked or None


def _ensure_unique_identity(name: str, slug: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Store).filter(
        db.or_(
            text_equals(Store.name, name, case_insensitive=True),
            Store.slug == slug,
        )
    )
    if exclude_id is not None:
        query = query.filter(Store.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Store with this name or slug already exists")


def create_store(
    *,
    name: str,
    slug: str,
    admin_name: str,
    admin_email: str,
    admin_password: str | None = None,
    commission_rate=DEFAULT_COMMISSION_RATE,
    logo_url: str | None = None,
    favicon_url: str | None = None,
    theme: dict | None = None,
) -> tuple[Store, Admin, str | None]:
    """
    Create a store (status pending) and provision its admin.

    Returns (store, admin, generated_password). generated_password is set
    only when no admin_password was supplied; it is shown once.
    """
    name = (name or "").strip()
    if not name:
        raise BadRequestError("name is required")
    slug = normalize_slug(slug)

    _ensure_unique_identity(name, slug)
    admin_email = auth_service.normalize_email(admin_email)
    if db.session.query(Admin).filter(Admin.email == admin_email).first():
        raise ConflictError("Admin email already exists")

    settings = dict(DEFAULT_STORE_SETTINGS)
    settings["commission_rate"] = _parse_commission(commission_rate)
    picked_theme = _theme_from(theme)
    if picked_theme:
        settings["theme"] = picked_theme

    generated = None
    if not admin_password:
        generated = admin_password = auth_service.generate_password()

    store = Store(
        name=name,
        slug=slug,
        status=StoreStatus.PENDING,
        description=f"{name} store",
        logo_url=logo_url,
        favicon_url=favicon_url,
        settings=settings,
        seo={},
    )
    db.session.add(store)
    db.session.flush()

    admin = auth_service.create_admin(
        name=admin_name,
        email=admin_email,
        password=admin_password,
        store_id=store.id,
        role=AdminRole.ADMIN,
    )
    db.session.commit()
    return store, admin, generated


def list_stores(*, search: str | None = None, status: str | None = None, page: int = 1, limit: int = 10) -> dict:
    query = db.session.query(Store)
    if status:
        if status not in STORE_STATUSES:
            raise BadRequestError("Invalid status")
        query = query.filter(Store.status == status)
    term = search_any([Store.name, Store.slug], search)
    if term is not None:
        query = query.filter(term)
    query = query.order_by(Store.created_at.desc(), Store.id.desc())
    return paginate(query, page, limit, serialize=store_summary)


def store_summary(store: Store) -> dict:
    data = store.to_dict()
    data["admins"] = [
        {"id": a.id, "name": a.name, "email": a.email, "status": a.status}
        for a in store.admins
    ]
    data["customer_count"] = (
        db.session.query(func.count(Customer.id)).filter(Customer.store_id == store.id).scalar()
    )
    return data


def get_store(store_id: int) -> Store:
    store = db.session.get(Store, store_id)
    if store is None:
        raise NotFoundError("Store not found")
    return store


def update_store(store_id: int, data: dict) -> Store:
    def _op():
        store = lock_for_update(db.session.query(Store).filter_by(id=store_id)).first()
        if store is None:
            raise NotFoundError("Store not found")

        name = data.get("name", store.name)
        slug = normalize_slug(data["slug"]) if data.get("slug") else store.slug
        if name != store.name or slug != store.slug:
            _ensure_unique_identity(name, slug, exclude_id=store.id)
        store.slug = slug

        for key in STORE_MUTABLE_FIELDS & data.keys():
            setattr(store, key, data[key])

        settings = dict(store.settings or {})
        if "commission_rate" in data:
            settings["commission_rate"] = _parse_commission(data["commission_rate"])
        picked_theme = _theme_from(data.get("theme"))
        if picked_theme:
            settings["theme"] = {**settings.get("theme", {}), **picked_theme}
        store.settings = settings

        db.session.commit()
        return store

    return run_with_retry(_op)


def update_store_status(store_id: int, status: str) -> Store:
    if status not in STORE_STATUSES:
        raise BadRequestError("Invalid status. Must be active, pending, or disabled")

    def _op():
        store = lock_for_update(db.session.query(Store).filter_by(id=store_id)).first()
        if store is None:
            raise NotFoundError("Store not found")
        store.status = status
        db.session.commit()
        return store

    return run_with_retry(_op)


def delete_store(store_id: int) -> dict:
    """
    Delete a store together with its admins and store-owned configuration.

    Admin accounts are removed explicitly along with their sessions. A store
    that already has customers or orders cannot be deleted; disable it instead.
    """
    store = get_store(store_id)

    has_customers = db.session.query(Customer.id).filter(Customer.store_id == store.id).first()
    has_orders = db.session.query(Order.id).filter(Order.store_id == store.id).first()
    if has_customers or has_orders:
        raise ConflictError("Store has customers or orders; disable it instead")

    admins = db.session.query(Admin).filter(Admin.store_id == store.id).all()
    admin_ids = [a.id for a in admins]
    if admin_ids:
        db.session.query(SessionToken).filter(SessionToken.admin_id.in_(admin_ids)).delete(
            synchronize_session=False
        )
    for admin in admins:
        db.session.delete(admin)

    setting_ids = [
        row.id for row in db.session.query(ShippingSetting.id).filter(ShippingSetting.store_id == store.id)
    ]
    if setting_ids:
        db.session.query(ShippingZone).filter(ShippingZone.shipping_setting_id.in_(setting_ids)).delete(
            synchronize_session=False
        )
    for model in STORE_OWNED_MODELS:
        db.session.query(model).filter(model.store_id == store.id).delete(synchronize_session=False)

    db.session.delete(store)
    db.session.commit()
    return {"store_id": store_id, "deleted_admins": len(admin_ids)}


def reset_admin_password(store_id: int, *, admin_id: int | None = None, actor_admin_id: int | None = None) -> tuple[Admin, str]:
    """Generate a new password for the store's admin and revoke their sessions."""
    store = get_store(store_id)
    query = db.session.query(Admin).filter(Admin.store_id == store.id)
    if admin_id is not None:
        query = query.filter(Admin.id == admin_id)
    admin = query.order_by(Admin.id.asc()).first()
    if admin is None:
        raise NotFoundError("Store admin not found")

    new_password = auth_service.generate_password()
    admin.password_hash = auth_service.hash_password(new_password)
    session_service.revoke_subject_sessions(admin_ids=[admin.id], reason="Password reset", commit=False)
    db.session.commit()

    log_security_event(
        "ADMIN_PASSWORD_RESET",
        True,
        admin_id=actor_admin_id,
        store_id=store.id,
        reason=f"Password reset for admin {admin.id}",
    )
    return admin, new_password


# -----------------------------------------------------------------------------
# Public lookups
# -----------------------------------------------------------------------------

def get_public_store(identifier: str) -> Store:
    store = find_active_store(identifier or "")
    if store is None:
        raise NotFoundError("Store not found")
    return store


def get_default_store(*, fallback_enabled: bool) -> Store:
    store = find_default_store() if fallback_enabled else None
    if store is None:
        raise NotFoundError("No active stores found")
    return store


def list_public_stores() -> list[Store]:
    return (
        db.session.query(Store)
        .filter(Store.status == StoreStatus.ACTIVE)
        .order_by(Store.name.asc())
        .all()
    )
