from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class StoreStatus:
    PENDING = "pending"
    ACTIVE = "active"
    DISABLED = "disabled"


STORE_STATUSES = {StoreStatus.PENDING, StoreStatus.ACTIVE, StoreStatus.DISABLED}


class Store(db.Model):
    """
    Multi-tenant root: every merchant is a Store.

    WHY: Shared-database multi-tenancy with strict isolation. Catalog,
    customers, orders, settings and content all carry store_id and every
    query on them is filtered by it.

    DESIGN:
    - slug is unique across all stores (used for subdomains and path lookups)
    - name is a secondary lookup key, matched case-insensitively
    - status transitions are explicit super-admin operations
    - deleting a store removes its admins explicitly (no DB-level cascade)
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.UniqueConstraint("slug", name="uq_stores_slug"),
        db.Index("ix_stores_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(64), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=StoreStatus.PENDING, index=True)

    description = db.Column(db.Text, nullable=True)
    logo_url = db.Column(db.String(512), nullable=True)
    favicon_url = db.Column(db.String(512), nullable=True)
    contact_email = db.Column(db.String(255), nullable=True)
    contact_phone = db.Column(db.String(32), nullable=True)

    # currency, timezone, language, commission_rate, theme, ...
    settings = db.Column(db.JSON, nullable=False, default=dict)
    seo = db.Column(db.JSON, nullable=False, default=dict)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Store id={self.id} slug={self.slug!r} status={self.status}>"

    @property
    def is_active(self) -> bool:
        return self.status == StoreStatus.ACTIVE

    def to_public_dict(self) -> dict:
        settings = self.settings or {}
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "logo_url": self.logo_url,
            "favicon_url": self.favicon_url,
            "currency": settings.get("currency"),
            "language": settings.get("language"),
            "theme": settings.get("theme"),
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "status": self.status,
            "description": self.description,
            "logo_url": self.logo_url,
            "favicon_url": self.favicon_url,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "settings": dict(self.settings or {}),
            "seo": dict(self.seo or {}),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class AdminStatus:
    ACTIVE = "active"
    PENDING = "pending"
    DISABLED = "disabled"


class Admin(db.Model):
    """
    Back-office account.

    MULTI-TENANT: A store admin is bound to exactly one store (store_id).
    A super admin has no store (store_id is NULL) and acts across all stores.

    WHY: Every back-office action must be attributable to one account. The
    permission list holds resource tags from storefront.permissions.Resource.
    """
    __tablename__ = "admins"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_admins_email"),
        db.Index("ix_admins_store_id", "store_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True)

    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(32), nullable=False, default="admin")
    status = db.Column(db.String(16), nullable=False, default=AdminStatus.ACTIVE)
    permissions = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    store = db.relationship("Store", backref=db.backref("admins", lazy=True))

    @property
    def is_super_admin(self) -> bool:
        return self.role == "super_admin"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "status": self.status,
            "permissions": list(self.permissions or []),
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at),
        }
