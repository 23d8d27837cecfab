from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class PromoBanner(db.Model):
    """Storefront promo strip entry. Public listing shows active banners by sort_order."""
    __tablename__ = "promo_banners"
    __table_args__ = (
        db.Index("ix_promo_banners_store_active_order", "store_id", "is_active", "sort_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    title = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(200), nullable=False)
    icon = db.Column(db.String(64), nullable=False)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    link = db.Column(db.JSON, nullable=False, default=dict)
    style = db.Column(db.JSON, nullable=False, default=dict)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "title": self.title,
            "description": self.description,
            "icon": self.icon,
            "sort_order": self.sort_order,
            "is_active": self.is_active,
            "link": dict(self.link or {}),
            "style": dict(self.style or {}),
            "created_at": to_utc_z(self.created_at),
        }


class Page(db.Model):
    """CMS page. Slug is unique within a store."""
    __tablename__ = "pages"
    __table_args__ = (
        db.UniqueConstraint("store_id", "slug", name="uq_pages_store_slug"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(200), nullable=False)
    content = db.Column(db.Text, nullable=False, default="")
    page_type = db.Column(db.String(32), nullable=False, default="custom")
    status = db.Column(db.String(16), nullable=False, default="draft")
    meta = db.Column(db.JSON, nullable=False, default=dict)

    created_by_admin_id = db.Column(db.Integer, db.ForeignKey("admins.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "title": self.title,
            "slug": self.slug,
            "content": self.content,
            "page_type": self.page_type,
            "status": self.status,
            "meta": dict(self.meta or {}),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class FooterSetting(db.Model):
    """Footer content, one row per store, provisioned lazily."""
    __tablename__ = "footer_settings"
    __table_args__ = (
        db.UniqueConstraint("store_id", name="uq_footer_settings_store"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    contact_info = db.Column(db.JSON, nullable=False, default=dict)
    social_links = db.Column(db.JSON, nullable=False, default=dict)
    map_settings = db.Column(db.JSON, nullable=False, default=dict)
    copyright = db.Column(db.JSON, nullable=False, default=dict)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    last_modified_by_admin_id = db.Column(db.Integer, db.ForeignKey("admins.id"), nullable=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "contact_info": dict(self.contact_info or {}),
            "social_links": dict(self.social_links or {}),
            "map_settings": dict(self.map_settings or {}),
            "copyright": dict(self.copyright or {}),
            "is_active": self.is_active,
            "updated_at": to_utc_z(self.updated_at),
        }
