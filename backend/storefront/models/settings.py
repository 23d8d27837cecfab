from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


# Credential keys never returned on public endpoints
SECRET_CREDENTIAL_KEYS = {
    "key_secret",
    "webhook_secret",
    "secret_key",
    "merchant_key",
    "salt",
    "client_secret",
}


class PaymentGateway(db.Model):
    """
    Per-store payment gateway configuration.

    INVARIANT: one row per (store_id, name). Defaults are provisioned lazily
    by settings_service on first read.
    """
    __tablename__ = "payment_gateways"
    __table_args__ = (
        db.UniqueConstraint("store_id", "name", name="uq_payment_gateways_store_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    name = db.Column(db.String(32), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=False)
    test_mode = db.Column(db.Boolean, nullable=False, default=True)
    credentials = db.Column(db.JSON, nullable=False, default=dict)
    description = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self, include_secrets: bool = True) -> dict:
        credentials = dict(self.credentials or {})
        if not include_secrets:
            credentials = {k: v for k, v in credentials.items() if k not in SECRET_CREDENTIAL_KEYS}
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "is_active": self.is_active,
            "test_mode": self.test_mode,
            "credentials": credentials,
            "description": self.description,
            "updated_at": to_utc_z(self.updated_at),
        }


class TaxSetting(db.Model):
    """A named tax line. rate_bps is basis points (1800 = 18%)."""
    __tablename__ = "tax_settings"
    __table_args__ = (
        db.Index("ix_tax_settings_store_active", "store_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    rate_bps = db.Column(db.Integer, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    description = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "rate_bps": self.rate_bps,
            "rate": self.rate_bps / 100,
            "is_active": self.is_active,
            "description": self.description,
        }


class ShippingSetting(db.Model):
    """
    Store shipping configuration.

    INVARIANT: at most one row per store (unique store_id).
    """
    __tablename__ = "shipping_settings"
    __table_args__ = (
        db.UniqueConstraint("store_id", name="uq_shipping_settings_store"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    free_shipping_threshold_cents = db.Column(db.Integer, nullable=False, default=50000)
    default_shipping_cost_cents = db.Column(db.Integer, nullable=False, default=5000)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    zones = db.relationship(
        "ShippingZone",
        backref="shipping_setting",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ShippingZone.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "free_shipping_threshold_cents": self.free_shipping_threshold_cents,
            "default_shipping_cost_cents": self.default_shipping_cost_cents,
            "is_active": self.is_active,
            "zones": [z.to_dict() for z in self.zones],
            "updated_at": to_utc_z(self.updated_at),
        }


class ShippingZone(db.Model):
    __tablename__ = "shipping_zones"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    shipping_setting_id = db.Column(db.Integer, db.ForeignKey("shipping_settings.id"), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    min_weight_grams = db.Column(db.Integer, nullable=False, default=0)
    max_weight_grams = db.Column(db.Integer, nullable=False)
    rate_cents = db.Column(db.Integer, nullable=False)
    estimated_days = db.Column(db.String(32), nullable=False)
    cod_available = db.Column(db.Boolean, nullable=False, default=False)
    cod_charges_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "min_weight_grams": self.min_weight_grams,
            "max_weight_grams": self.max_weight_grams,
            "rate_cents": self.rate_cents,
            "estimated_days": self.estimated_days,
            "cod_available": self.cod_available,
            "cod_charges_cents": self.cod_charges_cents,
        }
