# Overview: Per-store payment gateway, tax, shipping, store and SEO settings; pricing quotes.

"""
Settings & Pricing Service

DESIGN:
- Gateways, taxes and shipping are provisioned lazily: the first read for a
  store persists a fixed default set, later reads return the stored rows
- Updates are partial merges: only supplied fields overwrite
- One ShippingSetting per store, one PaymentGateway per (store, name)
- quote() turns the stored configuration into shipping and tax amounts for
  a cart subtotal; checkout uses it so storefront totals match settings

MULTI-TENANT: every function takes the caller's StoreContext.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import BadRequestError, ConflictError, NotFoundError
from ..models import PaymentGateway, ShippingSetting, ShippingZone, Store, TaxSetting
from .tenant_service import StoreContext, get_scoped, scoped_query


GATEWAY_NAMES = ("Razorpay", "Stripe", "PayU", "PayPal", "Cash on Delivery")
COD_GATEWAY = "Cash on Delivery"

DEFAULT_GATEWAYS = [
    {"name": "Razorpay", "is_active": False, "test_mode": True, "credentials": {},
     "description": "Cards, UPI, net banking and wallets via Razorpay"},
    {"name": "Stripe", "is_active": False, "test_mode": True, "credentials": {},
     "description": "International card payments via Stripe"},
    {"name": "PayU", "is_active": False, "test_mode": True, "credentials": {},
     "description": "Payments via PayU"},
    {"name": "PayPal", "is_active": False, "test_mode": True, "credentials": {"mode": "sandbox"},
     "description": "PayPal checkout"},
    {"name": COD_GATEWAY, "is_active": True, "test_mode": False,
     "credentials": {"max_amount_cents": 500000, "charges_cents": 2500},
     "description": "Pay in cash when the order is delivered"},
]

DEFAULT_TAXES = [
    {"name": "GST", "rate_bps": 1800, "is_active": True, "description": "Goods and Services Tax"},
    {"name": "CGST", "rate_bps": 900, "is_active": False, "description": "Central Goods and Services Tax"},
    {"name": "SGST", "rate_bps": 900, "is_active": False, "description": "State Goods and Services Tax"},
]

DEFAULT_SHIPPING = {
    "free_shipping_threshold_cents": 50000,
    "default_shipping_cost_cents": 5000,
}

DEFAULT_ZONES = [
    {"name": "Local", "min_weight_grams": 0, "max_weight_grams": 1000, "rate_cents": 3000,
     "estimated_days": "1-2 days", "cod_available": True, "cod_charges_cents": 2500},
    {"name": "National", "min_weight_grams": 0, "max_weight_grams": 1000, "rate_cents": 8000,
     "estimated_days": "3-5 days", "cod_available": False, "cod_charges_cents": 0},
]

STORE_SETTING_KEYS = {"currency", "timezone", "language", "theme", "order_notes_enabled"}
STORE_PROFILE_FIELDS = {"description", "logo_url", "favicon_url", "contact_email", "contact_phone"}
SEO_KEYS = {"meta_title", "meta_description", "meta_keywords", "og_image", "google_analytics_id"}


def _int_field(data: dict, key: str, *, minimum: int = 0) -> int:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise BadRequestError(f"{key} must be an integer")
    if value < minimum:
        raise BadRequestError(f"{key} must be >= {minimum}")
    return value


def _provision(ctx: StoreContext, rows: list) -> None:
    """Persist default rows; a concurrent first read may win the race."""
    try:
        with db.session.begin_nested():
            db.session.add_all(rows)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()


# -----------------------------------------------------------------------------
# Payment gateways
# -----------------------------------------------------------------------------

def get_payment_gateways(ctx: StoreContext) -> list[PaymentGateway]:
    store_id = ctx.require_store_id()
    gateways = scoped_query(PaymentGateway, ctx).order_by(PaymentGateway.id.asc()).all()
    if gateways:
        return gateways
    _provision(ctx, [PaymentGateway(store_id=store_id, **dict(d, credentials=dict(d["credentials"])))
                     for d in DEFAULT_GATEWAYS])
    return scoped_query(PaymentGateway, ctx).order_by(PaymentGateway.id.asc()).all()


def get_gateway_by_name(ctx: StoreContext, name: str) -> PaymentGateway | None:
    get_payment_gateways(ctx)
    return scoped_query(PaymentGateway, ctx).filter(PaymentGateway.name == name).first()


def upsert_payment_gateway(ctx: StoreContext, data: dict) -> PaymentGateway:
    """
    Update a gateway by id (partial merge) or create one by name.

    credentials are merged key by key, so sending only a new key_id keeps
    the stored secret.
    """
    gateway_id = data.get("gateway_id") or data.get("id")
    if gateway_id:
        gateway = get_scoped(PaymentGateway, gateway_id, ctx, label="Payment gateway")
    else:
        name = data.get("name")
        if name not in GATEWAY_NAMES:
            raise BadRequestError(f"name must be one of: {', '.join(GATEWAY_NAMES)}")
        gateway = scoped_query(PaymentGateway, ctx).filter(PaymentGateway.name == name).first()
        if gateway is None:
            gateway = PaymentGateway(store_id=ctx.require_store_id(), name=name, credentials={})
            db.session.add(gateway)

    if "name" in data and data["name"] != gateway.name:
        raise BadRequestError("Gateway name cannot be changed")
    for key in ("is_active", "test_mode"):
        if key in data:
            if not isinstance(data[key], bool):
                raise BadRequestError(f"{key} must be a boolean")
            setattr(gateway, key, data[key])
    if "description" in data:
        gateway.description = data["description"]
    if "credentials" in data:
        if not isinstance(data["credentials"], dict):
            raise BadRequestError("credentials must be an object")
        gateway.credentials = {**(gateway.credentials or {}), **data["credentials"]}

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Payment gateway already exists for this store")
    return gateway


def delete_payment_gateway(ctx: StoreContext, gateway_id: int) -> None:
    gateway = get_scoped(PaymentGateway, gateway_id, ctx, label="Payment gateway")
    db.session.delete(gateway)
    db.session.commit()


# -----------------------------------------------------------------------------
# Taxes
# -----------------------------------------------------------------------------

def get_tax_settings(ctx: StoreContext) -> list[TaxSetting]:
    store_id = ctx.require_store_id()
    taxes = scoped_query(TaxSetting, ctx).order_by(TaxSetting.id.asc()).all()
    if taxes:
        return taxes
    _provision(ctx, [TaxSetting(store_id=store_id, **d) for d in DEFAULT_TAXES])
    return scoped_query(TaxSetting, ctx).order_by(TaxSetting.id.asc()).all()


def _rate_bps(data: dict) -> int | None:
    if "rate_bps" in data:
        bps = data["rate_bps"]
    elif "rate" in data:
        try:
            bps = round(float(data["rate"]) * 100)
        except (TypeError, ValueError):
            raise BadRequestError("rate must be a number")
    else:
        return None
    if isinstance(bps, bool) or not isinstance(bps, int) or bps < 0 or bps > 10000:
        raise BadRequestError("Tax rate must be between 0 and 100 percent")
    return bps


def upsert_tax_setting(ctx: StoreContext, data: dict) -> TaxSetting:
    """Update by tax_id (partial) or create a new tax line."""
    tax_id = data.get("tax_id") or data.get("id")
    bps = _rate_bps(data)
    if tax_id:
        tax = get_scoped(TaxSetting, tax_id, ctx, label="Tax setting")
    else:
        name = (data.get("name") or "").strip()
        if not name:
            raise BadRequestError("name is required")
        if bps is None:
            raise BadRequestError("rate is required")
        tax = TaxSetting(store_id=ctx.require_store_id(), name=name, rate_bps=bps)
        db.session.add(tax)

    if "name" in data and data["name"]:
        tax.name = str(data["name"]).strip()
    if bps is not None:
        tax.rate_bps = bps
    if "is_active" in data:
        tax.is_active = bool(data["is_active"])
    if "description" in data:
        tax.description = data["description"]

    db.session.commit()
    return tax


def delete_tax_setting(ctx: StoreContext, tax_id: int) -> None:
    tax = get_scoped(TaxSetting, tax_id, ctx, label="Tax setting")
    db.session.delete(tax)
    db.session.commit()


# -----------------------------------------------------------------------------
# Shipping
# -----------------------------------------------------------------------------

def _default_zones() -> list[ShippingZone]:
    return [ShippingZone(**z) for z in DEFAULT_ZONES]


def get_shipping_settings(ctx: StoreContext) -> ShippingSetting:
    settings = scoped_query(ShippingSetting, ctx).first()
    if settings is not None:
        return settings
    _provision(ctx, [ShippingSetting(store_id=ctx.require_store_id(), zones=_default_zones(), **DEFAULT_SHIPPING)])
    return scoped_query(ShippingSetting, ctx).first()


def _zone_from(data: dict) -> ShippingZone:
    if not isinstance(data, dict):
        raise BadRequestError("zones must be a list of objects")
    name = (data.get("name") or "").strip()
    if not name:
        raise BadRequestError("Zone name is required")
    for key in ("max_weight_grams", "rate_cents", "estimated_days"):
        if data.get(key) in (None, ""):
            raise BadRequestError(f"Zone {key} is required")
    zone = ShippingZone(
        name=name,
        min_weight_grams=_int_field(data, "min_weight_grams") if "min_weight_grams" in data else 0,
        max_weight_grams=_int_field(data, "max_weight_grams"),
        rate_cents=_int_field(data, "rate_cents"),
        estimated_days=str(data["estimated_days"]),
        cod_available=bool(data.get("cod_available", False)),
        cod_charges_cents=_int_field(data, "cod_charges_cents") if "cod_charges_cents" in data else 0,
    )
    if zone.min_weight_grams > zone.max_weight_grams:
        raise BadRequestError("Zone min weight exceeds max weight")
    return zone


def update_shipping_settings(ctx: StoreContext, data: dict) -> ShippingSetting:
    """Partial merge. A supplied zones list replaces the stored zones."""
    settings = get_shipping_settings(ctx)
    for key in ("free_shipping_threshold_cents", "default_shipping_cost_cents"):
        if key in data:
            setattr(settings, key, _int_field(data, key))
    if "is_active" in data:
        settings.is_active = bool(data["is_active"])
    if "zones" in data:
        if not isinstance(data["zones"], list):
            raise BadRequestError("zones must be a list")
        settings.zones = [_zone_from(z) for z in data["zones"]]
    db.session.commit()
    return settings


# -----------------------------------------------------------------------------
# Store settings and SEO
# -----------------------------------------------------------------------------

def _store(ctx: StoreContext) -> Store:
    store = db.session.get(Store, ctx.require_store_id())
    if store is None:
        raise NotFoundError("Store not found")
    return store


def get_store_settings(ctx: StoreContext) -> dict:
    store = _store(ctx)
    data = {key: getattr(store, key) for key in sorted(STORE_PROFILE_FIELDS)}
    data.update({"name": store.name, "slug": store.slug, "settings": dict(store.settings or {})})
    return data


def update_store_settings(ctx: StoreContext, data: dict) -> dict:
    store = _store(ctx)
    unknown = set(data) - STORE_SETTING_KEYS - STORE_PROFILE_FIELDS
    if unknown:
        raise BadRequestError(f"Field not allowed: {', '.join(sorted(unknown))}")
    for key in STORE_PROFILE_FIELDS & data.keys():
        setattr(store, key, data[key])
    merged = dict(store.settings or {})
    for key in STORE_SETTING_KEYS & data.keys():
        if key == "theme" and isinstance(data[key], dict):
            merged["theme"] = {**merged.get("theme", {}), **data[key]}
        else:
            merged[key] = data[key]
    store.settings = merged
    db.session.commit()
    return get_store_settings(ctx)


def get_seo_settings(ctx: StoreContext) -> dict:
    return dict(_store(ctx).seo or {})


def update_seo_settings(ctx: StoreContext, data: dict) -> dict:
    store = _store(ctx)
    unknown = set(data) - SEO_KEYS
    if unknown:
        raise BadRequestError(f"Field not allowed: {', '.join(sorted(unknown))}")
    store.seo = {**(store.seo or {}), **data}
    db.session.commit()
    return dict(store.seo)


# -----------------------------------------------------------------------------
# Pricing
# -----------------------------------------------------------------------------

def tax_for(ctx: StoreContext, subtotal_cents: int) -> int:
    """Sum of active tax lines, each rounded half-up to the minor unit."""
    total = 0
    for tax in get_tax_settings(ctx):
        if tax.is_active:
            total += (subtotal_cents * tax.rate_bps + 5000) // 10000
    return total


def quote(
    ctx: StoreContext,
    subtotal_cents: int,
    *,
    zone_name: str | None = None,
    payment_method: str | None = None,
) -> dict:
    """
    Shipping and tax for a cart subtotal.

    Shipping is free at or above the threshold, otherwise the zone rate (or
    the default cost). Cash on delivery adds the zone's COD charge, or the
    COD gateway charge when no zone is given.
    """
    if isinstance(subtotal_cents, bool) or not isinstance(subtotal_cents, int) or subtotal_cents < 0:
        raise BadRequestError("subtotal_cents must be a non-negative integer")

    shipping = get_shipping_settings(ctx)
    zone = None
    if zone_name:
        zone = next((z for z in shipping.zones if z.name.lower() == zone_name.strip().lower()), None)
        if zone is None:
            raise BadRequestError("Unknown shipping zone")

    threshold = shipping.free_shipping_threshold_cents
    if threshold and subtotal_cents >= threshold:
        shipping_cents = 0
    elif zone is not None:
        shipping_cents = zone.rate_cents
    else:
        shipping_cents = shipping.default_shipping_cost_cents

    cod_charges_cents = 0
    if payment_method == "cod":
        gateway = get_gateway_by_name(ctx, COD_GATEWAY)
        if gateway is None or not gateway.is_active:
            raise BadRequestError("Cash on delivery is not available")
        credentials = gateway.credentials or {}
        max_amount = credentials.get("max_amount_cents")
        if max_amount is not None and subtotal_cents > max_amount:
            raise BadRequestError("Order exceeds the cash on delivery limit")
        if zone is not None:
            if not zone.cod_available:
                raise BadRequestError("Cash on delivery is not available for this zone")
            cod_charges_cents = zone.cod_charges_cents
        else:
            cod_charges_cents = int(credentials.get("charges_cents", 0))

    tax_cents = tax_for(ctx, subtotal_cents)
    shipping_total = shipping_cents + cod_charges_cents
    return {
        "subtotal_cents": subtotal_cents,
        "tax_cents": tax_cents,
        "shipping_cents": shipping_total,
        "cod_charges_cents": cod_charges_cents,
        "discount_cents": 0,
        "total_cents": subtotal_cents + tax_cents + shipping_total,
        "zone": zone.name if zone is not None else None,
    }
