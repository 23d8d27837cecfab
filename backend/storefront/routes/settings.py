# Overview: Flask API routes for store settings; gateways, taxes, shipping, store profile, SEO and quotes.

"""
Settings API routes

Admin routes require the settings permission. Public routes only resolve the
store; gateway credentials are stripped of secrets there and only active
gateways and taxes are listed.
"""

from flask import Blueprint, jsonify, request

from ..decorators import identify_store, require_admin, require_permission
from ..permissions import Resource
from ..services import order_service, settings_service
from ..validation import parse_int, require_fields

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


def _quote_from_request(ctx):
    data = require_fields(request.get_json(silent=True), "subtotal_cents")
    return settings_service.quote(
        ctx,
        parse_int(data["subtotal_cents"], "subtotal_cents", minimum=0),
        zone_name=data.get("shipping_zone"),
        payment_method=(
            order_service.normalize_payment_method(data["payment_method"]) if data.get("payment_method") else None
        ),
    )


# -----------------------------------------------------------------------------
# Admin
# -----------------------------------------------------------------------------

@settings_bp.get("/payment-gateways")
@require_admin
@require_permission(Resource.SETTINGS)
def get_gateways_route(ctx):
    return jsonify([g.to_dict() for g in settings_service.get_payment_gateways(ctx)]), 200


@settings_bp.put("/payment-gateways")
@require_admin
@require_permission(Resource.SETTINGS)
def upsert_gateway_route(ctx):
    gateway = settings_service.upsert_payment_gateway(ctx, request.get_json(silent=True) or {})
    return jsonify(gateway.to_dict()), 200


@settings_bp.delete("/payment-gateways/<int:gateway_id>")
@require_admin
@require_permission(Resource.SETTINGS)
def delete_gateway_route(gateway_id: int, ctx):
    settings_service.delete_payment_gateway(ctx, gateway_id)
    return jsonify({"message": "Payment gateway deleted"}), 200


@settings_bp.get("/taxes")
@require_admin
@require_permission(Resource.SETTINGS)
def get_taxes_route(ctx):
    return jsonify([t.to_dict() for t in settings_service.get_tax_settings(ctx)]), 200


@settings_bp.put("/taxes")
@require_admin
@require_permission(Resource.SETTINGS)
def upsert_tax_route(ctx):
    tax = settings_service.upsert_tax_setting(ctx, request.get_json(silent=True) or {})
    return jsonify(tax.to_dict()), 200


@settings_bp.delete("/taxes/<int:tax_id>")
@require_admin
@require_permission(Resource.SETTINGS)
def delete_tax_route(tax_id: int, ctx):
    settings_service.delete_tax_setting(ctx, tax_id)
    return jsonify({"message": "Tax setting deleted"}), 200


@settings_bp.get("/shipping")
@require_admin
@require_permission(Resource.SETTINGS)
def get_shipping_route(ctx):
    return jsonify(settings_service.get_shipping_settings(ctx).to_dict()), 200


@settings_bp.put("/shipping")
@require_admin
@require_permission(Resource.SETTINGS)
def update_shipping_route(ctx):
    shipping = settings_service.update_shipping_settings(ctx, request.get_json(silent=True) or {})
    return jsonify(shipping.to_dict()), 200


@settings_bp.get("/store")
@require_admin
@require_permission(Resource.SETTINGS)
def get_store_settings_route(ctx):
    return jsonify(settings_service.get_store_settings(ctx)), 200


@settings_bp.put("/store")
@require_admin
@require_permission(Resource.SETTINGS)
def update_store_settings_route(ctx):
    return jsonify(settings_service.update_store_settings(ctx, request.get_json(silent=True) or {})), 200


@settings_bp.get("/seo")
@require_admin
@require_permission(Resource.SETTINGS)
def get_seo_route(ctx):
    return jsonify(settings_service.get_seo_settings(ctx)), 200


@settings_bp.put("/seo")
@require_admin
@require_permission(Resource.SETTINGS)
def update_seo_route(ctx):
    return jsonify(settings_service.update_seo_settings(ctx, request.get_json(silent=True) or {})), 200


@settings_bp.post("/quote")
@require_admin
@require_permission(Resource.SETTINGS)
def quote_route(ctx):
    return jsonify(_quote_from_request(ctx)), 200


# -----------------------------------------------------------------------------
# Public
# -----------------------------------------------------------------------------

@settings_bp.get("/public/payment-gateways")
@identify_store
def public_gateways_route(ctx):
    gateways = [g for g in settings_service.get_payment_gateways(ctx) if g.is_active]
    return jsonify([g.to_dict(include_secrets=False) for g in gateways]), 200


@settings_bp.get("/public/taxes")
@identify_store
def public_taxes_route(ctx):
    taxes = [t for t in settings_service.get_tax_settings(ctx) if t.is_active]
    return jsonify([t.to_dict() for t in taxes]), 200


@settings_bp.get("/public/shipping")
@identify_store
def public_shipping_route(ctx):
    return jsonify(settings_service.get_shipping_settings(ctx).to_dict()), 200


@settings_bp.get("/public/store")
@identify_store
def public_store_settings_route(ctx):
    return jsonify(settings_service.get_store_settings(ctx)), 200


@settings_bp.post("/public/quote")
@identify_store
def public_quote_route(ctx):
    return jsonify(_quote_from_request(ctx)), 200
