# Overview: Flask API routes for the signed-in customer; profile, bank details, orders and checkout.

from flask import Blueprint, jsonify, request

from ..decorators import require_customer
from ..services import customer_service, order_service
from ..services.query_filters import parse_pagination
from ..validation import require_fields

account_bp = Blueprint("account", __name__, url_prefix="/api/account")


@account_bp.get("/profile")
@require_customer
def get_profile_route(ctx):
    return jsonify(ctx.customer.to_dict()), 200


@account_bp.put("/profile")
@require_customer
def update_profile_route(ctx):
    customer = customer_service.update_profile(ctx, request.get_json(silent=True) or {})
    return jsonify(customer.to_dict()), 200


@account_bp.get("/bank-details")
@require_customer
def list_bank_details_route(ctx):
    return jsonify([d.to_dict() for d in customer_service.list_bank_details(ctx)]), 200


@account_bp.post("/bank-details")
@require_customer
def add_bank_detail_route(ctx):
    detail = customer_service.add_bank_detail(ctx, request.get_json(silent=True) or {})
    return jsonify(detail.to_dict()), 201


@account_bp.put("/bank-details/<int:detail_id>/default")
@require_customer
def set_default_bank_detail_route(detail_id: int, ctx):
    return jsonify(customer_service.set_default_bank_detail(ctx, detail_id).to_dict()), 200


@account_bp.delete("/bank-details/<int:detail_id>")
@require_customer
def delete_bank_detail_route(detail_id: int, ctx):
    customer_service.delete_bank_detail(ctx, detail_id)
    return jsonify({"message": "Bank detail deleted"}), 200


@account_bp.get("/orders")
@require_customer
def my_orders_route(ctx):
    page, limit = parse_pagination(request.args)
    result = order_service.list_customer_orders(ctx, page=page, limit=limit, status=request.args.get("status"))
    return jsonify(result), 200


@account_bp.get("/orders/<int:order_id>")
@require_customer
def my_order_route(order_id: int, ctx):
    return jsonify(order_service.get_customer_order(ctx, order_id).to_dict()), 200


@account_bp.post("/checkout")
@require_customer
def checkout_route(ctx):
    data = require_fields(request.get_json(silent=True), "items")
    order = order_service.checkout(ctx, data)
    return jsonify(order.to_dict()), 201
