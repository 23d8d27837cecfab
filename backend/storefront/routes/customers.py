# Overview: Flask API routes for admin customer management.

from flask import Blueprint, jsonify, request

from ..decorators import require_admin, require_permission
from ..permissions import Resource
from ..services import customer_service, order_service
from ..services.query_filters import parse_pagination
from ..validation import require_fields

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_admin
@require_permission(Resource.CUSTOMERS)
def list_customers_route(ctx):
    page, limit = parse_pagination(request.args)
    result = customer_service.list_customers(
        ctx,
        page=page,
        limit=limit,
        search=request.args.get("search"),
        status=request.args.get("status"),
    )
    return jsonify(result), 200


@customers_bp.post("")
@require_admin
@require_permission(Resource.CUSTOMERS)
def create_customer_route(ctx):
    data = require_fields(request.get_json(silent=True), "email", "first_name")
    return jsonify(customer_service.create_customer(ctx, data).to_dict()), 201


@customers_bp.get("/<int:customer_id>")
@require_admin
@require_permission(Resource.CUSTOMERS)
def get_customer_route(customer_id: int, ctx):
    return jsonify(customer_service.get_customer(ctx, customer_id).to_dict()), 200


@customers_bp.put("/<int:customer_id>")
@require_admin
@require_permission(Resource.CUSTOMERS)
def update_customer_route(customer_id: int, ctx):
    customer = customer_service.update_customer(ctx, customer_id, request.get_json(silent=True) or {})
    return jsonify(customer.to_dict()), 200


@customers_bp.patch("/<int:customer_id>/status")
@require_admin
@require_permission(Resource.CUSTOMERS)
def set_customer_status_route(customer_id: int, ctx):
    data = require_fields(request.get_json(silent=True), "status")
    customer = customer_service.set_customer_status(ctx, customer_id, data["status"])
    return jsonify(customer.to_dict()), 200


@customers_bp.delete("/<int:customer_id>")
@require_admin
@require_permission(Resource.CUSTOMERS)
def delete_customer_route(customer_id: int, ctx):
    customer_service.delete_customer(ctx, customer_id)
    return jsonify({"message": "Customer deleted"}), 200


@customers_bp.get("/<int:customer_id>/orders")
@require_admin
@require_permission(Resource.CUSTOMERS)
def customer_orders_route(customer_id: int, ctx):
    customer = customer_service.get_customer(ctx, customer_id)
    page, limit = parse_pagination(request.args)
    return jsonify(order_service.list_orders(ctx, page=page, limit=limit, customer_id=customer.id)), 200
