# Overview: Flask API routes for the admin order lifecycle; listing, stats, transitions and refunds.

"""
Order API routes

All routes require an admin token with the orders permission. Transitions
that restore stock answer with the order plus a "stock" report listing
restored, skipped and failed items.
"""

from flask import Blueprint, jsonify, request

from ..decorators import require_admin, require_permission
from ..permissions import Resource
from ..services import order_service
from ..services.query_filters import parse_pagination
from ..validation import require_fields

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _filters() -> dict:
    args = request.args
    return {
        "status": args.get("status"),
        "payment_status": args.get("paymentStatus") or args.get("payment_status"),
        "start_date": args.get("startDate") or args.get("start_date"),
        "end_date": args.get("endDate") or args.get("end_date"),
        "search": args.get("search"),
    }


def _transition_body(order, report) -> dict:
    return {
        "order": order_service.order_detail(order),
        "stock": report.to_dict() if report is not None else None,
    }


@orders_bp.get("")
@require_admin
@require_permission(Resource.ORDERS)
def list_orders_route(ctx):
    page, limit = parse_pagination(request.args)
    return jsonify(order_service.list_orders(ctx, page=page, limit=limit, **_filters())), 200


@orders_bp.get("/stats")
@require_admin
@require_permission(Resource.ORDERS)
def order_stats_route(ctx):
    filters = _filters()
    stats = order_service.order_stats(ctx, start_date=filters["start_date"], end_date=filters["end_date"])
    return jsonify(stats), 200


@orders_bp.get("/export")
@require_admin
@require_permission(Resource.ORDERS)
def export_orders_route(ctx):
    rows = order_service.export_orders(ctx, **_filters())
    return jsonify({"items": rows, "count": len(rows)}), 200


@orders_bp.post("")
@require_admin
@require_permission(Resource.ORDERS)
def create_order_route(ctx):
    data = require_fields(request.get_json(silent=True), "customer_id", "items")
    order = order_service.create_order(ctx, data)
    return jsonify(order_service.order_detail(order)), 201


@orders_bp.get("/<int:order_id>")
@require_admin
@require_permission(Resource.ORDERS)
def get_order_route(order_id: int, ctx):
    return jsonify(order_service.order_detail(order_service.get_order(ctx, order_id))), 200


@orders_bp.put("/<int:order_id>")
@require_admin
@require_permission(Resource.ORDERS)
def update_order_route(order_id: int, ctx):
    order = order_service.update_order(ctx, order_id, request.get_json(silent=True) or {})
    return jsonify(order_service.order_detail(order)), 200


@orders_bp.patch("/<int:order_id>/status")
@require_admin
@require_permission(Resource.ORDERS)
def set_status_route(order_id: int, ctx):
    data = require_fields(request.get_json(silent=True), "status")
    order, report = order_service.set_status(
        ctx, order_id, data["status"], tracking_number=data.get("tracking_number")
    )
    return jsonify(_transition_body(order, report)), 200


@orders_bp.post("/<int:order_id>/mark-paid")
@require_admin
@require_permission(Resource.ORDERS)
def mark_paid_route(order_id: int, ctx):
    data = request.get_json(silent=True) or {}
    order = order_service.mark_paid(ctx, order_id, transaction_id=data.get("transaction_id"))
    return jsonify(order_service.order_detail(order)), 200


@orders_bp.post("/<int:order_id>/cancel")
@require_admin
@require_permission(Resource.ORDERS)
def cancel_order_route(order_id: int, ctx):
    data = request.get_json(silent=True) or {}
    order, report = order_service.cancel_order(ctx, order_id, data.get("reason"))
    return jsonify(_transition_body(order, report)), 200


@orders_bp.post("/<int:order_id>/refund")
@require_admin
@require_permission(Resource.ORDERS)
def refund_order_route(order_id: int, ctx):
    order, report = order_service.refund_order(ctx, order_id, request.get_json(silent=True) or {})
    return jsonify(_transition_body(order, report)), 200
