# Overview: Flask API routes for invoices; admin generation and status, customer access by order.

from flask import Blueprint, jsonify, request

from ..decorators import require_admin, require_customer, require_permission
from ..permissions import Resource
from ..services import invoice_service
from ..services.query_filters import parse_pagination
from ..validation import require_fields

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("")
@require_admin
@require_permission(Resource.ORDERS)
def list_invoices_route(ctx):
    page, limit = parse_pagination(request.args)
    args = request.args
    result = invoice_service.list_invoices(
        ctx,
        page=page,
        limit=limit,
        status=args.get("status"),
        search=args.get("search"),
        start_date=args.get("startDate") or args.get("start_date"),
        end_date=args.get("endDate") or args.get("end_date"),
    )
    return jsonify(result), 200


@invoices_bp.get("/<int:invoice_id>")
@require_admin
@require_permission(Resource.ORDERS)
def get_invoice_route(invoice_id: int, ctx):
    return jsonify(invoice_service.get_invoice(ctx, invoice_id).to_dict()), 200


@invoices_bp.post("/generate/<int:order_id>")
@require_admin
@require_permission(Resource.ORDERS)
def generate_invoice_route(order_id: int, ctx):
    invoice, created = invoice_service.generate_invoice(ctx, order_id)
    return jsonify(invoice.to_dict()), 201 if created else 200


@invoices_bp.patch("/<int:invoice_id>/status")
@require_admin
@require_permission(Resource.ORDERS)
def update_invoice_status_route(invoice_id: int, ctx):
    data = require_fields(request.get_json(silent=True), "status")
    return jsonify(invoice_service.update_invoice_status(ctx, invoice_id, data["status"]).to_dict()), 200


@invoices_bp.get("/my/order/<int:order_id>")
@require_customer
def my_invoice_route(order_id: int, ctx):
    return jsonify(invoice_service.get_customer_invoice(ctx, order_id).to_dict()), 200


@invoices_bp.post("/my/order/<int:order_id>")
@require_customer
def generate_my_invoice_route(order_id: int, ctx):
    return jsonify(invoice_service.generate_customer_invoice(ctx, order_id).to_dict()), 201
