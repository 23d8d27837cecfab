# Overview: Flask API routes for the payment provider; order creation, webhook and checkout verification.

from flask import Blueprint, jsonify, request

from ..decorators import require_customer
from ..services import payment_service
from ..validation import parse_int, require_fields

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("/webhook")
def webhook_route():
    """
    Provider callback. No bearer token; the HMAC signature over the raw
    body authenticates the caller.
    """
    result = payment_service.handle_webhook(
        request.get_data(cache=True),
        request.headers.get("X-Razorpay-Signature"),
    )
    return jsonify(result), 200


@payments_bp.post("/verify")
@require_customer
def verify_payment_route(ctx):
    order = payment_service.verify_checkout_payment(ctx, request.get_json(silent=True) or {})
    return jsonify({"verified": True, "order": order.to_dict()}), 200


@payments_bp.post("/razorpay/create-order")
@require_customer
def create_provider_order_route(ctx):
    """{"order_id": n} -> provider order reference and public key for the checkout widget."""
    data = require_fields(request.get_json(silent=True), "order_id")
    result = payment_service.create_provider_order(ctx, parse_int(data["order_id"], "order_id", minimum=1))
    return jsonify(result), 200
