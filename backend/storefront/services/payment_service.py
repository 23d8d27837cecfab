# Overview: Payment provider integration; provider orders, webhook signature checks and checkout verification.

"""
Payment Provider Service

SECURITY:
- Webhook bodies are authenticated with HMAC-SHA256 over the literal request
  bytes using the shared webhook secret; comparison is constant-time
- A missing secret rejects every webhook (never "accept unsigned")
- Checkout verification signs "<provider_order_id>|<payment_id>" with the
  store's gateway key secret, falling back to the configured key secret
- provider_order_id only ever comes from the provider's create-order
  response, never from a client body

EVENTS:
    payment.captured -> order marked paid (status unchanged)
    payment.failed   -> payment failed; unshipped orders are cancelled
Orders are matched by the provider order reference stored on the order.
Unknown events, unmatched orders and events for settled payments are
acknowledged and logged.
"""

from __future__ import annotations

import hashlib
import hmac
import json

import razorpay
import requests
from flask import current_app
from razorpay import errors as provider_errors

from ..extensions import db
from ..errors import BadRequestError, InvalidOperationError, NotFoundError, PaymentProviderError
from ..models import Order, Store
from . import order_service, settings_service
from .order_service import OrderStatus
from .tenant_service import Principal, StoreContext, scoped_query

EVENT_CAPTURED = "payment.captured"
EVENT_FAILED = "payment.failed"


def compute_signature(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_webhook_signature(body: bytes, signature: str | None, secret: str | None) -> None:
    if not secret:
        raise BadRequestError("Webhook secret not configured")
    if not signature:
        raise BadRequestError("Missing webhook signature")
    if not hmac.compare_digest(compute_signature(secret, body), signature):
        raise BadRequestError("Invalid webhook signature")


def _payment_entity(payload: dict) -> dict:
    try:
        entity = payload["payload"]["payment"]["entity"]
    except (KeyError, TypeError):
        raise BadRequestError("Malformed webhook payload")
    if not isinstance(entity, dict):
        raise BadRequestError("Malformed webhook payload")
    return entity


def handle_webhook(body: bytes, signature: str | None) -> dict:
    """Authenticate and apply one provider event. Returns an acknowledgement."""
    verify_webhook_signature(body, signature, current_app.config.get("PAYMENT_WEBHOOK_SECRET"))

    try:
        payload = json.loads(body)
    except ValueError:
        raise BadRequestError("Webhook body must be JSON")
    if not isinstance(payload, dict):
        raise BadRequestError("Webhook body must be a JSON object")

    event = payload.get("event")
    if event not in (EVENT_CAPTURED, EVENT_FAILED):
        current_app.logger.info("Ignoring payment webhook event %s", event)
        return {"received": True, "handled": False}

    entity = _payment_entity(payload)
    order = order_service.find_by_provider_order_id(entity.get("order_id"))
    if order is None:
        current_app.logger.warning(
            "Payment webhook %s for unknown provider order %s", event, entity.get("order_id")
        )
        return {"received": True, "handled": False}

    if event == EVENT_FAILED and not order_service.payment_open(order):
        current_app.logger.warning(
            "Payment webhook %s ignored for order %s with payment %s",
            event, order.order_number, order.payment_status,
        )
        return {"received": True, "handled": False}

    ctx = StoreContext(order.store_id, Principal.PUBLIC, source="webhook")
    if event == EVENT_CAPTURED:
        order_service.apply_payment_captured(ctx, order.id, entity.get("id"))
    else:
        order_service.apply_payment_failed(ctx, order.id, entity.get("error_description"))

    current_app.logger.info("Payment webhook %s applied to order %s", event, order.order_number)
    return {"received": True, "handled": True, "order_id": order.id}


def _credentials(ctx: StoreContext) -> tuple[str | None, str]:
    """Store gateway credentials, falling back to the configured pair key by key."""
    gateway = settings_service.get_gateway_by_name(ctx, "Razorpay")
    credentials = (gateway.credentials or {}) if gateway is not None else {}
    key_id = credentials.get("key_id") or current_app.config.get("PAYMENT_KEY_ID")
    key_secret = credentials.get("key_secret") or current_app.config.get("PAYMENT_KEY_SECRET")
    if not key_secret:
        raise BadRequestError("Payment gateway not configured")
    return key_id, key_secret


def _provider_client(key_id: str, key_secret: str) -> razorpay.Client:
    return razorpay.Client(auth=(key_id, key_secret))


def create_provider_order(ctx: StoreContext, order_id: int) -> dict:
    """
    Open a provider order for one of the customer's unpaid orders and record
    its id on the order. The amount is the stored order total; nothing in the
    request body is trusted. Calling again returns the reference already
    recorded.
    """
    order = order_service.get_customer_order(ctx, order_id)
    if order.status != OrderStatus.PENDING or not order_service.payment_open(order):
        raise InvalidOperationError("Order is not awaiting payment")

    key_id, key_secret = _credentials(ctx)
    store = db.session.get(Store, order.store_id)
    currency = (store.settings or {}).get("currency", "INR") if store is not None else "INR"

    if not order.provider_order_id:
        if not key_id:
            raise BadRequestError("Payment gateway not configured")
        try:
            provider_order = _provider_client(key_id, key_secret).order.create(data={
                "amount": order.total_cents,
                "currency": currency,
                "receipt": order.order_number,
                "notes": {"store_id": str(order.store_id), "order_id": str(order.id)},
            })
        except (provider_errors.BadRequestError, provider_errors.GatewayError,
                provider_errors.ServerError, requests.RequestException) as exc:
            current_app.logger.warning(
                "Provider order creation failed for order %s: %s", order.order_number, exc
            )
            raise PaymentProviderError("Failed to create payment order")

        provider_order_id = provider_order.get("id") if isinstance(provider_order, dict) else None
        if not provider_order_id:
            raise PaymentProviderError("Payment provider returned no order id")
        order = order_service.attach_provider_order(ctx, order.id, provider_order_id)
        current_app.logger.info(
            "Provider order %s opened for order %s", provider_order_id, order.order_number
        )

    return {
        "order_id": order.id,
        "provider_order_id": order.provider_order_id,
        "amount_cents": order.total_cents,
        "currency": currency,
        "key_id": key_id,
    }


def verify_checkout_payment(ctx: StoreContext, data: dict) -> Order:
    """Confirm a client-side checkout and mark the customer's order paid."""
    provider_order_id = data.get("razorpay_order_id")
    payment_id = data.get("razorpay_payment_id")
    signature = data.get("razorpay_signature")
    if not provider_order_id or not payment_id or not signature:
        raise BadRequestError("razorpay_order_id, razorpay_payment_id and razorpay_signature are required")

    order = (
        scoped_query(Order, ctx)
        .filter(Order.provider_order_id == provider_order_id, Order.customer_id == ctx.customer_id)
        .first()
    )
    if order is None:
        raise NotFoundError("Order not found")

    _, key_secret = _credentials(ctx)
    expected = compute_signature(key_secret, f"{provider_order_id}|{payment_id}".encode("utf-8"))
    if not hmac.compare_digest(expected, signature):
        raise BadRequestError("Invalid payment signature")

    return order_service.mark_paid(ctx, order.id, transaction_id=payment_id)
