"""
Payment provider tests: webhook signature checks, event handling and
client-side checkout verification.
"""

import json

import pytest
import requests

from storefront.errors import BadRequestError, ConflictError
from storefront.extensions import db
from storefront.models import Customer, Order, Product
from storefront.services import auth_service, order_service, payment_service, settings_service
from storefront.services.order_service import OrderStatus, PaymentStatus
from storefront.services.tenant_service import Principal, StoreContext

from conftest import auth_headers, get_customer_token

WEBHOOK_SECRET = "whsec_test"
KEY_SECRET = "key_secret_test"


def _provider_order(ctx, customer, product, provider_order_id="order_P1", qty=2):
    order = order_service.create_order(ctx, {
        "customer_id": customer.id,
        "items": [{"product_id": product.id, "quantity": qty}],
        "payment_method": "razorpay",
    })
    return order_service.attach_provider_order(ctx, order.id, provider_order_id)


def _event(event, provider_order_id, payment_id="pay_1", **entity):
    entity.update({"id": payment_id, "order_id": provider_order_id})
    return json.dumps({"event": event, "payload": {"payment": {"entity": entity}}}).encode("utf-8")


def _post_webhook(client, body, secret=WEBHOOK_SECRET, signature=None):
    if signature is None:
        signature = payment_service.compute_signature(secret, body)
    return client.post(
        '/api/payments/webhook',
        data=body,
        headers={'X-Razorpay-Signature': signature, 'Content-Type': 'application/json'},
    )


def _reload(order_id):
    db.session.expire_all()
    return db.session.get(Order, order_id)


# =============================================================================
# SIGNATURE VERIFICATION
# =============================================================================

class TestWebhookSignature:

    def test_valid_signature_passes(self):
        body = b'{"event": "payment.captured"}'
        payment_service.verify_webhook_signature(
            body, payment_service.compute_signature("s3cret", body), "s3cret"
        )

    @pytest.mark.parametrize("signature,secret,message", [
        ("deadbeef", "s3cret", "Invalid webhook signature"),
        (None, "s3cret", "Missing webhook signature"),
        ("deadbeef", None, "Webhook secret not configured"),
        ("deadbeef", "", "Webhook secret not configured"),
    ])
    def test_rejections(self, signature, secret, message):
        with pytest.raises(BadRequestError) as exc:
            payment_service.verify_webhook_signature(b"{}", signature, secret)
        assert exc.value.message == message

    def test_tampered_body_rejected(self, client, ctx_a, customer_a, product_a):
        order = _provider_order(ctx_a, customer_a, product_a)
        body = _event("payment.captured", "order_P1")
        signature = payment_service.compute_signature(WEBHOOK_SECRET, body)

        response = _post_webhook(client, body.replace(b"pay_1", b"pay_X"), signature=signature)
        assert response.status_code == 400
        assert _reload(order.id).payment_status == PaymentStatus.PENDING

    def test_unconfigured_secret_rejects_everything(self, app, client, ctx_a, customer_a, product_a):
        _provider_order(ctx_a, customer_a, product_a)
        body = _event("payment.captured", "order_P1")
        original = app.config["PAYMENT_WEBHOOK_SECRET"]
        app.config["PAYMENT_WEBHOOK_SECRET"] = None
        try:
            response = _post_webhook(client, body)
        finally:
            app.config["PAYMENT_WEBHOOK_SECRET"] = original
        assert response.status_code == 400


# =============================================================================
# EVENTS
# =============================================================================

class TestWebhookEvents:

    def test_captured_marks_paid_without_status_change(self, client, ctx_a, customer_a, product_a):
        order = _provider_order(ctx_a, customer_a, product_a)
        response = _post_webhook(client, _event("payment.captured", "order_P1", payment_id="pay_ABC"))

        assert response.status_code == 200
        assert response.json == {"received": True, "handled": True, "order_id": order.id}
        order = _reload(order.id)
        assert order.payment_status == PaymentStatus.COMPLETED
        assert order.payment_transaction_id == "pay_ABC"
        assert order.status == OrderStatus.PENDING

    def test_captured_twice_keeps_first_transaction(self, client, ctx_a, customer_a, product_a):
        order = _provider_order(ctx_a, customer_a, product_a)
        _post_webhook(client, _event("payment.captured", "order_P1", payment_id="pay_1"))
        _post_webhook(client, _event("payment.captured", "order_P1", payment_id="pay_2"))
        assert _reload(order.id).payment_transaction_id == "pay_1"

    def test_failed_cancels_pending_order_and_restores_stock(self, client, ctx_a, customer_a, product_a):
        order = _provider_order(ctx_a, customer_a, product_a, qty=2)
        response = _post_webhook(
            client, _event("payment.failed", "order_P1", error_description="Card declined")
        )
        assert response.status_code == 200

        order = _reload(order.id)
        assert order.payment_status == PaymentStatus.FAILED
        assert order.status == OrderStatus.CANCELLED
        assert order.cancel_reason == "Card declined"
        assert db.session.get(Product, product_a.id).stock_quantity == 12

    def test_failed_after_shipping_keeps_status(self, client, ctx_a, customer_a, product_a):
        order = _provider_order(ctx_a, customer_a, product_a)
        order_service.set_status(ctx_a, order.id, "shipped")
        _post_webhook(client, _event("payment.failed", "order_P1"))

        order = _reload(order.id)
        assert order.payment_status == PaymentStatus.FAILED
        assert order.status == OrderStatus.SHIPPED

    def test_unknown_event_acknowledged(self, client, ctx_a, customer_a, product_a):
        order = _provider_order(ctx_a, customer_a, product_a)
        response = _post_webhook(client, _event("refund.processed", "order_P1"))
        assert response.status_code == 200
        assert response.json == {"received": True, "handled": False}
        assert _reload(order.id).payment_status == PaymentStatus.PENDING

    def test_unmatched_order_acknowledged(self, client, db_session):
        response = _post_webhook(client, _event("payment.captured", "order_missing"))
        assert response.status_code == 200
        assert response.json["handled"] is False

    def test_failed_after_refund_leaves_order_untouched(
        self, client, ctx_a, customer_a, bank_detail_a, product_a
    ):
        order = _provider_order(ctx_a, customer_a, product_a)
        _post_webhook(client, _event("payment.captured", "order_P1"))
        order_service.refund_order(ctx_a, order.id, {"reason": "Changed mind"})

        response = _post_webhook(client, _event("payment.failed", "order_P1"))
        assert response.status_code == 200
        assert response.json == {"received": True, "handled": False}

        order = _reload(order.id)
        assert order.status == OrderStatus.REFUND_COMPLETED
        assert order.payment_status == PaymentStatus.REFUNDED

    @pytest.mark.parametrize("settle", ["paid", "failed"])
    def test_failed_for_settled_payment_is_skipped(self, client, ctx_a, customer_a, product_a, settle):
        order = _provider_order(ctx_a, customer_a, product_a)
        if settle == "paid":
            order_service.mark_paid(ctx_a, order.id, transaction_id="pay_OK")
        else:
            _post_webhook(client, _event("payment.failed", "order_P1"))
        before = _reload(order.id).payment_status

        response = _post_webhook(client, _event("payment.failed", "order_P1", payment_id="pay_late"))
        assert response.json["handled"] is False
        assert _reload(order.id).payment_status == before

    def test_captured_after_refund_keeps_refund(self, client, ctx_a, customer_a, bank_detail_a, product_a):
        order = _provider_order(ctx_a, customer_a, product_a)
        order_service.mark_paid(ctx_a, order.id, transaction_id="pay_1")
        order_service.refund_order(ctx_a, order.id, {})

        _post_webhook(client, _event("payment.captured", "order_P1", payment_id="pay_replay"))
        order = _reload(order.id)
        assert order.payment_status == PaymentStatus.REFUNDED
        assert order.payment_transaction_id == "pay_1"

    def test_malformed_payload_rejected(self, client, db_session):
        body = json.dumps({"event": "payment.captured", "payload": {}}).encode("utf-8")
        assert _post_webhook(client, body).status_code == 400


# =============================================================================
# CHECKOUT VERIFICATION
# =============================================================================

class TestVerifyCheckout:

    def _payload(self, provider_order_id="order_P1", payment_id="pay_9", secret=KEY_SECRET):
        signature = payment_service.compute_signature(
            secret, f"{provider_order_id}|{payment_id}".encode("utf-8")
        )
        return {
            "razorpay_order_id": provider_order_id,
            "razorpay_payment_id": payment_id,
            "razorpay_signature": signature,
        }

    def test_verified_payment_marks_order_paid(self, client, ctx_a, customer_a, product_a):
        order = _provider_order(ctx_a, customer_a, product_a)
        token = get_customer_token(client, "acme", customer_a.email)

        response = client.post('/api/payments/verify', json=self._payload(), headers=auth_headers(token))
        assert response.status_code == 200
        assert response.json["verified"] is True
        assert response.json["order"]["payment"]["status"] == "completed"
        assert _reload(order.id).payment_transaction_id == "pay_9"

    def test_gateway_secret_takes_precedence(self, client, ctx_a, customer_a, product_a):
        settings_service.upsert_payment_gateway(ctx_a, {
            "name": "Razorpay",
            "is_active": True,
            "credentials": {"key_id": "rzp_test", "key_secret": "store-secret"},
        })
        _provider_order(ctx_a, customer_a, product_a)
        token = get_customer_token(client, "acme", customer_a.email)

        rejected = client.post('/api/payments/verify', json=self._payload(), headers=auth_headers(token))
        assert rejected.status_code == 400

        accepted = client.post(
            '/api/payments/verify',
            json=self._payload(secret="store-secret"),
            headers=auth_headers(token),
        )
        assert accepted.status_code == 200

    def test_bad_signature_rejected(self, client, ctx_a, customer_a, product_a):
        order = _provider_order(ctx_a, customer_a, product_a)
        token = get_customer_token(client, "acme", customer_a.email)
        payload = self._payload()
        payload["razorpay_signature"] = "0" * 64

        response = client.post('/api/payments/verify', json=payload, headers=auth_headers(token))
        assert response.status_code == 400
        assert _reload(order.id).payment_status == PaymentStatus.PENDING

    def test_other_customers_order_not_found(self, client, db_session, ctx_a, customer_a, product_a):
        other = Customer(
            store_id=customer_a.store_id,
            first_name="Dan",
            email="dan@example.com",
            password_hash=auth_service.hash_password("Password123!"),
            addresses=[],
        )
        db_session.add(other)
        db_session.commit()
        _provider_order(ctx_a, customer_a, product_a)

        token = get_customer_token(client, "acme", "dan@example.com")
        response = client.post('/api/payments/verify', json=self._payload(), headers=auth_headers(token))
        assert response.status_code == 404

    def test_missing_fields_rejected(self, client, customer_a):
        token = get_customer_token(client, "acme", customer_a.email)
        response = client.post('/api/payments/verify', json={}, headers=auth_headers(token))
        assert response.status_code == 400


# =============================================================================
# PROVIDER ORDER REFERENCE
# =============================================================================

class _FakeResponse:

    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body
        self.text = json.dumps(body)
        self.content = self.text.encode("utf-8")
        self.headers = {"Content-Type": "application/json"}

    def json(self):
        return self._body


@pytest.fixture
def provider_http(monkeypatch):
    """
    Replace the provider's HTTP transport. Each call is recorded; the reply
    is taken from provider_http["reply"] (status, body).
    """
    state = {"calls": [], "reply": (200, {"id": "order_RZP1", "amount": 0, "currency": "INR"})}

    def fake_request(session, method, url, **kwargs):
        state["calls"].append({"method": method.upper(), "url": url, **kwargs})
        status, body = state["reply"]
        return _FakeResponse(status, body)

    monkeypatch.setattr(requests.Session, "request", fake_request)
    return state


def _customer_order(customer, product, qty=1):
    ctx = StoreContext(customer.store_id, Principal.CUSTOMER, customer=customer, source="credential")
    return order_service.checkout(ctx, {
        "items": [{"product_id": product.id, "quantity": qty}],
        "payment_method": "Razorpay",
    })


class TestCreateProviderOrder:

    def test_creates_provider_order_for_order_total(self, client, customer_a, product_a, provider_http):
        order = _customer_order(customer_a, product_a, qty=2)
        token = get_customer_token(client, "acme", customer_a.email)

        response = client.post(
            '/api/payments/razorpay/create-order',
            json={'order_id': order.id, 'amount': 1},
            headers=auth_headers(token),
        )
        assert response.status_code == 200
        assert response.json == {
            "order_id": order.id,
            "provider_order_id": "order_RZP1",
            "amount_cents": order.total_cents,
            "currency": "INR",
            "key_id": "rzp_test_key",
        }

        call = provider_http["calls"][0]
        assert call["method"] == "POST"
        assert call["url"].endswith("/orders")
        assert call["auth"] == ("rzp_test_key", KEY_SECRET)
        sent = json.loads(call["data"])
        assert sent["amount"] == order.total_cents
        assert sent["receipt"] == order.order_number
        assert _reload(order.id).provider_order_id == "order_RZP1"

    def test_store_gateway_credentials_used(self, client, ctx_a, customer_a, product_a, provider_http):
        settings_service.upsert_payment_gateway(ctx_a, {
            "name": "Razorpay",
            "credentials": {"key_id": "rzp_store", "key_secret": "store-secret"},
        })
        order = _customer_order(customer_a, product_a)
        token = get_customer_token(client, "acme", customer_a.email)

        response = client.post(
            '/api/payments/razorpay/create-order', json={'order_id': order.id}, headers=auth_headers(token)
        )
        assert response.json["key_id"] == "rzp_store"
        assert provider_http["calls"][0]["auth"] == ("rzp_store", "store-secret")

    def test_second_call_reuses_reference(self, client, customer_a, product_a, provider_http):
        order = _customer_order(customer_a, product_a)
        token = get_customer_token(client, "acme", customer_a.email)

        for _ in range(2):
            response = client.post(
                '/api/payments/razorpay/create-order', json={'order_id': order.id}, headers=auth_headers(token)
            )
            assert response.json["provider_order_id"] == "order_RZP1"
        assert len(provider_http["calls"]) == 1

    def test_provider_failure_is_502(self, client, customer_a, product_a, provider_http):
        provider_http["reply"] = (500, {"error": {"code": "SERVER_ERROR", "description": "down"}})
        order = _customer_order(customer_a, product_a)
        token = get_customer_token(client, "acme", customer_a.email)

        response = client.post(
            '/api/payments/razorpay/create-order', json={'order_id': order.id}, headers=auth_headers(token)
        )
        assert response.status_code == 502
        assert _reload(order.id).provider_order_id is None

    def test_paid_order_rejected(self, client, ctx_a, customer_a, product_a, provider_http):
        order = _customer_order(customer_a, product_a)
        order_service.mark_paid(ctx_a, order.id)
        token = get_customer_token(client, "acme", customer_a.email)

        response = client.post(
            '/api/payments/razorpay/create-order', json={'order_id': order.id}, headers=auth_headers(token)
        )
        assert response.status_code == 409
        assert provider_http["calls"] == []

    def test_other_store_order_not_found(self, client, customer_a, customer_b, product_b, provider_http):
        order = _customer_order(customer_b, product_b)
        token = get_customer_token(client, "acme", customer_a.email)

        response = client.post(
            '/api/payments/razorpay/create-order', json={'order_id': order.id}, headers=auth_headers(token)
        )
        assert response.status_code == 404
        assert provider_http["calls"] == []


class TestProviderReferenceIsolation:

    def test_checkout_ignores_client_reference(self, customer_a, product_a):
        ctx = StoreContext(customer_a.store_id, Principal.CUSTOMER, customer=customer_a, source="credential")
        order = order_service.checkout(ctx, {
            "items": [{"product_id": product_a.id, "quantity": 1}],
            "payment_method": "Razorpay",
            "provider_order_id": "order_VICTIM",
        })
        assert order.provider_order_id is None

    def test_reference_cannot_be_shared_across_stores(self, ctx_a, ctx_b, customer_a, customer_b, product_a, product_b):
        _provider_order(ctx_b, customer_b, product_b, provider_order_id="order_SHARED")
        other = order_service.create_order(ctx_a, {
            "customer_id": customer_a.id,
            "items": [{"product_id": product_a.id, "quantity": 1}],
        })
        with pytest.raises(ConflictError):
            order_service.attach_provider_order(ctx_a, other.id, "order_SHARED")
        assert _reload(other.id).provider_order_id is None

    def test_webhook_only_touches_owning_store(self, client, ctx_a, ctx_b, customer_a, customer_b, product_a, product_b):
        victim = _provider_order(ctx_b, customer_b, product_b, provider_order_id="order_B")
        bystander = _provider_order(ctx_a, customer_a, product_a, provider_order_id="order_A")

        response = _post_webhook(client, _event("payment.captured", "order_A"))
        assert response.json["order_id"] == bystander.id
        assert _reload(bystander.id).payment_status == PaymentStatus.COMPLETED
        assert _reload(victim.id).payment_status == PaymentStatus.PENDING
