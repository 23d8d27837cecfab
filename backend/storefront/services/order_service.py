# Overview: Order lifecycle engine; creation, status transitions, payment, cancellation and refunds.

"""
Order Lifecycle Service

STATE MACHINE (order.status):
    pending -> processing -> shipped -> delivered
    side exits: cancelled, refund_completed

    set_status(shipped|delivered)  fulfillment marked fulfilled, timestamp set
    set_status(cancelled)          stock restored (order must not be cancelled)
    mark_paid                      payment completed; order status unchanged
    cancel(reason)                 rejected for delivered orders; completed
                                   payments become cancelled; stock restored
    refund(...)                    rejected for cancelled or refunded orders;
                                   payment refunded; refund record written;
                                   stock restored

payment.status is an independent sub-state:
    pending | processing | completed | failed | refunded | cancelled

RULES:
1. total_cents == subtotal_cents + tax_cents + shipping_cents - discount_cents
   for every persisted order; totals are always computed here, never accepted
2. Items and pricing are immutable once the order exists
3. Stock restoration is best-effort per item and happens at most once per
   order (Order.stock_restored); a failing item never aborts the transition
4. Refunds go through refund(); set_status(refund_completed) is rejected
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import BadRequestError, ConflictError, InvalidOperationError, NotFoundError
from ..models import Customer, Order, OrderItem, Product
from ..time_utils import epoch_millis, utcnow
from . import inventory_service, settings_service
from .concurrency import lock_for_update, run_with_retry
from .document_service import DocumentType, next_document_number
from .inventory_service import RestockReport
from .query_filters import date_range, paginate, search_any
from .tenant_service import StoreContext, get_scoped, scoped_query


# =============================================================================
# STATUS CONSTANTS
# =============================================================================

class OrderStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUND_COMPLETED = "refund_completed"


ORDER_STATUSES = (
    OrderStatus.PENDING,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
    OrderStatus.REFUND_COMPLETED,
)


class PaymentStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


PAYMENT_STATUSES = (
    PaymentStatus.PENDING,
    PaymentStatus.PROCESSING,
    PaymentStatus.COMPLETED,
    PaymentStatus.FAILED,
    PaymentStatus.REFUNDED,
    PaymentStatus.CANCELLED,
)

FULFILLMENT_FULFILLED = "fulfilled"

# Storefront labels -> stored payment method codes
PAYMENT_METHOD_MAP = {
    "Cash on Delivery": "cod",
    "Credit Card": "credit_card",
    "Debit Card": "debit_card",
    "UPI": "upi",
    "Net Banking": "net_banking",
    "Wallet": "wallet",
    "Razorpay": "razorpay",
}
PAYMENT_METHODS = frozenset(PAYMENT_METHOD_MAP.values())

REQUIRED_BANK_FIELDS = ("account_holder_name", "bank_name", "account_number", "ifsc_code")
OPTIONAL_BANK_FIELDS = ("upi_id",)

UPDATABLE_ORDER_FIELDS = {"customer_notes", "internal_notes", "billing_address", "shipping_address"}


def normalize_payment_method(label: str | None) -> str:
    if not label:
        return "cod"
    if label in PAYMENT_METHOD_MAP:
        return PAYMENT_METHOD_MAP[label]
    code = str(label).strip().lower()
    if code in PAYMENT_METHODS:
        return code
    raise BadRequestError(f"Unsupported payment method: {label}")


def _non_negative(data: dict, key: str) -> int:
    value = data.get(key, 0)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise BadRequestError(f"{key} must be a non-negative integer")
    return value


def _address(data: dict, key: str) -> dict:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise BadRequestError(f"{key} must be an object")
    return value


# =============================================================================
# CREATION
# =============================================================================

def _collect_items(ctx: StoreContext, raw_items, *, storefront: bool) -> list[tuple[Product, int]]:
    """
    Resolve requested lines against the context's store.

    Products of other stores are reported exactly like missing products.
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise BadRequestError("Order must contain at least one item")

    lines = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise BadRequestError("Each item must be an object")
        qty = raw.get("quantity")
        if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
            raise BadRequestError("Item quantity must be a positive integer")
        product = scoped_query(Product, ctx).filter(Product.id == raw.get("product_id")).first()
        if product is None:
            raise NotFoundError(f"Product {raw.get('product_id')} not found")
        if storefront and product.status != "active":
            raise BadRequestError(f"{product.name} is not available")
        lines.append((product, qty))
    return lines


def _build_order(
    ctx: StoreContext,
    customer: Customer,
    lines: list[tuple[Product, int]],
    *,
    tax_cents: int,
    shipping_cents: int,
    discount_cents: int,
    payment_method: str,
    data: dict,
) -> Order:
    items = [
        OrderItem(
            product_id=product.id,
            product_name=product.name,
            sku=product.sku,
            quantity=qty,
            unit_price_cents=product.price_cents,
            line_total_cents=product.price_cents * qty,
        )
        for product, qty in lines
    ]
    subtotal = sum(item.line_total_cents for item in items)
    total = subtotal + tax_cents + shipping_cents - discount_cents
    if total < 0:
        raise BadRequestError("Discount exceeds order value")

    store_id = ctx.require_store_id()
    order = Order(
        store_id=store_id,
        customer_id=customer.id,
        order_number=next_document_number(store_id=store_id, document_type=DocumentType.ORDER),
        status=OrderStatus.PENDING,
        subtotal_cents=subtotal,
        tax_cents=tax_cents,
        shipping_cents=shipping_cents,
        discount_cents=discount_cents,
        total_cents=total,
        payment_method=payment_method,
        payment_status=PaymentStatus.PENDING,
        billing_address=_address(data, "billing_address"),
        shipping_address=_address(data, "shipping_address") or _address(data, "billing_address"),
        customer_notes=data.get("customer_notes"),
        items=items,
    )
    db.session.add(order)
    return order


def create_order(ctx: StoreContext, data: dict) -> Order:
    """
    Admin order entry. Tax, shipping and discount are taken as given;
    subtotal and total are computed from the items. Stock is not reserved.
    """
    customer = get_scoped(Customer, data.get("customer_id"), ctx, label="Customer")
    lines = _collect_items(ctx, data.get("items"), storefront=False)
    try:
        order = _build_order(
            ctx,
            customer,
            lines,
            tax_cents=_non_negative(data, "tax_cents"),
            shipping_cents=_non_negative(data, "shipping_cents"),
            discount_cents=_non_negative(data, "discount_cents"),
            payment_method=normalize_payment_method(data.get("payment_method")),
            data=data,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return order


def checkout(ctx: StoreContext, data: dict) -> Order:
    """
    Customer checkout: price the cart from the store's settings, reserve
    stock for tracked products and persist the order in one transaction.

    Insufficient stock on any line fails the whole checkout and leaves every
    product untouched.
    """
    customer = get_scoped(Customer, ctx.customer_id, ctx, label="Customer")
    payment_method = normalize_payment_method(data.get("payment_method"))

    def _op():
        lines = _collect_items(ctx, data.get("items"), storefront=True)
        subtotal = sum(product.price_cents * qty for product, qty in lines)
        quote = settings_service.quote(
            ctx,
            subtotal,
            zone_name=data.get("shipping_zone"),
            payment_method=payment_method,
        )
        try:
            for product, qty in lines:
                inventory_service.reserve_stock(ctx, product.id, qty)
            order = _build_order(
                ctx,
                customer,
                lines,
                tax_cents=quote["tax_cents"],
                shipping_cents=quote["shipping_cents"],
                discount_cents=0,
                payment_method=payment_method,
                data=data,
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Order %s placed in store %s", order.order_number, order.store_id)
    return order


# =============================================================================
# READS
# =============================================================================

def _filtered_orders(ctx: StoreContext, filters: dict):
    query = scoped_query(Order, ctx)
    status = filters.get("status")
    if status:
        if status not in ORDER_STATUSES:
            raise BadRequestError("Invalid status")
        query = query.filter(Order.status == status)
    payment_status = filters.get("payment_status")
    if payment_status:
        if payment_status not in PAYMENT_STATUSES:
            raise BadRequestError("Invalid payment status")
        query = query.filter(Order.payment_status == payment_status)
    if filters.get("customer_id") is not None:
        query = query.filter(Order.customer_id == filters["customer_id"])
    for clause in date_range(Order.created_at, filters.get("start_date"), filters.get("end_date")):
        query = query.filter(clause)
    if filters.get("search") and filters["search"].strip():
        query = query.join(Customer, Customer.id == Order.customer_id).filter(
            search_any([Order.order_number, Customer.first_name, Customer.last_name, Customer.email],
                       filters["search"])
        )
    return query.order_by(Order.created_at.desc(), Order.id.desc())


def list_orders(ctx: StoreContext, *, page: int = 1, limit: int = 10, **filters) -> dict:
    return paginate(
        _filtered_orders(ctx, filters),
        page,
        limit,
        serialize=lambda o: _with_customer(o.to_dict(include_items=False), o),
    )


def _with_customer(data: dict, order: Order) -> dict:
    customer = order.customer
    data["customer"] = {
        "id": customer.id,
        "name": customer.full_name,
        "email": customer.email,
    } if customer is not None else None
    return data


def get_order(ctx: StoreContext, order_id: int) -> Order:
    return get_scoped(Order, order_id, ctx, label="Order")


def order_detail(order: Order) -> dict:
    return _with_customer(order.to_dict(), order)


def list_customer_orders(ctx: StoreContext, *, page: int = 1, limit: int = 10, status: str | None = None) -> dict:
    return list_orders(ctx, page=page, limit=limit, status=status, customer_id=ctx.customer_id)


def get_customer_order(ctx: StoreContext, order_id: int) -> Order:
    order = get_order(ctx, order_id)
    if order.customer_id != ctx.customer_id:
        raise NotFoundError("Order not found")
    return order


def order_stats(ctx: StoreContext, *, start_date: str | None = None, end_date: str | None = None) -> dict:
    """Counts by status and payment status, paid revenue and average order value."""
    base = scoped_query(Order, ctx)
    for clause in date_range(Order.created_at, start_date, end_date):
        base = base.filter(clause)

    by_status = dict.fromkeys(ORDER_STATUSES, 0)
    for status, count in base.with_entities(Order.status, func.count(Order.id)).group_by(Order.status):
        by_status[status] = count

    by_payment = dict.fromkeys(PAYMENT_STATUSES, 0)
    for status, count in base.with_entities(Order.payment_status, func.count(Order.id)).group_by(
        Order.payment_status
    ):
        by_payment[status] = count

    paid = base.filter(Order.payment_status == PaymentStatus.COMPLETED)
    revenue = paid.with_entities(func.coalesce(func.sum(Order.total_cents), 0)).scalar()
    paid_count = paid.count()

    return {
        "total_orders": sum(by_status.values()),
        "total_revenue_cents": int(revenue),
        "average_order_value_cents": int(revenue) // paid_count if paid_count else 0,
        "by_status": by_status,
        "by_payment_status": by_payment,
    }


def export_orders(ctx: StoreContext, **filters) -> list[dict]:
    """Flat rows (one per order) for the export endpoint."""
    rows = []
    for order in _filtered_orders(ctx, filters):
        customer = order.customer
        rows.append({
            "order_number": order.order_number,
            "created_at": order.to_dict(include_items=False)["created_at"],
            "customer_name": customer.full_name if customer else None,
            "customer_email": customer.email if customer else None,
            "status": order.status,
            "payment_method": order.payment_method,
            "payment_status": order.payment_status,
            "item_count": sum(item.quantity for item in order.items),
            "subtotal_cents": order.subtotal_cents,
            "tax_cents": order.tax_cents,
            "shipping_cents": order.shipping_cents,
            "discount_cents": order.discount_cents,
            "total_cents": order.total_cents,
        })
    return rows


# =============================================================================
# UPDATES AND TRANSITIONS
# =============================================================================

def _locked_order(ctx: StoreContext, order_id: int) -> Order:
    try:
        order_id = int(order_id)
    except (TypeError, ValueError):
        raise NotFoundError("Order not found")
    order = lock_for_update(scoped_query(Order, ctx).filter(Order.id == order_id)).first()
    if order is None:
        raise NotFoundError("Order not found")
    return order


def update_order(ctx: StoreContext, order_id: int, data: dict) -> Order:
    """Only notes and addresses change after placement."""
    blocked = set(data) - UPDATABLE_ORDER_FIELDS
    if blocked:
        raise BadRequestError(
            "Only notes and addresses can be updated",
            fields=sorted(blocked),
        )

    def _op():
        order = _locked_order(ctx, order_id)
        for key in ("billing_address", "shipping_address"):
            if key in data:
                setattr(order, key, _address(data, key))
        for key in ("customer_notes", "internal_notes"):
            if key in data:
                setattr(order, key, data[key])
        db.session.commit()
        return order

    return run_with_retry(_op)


def _restore_stock(ctx: StoreContext, order: Order) -> RestockReport:
    report = inventory_service.restore_order_stock(ctx, order)
    if report.failed:
        current_app.logger.warning(
            "Order %s: stock restore incomplete for %s item(s)", order.order_number, len(report.failed)
        )
    return report


def set_status(ctx: StoreContext, order_id: int, status: str, *, tracking_number: str | None = None) -> tuple[Order, RestockReport | None]:
    if status not in ORDER_STATUSES:
        raise BadRequestError("Invalid status")
    if status == OrderStatus.REFUND_COMPLETED:
        raise InvalidOperationError("Use the refund operation to refund an order")

    def _op():
        order = _locked_order(ctx, order_id)
        report = None
        now = utcnow()
        if status == OrderStatus.CANCELLED:
            if order.status == OrderStatus.CANCELLED:
                raise InvalidOperationError("Order is already cancelled")
            order.cancelled_at = now
            report = _restore_stock(ctx, order)
        elif status == OrderStatus.SHIPPED:
            order.fulfillment_status = FULFILLMENT_FULFILLED
            order.shipped_at = now
        elif status == OrderStatus.DELIVERED:
            order.fulfillment_status = FULFILLMENT_FULFILLED
            order.delivered_at = now
        if tracking_number:
            order.tracking_number = tracking_number
        order.status = status
        db.session.commit()
        return order, report

    return run_with_retry(_op)


def _apply_payment(order: Order, transaction_id: str | None) -> None:
    order.payment_status = PaymentStatus.COMPLETED
    order.paid_at = utcnow()
    order.payment_transaction_id = transaction_id or f"TXN-{epoch_millis()}"


def mark_paid(ctx: StoreContext, order_id: int, *, transaction_id: str | None = None) -> Order:
    def _op():
        order = _locked_order(ctx, order_id)
        if order.status == OrderStatus.CANCELLED:
            raise InvalidOperationError("Cannot mark a cancelled order as paid")
        _apply_payment(order, transaction_id)
        db.session.commit()
        return order

    return run_with_retry(_op)


def _cancel(ctx: StoreContext, order: Order, reason: str | None) -> RestockReport:
    if order.status == OrderStatus.DELIVERED:
        raise InvalidOperationError("Cannot cancel delivered order")
    if order.status == OrderStatus.CANCELLED:
        raise InvalidOperationError("Order is already cancelled")
    if order.status == OrderStatus.REFUND_COMPLETED:
        raise InvalidOperationError("Cannot cancel refunded order")

    if order.payment_status == PaymentStatus.COMPLETED:
        order.payment_status = PaymentStatus.CANCELLED
    reason = (reason or "").strip() or "No reason given"
    order.status = OrderStatus.CANCELLED
    order.cancelled_at = utcnow()
    order.cancel_reason = reason
    order.append_internal_note(f"Cancelled: {reason}")
    return _restore_stock(ctx, order)


def cancel_order(ctx: StoreContext, order_id: int, reason: str | None = None) -> tuple[Order, RestockReport]:
    def _op():
        order = _locked_order(ctx, order_id)
        report = _cancel(ctx, order, reason)
        db.session.commit()
        return order, report

    return run_with_retry(_op)


def _resolve_bank_details(order: Order, supplied: dict) -> dict:
    """
    Merge supplied bank fields over the customer's stored default record,
    field by field. All required fields must end up present.
    """
    stored = order.customer.default_bank_detail() if order.customer is not None else None
    resolved = {}
    for key in REQUIRED_BANK_FIELDS + OPTIONAL_BANK_FIELDS:
        value = supplied.get(key)
        if isinstance(value, str):
            value = value.strip()
        if not value and stored is not None:
            value = getattr(stored, key)
        resolved[key] = value or None

    missing = [key for key in REQUIRED_BANK_FIELDS if not resolved[key]]
    if missing:
        raise BadRequestError("Bank details are required for the refund", missing_fields=missing)
    return resolved


def _mask(account_number: str) -> str:
    return f"****{account_number[-4:]}"


def refund_order(ctx: StoreContext, order_id: int, data: dict) -> tuple[Order, RestockReport]:
    """
    Refund an order in full or in part.

    data: reason, amount_cents (defaults to the order total), transaction_id
    (generated when absent) and bank fields either at the top level or under
    bank_details.
    """
    supplied = data.get("bank_details") if isinstance(data.get("bank_details"), dict) else data

    def _op():
        order = _locked_order(ctx, order_id)
        if order.status == OrderStatus.REFUND_COMPLETED:
            raise InvalidOperationError("Order already refunded")
        if order.status == OrderStatus.CANCELLED:
            raise InvalidOperationError("Cannot refund cancelled order")

        amount = data.get("amount_cents")
        if amount is None:
            amount = order.total_cents
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise BadRequestError("Refund amount must be a positive integer")
        if amount > order.total_cents:
            raise BadRequestError("Refund amount exceeds order total")

        bank = _resolve_bank_details(order, supplied)
        reason = (data.get("reason") or "").strip() or "Admin refund"
        transaction_id = data.get("transaction_id") or f"REF-{epoch_millis()}"

        order.status = OrderStatus.REFUND_COMPLETED
        order.payment_status = PaymentStatus.REFUNDED
        order.refund_amount_cents = amount
        order.refund_reason = reason
        order.refund_transaction_id = transaction_id
        order.refunded_at = utcnow()
        order.refunded_by_admin_id = ctx.admin_id
        order.append_internal_note(
            f"Refund {transaction_id}: {amount} to {bank['account_holder_name']}, "
            f"{bank['bank_name']} {_mask(bank['account_number'])} ({bank['ifsc_code']}). {reason}"
        )
        report = _restore_stock(ctx, order)
        db.session.commit()
        return order, report

    return run_with_retry(_op)


# =============================================================================
# PAYMENT PROVIDER EVENTS
# =============================================================================

# Payment sub-states a provider event may still settle
OPEN_PAYMENT_STATUSES = (PaymentStatus.PENDING, PaymentStatus.PROCESSING)


def find_by_provider_order_id(provider_order_id: str) -> Order | None:
    """
    Cross-store lookup used only by the payment webhook; the provider's
    order reference identifies the tenant. An ambiguous reference matches
    nothing.
    """
    if not provider_order_id:
        return None
    matches = (
        db.session.query(Order)
        .filter(Order.provider_order_id == provider_order_id)
        .limit(2)
        .all()
    )
    if len(matches) > 1:
        current_app.logger.error(
            "Provider order %s matches orders in stores %s; refusing to apply",
            provider_order_id,
            sorted({o.store_id for o in matches}),
        )
        return None
    return matches[0] if matches else None


def attach_provider_order(ctx: StoreContext, order_id: int, provider_order_id: str) -> Order:
    """Record the provider-assigned reference on an order of ctx's store."""
    def _op():
        order = _locked_order(ctx, order_id)
        if order.provider_order_id and order.provider_order_id != provider_order_id:
            raise InvalidOperationError("Order already has a provider order")
        order.provider_order_id = provider_order_id
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Provider order reference already in use")
        return order

    return run_with_retry(_op)


def payment_open(order: Order) -> bool:
    return order.payment_status in OPEN_PAYMENT_STATUSES


def apply_payment_captured(ctx: StoreContext, order_id: int, transaction_id: str | None) -> Order:
    def _op():
        order = _locked_order(ctx, order_id)
        if order.status in (OrderStatus.CANCELLED, OrderStatus.REFUND_COMPLETED):
            return order
        if order.payment_status not in OPEN_PAYMENT_STATUSES + (PaymentStatus.FAILED,):
            return order
        _apply_payment(order, transaction_id)
        db.session.commit()
        return order

    return run_with_retry(_op)


def apply_payment_failed(ctx: StoreContext, order_id: int, reason: str | None) -> tuple[Order, RestockReport | None]:
    """
    Failed provider payment cancels an order that has not shipped yet.

    Settled payments (completed, refunded, cancelled, failed) are left
    untouched; callers check payment_open() first to report the skip.
    """
    def _op():
        order = _locked_order(ctx, order_id)
        if not payment_open(order):
            return order, None
        report = None
        order.payment_status = PaymentStatus.FAILED
        if order.status in (OrderStatus.PENDING, OrderStatus.PROCESSING):
            report = _cancel(ctx, order, reason or "Payment failed")
        db.session.commit()
        return order, report

    return run_with_retry(_op)
