# Overview: Invoice generation from order snapshots, listing and status updates.

"""
Invoice Service

DESIGN:
- One invoice per order; the unique order_id constraint backs the check
- The invoice copies customer, addresses, items and pricing at generation
  time; later order changes never alter it
- Status starts as paid when the order's payment is completed, otherwise sent
- due_date is 30 days after issue
"""

from __future__ import annotations

from datetime import timedelta

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import BadRequestError, ConflictError, NotFoundError
from ..models import Invoice, InvoiceStatus, INVOICE_STATUSES, Order, Store
from ..time_utils import utcnow
from .document_service import DocumentType, next_document_number
from .order_service import PaymentStatus, get_customer_order, get_order
from .query_filters import date_range, paginate, search_any
from .tenant_service import StoreContext, get_scoped, scoped_query

INVOICE_DUE_DAYS = 30


def _existing(ctx: StoreContext, order: Order) -> Invoice | None:
    return scoped_query(Invoice, ctx).filter(Invoice.order_id == order.id).first()


def _snapshot(ctx: StoreContext, order: Order) -> Invoice:
    store = db.session.get(Store, order.store_id)
    customer = order.customer
    issued = utcnow()
    return Invoice(
        store_id=order.store_id,
        order_id=order.id,
        customer_id=order.customer_id,
        invoice_number=next_document_number(store_id=order.store_id, document_type=DocumentType.INVOICE),
        order_number=order.order_number,
        status=InvoiceStatus.PAID if order.payment_status == PaymentStatus.COMPLETED else InvoiceStatus.SENT,
        customer_name=customer.full_name if customer else None,
        customer_email=customer.email if customer else None,
        billing_address=dict(order.billing_address or {}),
        shipping_address=dict(order.shipping_address or {}),
        items=[item.to_dict() for item in order.items],
        subtotal_cents=order.subtotal_cents,
        tax_cents=order.tax_cents,
        shipping_cents=order.shipping_cents,
        discount_cents=order.discount_cents,
        total_cents=order.total_cents,
        currency=(store.settings or {}).get("currency", "INR") if store else "INR",
        payment_method=order.payment_method,
        payment_status=order.payment_status,
        notes=order.customer_notes,
        issued_at=issued,
        due_date=issued + timedelta(days=INVOICE_DUE_DAYS),
        generated_by_admin_id=ctx.admin_id,
    )


def _persist(invoice: Invoice) -> Invoice:
    db.session.add(invoice)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Invoice already exists for this order")
    return invoice


def generate_invoice(ctx: StoreContext, order_id: int) -> tuple[Invoice, bool]:
    """Admin generation. Returns (invoice, created); an existing invoice is returned as is."""
    order = get_order(ctx, order_id)
    existing = _existing(ctx, order)
    if existing is not None:
        return existing, False
    return _persist(_snapshot(ctx, order)), True


def generate_customer_invoice(ctx: StoreContext, order_id: int) -> Invoice:
    order = get_customer_order(ctx, order_id)
    if _existing(ctx, order) is not None:
        raise ConflictError("Invoice already exists for this order")
    return _persist(_snapshot(ctx, order))


def get_customer_invoice(ctx: StoreContext, order_id: int) -> Invoice:
    order = get_customer_order(ctx, order_id)
    invoice = _existing(ctx, order)
    if invoice is None:
        raise NotFoundError("Invoice not found")
    return invoice


def list_invoices(
    ctx: StoreContext,
    *,
    page: int = 1,
    limit: int = 10,
    status: str | None = None,
    search: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> dict:
    query = scoped_query(Invoice, ctx)
    if status:
        if status not in INVOICE_STATUSES:
            raise BadRequestError("Invalid status")
        query = query.filter(Invoice.status == status)
    term = search_any(
        [Invoice.invoice_number, Invoice.order_number, Invoice.customer_name, Invoice.customer_email],
        search,
    )
    if term is not None:
        query = query.filter(term)
    for clause in date_range(Invoice.issued_at, start_date, end_date):
        query = query.filter(clause)
    query = query.order_by(Invoice.issued_at.desc(), Invoice.id.desc())
    return paginate(query, page, limit)


def get_invoice(ctx: StoreContext, invoice_id: int) -> Invoice:
    return get_scoped(Invoice, invoice_id, ctx, label="Invoice")


def update_invoice_status(ctx: StoreContext, invoice_id: int, status: str) -> Invoice:
    if status not in INVOICE_STATUSES:
        raise BadRequestError(f"Invalid status. Must be one of: {', '.join(sorted(INVOICE_STATUSES))}")
    invoice = get_invoice(ctx, invoice_id)
    invoice.status = status
    db.session.commit()
    return invoice
