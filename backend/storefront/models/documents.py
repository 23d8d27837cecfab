from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class InvoiceStatus:
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


INVOICE_STATUSES = {
    InvoiceStatus.DRAFT,
    InvoiceStatus.SENT,
    InvoiceStatus.PAID,
    InvoiceStatus.OVERDUE,
    InvoiceStatus.CANCELLED,
}


class Invoice(db.Model):
    """
    Invoice snapshot of an order.

    DESIGN:
    - Exactly one invoice per order (unique order_id)
    - Billing, shipping, items and pricing are copied at generation time and
      never follow later order changes
    - invoice_number is sequential per store (document_sequences)
    - status is independent of the order status
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_invoices_order"),
        db.UniqueConstraint("store_id", "invoice_number", name="uq_invoices_store_number"),
        db.Index("ix_invoices_store_status", "store_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    invoice_number = db.Column(db.String(32), nullable=False)
    order_number = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=InvoiceStatus.SENT)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)
    billing_address = db.Column(db.JSON, nullable=False, default=dict)
    shipping_address = db.Column(db.JSON, nullable=False, default=dict)
    items = db.Column(db.JSON, nullable=False, default=list)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    shipping_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    currency = db.Column(db.String(8), nullable=False, default="INR")

    payment_method = db.Column(db.String(32), nullable=True)
    payment_status = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    issued_at = db.Column(db.DateTime(timezone=True), nullable=False)
    due_date = db.Column(db.DateTime(timezone=True), nullable=False)
    generated_by_admin_id = db.Column(db.Integer, db.ForeignKey("admins.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    order = db.relationship("Order", backref=db.backref("invoice", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        items = list(self.items or [])
        return {
            "id": self.id,
            "store_id": self.store_id,
            "order_id": self.order_id,
            "customer_id": self.customer_id,
            "invoice_number": self.invoice_number,
            "order_number": self.order_number,
            "status": self.status,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "billing_address": dict(self.billing_address or {}),
            "shipping_address": dict(self.shipping_address or {}),
            "items": items,
            "total_items": sum(int(i.get("quantity", 0)) for i in items),
            "pricing": {
                "subtotal_cents": self.subtotal_cents,
                "tax_cents": self.tax_cents,
                "shipping_cents": self.shipping_cents,
                "discount_cents": self.discount_cents,
                "total_cents": self.total_cents,
            },
            "currency": self.currency,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "notes": self.notes,
            "issued_at": to_utc_z(self.issued_at),
            "due_date": to_utc_z(self.due_date),
            "generated_by_admin_id": self.generated_by_admin_id,
            "created_at": to_utc_z(self.created_at),
        }


class DocumentSequence(db.Model):
    """
    Atomic per-store document sequences.

    WHY: Prevent race conditions when generating order and invoice numbers.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("store_id", "document_type", name="uq_doc_sequences_store_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
