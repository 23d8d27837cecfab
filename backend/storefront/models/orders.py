from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Order(db.Model):
    """
    Customer order and its state machine.

    DESIGN:
    - status: pending -> processing -> shipped -> delivered, with side exits
      cancelled and refund_completed (see order_service for transitions)
    - payment_status is an independent sub-state
    - pricing columns satisfy total = subtotal + tax + shipping - discount
    - items are immutable once the order is placed
    - stock_restored guards against restoring stock twice for one order
    - provider_order_id is assigned by payment_service from the provider
      response and is unique across stores (NULL until then)
    - orders are never hard-deleted; their lifecycle is the status column
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("store_id", "order_number", name="uq_orders_store_number"),
        db.Index("ix_orders_store_status", "store_id", "status"),
        db.Index("ix_orders_store_created", "store_id", "created_at"),
        db.UniqueConstraint("provider_order_id", name="uq_orders_provider_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    order_number = db.Column(db.String(32), nullable=False)

    status = db.Column(db.String(32), nullable=False, default="pending")

    # Pricing (minor currency units)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    shipping_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    # Payment sub-state
    payment_method = db.Column(db.String(32), nullable=False, default="cod")
    payment_status = db.Column(db.String(32), nullable=False, default="pending")
    payment_transaction_id = db.Column(db.String(128), nullable=True)
    provider_order_id = db.Column(db.String(128), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Fulfillment
    fulfillment_status = db.Column(db.String(32), nullable=False, default="unfulfilled")
    shipped_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    tracking_number = db.Column(db.String(128), nullable=True)

    # Refund record
    refund_amount_cents = db.Column(db.Integer, nullable=True)
    refund_reason = db.Column(db.Text, nullable=True)
    refund_transaction_id = db.Column(db.String(128), nullable=True)
    refunded_at = db.Column(db.DateTime(timezone=True), nullable=True)
    refunded_by_admin_id = db.Column(db.Integer, db.ForeignKey("admins.id"), nullable=True)

    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancel_reason = db.Column(db.Text, nullable=True)

    billing_address = db.Column(db.JSON, nullable=False, default=dict)
    shipping_address = db.Column(db.JSON, nullable=False, default=dict)
    customer_notes = db.Column(db.Text, nullable=True)
    internal_notes = db.Column(db.Text, nullable=True)

    stock_restored = db.Column(db.Boolean, nullable=False, default=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def append_internal_note(self, note: str) -> None:
        if self.internal_notes:
            self.internal_notes = f"{self.internal_notes}\n{note}"
        else:
            self.internal_notes = note

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "store_id": self.store_id,
            "customer_id": self.customer_id,
            "order_number": self.order_number,
            "status": self.status,
            "pricing": {
                "subtotal_cents": self.subtotal_cents,
                "tax_cents": self.tax_cents,
                "shipping_cents": self.shipping_cents,
                "discount_cents": self.discount_cents,
                "total_cents": self.total_cents,
            },
            "payment": {
                "method": self.payment_method,
                "status": self.payment_status,
                "transaction_id": self.payment_transaction_id,
                "provider_order_id": self.provider_order_id,
                "paid_at": to_utc_z(self.paid_at),
            },
            "fulfillment": {
                "status": self.fulfillment_status,
                "shipped_at": to_utc_z(self.shipped_at),
                "delivered_at": to_utc_z(self.delivered_at),
                "tracking_number": self.tracking_number,
            },
            "refund": None,
            "billing_address": dict(self.billing_address or {}),
            "shipping_address": dict(self.shipping_address or {}),
            "customer_notes": self.customer_notes,
            "internal_notes": self.internal_notes,
            "cancelled_at": to_utc_z(self.cancelled_at),
            "cancel_reason": self.cancel_reason,
            "stock_restored": self.stock_restored,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if self.refunded_at is not None:
            data["refund"] = {
                "amount_cents": self.refund_amount_cents,
                "reason": self.refund_reason,
                "transaction_id": self.refund_transaction_id,
                "refunded_at": to_utc_z(self.refunded_at),
                "refunded_by_admin_id": self.refunded_by_admin_id,
            }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """Order line. Name and price are snapshots taken when the order is placed."""
    __tablename__ = "order_items"
    __table_args__ = (
        db.Index("ix_order_items_order", "order_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True)

    product_name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "sku": self.sku,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }
