# Overview: Stock ledger for tracked products; reserve on checkout, restore on cancel/refund.

"""
Inventory Service (stock ledger)

DESIGN:
- reserve_stock / restore_stock are no-ops when the product has
  track_quantity = False
- reserve_stock refuses to take quantity below zero
- restore_stock adds without an upper bound; double restoration for an
  order is prevented one level up by Order.stock_restored
- restore_order_stock is best-effort: each item runs in its own savepoint,
  failures are logged and reported, never raised

Neither function commits. The caller owns the transaction.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..extensions import db
from ..errors import BadRequestError, InvalidOperationError, NotFoundError
from ..models import Order, Product
from .concurrency import lock_for_update
from .tenant_service import StoreContext, scoped_query


@dataclass
class RestockReport:
    """Outcome of restoring stock for every item of an order."""
    restored: list[dict] = field(default_factory=list)
    skipped: list[dict] = field(default_factory=list)
    failed: list[dict] = field(default_factory=list)
    already_restored: bool = False

    def to_dict(self) -> dict:
        return {
            "restored": self.restored,
            "skipped": self.skipped,
            "failed": self.failed,
            "already_restored": self.already_restored,
        }


def _locked_product(ctx: StoreContext, product_id: int) -> Product:
    product = lock_for_update(scoped_query(Product, ctx).filter(Product.id == product_id)).first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def _require_positive(qty) -> int:
    if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
        raise BadRequestError("quantity must be a positive integer")
    return qty


def reserve_stock(ctx: StoreContext, product_id: int, qty: int) -> Product:
    qty = _require_positive(qty)
    product = _locked_product(ctx, product_id)
    if not product.track_quantity:
        return product
    if product.stock_quantity < qty:
        raise InvalidOperationError(
            f"Insufficient stock for {product.name}",
            product_id=product.id,
            available=product.stock_quantity,
            requested=qty,
        )
    product.stock_quantity -= qty
    return product


def restore_stock(ctx: StoreContext, product_id: int, qty: int) -> Product:
    qty = _require_positive(qty)
    product = _locked_product(ctx, product_id)
    if product.track_quantity:
        product.stock_quantity += qty
    return product


def set_stock(ctx: StoreContext, product_id: int, quantity, track_quantity=None) -> Product:
    """Admin stock correction (absolute quantity)."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
        raise BadRequestError("quantity must be a non-negative integer")
    product = _locked_product(ctx, product_id)
    product.stock_quantity = quantity
    if track_quantity is not None:
        product.track_quantity = bool(track_quantity)
    db.session.commit()
    return product


def restore_order_stock(ctx: StoreContext, order: Order) -> RestockReport:
    """
    Put every item of the order back into stock, once per order.

    A failing item (product gone, lock error) is rolled back to its
    savepoint, logged and listed in report.failed; the rest continue.
    """
    report = RestockReport()
    if order.stock_restored:
        report.already_restored = True
        return report

    for item in order.items:
        entry = {"product_id": item.product_id, "quantity": item.quantity}
        if item.product_id is None:
            entry["reason"] = "Product no longer exists"
            report.failed.append(entry)
            current_app.logger.warning(
                "Stock restore skipped for order %s item %s: product removed", order.id, item.id
            )
            continue
        try:
            with db.session.begin_nested():
                product = restore_stock(ctx, item.product_id, item.quantity)
                db.session.flush()
        except Exception as exc:
            entry["reason"] = str(exc)
            report.failed.append(entry)
            current_app.logger.warning(
                "Stock restore failed for order %s product %s: %s", order.id, item.product_id, exc
            )
            continue

        if product.track_quantity:
            entry["stock_quantity"] = product.stock_quantity
            report.restored.append(entry)
        else:
            entry["reason"] = "Quantity not tracked"
            report.skipped.append(entry)

    order.stock_restored = True
    return report
