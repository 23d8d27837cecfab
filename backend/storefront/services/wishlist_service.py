# Overview: Per-customer wishlist; list, add, remove, clear and membership checks.

"""
Wishlist Service

MULTI-TENANT: Every operation is keyed by ctx's store and ctx's customer.
Products are looked up inside the store, so another store's product id is
reported exactly like a missing one.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import BadRequestError, ConflictError, NotFoundError
from ..models import Product, WishlistItem
from .tenant_service import StoreContext, get_scoped, scoped_query


def _customer_items(ctx: StoreContext):
    return scoped_query(WishlistItem, ctx).filter(WishlistItem.customer_id == ctx.customer_id)


def list_wishlist(ctx: StoreContext) -> list[WishlistItem]:
    return _customer_items(ctx).order_by(WishlistItem.created_at.desc(), WishlistItem.id.desc()).all()


def add_to_wishlist(ctx: StoreContext, product_id) -> WishlistItem:
    if product_id in (None, ""):
        raise BadRequestError("Product ID is required")
    product = get_scoped(Product, product_id, ctx, label="Product")
    if _customer_items(ctx).filter(WishlistItem.product_id == product.id).first() is not None:
        raise ConflictError("Product already exists in wishlist")

    item = WishlistItem(store_id=ctx.require_store_id(), customer_id=ctx.customer_id, product_id=product.id)
    db.session.add(item)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Product already exists in wishlist")
    return item


def remove_from_wishlist(ctx: StoreContext, product_id: int) -> None:
    item = _customer_items(ctx).filter(WishlistItem.product_id == product_id).first()
    if item is None:
        raise NotFoundError("Product not found in wishlist")
    db.session.delete(item)
    db.session.commit()


def clear_wishlist(ctx: StoreContext) -> int:
    removed = _customer_items(ctx).delete(synchronize_session=False)
    db.session.commit()
    return removed


def in_wishlist(ctx: StoreContext, product_id: int) -> bool:
    return _customer_items(ctx).filter(WishlistItem.product_id == product_id).first() is not None
