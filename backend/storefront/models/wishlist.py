from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class WishlistItem(db.Model):
    """
    One saved product on a customer's wishlist.

    A product appears at most once per customer; rows go away with the
    product (product_service.delete_product) or the customer.
    """
    __tablename__ = "wishlist_items"
    __table_args__ = (
        db.UniqueConstraint("store_id", "customer_id", "product_id", name="uq_wishlist_customer_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        product = self.product
        return {
            "id": self.id,
            "product_id": self.product_id,
            "added_at": to_utc_z(self.created_at),
            "product": {
                "id": product.id,
                "name": product.name,
                "sku": product.sku,
                "price_cents": product.price_cents,
                "compare_at_price_cents": product.compare_at_price_cents,
                "images": list(product.images or []),
                "status": product.status,
                "in_stock": (not product.track_quantity) or product.stock_quantity > 0,
                "category": (
                    {"id": product.category.id, "name": product.category.name, "slug": product.category.slug}
                    if product.category is not None else None
                ),
            } if product is not None else None,
        }
