# backend/storefront/services/product_service.py
"""
Product Service

MULTI-TENANT: Every operation takes the caller's StoreContext. Products are
created in ctx's store, category references must belong to the same store,
and lookups outside the store surface as NotFound.
"""
from __future__ import annotations

from ..extensions import db
from ..errors import BadRequestError, ConflictError, NotFoundError
from ..models import Category, Product, ProductType, WishlistItem
from ..validation import ModelValidationPolicy, apply_patch, enforce_rules_product, validate_payload
from .query_filters import paginate, search_any
from .tenant_service import StoreContext, get_scoped, scoped_query

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku",
        "name",
        "description",
        "brand",
        "images",
        "category_id",
        "product_type_id",
        "price_cents",
        "compare_at_price_cents",
        "track_quantity",
        "stock_quantity",
        "status",
        "is_featured",
    },
    required_on_create={"name", "price_cents"},
)


def _check_category(ctx: StoreContext, category_id: int | None) -> None:
    if category_id is not None:
        get_scoped(Category, category_id, ctx, label="Category")


def _check_product_type(ctx: StoreContext, product_type_id: int | None) -> None:
    if product_type_id is not None:
        get_scoped(ProductType, product_type_id, ctx, label="Product type")


def _check_sku_free(ctx: StoreContext, sku: str | None, exclude_id: int | None = None) -> None:
    if not sku:
        return
    query = scoped_query(Product, ctx).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("SKU already exists in this store")


def list_products(
    ctx: StoreContext,
    *,
    page: int = 1,
    limit: int = 10,
    search: str | None = None,
    category_id: int | None = None,
    product_type_id: int | None = None,
    status: str | None = None,
    featured: bool | None = None,
    public: bool = False,
) -> dict:
    """
    Store-scoped product listing with filters and pagination.

    public=True restricts to active products (storefront listing).
    """
    query = scoped_query(Product, ctx)
    if public:
        query = query.filter(Product.status == "active")
    elif status:
        query = query.filter(Product.status == status)
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if product_type_id is not None:
        query = query.filter(Product.product_type_id == product_type_id)
    if featured is not None:
        query = query.filter(Product.is_featured.is_(featured))
    term = search_any([Product.name, Product.brand, Product.sku, Product.description], search)
    if term is not None:
        query = query.filter(term)

    query = query.order_by(Product.created_at.desc(), Product.id.desc())
    return paginate(query, page, limit)


def get_product(ctx: StoreContext, product_id: int, *, public: bool = False) -> Product:
    product = get_scoped(Product, product_id, ctx, label="Product")
    if public and product.status != "active":
        raise NotFoundError("Product not found")
    return product


def create_product(ctx: StoreContext, payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    _check_category(ctx, patch.get("category_id"))
    _check_product_type(ctx, patch.get("product_type_id"))
    _check_sku_free(ctx, patch.get("sku"))

    product = Product(store_id=ctx.require_store_id(), **patch)
    db.session.add(product)
    db.session.commit()
    return product


def update_product(ctx: StoreContext, product_id: int, payload: dict) -> Product:
    product = get_product(ctx, product_id)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    if not patch:
        raise BadRequestError("No fields to update")
    enforce_rules_product(patch)
    if "category_id" in patch:
        _check_category(ctx, patch["category_id"])
    if "product_type_id" in patch:
        _check_product_type(ctx, patch["product_type_id"])
    if "sku" in patch:
        _check_sku_free(ctx, patch["sku"], exclude_id=product.id)

    apply_patch(product, patch)
    db.session.commit()
    return product


def delete_product(ctx: StoreContext, product_id: int) -> None:
    product = get_product(ctx, product_id)
    scoped_query(WishlistItem, ctx).filter(WishlistItem.product_id == product.id).delete(synchronize_session=False)
    db.session.delete(product)
    db.session.commit()
