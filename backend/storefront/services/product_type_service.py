# Overview: Store-scoped product types; admin CRUD and the storefront listing.

from __future__ import annotations

from ..extensions import db
from ..errors import BadRequestError, ConflictError
from ..models import Product, ProductType
from ..validation import ModelValidationPolicy, apply_patch, validate_payload
from .tenant_service import StoreContext, get_scoped, scoped_query

PRODUCT_TYPE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "is_active"},
    required_on_create={"name"},
)


def _check_value_free(ctx: StoreContext, value: str, exclude_id: int | None = None) -> None:
    query = scoped_query(ProductType, ctx).filter(ProductType.value == value)
    if exclude_id is not None:
        query = query.filter(ProductType.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Product type already exists")


def list_product_types(ctx: StoreContext, *, active_only: bool = False) -> list[ProductType]:
    query = scoped_query(ProductType, ctx)
    if active_only:
        query = query.filter(ProductType.is_active.is_(True))
    return query.order_by(ProductType.name.asc(), ProductType.id.asc()).all()


def get_product_type(ctx: StoreContext, product_type_id: int) -> ProductType:
    return get_scoped(ProductType, product_type_id, ctx, label="Product type")


def create_product_type(ctx: StoreContext, payload: dict) -> ProductType:
    patch = validate_payload(model=ProductType, payload=payload, policy=PRODUCT_TYPE_POLICY, partial=False)
    patch["value"] = patch["name"].lower()
    _check_value_free(ctx, patch["value"])

    product_type = ProductType(store_id=ctx.require_store_id(), **patch)
    db.session.add(product_type)
    db.session.commit()
    return product_type


def update_product_type(ctx: StoreContext, product_type_id: int, payload: dict) -> ProductType:
    product_type = get_product_type(ctx, product_type_id)
    patch = validate_payload(model=ProductType, payload=payload, policy=PRODUCT_TYPE_POLICY, partial=True)
    if not patch:
        raise BadRequestError("No fields to update")
    if "name" in patch:
        patch["value"] = patch["name"].lower()
        _check_value_free(ctx, patch["value"], exclude_id=product_type.id)

    apply_patch(product_type, patch)
    db.session.commit()
    return product_type


def delete_product_type(ctx: StoreContext, product_type_id: int) -> None:
    product_type = get_product_type(ctx, product_type_id)
    if scoped_query(Product, ctx).filter(Product.product_type_id == product_type.id).first() is not None:
        raise ConflictError("Product type is still used by products")
    db.session.delete(product_type)
    db.session.commit()
