from __future__ import annotations

import re

from ..extensions import db
from ..errors import BadRequestError, ConflictError
from ..models import Category, Product
from ..validation import ModelValidationPolicy, apply_patch, validate_payload
from .tenant_service import StoreContext, get_scoped, scoped_query

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "slug", "description", "image_url", "product_type", "parent_id", "is_active"},
    required_on_create={"name"},
)


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (value or "").strip().lower()).strip("-")
    if not slug:
        raise BadRequestError("Cannot derive a slug")
    return slug


def _check_parent(ctx: StoreContext, category_id: int | None, parent_id: int | None) -> None:
    if parent_id is None:
        return
    if category_id is not None and parent_id == category_id:
        raise BadRequestError("Category cannot be its own parent")
    get_scoped(Category, parent_id, ctx, label="Parent category")


def _check_slug_free(ctx: StoreContext, slug: str, exclude_id: int | None = None) -> None:
    query = scoped_query(Category, ctx).filter(Category.slug == slug)
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Category slug already exists")


def list_categories(ctx: StoreContext, *, product_type: str | None = None, active_only: bool = False) -> list[Category]:
    query = scoped_query(Category, ctx)
    if product_type:
        query = query.filter(Category.product_type == product_type)
    if active_only:
        query = query.filter(Category.is_active.is_(True))
    return query.order_by(Category.name.asc(), Category.id.asc()).all()


def get_category(ctx: StoreContext, category_id: int) -> Category:
    return get_scoped(Category, category_id, ctx, label="Category")


def create_category(ctx: StoreContext, payload: dict) -> Category:
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
    patch["slug"] = slugify(patch.get("slug") or patch["name"])
    _check_slug_free(ctx, patch["slug"])
    _check_parent(ctx, None, patch.get("parent_id"))

    category = Category(store_id=ctx.require_store_id(), **patch)
    db.session.add(category)
    db.session.commit()
    return category


def update_category(ctx: StoreContext, category_id: int, payload: dict) -> Category:
    category = get_category(ctx, category_id)
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
    if "slug" in patch:
        patch["slug"] = slugify(patch["slug"])
        _check_slug_free(ctx, patch["slug"], exclude_id=category.id)
    if "parent_id" in patch:
        _check_parent(ctx, category.id, patch["parent_id"])

    apply_patch(category, patch)
    db.session.commit()
    return category


def delete_category(ctx: StoreContext, category_id: int) -> None:
    category = get_category(ctx, category_id)
    in_use = scoped_query(Product, ctx).filter(Product.category_id == category.id).first()
    if in_use is not None:
        raise ConflictError("Category still has products")
    for child in scoped_query(Category, ctx).filter(Category.parent_id == category.id).all():
        child.parent_id = None
    db.session.delete(category)
    db.session.commit()
