# Overview: Flask API routes for products; admin CRUD, stock corrections and the public catalog.

from flask import Blueprint, jsonify, request

from ..decorators import identify_store, require_admin, require_permission
from ..errors import BadRequestError
from ..permissions import Resource
from ..services import inventory_service, product_service
from ..services.query_filters import parse_pagination
from ..validation import parse_int, require_fields

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _flag(name: str):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    lowered = raw.strip().lower()
    if lowered not in {"true", "false"}:
        raise BadRequestError(f"{name} must be true or false")
    return lowered == "true"


def _list_args() -> dict:
    page, limit = parse_pagination(request.args)
    category_id = request.args.get("category_id")
    product_type_id = request.args.get("product_type_id")
    return {
        "page": page,
        "limit": limit,
        "search": request.args.get("search"),
        "category_id": parse_int(category_id, "category_id") if category_id else None,
        "product_type_id": parse_int(product_type_id, "product_type_id") if product_type_id else None,
        "featured": _flag("featured"),
    }


@products_bp.get("/public")
@identify_store
def public_products_route(ctx):
    return jsonify(product_service.list_products(ctx, public=True, **_list_args())), 200


@products_bp.get("/public/store/<store_slug>")
@identify_store
def public_products_by_path_route(store_slug: str, ctx):
    return jsonify(product_service.list_products(ctx, public=True, **_list_args())), 200


@products_bp.get("/public/<int:product_id>")
@identify_store
def public_product_route(product_id: int, ctx):
    return jsonify(product_service.get_product(ctx, product_id, public=True).to_dict()), 200


@products_bp.get("")
@require_admin
@require_permission(Resource.PRODUCTS)
def list_products_route(ctx):
    result = product_service.list_products(ctx, status=request.args.get("status"), **_list_args())
    return jsonify(result), 200


@products_bp.post("")
@require_admin
@require_permission(Resource.PRODUCTS)
def create_product_route(ctx):
    product = product_service.create_product(ctx, request.get_json(silent=True))
    return jsonify(product.to_dict()), 201


@products_bp.get("/<int:product_id>")
@require_admin
@require_permission(Resource.PRODUCTS)
def get_product_route(product_id: int, ctx):
    return jsonify(product_service.get_product(ctx, product_id).to_dict()), 200


@products_bp.put("/<int:product_id>")
@require_admin
@require_permission(Resource.PRODUCTS)
def update_product_route(product_id: int, ctx):
    product = product_service.update_product(ctx, product_id, request.get_json(silent=True))
    return jsonify(product.to_dict()), 200


@products_bp.put("/<int:product_id>/stock")
@require_admin
@require_permission(Resource.PRODUCTS)
def set_stock_route(product_id: int, ctx):
    """Absolute stock correction: {"quantity": n, "track_quantity": bool?}."""
    data = require_fields(request.get_json(silent=True), "quantity")
    product = inventory_service.set_stock(
        ctx, product_id, data["quantity"], track_quantity=data.get("track_quantity")
    )
    return jsonify(product.to_dict()), 200


@products_bp.delete("/<int:product_id>")
@require_admin
@require_permission(Resource.PRODUCTS)
def delete_product_route(product_id: int, ctx):
    product_service.delete_product(ctx, product_id)
    return jsonify({"message": "Product deleted"}), 200
