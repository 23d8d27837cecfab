# Overview: Flask API routes for product types; admin CRUD and the public listing.

from flask import Blueprint, jsonify, request

from ..decorators import identify_store, require_admin, require_permission
from ..permissions import Resource
from ..services import product_type_service

product_types_bp = Blueprint("product_types", __name__, url_prefix="/api/product-types")


@product_types_bp.get("/public")
@identify_store
def public_product_types_route(ctx):
    product_types = product_type_service.list_product_types(ctx, active_only=True)
    return jsonify([t.to_dict() for t in product_types]), 200


@product_types_bp.get("")
@require_admin
@require_permission(Resource.PRODUCTS)
def list_product_types_route(ctx):
    return jsonify([t.to_dict() for t in product_type_service.list_product_types(ctx)]), 200


@product_types_bp.post("")
@require_admin
@require_permission(Resource.PRODUCTS)
def create_product_type_route(ctx):
    product_type = product_type_service.create_product_type(ctx, request.get_json(silent=True))
    return jsonify(product_type.to_dict()), 201


@product_types_bp.put("/<int:product_type_id>")
@require_admin
@require_permission(Resource.PRODUCTS)
def update_product_type_route(product_type_id: int, ctx):
    product_type = product_type_service.update_product_type(ctx, product_type_id, request.get_json(silent=True))
    return jsonify(product_type.to_dict()), 200


@product_types_bp.delete("/<int:product_type_id>")
@require_admin
@require_permission(Resource.PRODUCTS)
def delete_product_type_route(product_type_id: int, ctx):
    product_type_service.delete_product_type(ctx, product_type_id)
    return jsonify({"message": "Product type deleted"}), 200
