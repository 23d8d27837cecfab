# Overview: Flask API routes for product categories; admin CRUD and the public listing.

from flask import Blueprint, jsonify, request

from ..decorators import identify_store, require_admin, require_permission
from ..permissions import Resource
from ..services import category_service

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("/public")
@identify_store
def public_categories_route(ctx):
    categories = category_service.list_categories(
        ctx, product_type=request.args.get("product_type"), active_only=True
    )
    return jsonify([c.to_dict() for c in categories]), 200


@categories_bp.get("")
@require_admin
@require_permission(Resource.CATEGORIES)
def list_categories_route(ctx):
    categories = category_service.list_categories(ctx, product_type=request.args.get("product_type"))
    return jsonify([c.to_dict() for c in categories]), 200


@categories_bp.post("")
@require_admin
@require_permission(Resource.CATEGORIES)
def create_category_route(ctx):
    category = category_service.create_category(ctx, request.get_json(silent=True))
    return jsonify(category.to_dict()), 201


@categories_bp.get("/<int:category_id>")
@require_admin
@require_permission(Resource.CATEGORIES)
def get_category_route(category_id: int, ctx):
    return jsonify(category_service.get_category(ctx, category_id).to_dict()), 200


@categories_bp.put("/<int:category_id>")
@require_admin
@require_permission(Resource.CATEGORIES)
def update_category_route(category_id: int, ctx):
    category = category_service.update_category(ctx, category_id, request.get_json(silent=True))
    return jsonify(category.to_dict()), 200


@categories_bp.delete("/<int:category_id>")
@require_admin
@require_permission(Resource.CATEGORIES)
def delete_category_route(category_id: int, ctx):
    category_service.delete_category(ctx, category_id)
    return jsonify({"message": "Category deleted"}), 200
