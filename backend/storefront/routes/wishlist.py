# Overview: Flask API routes for the signed-in customer's wishlist.

from flask import Blueprint, jsonify, request

from ..decorators import require_customer
from ..services import wishlist_service

wishlist_bp = Blueprint("wishlist", __name__, url_prefix="/api/wishlist")


@wishlist_bp.get("")
@require_customer
def list_wishlist_route(ctx):
    items = wishlist_service.list_wishlist(ctx)
    return jsonify({"items": [i.to_dict() for i in items], "count": len(items)}), 200


@wishlist_bp.post("")
@require_customer
def add_to_wishlist_route(ctx):
    data = request.get_json(silent=True) or {}
    item = wishlist_service.add_to_wishlist(ctx, data.get("product_id"))
    return jsonify(item.to_dict()), 201


@wishlist_bp.delete("")
@require_customer
def clear_wishlist_route(ctx):
    removed = wishlist_service.clear_wishlist(ctx)
    return jsonify({"message": "Wishlist cleared", "removed": removed}), 200


@wishlist_bp.get("/check/<int:product_id>")
@require_customer
def check_wishlist_route(product_id: int, ctx):
    return jsonify({"in_wishlist": wishlist_service.in_wishlist(ctx, product_id)}), 200


@wishlist_bp.delete("/<int:product_id>")
@require_customer
def remove_from_wishlist_route(product_id: int, ctx):
    wishlist_service.remove_from_wishlist(ctx, product_id)
    return jsonify({"message": "Product removed from wishlist"}), 200
