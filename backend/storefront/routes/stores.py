# Overview: Flask API routes for store administration (super admin) and public store lookups.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_super_admin
from ..services import store_service
from ..services.query_filters import parse_pagination
from ..validation import require_fields

stores_bp = Blueprint("stores", __name__, url_prefix="/api/stores")


@stores_bp.get("")
@require_super_admin
def list_stores_route(ctx):
    page, limit = parse_pagination(request.args)
    result = store_service.list_stores(
        search=request.args.get("search"),
        status=request.args.get("status"),
        page=page,
        limit=limit,
    )
    return jsonify(result), 200


@stores_bp.post("")
@require_super_admin
def create_store_route(ctx):
    """
    Create a store and its admin.

    The generated admin password (when none was supplied) is returned once.
    """
    data = require_fields(request.get_json(silent=True), "name", "slug", "admin_name", "admin_email")
    store, admin, generated = store_service.create_store(
        name=data["name"],
        slug=data["slug"],
        admin_name=data["admin_name"],
        admin_email=data["admin_email"],
        admin_password=data.get("admin_password"),
        commission_rate=data.get("commission_rate", store_service.DEFAULT_COMMISSION_RATE),
        logo_url=data.get("logo_url"),
        favicon_url=data.get("favicon_url"),
        theme=data.get("theme"),
    )
    current_app.logger.info("Store %s created by admin %s", store.slug, ctx.admin_id)
    body = {"store": store.to_dict(), "admin": admin.to_dict()}
    if generated:
        body["generated_password"] = generated
    return jsonify(body), 201


@stores_bp.get("/<int:store_id>")
@require_super_admin
def get_store_route(store_id: int, ctx):
    return jsonify(store_service.store_summary(store_service.get_store(store_id))), 200


@stores_bp.put("/<int:store_id>")
@require_super_admin
def update_store_route(store_id: int, ctx):
    store = store_service.update_store(store_id, request.get_json(silent=True) or {})
    return jsonify(store.to_dict()), 200


@stores_bp.patch("/<int:store_id>/status")
@require_super_admin
def update_store_status_route(store_id: int, ctx):
    data = require_fields(request.get_json(silent=True), "status")
    store = store_service.update_store_status(store_id, data["status"])
    current_app.logger.info("Store %s status set to %s", store.id, store.status)
    return jsonify(store.to_dict()), 200


@stores_bp.delete("/<int:store_id>")
@require_super_admin
def delete_store_route(store_id: int, ctx):
    result = store_service.delete_store(store_id)
    current_app.logger.info("Store %s deleted by admin %s", store_id, ctx.admin_id)
    return jsonify({"message": "Store deleted", **result}), 200


@stores_bp.post("/<int:store_id>/reset-password")
@require_super_admin
def reset_password_route(store_id: int, ctx):
    data = request.get_json(silent=True) or {}
    admin, password = store_service.reset_admin_password(
        store_id,
        admin_id=data.get("admin_id"),
        actor_admin_id=ctx.admin_id,
    )
    return jsonify({"admin": admin.to_dict(), "new_password": password}), 200


# -----------------------------------------------------------------------------
# Public
# -----------------------------------------------------------------------------

@stores_bp.get("/public")
def list_public_stores_route():
    return jsonify([s.to_public_dict() for s in store_service.list_public_stores()]), 200


@stores_bp.get("/public/default")
def default_store_route():
    store = store_service.get_default_store(
        fallback_enabled=bool(current_app.config.get("STORE_FALLBACK_ENABLED"))
    )
    return jsonify(store.to_public_dict()), 200


@stores_bp.get("/public/<identifier>")
def public_store_route(identifier: str):
    return jsonify(store_service.get_public_store(identifier).to_public_dict()), 200
