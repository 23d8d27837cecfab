# Overview: Flask API routes for storefront content; promo banners, CMS pages and the footer.

from flask import Blueprint, jsonify, request

from ..decorators import identify_store, require_admin, require_permission
from ..permissions import Resource
from ..services import content_service
from ..services.query_filters import parse_pagination

banners_bp = Blueprint("banners", __name__, url_prefix="/api/banners")
pages_bp = Blueprint("pages", __name__, url_prefix="/api/pages")
footer_bp = Blueprint("footer", __name__, url_prefix="/api/footer")


# -----------------------------------------------------------------------------
# Banners
# -----------------------------------------------------------------------------

@banners_bp.get("/public")
@identify_store
def public_banners_route(ctx):
    return jsonify([b.to_dict() for b in content_service.list_banners(ctx, active_only=True)]), 200


@banners_bp.get("")
@require_admin
@require_permission(Resource.BANNERS)
def list_banners_route(ctx):
    return jsonify([b.to_dict() for b in content_service.list_banners(ctx)]), 200


@banners_bp.post("")
@require_admin
@require_permission(Resource.BANNERS)
def create_banner_route(ctx):
    return jsonify(content_service.create_banner(ctx, request.get_json(silent=True)).to_dict()), 201


@banners_bp.get("/<int:banner_id>")
@require_admin
@require_permission(Resource.BANNERS)
def get_banner_route(banner_id: int, ctx):
    return jsonify(content_service.get_banner(ctx, banner_id).to_dict()), 200


@banners_bp.put("/<int:banner_id>")
@require_admin
@require_permission(Resource.BANNERS)
def update_banner_route(banner_id: int, ctx):
    banner = content_service.update_banner(ctx, banner_id, request.get_json(silent=True))
    return jsonify(banner.to_dict()), 200


@banners_bp.patch("/<int:banner_id>/toggle")
@require_admin
@require_permission(Resource.BANNERS)
def toggle_banner_route(banner_id: int, ctx):
    return jsonify(content_service.toggle_banner(ctx, banner_id).to_dict()), 200


@banners_bp.delete("/<int:banner_id>")
@require_admin
@require_permission(Resource.BANNERS)
def delete_banner_route(banner_id: int, ctx):
    content_service.delete_banner(ctx, banner_id)
    return jsonify({"message": "Banner deleted"}), 200


# -----------------------------------------------------------------------------
# Pages
# -----------------------------------------------------------------------------

@pages_bp.get("/public")
@identify_store
def public_pages_route(ctx):
    return jsonify([p.to_dict() for p in content_service.list_published_pages(ctx)]), 200


@pages_bp.get("/public/<slug>")
@identify_store
def public_page_route(slug: str, ctx):
    return jsonify(content_service.get_page_by_slug(ctx, slug, published_only=True).to_dict()), 200


@pages_bp.get("")
@require_admin
@require_permission(Resource.PAGES)
def list_pages_route(ctx):
    page, limit = parse_pagination(request.args)
    result = content_service.list_pages(
        ctx,
        page=page,
        limit=limit,
        status=request.args.get("status"),
        page_type=request.args.get("page_type"),
        search=request.args.get("search"),
    )
    return jsonify(result), 200


@pages_bp.post("")
@require_admin
@require_permission(Resource.PAGES)
def create_page_route(ctx):
    return jsonify(content_service.create_page(ctx, request.get_json(silent=True)).to_dict()), 201


@pages_bp.get("/slug/<slug>")
@require_admin
@require_permission(Resource.PAGES)
def get_page_by_slug_route(slug: str, ctx):
    return jsonify(content_service.get_page_by_slug(ctx, slug).to_dict()), 200


@pages_bp.get("/<int:page_id>")
@require_admin
@require_permission(Resource.PAGES)
def get_page_route(page_id: int, ctx):
    return jsonify(content_service.get_page(ctx, page_id).to_dict()), 200


@pages_bp.put("/<int:page_id>")
@require_admin
@require_permission(Resource.PAGES)
def update_page_route(page_id: int, ctx):
    return jsonify(content_service.update_page(ctx, page_id, request.get_json(silent=True)).to_dict()), 200


@pages_bp.post("/<int:page_id>/duplicate")
@require_admin
@require_permission(Resource.PAGES)
def duplicate_page_route(page_id: int, ctx):
    return jsonify(content_service.duplicate_page(ctx, page_id).to_dict()), 201


@pages_bp.delete("/<int:page_id>")
@require_admin
@require_permission(Resource.PAGES)
def delete_page_route(page_id: int, ctx):
    content_service.delete_page(ctx, page_id)
    return jsonify({"message": "Page deleted"}), 200


# -----------------------------------------------------------------------------
# Footer
# -----------------------------------------------------------------------------

@footer_bp.get("/public")
@identify_store
def public_footer_route(ctx):
    return jsonify(content_service.public_footer(ctx)), 200


@footer_bp.get("")
@require_admin
@require_permission(Resource.SETTINGS)
def get_footer_route(ctx):
    return jsonify(content_service.get_footer(ctx).to_dict()), 200


@footer_bp.put("")
@require_admin
@require_permission(Resource.SETTINGS)
def update_footer_route(ctx):
    return jsonify(content_service.update_footer(ctx, request.get_json(silent=True) or {}).to_dict()), 200


@footer_bp.post("/reset")
@require_admin
@require_permission(Resource.SETTINGS)
def reset_footer_route(ctx):
    footer = content_service.reset_footer(ctx)
    return jsonify({"message": "Footer settings reset to default", "footer": footer.to_dict()}), 200
