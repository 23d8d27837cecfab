# Overview: Tenant-scoped storefront content; promo banners, CMS pages and the footer.

from __future__ import annotations

from ..extensions import db
from ..errors import BadRequestError, ConflictError, NotFoundError
from ..models import FooterSetting, Page, PromoBanner
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, apply_patch, validate_payload
from .category_service import slugify
from .query_filters import paginate, search_any
from .tenant_service import StoreContext, get_scoped, scoped_query

BANNER_POLICY = ModelValidationPolicy(
    writable_fields={"title", "description", "icon", "sort_order", "is_active", "link", "style"},
    required_on_create={"title", "description", "icon"},
)

PAGE_POLICY = ModelValidationPolicy(
    writable_fields={"title", "slug", "content", "page_type", "status", "meta"},
    required_on_create={"title"},
)

PAGE_STATUSES = {"draft", "published"}
PAGE_TYPES = {"about", "contact", "privacy", "terms", "shipping", "returns", "faq", "custom"}

FOOTER_SECTIONS = ("contact_info", "social_links", "map_settings", "copyright")


# -----------------------------------------------------------------------------
# Banners
# -----------------------------------------------------------------------------

def list_banners(ctx: StoreContext, *, active_only: bool = False) -> list[PromoBanner]:
    query = scoped_query(PromoBanner, ctx)
    if active_only:
        query = query.filter(PromoBanner.is_active.is_(True))
    return query.order_by(PromoBanner.sort_order.asc(), PromoBanner.id.asc()).all()


def get_banner(ctx: StoreContext, banner_id: int) -> PromoBanner:
    return get_scoped(PromoBanner, banner_id, ctx, label="Banner")


def create_banner(ctx: StoreContext, payload: dict) -> PromoBanner:
    patch = validate_payload(model=PromoBanner, payload=payload, policy=BANNER_POLICY, partial=False)
    banner = PromoBanner(store_id=ctx.require_store_id(), **patch)
    db.session.add(banner)
    db.session.commit()
    return banner


def update_banner(ctx: StoreContext, banner_id: int, payload: dict) -> PromoBanner:
    banner = get_banner(ctx, banner_id)
    apply_patch(banner, validate_payload(model=PromoBanner, payload=payload, policy=BANNER_POLICY, partial=True))
    db.session.commit()
    return banner


def toggle_banner(ctx: StoreContext, banner_id: int) -> PromoBanner:
    banner = get_banner(ctx, banner_id)
    banner.is_active = not banner.is_active
    db.session.commit()
    return banner


def delete_banner(ctx: StoreContext, banner_id: int) -> None:
    db.session.delete(get_banner(ctx, banner_id))
    db.session.commit()


# -----------------------------------------------------------------------------
# Pages
# -----------------------------------------------------------------------------

def _check_page_fields(patch: dict) -> None:
    if "status" in patch and patch["status"] not in PAGE_STATUSES:
        raise BadRequestError("Invalid status. Must be draft or published")
    if "page_type" in patch and patch["page_type"] not in PAGE_TYPES:
        raise BadRequestError(f"Invalid page type. Must be one of: {', '.join(sorted(PAGE_TYPES))}")


def _check_page_slug_free(ctx: StoreContext, slug: str, exclude_id: int | None = None) -> None:
    query = scoped_query(Page, ctx).filter(Page.slug == slug)
    if exclude_id is not None:
        query = query.filter(Page.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Page slug already exists")


def list_pages(
    ctx: StoreContext,
    *,
    page: int = 1,
    limit: int = 10,
    status: str | None = None,
    page_type: str | None = None,
    search: str | None = None,
) -> dict:
    query = scoped_query(Page, ctx)
    if status:
        query = query.filter(Page.status == status)
    if page_type:
        query = query.filter(Page.page_type == page_type)
    term = search_any([Page.title, Page.slug], search)
    if term is not None:
        query = query.filter(term)
    return paginate(query.order_by(Page.updated_at.desc(), Page.id.desc()), page, limit)


def list_published_pages(ctx: StoreContext) -> list[Page]:
    return scoped_query(Page, ctx).filter(Page.status == "published").order_by(Page.title.asc()).all()


def get_page(ctx: StoreContext, page_id: int) -> Page:
    return get_scoped(Page, page_id, ctx, label="Page")


def get_page_by_slug(ctx: StoreContext, slug: str, *, published_only: bool = False) -> Page:
    query = scoped_query(Page, ctx).filter(Page.slug == slug)
    if published_only:
        query = query.filter(Page.status == "published")
    page = query.first()
    if page is None:
        raise NotFoundError("Page not found")
    return page


def create_page(ctx: StoreContext, payload: dict) -> Page:
    patch = validate_payload(model=Page, payload=payload, policy=PAGE_POLICY, partial=False)
    _check_page_fields(patch)
    patch["slug"] = slugify(patch.get("slug") or patch["title"])
    _check_page_slug_free(ctx, patch["slug"])

    page = Page(store_id=ctx.require_store_id(), created_by_admin_id=ctx.admin_id, **patch)
    db.session.add(page)
    db.session.commit()
    return page


def update_page(ctx: StoreContext, page_id: int, payload: dict) -> Page:
    page = get_page(ctx, page_id)
    patch = validate_payload(model=Page, payload=payload, policy=PAGE_POLICY, partial=True)
    _check_page_fields(patch)
    if "slug" in patch:
        patch["slug"] = slugify(patch["slug"])
        _check_page_slug_free(ctx, patch["slug"], exclude_id=page.id)
    apply_patch(page, patch)
    db.session.commit()
    return page


def duplicate_page(ctx: StoreContext, page_id: int) -> Page:
    """Copy a page as a draft under the first free "<slug>-copy[-n]" slug."""
    source = get_page(ctx, page_id)
    base = f"{source.slug}-copy"
    slug, counter = base, 1
    while scoped_query(Page, ctx).filter(Page.slug == slug).first() is not None:
        slug = f"{base}-{counter}"
        counter += 1

    page = Page(
        store_id=source.store_id,
        title=f"{source.title} (Copy)",
        slug=slug,
        content=source.content,
        page_type=source.page_type,
        status="draft",
        meta=dict(source.meta or {}),
        created_by_admin_id=ctx.admin_id,
    )
    db.session.add(page)
    db.session.commit()
    return page


def delete_page(ctx: StoreContext, page_id: int) -> None:
    db.session.delete(get_page(ctx, page_id))
    db.session.commit()


# -----------------------------------------------------------------------------
# Footer
# -----------------------------------------------------------------------------

def default_footer(store_name: str | None = None) -> dict:
    year = utcnow().year
    name = store_name or "Our store"
    return {
        "contact_info": {"address": "", "email": "", "phone": ""},
        "social_links": {"facebook": "", "instagram": "", "twitter": "", "pinterest": ""},
        "map_settings": {"embed_code": "", "show_map": False},
        "copyright": {"text": f"Copyright {year} {name}. All rights reserved.", "year": year},
    }


def get_footer(ctx: StoreContext, *, create: bool = True) -> FooterSetting | None:
    """The store's footer row, created with defaults on first admin read."""
    footer = scoped_query(FooterSetting, ctx).first()
    if footer is None and create:
        footer = FooterSetting(store_id=ctx.require_store_id(), **default_footer())
        db.session.add(footer)
        db.session.commit()
    return footer


def public_footer(ctx: StoreContext) -> dict:
    footer = get_footer(ctx, create=False)
    if footer is None or not footer.is_active:
        return dict(default_footer(), store_id=ctx.store_id, is_active=True)
    return footer.to_dict()


def update_footer(ctx: StoreContext, data: dict) -> FooterSetting:
    """Each section is merged key by key into the stored section."""
    unknown = set(data) - set(FOOTER_SECTIONS) - {"is_active"}
    if unknown:
        raise BadRequestError(f"Field not allowed: {', '.join(sorted(unknown))}")
    footer = get_footer(ctx)
    for section in FOOTER_SECTIONS:
        if section in data:
            if not isinstance(data[section], dict):
                raise BadRequestError(f"{section} must be an object")
            setattr(footer, section, {**(getattr(footer, section) or {}), **data[section]})
    if "is_active" in data:
        footer.is_active = bool(data["is_active"])
    footer.last_modified_by_admin_id = ctx.admin_id
    db.session.commit()
    return footer


def reset_footer(ctx: StoreContext) -> FooterSetting:
    footer = get_footer(ctx)
    for section, value in default_footer().items():
        setattr(footer, section, value)
    footer.is_active = True
    footer.last_modified_by_admin_id = ctx.admin_id
    db.session.commit()
    return footer
