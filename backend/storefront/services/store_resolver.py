# Overview: Maps an inbound request onto exactly one store (tenant) identity.

"""
Store Resolver

WHY: Public storefront routes have no credential to derive a tenant from, so
the store must be read from the request itself. Every tenant-scoped
operation runs after resolution and filters by the resolved id.

RESOLUTION ORDER (first match wins):
1. Explicit store id (X-Store-ID header or ?storeId=): trusted as-is, no lookup
2. ?store= query: name (case-insensitive) or slug (case-insensitive), active only
3. Host subdomain: first label, denylist excluded, same lookup as (2)
4. <store_slug> path segment: exact slug, active only
5. Oldest active store, only when STORE_FALLBACK_ENABLED (non-production)

FAILURES:
- nothing to resolve from           -> BadRequestError("Store not specified")
- identifier without an active match -> NotFoundError("Store not found")
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app, request
from sqlalchemy import or_

from ..extensions import db
from ..errors import BadRequestError, NotFoundError
from ..models import Store, StoreStatus
from .query_filters import text_equals

SUBDOMAIN_DENYLIST = {"www", "localhost", "127"}


class ResolutionSource:
    STORE_ID = "store_id"
    QUERY = "query"
    SUBDOMAIN = "subdomain"
    PATH = "path"
    DEFAULT = "default"


@dataclass(frozen=True)
class StoreSignals:
    """Everything in a request that can name a store."""
    store_id: str | None = None
    store_query: str | None = None
    host: str | None = None
    path_slug: str | None = None


@dataclass(frozen=True)
class ResolvedStore:
    store_id: int
    source: str
    store: Store | None = None


def signals_from_request(req=None) -> StoreSignals:
    req = req or request
    view_args = req.view_args or {}
    return StoreSignals(
        store_id=req.headers.get("X-Store-ID") or req.args.get("storeId"),
        store_query=req.args.get("store"),
        host=req.headers.get("Host"),
        path_slug=view_args.get("store_slug"),
    )


def extract_subdomain(host: str | None, api_subdomain: str | None = None) -> str | None:
    """
    First DNS label of the Host header, or None.

    "acme.example.com" -> "acme"; "acme.localhost:5000" -> "acme".
    A bare apex ("example.com"), IP literals and denylisted labels give None.
    """
    if not host:
        return None
    hostname = host.strip().lower().split(":", 1)[0]
    if "." not in hostname:
        return None
    labels = [label for label in hostname.split(".") if label]
    if len(labels) < 2:
        return None
    if all(label.isdigit() for label in labels):
        return None
    if len(labels) == 2 and labels[1] != "localhost":
        return None

    subdomain = labels[0]
    denied = set(SUBDOMAIN_DENYLIST)
    if api_subdomain:
        denied.add(api_subdomain.lower())
    if subdomain in denied:
        return None
    return subdomain


def find_active_store(identifier: str) -> Store | None:
    """Name (case-insensitive) or slug (exact or case-insensitive), active only."""
    return (
        db.session.query(Store)
        .filter(
            Store.status == StoreStatus.ACTIVE,
            or_(
                text_equals(Store.name, identifier, case_insensitive=True),
                text_equals(Store.slug, identifier, case_insensitive=True),
            ),
        )
        .order_by(Store.created_at.asc(), Store.id.asc())
        .first()
    )


def find_active_store_by_slug(slug: str) -> Store | None:
    return (
        db.session.query(Store)
        .filter(Store.status == StoreStatus.ACTIVE, text_equals(Store.slug, slug))
        .first()
    )


def find_default_store() -> Store | None:
    return (
        db.session.query(Store)
        .filter(Store.status == StoreStatus.ACTIVE)
        .order_by(Store.created_at.asc(), Store.id.asc())
        .first()
    )


def parse_store_id(raw) -> int:
    try:
        store_id = int(str(raw).strip())
    except (TypeError, ValueError):
        raise BadRequestError("Invalid store id")
    if store_id <= 0:
        raise BadRequestError("Invalid store id")
    return store_id


def resolve_store(
    signals: StoreSignals,
    *,
    api_subdomain: str | None = None,
    allow_fallback: bool = False,
) -> ResolvedStore:
    if signals.store_id not in (None, ""):
        return ResolvedStore(parse_store_id(signals.store_id), ResolutionSource.STORE_ID)

    if signals.store_query and signals.store_query.strip():
        return _lookup(signals.store_query, ResolutionSource.QUERY)

    subdomain = extract_subdomain(signals.host, api_subdomain)
    if subdomain:
        return _lookup(subdomain, ResolutionSource.SUBDOMAIN)

    if signals.path_slug and signals.path_slug.strip():
        store = find_active_store_by_slug(signals.path_slug)
        if store is None:
            raise NotFoundError("Store not found")
        return ResolvedStore(store.id, ResolutionSource.PATH, store)

    if allow_fallback:
        store = find_default_store()
        if store is not None:
            return ResolvedStore(store.id, ResolutionSource.DEFAULT, store)

    raise BadRequestError("Store not specified")


def _lookup(identifier: str, source: str) -> ResolvedStore:
    store = find_active_store(identifier)
    if store is None:
        raise NotFoundError("Store not found")
    return ResolvedStore(store.id, source, store)


def resolve_request_store(req=None) -> ResolvedStore:
    """Resolve the current request's store using app configuration."""
    return resolve_store(
        signals_from_request(req),
        api_subdomain=current_app.config.get("API_SUBDOMAIN"),
        allow_fallback=bool(current_app.config.get("STORE_FALLBACK_ENABLED")),
    )


def has_store_signal(signals: StoreSignals, api_subdomain: str | None = None) -> bool:
    """True when the request names a store explicitly (fallback excluded)."""
    return bool(
        (signals.store_id not in (None, ""))
        or (signals.store_query and signals.store_query.strip())
        or extract_subdomain(signals.host, api_subdomain)
        or (signals.path_slug and signals.path_slug.strip())
    )
