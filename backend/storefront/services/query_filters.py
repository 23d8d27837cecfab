# Overview: Typed filter helpers shared by list endpoints (text matching, date ranges, pagination).

from __future__ import annotations

from sqlalchemy import func, or_

from ..errors import BadRequestError
from ..time_utils import parse_iso_datetime, parse_range_end

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def text_equals(column, value: str, *, case_insensitive: bool = False):
    """Equality filter; case folding is opt-in and explicit."""
    if case_insensitive:
        return func.lower(column) == value.strip().lower()
    return column == value.strip()


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def text_contains(column, value: str, *, case_insensitive: bool = True):
    """Substring filter. User input is escaped, never interpreted as a pattern."""
    pattern = f"%{_escape_like(value.strip())}%"
    if case_insensitive:
        return column.ilike(pattern, escape="\\")
    return column.like(pattern, escape="\\")


def search_any(columns, term: str | None):
    """OR of case-insensitive substring matches; None when term is blank."""
    if term is None or not term.strip():
        return None
    return or_(*[text_contains(c, term) for c in columns])


def date_range(column, start: str | None, end: str | None) -> list:
    try:
        start_dt = parse_iso_datetime(start)
        end_dt = parse_range_end(end)
    except ValueError:
        raise BadRequestError("Dates must be ISO-8601")
    filters = []
    if start_dt is not None:
        filters.append(column >= start_dt)
    if end_dt is not None:
        filters.append(column <= end_dt)
    return filters


def parse_pagination(args, *, default_limit: int = DEFAULT_PAGE_SIZE) -> tuple[int, int]:
    """Read page/limit query args (1-indexed page, limit capped)."""
    try:
        page = int(args.get("page", 1))
        limit = int(args.get("limit", default_limit))
    except (TypeError, ValueError):
        raise BadRequestError("page and limit must be integers")
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)
    return page, limit


def paginate(query, page: int, limit: int, serialize=None) -> dict:
    """
    Apply offset pagination and return items plus metadata.

    Matches the envelope used across list endpoints:
    {"items": [...], "count": n, "pagination": {...}}
    """
    total = query.order_by(None).count()
    total_pages = (total + limit - 1) // limit if total > 0 else 1
    rows = query.offset((page - 1) * limit).limit(limit).all()
    serialize = serialize or (lambda row: row.to_dict())
    return {
        "items": [serialize(row) for row in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }
