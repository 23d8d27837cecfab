# Overview: Request payload validation driven by SQLAlchemy column metadata and per-model write policies.

"""
Payload validation

RULES:
- A policy's writable_fields is the security boundary: anything else in the
  body is rejected, never silently dropped (store_id, status flags, totals)
- Values are coerced by column type; integers are strict because every
  amount in this API is integer minor units (cents)
- String columns are trimmed, and non-nullable ones may not end up blank
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from sqlalchemy import JSON, Boolean, DateTime, Integer, String

from .errors import BadRequestError
from .time_utils import parse_iso_datetime


# 9,999,999.99 in major units
MAX_PRICE_CENTS = 999_999_999

PRODUCT_STATUSES = ("active", "draft", "archived")


class ValidationError(BadRequestError):
    """400-level input problem."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


# =============================================================================
# Coercion per column type
# =============================================================================

def _as_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if isinstance(value, str):
        text = value.strip()
        if "." in text or "e" in text.lower():
            raise ValidationError(f"{key} must be a whole number")
        try:
            return int(text)
        except ValueError:
            pass
    raise ValidationError(f"{key} must be an integer")


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValidationError(f"{key} must be a boolean")


def _as_datetime(key: str, value: Any):
    if isinstance(value, str):
        try:
            parsed = parse_iso_datetime(value)
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed
    raise ValidationError(f"{key} must be an ISO-8601 datetime")


def _as_json(key: str, value: Any):
    if isinstance(value, (dict, list)):
        return value
    raise ValidationError(f"{key} must be an object or a list")


def _as_text(key: str, value: Any) -> str:
    if isinstance(value, (dict, list)):
        raise ValidationError(f"{key} must be a string")
    return str(value).strip()


# First match wins; Text columns match String
_COERCERS: tuple[tuple[type, Callable[[str, Any], Any]], ...] = (
    (Boolean, _as_bool),
    (Integer, _as_int),
    (DateTime, _as_datetime),
    (JSON, _as_json),
    (String, _as_text),
)


def _coerce(col, value: Any):
    for coltype, coercer in _COERCERS:
        if isinstance(col.type, coltype):
            return coercer(col.key, value)
    return value


# =============================================================================
# Payloads
# =============================================================================

def validate_payload(*, model, payload: dict | None, policy: ModelValidationPolicy, partial: bool) -> dict:
    """
    Return a cleaned patch containing only writable, coerced fields.

    partial=False is create semantics (required_on_create enforced);
    partial=True validates only the keys that were sent.
    """
    payload = {} if payload is None else payload
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    for key in payload:
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        if key not in columns:
            raise ValidationError(f"Unknown field: {key}")

    patch: dict = {}
    for key, raw in payload.items():
        col = columns[key]
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
            continue

        value = _coerce(col, raw)
        if isinstance(value, str) and isinstance(col.type, String):
            if value == "" and not col.nullable:
                raise ValidationError(f"{key} cannot be blank")
            if col.type.length and len(value) > col.type.length:
                raise ValidationError(f"{key} exceeds max length {col.type.length}")
        patch[key] = value

    return patch


def apply_patch(obj, patch: dict) -> None:
    for key, value in patch.items():
        setattr(obj, key, value)


def require_fields(data: dict | None, *fields: str) -> dict:
    """Reject a JSON body that lacks any of the named fields."""
    data = {} if data is None else data
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    missing = [f for f in fields if data.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    return data


def parse_int(value, field_name: str, *, minimum: int | None = None) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer")
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer")
    if isinstance(value, float) and value != parsed:
        raise ValidationError(f"{field_name} must be an integer, not a decimal")
    if minimum is not None and parsed < minimum:
        raise ValidationError(f"{field_name} must be >= {minimum}")
    return parsed


def enforce_rules_product(patch: dict) -> None:
    """Catalog rules the column metadata cannot express."""
    for key in ("price_cents", "compare_at_price_cents"):
        price = patch.get(key)
        if price is None:
            continue
        if price < 0:
            raise ValidationError(f"{key} must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS}")

    if patch.get("stock_quantity") is not None and patch["stock_quantity"] < 0:
        raise ValidationError("stock_quantity must be >= 0")

    if "status" in patch and patch["status"] not in PRODUCT_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(PRODUCT_STATUSES)}")
