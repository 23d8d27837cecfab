"""
Admin Permission Definitions

WHY: Every admin-only route names the resource it touches. The set of
resources is closed: a typo in a route decorator fails at import time
instead of silently denying (or granting) access at runtime.

DESIGN:
- Admins carry a list of resource tags (stored as strings in admins.permissions)
- super_admin bypasses per-resource checks and store scoping
- A newly provisioned store admin receives every resource tag
"""

from enum import Enum


class Resource(str, Enum):
    PRODUCTS = "products"
    CATEGORIES = "categories"
    ORDERS = "orders"
    CUSTOMERS = "customers"
    COUPONS = "coupons"
    BANNERS = "banners"
    PAGES = "pages"
    REPORTS = "reports"
    SETTINGS = "settings"


ALL_RESOURCES = [r.value for r in Resource]


class AdminRole:
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


ADMIN_ROLES = {AdminRole.ADMIN, AdminRole.SUPER_ADMIN}


def parse_resources(values) -> list[str]:
    """
    Normalize a client-supplied permission list.

    Raises ValueError on any tag outside the closed Resource set.
    """
    if values is None:
        return []
    if not isinstance(values, (list, tuple, set)):
        raise ValueError("permissions must be a list")
    parsed = []
    for value in values:
        try:
            tag = Resource(str(value).strip().lower()).value
        except ValueError:
            raise ValueError(f"Unknown permission: {value}")
        if tag not in parsed:
            parsed.append(tag)
    return parsed
