# Overview: Service-layer operations for auth; password hashing and credential checks for admins and customers.

"""
Authentication Service

WHY: Every back-office action must be attributable, and every shopper
action must be bound to one store. Uses bcrypt for password hashing and
validates password strength.

MULTI-TENANT:
- Admin emails are unique across the platform (one login page for all stores)
- Customer emails are unique within a store; customer login therefore needs
  a resolved store

SECURITY NOTES:
- Passwords hashed with bcrypt (cost from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, upper, lower, digit and special character
- Failed logins are recorded as security events
- Session tokens managed separately (see session_service.py)
"""

import re
import secrets
import string

import bcrypt
from flask import current_app

from ..extensions import db
from ..errors import BadRequestError, ConflictError, NotFoundError, UnauthorizedError
from ..models import Admin, AdminStatus, Customer, CustomerStatus, Store, StoreStatus
from ..permissions import ALL_RESOURCES, AdminRole, parse_resources
from ..time_utils import utcnow
from .permission_service import log_security_event


class PasswordValidationError(BadRequestError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>?_\-+=]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str | None) -> bool:
    """Timing-safe bcrypt comparison; malformed hashes never verify."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def generate_password() -> str:
    """Random password that satisfies validate_password_strength."""
    alphabet = string.ascii_letters + string.digits
    core = "".join(secrets.choice(alphabet) for _ in range(10))
    return f"{core}Aa1!"


def normalize_email(email: str | None) -> str:
    if not email or "@" not in str(email):
        raise BadRequestError("A valid email is required")
    return str(email).strip().lower()


def create_admin(
    *,
    name: str,
    email: str,
    password: str,
    store_id: int | None,
    role: str = AdminRole.ADMIN,
    permissions: list[str] | None = None,
) -> Admin:
    """
    Create an admin account (not committed).

    Raises ConflictError if the email is already registered.
    """
    email = normalize_email(email)
    if db.session.query(Admin).filter(Admin.email == email).first():
        raise ConflictError("Admin email already exists")

    if role == AdminRole.SUPER_ADMIN:
        store_id = None
    elif store_id is None:
        raise BadRequestError("Store admins require a store")

    if permissions is None:
        permissions = list(ALL_RESOURCES)
    else:
        try:
            permissions = parse_resources(permissions)
        except ValueError as exc:
            raise BadRequestError(str(exc))

    admin = Admin(
        name=(name or email).strip(),
        email=email,
        password_hash=hash_password(password),
        store_id=store_id,
        role=role,
        status=AdminStatus.ACTIVE,
        permissions=permissions,
    )
    db.session.add(admin)
    return admin


def authenticate_admin(email: str, password: str, *, ip_address: str | None = None) -> Admin:
    """
    Check admin credentials.

    Raises UnauthorizedError on unknown email, wrong password, a disabled or
    pending account, or a store admin whose store no longer exists.
    """
    email = (email or "").strip().lower()
    admin = db.session.query(Admin).filter(Admin.email == email).first()

    if admin is None or not verify_password(password, admin.password_hash):
        log_security_event(
            "LOGIN_FAILED",
            False,
            admin_id=admin.id if admin else None,
            resource="admin_login",
            reason="Invalid credentials",
            ip_address=ip_address,
        )
        raise UnauthorizedError("Invalid credentials")

    if admin.status != AdminStatus.ACTIVE:
        log_security_event(
            "LOGIN_FAILED",
            False,
            admin_id=admin.id,
            store_id=admin.store_id,
            resource="admin_login",
            reason=f"Admin status {admin.status}",
            ip_address=ip_address,
        )
        raise UnauthorizedError("Account is not active")

    if not admin.is_super_admin and admin.store is None:
        raise UnauthorizedError("Store no longer exists")

    admin.last_login_at = utcnow()
    db.session.commit()
    return admin


def register_customer(store_id: int, data: dict) -> Customer:
    """Self-registration on a storefront. Email must be unique within the store."""
    store = db.session.get(Store, store_id)
    if store is None or store.status != StoreStatus.ACTIVE:
        raise NotFoundError("Store not found")

    email = normalize_email(data.get("email"))
    first_name = (data.get("first_name") or "").strip()
    if not first_name:
        raise BadRequestError("first_name is required")

    existing = db.session.query(Customer).filter(
        Customer.store_id == store_id,
        Customer.email == email,
    ).first()
    if existing:
        raise ConflictError("Customer email already registered")

    customer = Customer(
        store_id=store_id,
        first_name=first_name,
        last_name=(data.get("last_name") or "").strip() or None,
        email=email,
        phone=(data.get("phone") or "").strip() or None,
        password_hash=hash_password(data.get("password") or ""),
        status=CustomerStatus.ACTIVE,
    )
    db.session.add(customer)
    db.session.commit()
    return customer


def authenticate_customer(store_id: int, email: str, password: str, *, ip_address: str | None = None) -> Customer:
    email = (email or "").strip().lower()
    customer = db.session.query(Customer).filter(
        Customer.store_id == store_id,
        Customer.email == email,
    ).first()

    if customer is None or not verify_password(password, customer.password_hash):
        log_security_event(
            "LOGIN_FAILED",
            False,
            customer_id=customer.id if customer else None,
            store_id=store_id,
            resource="customer_login",
            reason="Invalid credentials",
            ip_address=ip_address,
        )
        raise UnauthorizedError("Invalid credentials")

    if customer.status == CustomerStatus.BLOCKED:
        raise UnauthorizedError("Account is blocked")

    if customer.store is None or customer.store.status != StoreStatus.ACTIVE:
        raise UnauthorizedError("Store is not active")

    customer.last_login_at = utcnow()
    db.session.commit()
    return customer
