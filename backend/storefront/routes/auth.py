# Overview: Flask API routes for admin and customer authentication; issues and revokes bearer tokens.

"""
Authentication API routes

SECURITY:
- Admin login is global (email is unique across the platform)
- Customer login and registration are store-scoped: the store comes from the
  resolver chain and the customer must belong to it
- Tokens are opaque; only their SHA-256 hash is stored
- Failed logins are persisted as security events
"""

from flask import Blueprint, jsonify, request

from ..decorators import identify_store
from ..errors import UnauthorizedError
from ..models import SubjectType
from ..services import access_service, auth_service, session_service
from ..validation import require_fields

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _client_meta() -> dict:
    return {
        "user_agent": request.headers.get("User-Agent"),
        "ip_address": request.remote_addr,
    }


@auth_bp.post("/admin/login")
def admin_login_route():
    data = require_fields(request.get_json(silent=True), "email", "password")
    admin = auth_service.authenticate_admin(data["email"], data["password"], ip_address=request.remote_addr)
    session, token = session_service.create_admin_session(admin, **_client_meta())
    return jsonify({
        "token": token,
        "expires_at": session.to_dict()["expires_at"],
        "admin": admin.to_dict(),
    }), 200


@auth_bp.post("/customer/register")
@identify_store
def customer_register_route(ctx):
    data = require_fields(request.get_json(silent=True), "email", "password", "first_name")
    customer = auth_service.register_customer(ctx.require_store_id(), data)
    session, token = session_service.create_customer_session(customer, **_client_meta())
    return jsonify({
        "token": token,
        "expires_at": session.to_dict()["expires_at"],
        "customer": customer.to_dict(),
    }), 201


@auth_bp.post("/customer/login")
@identify_store
def customer_login_route(ctx):
    data = require_fields(request.get_json(silent=True), "email", "password")
    customer = auth_service.authenticate_customer(
        ctx.require_store_id(), data["email"], data["password"], ip_address=request.remote_addr
    )
    session, token = session_service.create_customer_session(customer, **_client_meta())
    return jsonify({
        "token": token,
        "expires_at": session.to_dict()["expires_at"],
        "customer": customer.to_dict(),
    }), 200


@auth_bp.post("/logout")
def logout_route():
    token = access_service.parse_bearer_token(request.headers.get("Authorization"))
    if not session_service.revoke_session(token, reason="Logout"):
        raise UnauthorizedError("Invalid or expired token")
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
def me_route():
    """Describe the caller behind the bearer token (admin or customer)."""
    token = access_service.parse_bearer_token(request.headers.get("Authorization"))
    context = session_service.validate_session(token)
    if context is None:
        raise UnauthorizedError("Invalid or expired token")
    context = access_service.authenticate(token, context.subject_type)

    if context.subject_type == SubjectType.ADMIN:
        admin = context.admin
        return jsonify({
            "type": SubjectType.ADMIN,
            "admin": admin.to_dict(),
            "store": admin.store.to_public_dict() if admin.store is not None else None,
        }), 200

    customer = context.customer
    return jsonify({
        "type": SubjectType.CUSTOMER,
        "customer": customer.to_dict(),
        "store": customer.store.to_public_dict() if customer.store is not None else None,
    }), 200
