# Overview: Request decorators that resolve the store, authenticate callers and check permissions.

"""
Route decorators.

Each decorator hands the view an explicit StoreContext as the `ctx` keyword
argument. Views pass ctx on to services; nothing downstream reads tenant
scope from request globals.

    @orders_bp.get("/")
    @require_admin
    @require_permission(Resource.ORDERS)
    def list_orders_route(ctx):
        ...
"""

from functools import wraps

from flask import current_app, request

from .errors import ForbiddenError, UnauthorizedError
from .models import SubjectType
from .permissions import Resource
from .services import access_service, permission_service
from .services.store_resolver import resolve_request_store, signals_from_request
from .services.tenant_service import Principal, StoreContext


def _request_meta() -> dict:
    return {
        "api_subdomain": current_app.config.get("API_SUBDOMAIN"),
        "path": request.path,
        "ip_address": request.remote_addr,
    }


def identify_store(f):
    """
    Resolve the store for a public route (no credential required).

    Fails with 400 when nothing names a store and 404 when the named store
    does not exist or is not active.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        resolved = resolve_request_store()
        kwargs["ctx"] = StoreContext(resolved.store_id, Principal.PUBLIC, source=resolved.source)
        return f(*args, **kwargs)

    return decorated_function


def _admin_decorator(f, *, store_required: bool):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = access_service.parse_bearer_token(request.headers.get("Authorization"))
        context = access_service.authenticate(token, SubjectType.ADMIN)
        kwargs["ctx"] = access_service.admin_scope(
            context,
            signals_from_request(),
            store_required=store_required,
            **_request_meta(),
        )
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """
    Require an admin token and bind the admin's store.

    SECURITY: 401 on missing/invalid/expired token, customer token, or a
    disabled/pending admin. Super admins must name a store via X-Store-ID
    or ?storeId= on tenant-scoped routes.
    """
    return _admin_decorator(f, store_required=True)


def require_super_admin(f):
    """Require a super admin token. The context may carry no store."""
    @wraps(f)
    def check_super_admin(*args, **kwargs):
        if not kwargs["ctx"].is_super_admin:
            raise ForbiddenError("Super admin access required")
        return f(*args, **kwargs)

    return _admin_decorator(check_super_admin, store_required=False)


def require_permission(resource: Resource):
    """
    Require a resource permission. Must sit below @require_admin.

    Denials are logged as PERMISSION_DENIED security events and answered
    with 403 plus the missing permission tag.
    """
    resource = Resource(resource)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            ctx = kwargs.get("ctx")
            if ctx is None or ctx.admin is None:
                raise UnauthorizedError("Authentication required")

            permission_service.require_permission(
                ctx.admin,
                resource,
                path=request.path,
                action=request.method,
                ip_address=request.remote_addr,
                user_agent=request.headers.get("User-Agent"),
            )
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_customer(f):
    """
    Require a customer token; the customer's own store is the scope.

    SECURITY: 401 on missing/invalid/expired token, admin token, blocked
    customer, or a store that is no longer active.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = access_service.parse_bearer_token(request.headers.get("Authorization"))
        context = access_service.authenticate(token, SubjectType.CUSTOMER)
        kwargs["ctx"] = access_service.customer_scope(context, signals_from_request(), **_request_meta())
        return f(*args, **kwargs)

    return decorated_function
