from __future__ import annotations

from ..extensions import db
from ..errors import BadRequestError, ConflictError, NotFoundError
from ..models import Customer, CustomerBankDetail, CustomerStatus, CUSTOMER_STATUSES, Order, WishlistItem
from . import auth_service, session_service
from .query_filters import paginate, search_any
from .tenant_service import StoreContext, get_scoped, scoped_query

PROFILE_FIELDS = {"first_name", "last_name", "phone", "addresses"}
BANK_FIELDS = ("account_holder_name", "bank_name", "account_number", "ifsc_code", "upi_id")


def list_customers(
    ctx: StoreContext,
    *,
    page: int = 1,
    limit: int = 10,
    search: str | None = None,
    status: str | None = None,
) -> dict:
    query = scoped_query(Customer, ctx)
    if status:
        if status not in CUSTOMER_STATUSES:
            raise BadRequestError("Invalid status")
        query = query.filter(Customer.status == status)
    term = search_any([Customer.first_name, Customer.last_name, Customer.email, Customer.phone], search)
    if term is not None:
        query = query.filter(term)
    query = query.order_by(Customer.created_at.desc(), Customer.id.desc())
    return paginate(query, page, limit)


def get_customer(ctx: StoreContext, customer_id: int) -> Customer:
    return get_scoped(Customer, customer_id, ctx, label="Customer")


def create_customer(ctx: StoreContext, data: dict) -> Customer:
    """Admin-created customer. A password is optional (guest checkout accounts)."""
    email = auth_service.normalize_email(data.get("email"))
    first_name = (data.get("first_name") or "").strip()
    if not first_name:
        raise BadRequestError("first_name is required")
    if scoped_query(Customer, ctx).filter(Customer.email == email).first():
        raise ConflictError("Customer email already registered")

    password = data.get("password")
    customer = Customer(
        store_id=ctx.require_store_id(),
        first_name=first_name,
        last_name=(data.get("last_name") or "").strip() or None,
        email=email,
        phone=(data.get("phone") or "").strip() or None,
        password_hash=auth_service.hash_password(password) if password else None,
        status=CustomerStatus.ACTIVE,
        addresses=list(data.get("addresses") or []),
    )
    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(ctx: StoreContext, customer_id: int, data: dict) -> Customer:
    customer = get_customer(ctx, customer_id)
    _apply_profile(customer, data)
    if "email" in data:
        email = auth_service.normalize_email(data["email"])
        clash = scoped_query(Customer, ctx).filter(Customer.email == email, Customer.id != customer.id).first()
        if clash:
            raise ConflictError("Customer email already registered")
        customer.email = email
    db.session.commit()
    return customer


def set_customer_status(ctx: StoreContext, customer_id: int, status: str) -> Customer:
    if status not in CUSTOMER_STATUSES:
        raise BadRequestError("Invalid status. Must be active or blocked")
    customer = get_customer(ctx, customer_id)
    customer.status = status
    if status == CustomerStatus.BLOCKED:
        session_service.revoke_subject_sessions(customer_ids=[customer.id], reason="Customer blocked", commit=False)
    db.session.commit()
    return customer


def delete_customer(ctx: StoreContext, customer_id: int) -> None:
    customer = get_customer(ctx, customer_id)
    if scoped_query(Order, ctx).filter(Order.customer_id == customer.id).first():
        raise ConflictError("Customer has orders; block the account instead")
    session_service.revoke_subject_sessions(customer_ids=[customer.id], reason="Customer deleted", commit=False)
    scoped_query(WishlistItem, ctx).filter(WishlistItem.customer_id == customer.id).delete(synchronize_session=False)
    db.session.delete(customer)
    db.session.commit()


def _apply_profile(customer: Customer, data: dict) -> None:
    for key in PROFILE_FIELDS & data.keys():
        value = data[key]
        if key == "addresses":
            if not isinstance(value, list):
                raise BadRequestError("addresses must be a list")
            customer.addresses = list(value)
        elif key == "first_name":
            if not value or not str(value).strip():
                raise BadRequestError("first_name cannot be blank")
            customer.first_name = str(value).strip()
        else:
            setattr(customer, key, (str(value).strip() or None) if value is not None else None)


def update_profile(ctx: StoreContext, data: dict) -> Customer:
    customer = get_customer(ctx, ctx.customer_id)
    _apply_profile(customer, data)
    db.session.commit()
    return customer


# -----------------------------------------------------------------------------
# Bank details (refund destinations)
# -----------------------------------------------------------------------------

def list_bank_details(ctx: StoreContext) -> list[CustomerBankDetail]:
    return get_customer(ctx, ctx.customer_id).bank_details


def add_bank_detail(ctx: StoreContext, data: dict) -> CustomerBankDetail:
    """The first record becomes the default; is_default=True moves the flag."""
    customer = get_customer(ctx, ctx.customer_id)
    values = {k: (str(data[k]).strip() or None) for k in BANK_FIELDS if data.get(k) is not None}
    if not values.get("upi_id") and not all(
        values.get(k) for k in ("account_holder_name", "bank_name", "account_number", "ifsc_code")
    ):
        raise BadRequestError("Provide full bank account details or a UPI id")

    make_default = bool(data.get("is_default")) or not customer.bank_details
    if make_default:
        for existing in customer.bank_details:
            existing.is_default = False

    detail = CustomerBankDetail(customer_id=customer.id, is_default=make_default, **values)
    customer.bank_details.append(detail)
    db.session.commit()
    return detail


def _get_bank_detail(customer: Customer, detail_id: int) -> CustomerBankDetail:
    for detail in customer.bank_details:
        if detail.id == detail_id:
            return detail
    raise NotFoundError("Bank detail not found")


def set_default_bank_detail(ctx: StoreContext, detail_id: int) -> CustomerBankDetail:
    customer = get_customer(ctx, ctx.customer_id)
    target = _get_bank_detail(customer, detail_id)
    for detail in customer.bank_details:
        detail.is_default = detail.id == target.id
    db.session.commit()
    return target


def delete_bank_detail(ctx: StoreContext, detail_id: int) -> None:
    customer = get_customer(ctx, ctx.customer_id)
    target = _get_bank_detail(customer, detail_id)
    was_default = target.is_default
    customer.bank_details.remove(target)
    if was_default and customer.bank_details:
        customer.bank_details[0].is_default = True
    db.session.commit()
