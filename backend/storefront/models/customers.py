from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class CustomerStatus:
    ACTIVE = "active"
    BLOCKED = "blocked"


CUSTOMER_STATUSES = {CustomerStatus.ACTIVE, CustomerStatus.BLOCKED}


class Customer(db.Model):
    """
    Shopper account.

    MULTI-TENANT: A customer belongs to exactly one store. The same email can
    register independently with different stores. A customer token can never
    act against another store's data.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("store_id", "email", name="uq_customers_store_email"),
        db.Index("ix_customers_store_status", "store_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    first_name = db.Column(db.String(64), nullable=False)
    last_name = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    password_hash = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=CustomerStatus.ACTIVE)
    addresses = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    store = db.relationship("Store", backref=db.backref("customers", lazy=True))
    bank_details = db.relationship(
        "CustomerBankDetail",
        backref="customer",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="CustomerBankDetail.id",
    )

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    def default_bank_detail(self):
        """The record flagged as default, else the first stored one."""
        if not self.bank_details:
            return None
        for detail in self.bank_details:
            if detail.is_default:
                return detail
        return self.bank_details[0]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "status": self.status,
            "addresses": list(self.addresses or []),
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at),
        }


class CustomerBankDetail(db.Model):
    """
    Refund destination stored by the customer.

    Refunds resolve bank fields from the request first, then field-by-field
    from the default record (or the first record when none is flagged).
    """
    __tablename__ = "customer_bank_details"
    __table_args__ = (
        db.Index("ix_customer_bank_details_customer", "customer_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)

    account_holder_name = db.Column(db.String(120), nullable=True)
    bank_name = db.Column(db.String(120), nullable=True)
    account_number = db.Column(db.String(34), nullable=True)
    ifsc_code = db.Column(db.String(16), nullable=True)
    upi_id = db.Column(db.String(64), nullable=True)
    is_default = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_holder_name": self.account_holder_name,
            "bank_name": self.bank_name,
            "account_number": self.account_number,
            "ifsc_code": self.ifsc_code,
            "upi_id": self.upi_id,
            "is_default": self.is_default,
            "created_at": to_utc_z(self.created_at),
        }
