from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class SubjectType:
    ADMIN = "admin"
    CUSTOMER = "customer"


class SessionToken(db.Model):
    """
    Opaque bearer credential.

    DESIGN: The plaintext token goes to the client once; only its SHA-256
    hash is stored. Each token carries its subject class (admin or customer)
    so a customer token can never pass an admin route and vice versa.

    MULTI-TENANT: store_id is captured at issue time (NULL for super admins)
    and is the bound tenant scope for customer tokens.

    SECURITY NOTES:
    - 24-hour absolute timeout
    - 2-hour idle timeout
    - Revocable on logout, password reset, account block or store deletion
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_admin_active", "admin_id", "is_revoked"),
        db.Index("ix_session_tokens_customer_active", "customer_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    subject_type = db.Column(db.String(16), nullable=False)
    admin_id = db.Column(db.Integer, db.ForeignKey("admins.id", ondelete="CASCADE"), nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="CASCADE"), nullable=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True, index=True)

    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "subject_type": self.subject_type,
            "admin_id": self.admin_id,
            "customer_id": self.customer_id,
            "store_id": self.store_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }
