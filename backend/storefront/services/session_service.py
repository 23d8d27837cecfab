# Overview: Service-layer operations for session tokens; issue, validate and revoke bearer credentials.

"""
Session Token Management Service

WHY: Secure session management with automatic timeout and revocation.
Tokens are cryptographically secure, hashed in database, and time-limited.

DESIGN: A token is opaque to the client. The server-side row records the
subject class (admin or customer), the subject id, and the store the
subject was bound to at issue time. Classification of a token never depends
on anything the client sends besides the token itself.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- 24-hour absolute timeout (SESSION_ABSOLUTE_TIMEOUT)
- 2-hour idle timeout (SESSION_IDLE_TIMEOUT)
- Revocable on logout or security events
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from ..extensions import db
from ..models import Admin, Customer, SessionToken, SubjectType
from ..time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)


@dataclass
class SessionContext:
    """
    Result of validate_session.

    Exactly one of admin / customer is set, matching subject_type. The
    subject may still be disabled or blocked: status checks belong to the
    access gate, which needs to tell those cases apart.
    """
    session: SessionToken
    subject_type: str
    admin: Admin | None
    customer: Customer | None
    store_id: int | None


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy), sent to the client once."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _create_session(
    *,
    subject_type: str,
    admin_id: int | None = None,
    customer_id: int | None = None,
    store_id: int | None = None,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        subject_type=subject_type,
        admin_id=admin_id,
        customer_id=customer_id,
        store_id=store_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, plaintext_token


def create_admin_session(admin: Admin, user_agent: str | None = None, ip_address: str | None = None):
    """Returns (session_record, plaintext_token). Super admins get store_id None."""
    return _create_session(
        subject_type=SubjectType.ADMIN,
        admin_id=admin.id,
        store_id=None if admin.is_super_admin else admin.store_id,
        user_agent=user_agent,
        ip_address=ip_address,
    )


def create_customer_session(customer: Customer, user_agent: str | None = None, ip_address: str | None = None):
    """Returns (session_record, plaintext_token) bound to the customer's store."""
    return _create_session(
        subject_type=SubjectType.CUSTOMER,
        customer_id=customer.id,
        store_id=customer.store_id,
        user_agent=user_agent,
        ip_address=ip_address,
    )


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason


def validate_session(token: str) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if the token is unknown, expired, idle too long or revoked,
    or if the subject account no longer exists.

    Updates last_used_at on successful validation (activity tracking).
    """
    if not token:
        return None

    now = utcnow()
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > SESSION_IDLE_TIMEOUT:
        _revoke(session, "Idle timeout")
        db.session.commit()
        return None

    admin = customer = None
    if session.subject_type == SubjectType.ADMIN:
        admin = db.session.get(Admin, session.admin_id) if session.admin_id else None
        subject = admin
    elif session.subject_type == SubjectType.CUSTOMER:
        customer = db.session.get(Customer, session.customer_id) if session.customer_id else None
        subject = customer
    else:
        subject = None

    if subject is None:
        _revoke(session, "Subject account no longer exists")
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(
        session=session,
        subject_type=session.subject_type,
        admin=admin,
        customer=customer,
        store_id=session.store_id,
    )


def revoke_session(token: str, reason: str = "Logout") -> bool:
    """Returns True if session was revoked, False if not found."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return False

    _revoke(session, reason)
    db.session.commit()
    return True


def revoke_subject_sessions(
    *,
    admin_ids: list[int] | None = None,
    customer_ids: list[int] | None = None,
    reason: str,
    commit: bool = True,
) -> int:
    """
    Revoke all active sessions for the given admins and/or customers.

    WHY: Password resets, blocks and store deletion must force re-authentication.
    """
    query = db.session.query(SessionToken).filter(SessionToken.is_revoked.is_(False))
    conditions = []
    if admin_ids:
        conditions.append(SessionToken.admin_id.in_(admin_ids))
    if customer_ids:
        conditions.append(SessionToken.customer_id.in_(customer_ids))
    if not conditions:
        return 0

    sessions = query.filter(db.or_(*conditions)).all()
    for session in sessions:
        _revoke(session, reason)

    if commit:
        db.session.commit()
    return len(sessions)
