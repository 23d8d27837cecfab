# Overview: Sequential per-store document numbers for orders and invoices.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import BadRequestError
from ..models import DocumentSequence


class DocumentType:
    ORDER = "ORDER"
    INVOICE = "INVOICE"


DOCUMENT_PREFIXES = {
    DocumentType.ORDER: "ORD",
    DocumentType.INVOICE: "INV",
}


def _current_number(store_id: int, document_type: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(store_id=store_id, document_type=document_type)
        .scalar()
    )


def next_document_number(*, store_id: int, document_type: str, pad: int = 4) -> str:
    """
    Allocate the next number for a store/type, e.g. INV-007-0001.

    The increment is a single UPDATE so two requests never receive the same
    number. Runs inside the caller's transaction; the caller commits.
    """
    if not store_id:
        raise BadRequestError("store_id is required")
    prefix = DOCUMENT_PREFIXES.get(document_type)
    if prefix is None:
        raise BadRequestError(f"Unknown document type: {document_type}")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.store_id == store_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _current_number(store_id, document_type) - 1
    else:
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(store_id=store_id, document_type=document_type, next_number=2))
            next_num = 1
        except IntegrityError:
            # Lost the race to create the row; the other writer owns number 1
            db.session.execute(stmt)
            next_num = _current_number(store_id, document_type) - 1

    return f"{prefix}-{store_id:03d}-{next_num:0{pad}d}"
