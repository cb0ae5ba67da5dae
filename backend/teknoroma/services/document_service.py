# Overview: Per-type, per-year document numbering (S-2025-00001, G-, TS-, TH-).

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import ValidationError
from ..extensions import db
from ..models import DocumentSequence
from ..time_utils import utcnow

SALE = ("SALE", "S")
EXPENSE = ("EXPENSE", "G")
TECHNICAL_SERVICE = ("TECHNICAL_SERVICE", "TS")
SUPPLIER_TRANSACTION = ("SUPPLIER_TRANSACTION", "TH")

NUMBER_PAD = 5


def format_document_number(prefix: str, year: int, number: int) -> str:
    return f"{prefix}-{year}-{number:0{NUMBER_PAD}d}"


def _current_number(document_type: str, year: int) -> int:
    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type, year=year)
        .scalar()
    )
    return current - 1


def next_document_number(*, document_type: str, prefix: str, year: int | None = None) -> str:
    """
    Allocate the next number for (document_type, year).

    Runs inside the caller's transaction and does not commit: if the caller
    rolls back, the increment is rolled back with it, so numbers are never
    skipped by failed writes. The atomic UPDATE serializes concurrent
    allocators on the sequence row.
    """
    if not document_type:
        raise ValidationError("document_type is required")
    if not prefix:
        raise ValidationError("prefix is required")
    if year is None:
        year = utcnow().year

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.year == year,
        )
        .values(next_number=DocumentSequence.next_number + 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        number = _current_number(document_type, year)
    else:
        # First document of this type in this year
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(document_type=document_type, year=year, next_number=2))
            number = 1
        except IntegrityError:
            # Another writer created the row first
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            number = _current_number(document_type, year)

    return format_document_number(prefix, year, number)


def peek_next_number(*, document_type: str, year: int) -> int:
    """Number the next allocation would receive (read-only)."""
    seq = (
        db.session.query(DocumentSequence)
        .filter_by(document_type=document_type, year=year)
        .first()
    )
    return seq.next_number if seq else 1
