"""
Document numbering: PREFIX-YYYY-NNNNN, per type and per year.
"""

import pytest

from teknoroma.errors import ValidationError
from teknoroma.extensions import db
from teknoroma.services import document_service


def _next(kind, year):
    document_type, prefix = kind
    number = document_service.next_document_number(document_type=document_type, prefix=prefix, year=year)
    db.session.commit()
    return number


class TestDocumentNumbers:

    def test_format(self):
        assert document_service.format_document_number("S", 2025, 1) == "S-2025-00001"
        assert document_service.format_document_number("TS", 2025, 123456) == "TS-2025-123456"

    def test_first_number_of_year(self):
        assert _next(document_service.SALE, 2025) == "S-2025-00001"
        assert _next(document_service.SALE, 2025) == "S-2025-00002"

    def test_sequences_are_per_type(self):
        assert _next(document_service.SALE, 2025) == "S-2025-00001"
        assert _next(document_service.EXPENSE, 2025) == "G-2025-00001"
        assert _next(document_service.TECHNICAL_SERVICE, 2025) == "TS-2025-00001"
        assert _next(document_service.SUPPLIER_TRANSACTION, 2025) == "TH-2025-00001"
        assert _next(document_service.SALE, 2025) == "S-2025-00002"

    def test_new_year_restarts(self):
        _next(document_service.SALE, 2025)
        _next(document_service.SALE, 2025)
        assert _next(document_service.SALE, 2026) == "S-2026-00001"

    def test_rollback_releases_number(self):
        document_type, prefix = document_service.EXPENSE
        _next(document_service.EXPENSE, 2025)

        document_service.next_document_number(document_type=document_type, prefix=prefix, year=2025)
        db.session.rollback()

        assert document_service.peek_next_number(document_type=document_type, year=2025) == 2
        assert _next(document_service.EXPENSE, 2025) == "G-2025-00002"

    def test_peek_unknown_sequence(self):
        assert document_service.peek_next_number(document_type="SALE", year=1999) == 1

    @pytest.mark.parametrize("document_type,prefix", [("", "S"), ("SALE", "")])
    def test_requires_type_and_prefix(self, document_type, prefix):
        with pytest.raises(ValidationError):
            document_service.next_document_number(document_type=document_type, prefix=prefix, year=2025)
