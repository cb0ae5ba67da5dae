"""
Transaction retry helper.

Verifies:
- Version conflicts and lock errors are retried, then surface as InfrastructureError
- Unique-constraint violations become DuplicateError
- Domain errors propagate unchanged and are not retried
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from teknoroma.errors import DuplicateError, InfrastructureError, ValidationError
from teknoroma.services.concurrency import run_with_retry


class _Flaky:
    """Raises the given errors in order, then returns "done"."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "done"


def _locked():
    return OperationalError("UPDATE products", {}, Exception("database is locked"))


# =============================================================================
# RETRIES
# =============================================================================


class TestRetries:

    def test_stale_version_is_retried(self):
        work = _Flaky(StaleDataError("version mismatch"))
        assert run_with_retry(work, backoff_base=0) == "done"
        assert work.calls == 2

    def test_locked_database_is_retried(self):
        work = _Flaky(_locked(), _locked())
        assert run_with_retry(work, attempts=3, backoff_base=0) == "done"
        assert work.calls == 3

    def test_exhausted_retries_become_infrastructure_error(self):
        work = _Flaky(*[StaleDataError("version mismatch") for _ in range(3)])

        with pytest.raises(InfrastructureError) as excinfo:
            run_with_retry(work, attempts=3, backoff_base=0)

        assert work.calls == 3
        assert excinfo.value.details == {"reason": "StaleDataError"}
        assert excinfo.value.status_code == 500


# =============================================================================
# ERROR MAPPING
# =============================================================================


class TestErrorMapping:

    def test_integrity_error_becomes_duplicate(self):
        work = _Flaky(IntegrityError("INSERT INTO products", {}, Exception("UNIQUE constraint failed")))

        with pytest.raises(DuplicateError) as excinfo:
            run_with_retry(work, backoff_base=0)

        assert work.calls == 1
        assert excinfo.value.status_code == 409

    def test_domain_error_is_not_retried(self):
        work = _Flaky(ValidationError("bad input"))

        with pytest.raises(ValidationError):
            run_with_retry(work, backoff_base=0)

        assert work.calls == 1
