# Overview: Transaction helpers shared by write services: row locks, retry on conflicts, error wrapping.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import DomainError, DuplicateError, InfrastructureError
from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a unit of work, retrying on concurrency-related failures.

    func must perform its own commit. Retries on OperationalError (locks,
    deadlocks) and StaleDataError (optimistic version conflicts), rolling
    back between attempts so the next one re-reads fresh rows.

    Any other failure rolls the session back and propagates:
    - DomainError is re-raised as-is
    - IntegrityError becomes DuplicateError
    - remaining database errors become InfrastructureError
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.error("Giving up after %d attempts: %s", attempts, exc)
                raise InfrastructureError(
                    "Database is busy, please retry",
                    details={"reason": type(exc).__name__},
                ) from exc
            logger.warning("Concurrent update conflict (attempt %d/%d): %s", attempt + 1, attempts, exc)
            time.sleep(backoff_base * (2 ** attempt))
        except DomainError:
            db.session.rollback()
            raise
        except IntegrityError as exc:
            db.session.rollback()
            raise DuplicateError("Record conflicts with an existing one") from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Database error")
            raise InfrastructureError("Database error") from exc
        except Exception:
            db.session.rollback()
            raise


def commit_with_retry(*, attempts: int = 3, backoff_base: float = 0.1):
    """Commit current session with retry handling."""
    def _op():
        db.session.commit()
    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
