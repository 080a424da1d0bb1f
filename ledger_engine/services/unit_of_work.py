"""
Atomic, retried units of work.

Ledger writes run as one transaction: the operation does its
reads and writes, then the whole thing commits or rolls back.
Contention on locked rows (lock timeouts, deadlocks, stale
version counters) is the only failure retried automatically.
"""

import logging
import time
from typing import Callable, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ledger_engine.config import get_settings
from ledger_engine.exceptions import ConcurrencyConflict

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS = (StaleDataError, OperationalError)


def run_atomic(
    db: Session,
    operation: Callable[[], T],
    *,
    name: str,
    max_attempts: int | None = None,
    backoff_seconds: float | None = None,
) -> T:
    """
    Run operation() and commit, retrying on contention.

    operation must re-read everything it needs on each call:
    after a rollback every object loaded in the failed attempt
    is expired. Any non-retryable exception rolls back and
    propagates unchanged.
    """
    settings = get_settings()
    attempts = max_attempts or settings.POSTING_MAX_ATTEMPTS
    backoff = (
        settings.POSTING_RETRY_BACKOFF_SECONDS
        if backoff_seconds is None
        else backoff_seconds
    )

    for attempt in range(1, attempts + 1):
        try:
            result = operation()
            db.commit()
            return result
        except RETRYABLE_ERRORS as exc:
            db.rollback()
            if attempt == attempts:
                logger.error(
                    "%s failed after %d attempts: %s", name, attempt, exc
                )
                raise ConcurrencyConflict(name, attempt) from exc
            logger.warning(
                "%s hit contention on attempt %d/%d, retrying: %s",
                name, attempt, attempts, exc,
            )
            time.sleep(backoff * attempt)
        except Exception:
            db.rollback()
            raise

    # Unreachable: the loop either returns or raises
    raise ConcurrencyConflict(name, attempts)
