"""
Retry helpers for transient database failures
"""
import time
from typing import Callable, Optional, TypeVar

from loguru import logger
from sqlalchemy.exc import DisconnectionError, OperationalError
from sqlalchemy.orm import Session

from printshop.utils.database import ping

T = TypeVar("T")

MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 1.0

RETRYABLE_ERRORS = (OperationalError, DisconnectionError)


def retry_query(query_fn: Callable[[], T], session: Optional[Session] = None, retries: int = MAX_RETRIES,
                base_delay: float = RETRY_DELAY_SECONDS, sleep=None) -> T:
    """
    Run a database query, retrying connection-class errors with exponential backoff

    Args:
        query_fn: zero-argument callable performing the query
        session: session used by query_fn; rolled back after every failed attempt
            so the next one can check out a fresh connection
        retries: total attempts
        base_delay: delay before the second attempt, doubled afterwards (1s, 2s, 4s)
        sleep: injectable sleep function, time.sleep when omitted

    Returns:
        Whatever query_fn returns

    Raises:
        The last error once attempts run out, or any non-retryable error immediately
    """
    sleep = sleep or time.sleep
    for attempt in range(retries):
        try:
            return query_fn()
        except RETRYABLE_ERRORS as e:
            if session is not None:
                session.rollback()
            if attempt == retries - 1:
                raise
            delay = base_delay * (2 ** attempt)
            logger.warning(
                f"Database query failed (attempt {attempt + 1}/{retries}), retrying in {delay:.1f}s: {e}"
            )
            sleep(delay)
    raise RuntimeError("retry_query called with retries < 1")


def check_database_connection(db: Session, retries: int = MAX_RETRIES, sleep=None) -> bool:
    try:
        return retry_query(lambda: ping(db), session=db, retries=retries, sleep=sleep)
    except RETRYABLE_ERRORS as e:
        logger.error(f"Database unreachable: {e}")
        return False
