import time
import logging

from sqlalchemy.exc import OperationalError, IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (OperationalError, IntegrityError, StaleDataError)


def run_with_retry(db: Session, func, *, attempts: int = 3, backoff_base: float = 0.05):
    """
    Run a whole unit of work again when it loses a race.

    Deadlocks, serialization failures and unique-constraint collisions roll
    the session back and retry; anything else propagates untouched.
    """
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.rollback()
            if attempt >= attempts - 1:
                raise
            logger.warning(f"Retrying after concurrency conflict (attempt {attempt + 1}/{attempts}): {exc}")
            time.sleep(backoff_base * (2 ** attempt))
