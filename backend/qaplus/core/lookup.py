import logging
import time
from typing import Callable, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from qaplus.core.config import settings
from qaplus.core.errors import LookupUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_transient(exc: DBAPIError) -> bool:
    return isinstance(exc, OperationalError) or bool(exc.connection_invalidated)


def with_lookup_retry(db: Session, what: str, fn: Callable[[], T]) -> T:
    """Run a data-store call, retrying a transient failure once.

    Connect, pool-checkout and statement waits are bounded at the engine level
    (see ``qaplus.db.session``); a second failure fails closed as 503.
    """
    failure: Exception | None = None
    for attempt in (1, 2):
        try:
            return fn()
        except DBAPIError as exc:
            if not _is_transient(exc):
                raise
            failure = exc
        except PoolTimeoutError as exc:
            failure = exc

        db.rollback()
        if attempt == 1:
            logger.warning("Transient failure on %s, retrying once: %s", what, failure)
            time.sleep(max(0, settings.DB_LOOKUP_RETRY_BACKOFF_MS) / 1000.0)

    logger.error("Lookup %s unavailable after retry: %s", what, failure)
    raise LookupUnavailable() from failure
