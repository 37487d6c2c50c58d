"""Bounded retry with exponential backoff for store adapters"""

import functools
import logging
import time
from sqlalchemy.exc import SQLAlchemyError
from collector_gateway.config import settings
from collector_gateway.domain.exceptions import StoreUnavailable
from collector_gateway.infrastructure.observability.metrics import store_failure_counter

logger = logging.getLogger(__name__)


def retry_read(func):
    """
    Retry an idempotent repository read on database errors.

    Retry strategy:
    - Exponential backoff: base, 2*base, 4*base ...
    - Gives up after settings.store_max_retries attempts
    - Raises StoreUnavailable so callers never see partial reads
    """

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        attempt = 0
        while True:
            try:
                return func(self, *args, **kwargs)
            except SQLAlchemyError as e:
                attempt += 1
                store_failure_counter.labels(operation=func.__name__).inc()
                self.db.rollback()

                if attempt >= settings.store_max_retries:
                    raise StoreUnavailable(f"{func.__name__} failed after {attempt} attempts") from e

                backoff = settings.store_backoff_base * (2 ** (attempt - 1))
                logger.warning(
                    f"Store read failed, retrying in {backoff}s",
                    extra={"operation": func.__name__, "attempt": attempt},
                )
                time.sleep(backoff)

    return wrapper


def single_write(func):
    """Writes are attempted once; a database error becomes StoreUnavailable"""

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except SQLAlchemyError as e:
            store_failure_counter.labels(operation=func.__name__).inc()
            self.db.rollback()
            raise StoreUnavailable(f"{func.__name__} failed") from e

    return wrapper
