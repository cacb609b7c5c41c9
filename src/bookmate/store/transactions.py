"""Transaction scope, store error translation and retry with backoff.

Every multi-row effect of the engine runs inside :func:`transaction_scope`:
either everything commits or the whole unit is rolled back. Store failures
are translated into the engine's error taxonomy exactly once, here.
"""

import random
import time
from contextlib import contextmanager
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.orm import Session

from ..core.errors import BookmateError, NotFoundError, StoreUnavailableError
from ..db.database import WRITE_LOCK_OPTION
from ..utils.logging_config import get_logger, log_exception
from .integrity_policy import is_foreign_key_violation

logger = get_logger('engine')

T = TypeVar("T")


def translate_store_error(exc: SQLAlchemyError, operation: str) -> Optional[BookmateError]:
    """
    Map a SQLAlchemy error onto the engine's error taxonomy.

    Returns:
        The translated error, or None if the error has no engine meaning
    """
    if isinstance(exc, IntegrityError):
        if is_foreign_key_violation(exc):
            return NotFoundError(
                f"{operation}: a referenced row no longer exists",
                context={"operation": operation},
            )
        return None

    if isinstance(exc, (OperationalError, PoolTimeoutError)):
        return StoreUnavailableError(
            f"{operation}: store unavailable ({exc.__class__.__name__})",
            context={"operation": operation},
        )

    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return StoreUnavailableError(
            f"{operation}: connection lost",
            context={"operation": operation},
        )

    return None


@contextmanager
def transaction_scope(session: Session, operation: str):
    """
    Run a unit of work and commit it, rolling back on any failure.

    A transaction opened here is a write unit: on SQLite it starts with
    ``BEGIN IMMEDIATE``. A transaction the session already has open is
    joined as it is.

    Args:
        session: Session whose transaction is the unit of work
        operation: Operation name used in errors and logs

    Raises:
        BookmateError: Translated store failures and engine errors
    """
    try:
        if not session.in_transaction():
            session.connection(execution_options={WRITE_LOCK_OPTION: True})
        yield session
        session.commit()
    except BookmateError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        translated = translate_store_error(e, operation)
        if translated is None:
            log_exception("engine", e, {"operation": operation})
            raise
        logger.info(
            "Transaction aborted",
            extra={"operation": operation, "error_kind": translated.kind.value},
        )
        raise translated from e
    except BaseException:
        session.rollback()
        raise


def compute_backoff(
    attempt: int,
    base: float,
    max_delay: float,
    jitter_ratio: float
) -> float:
    """
    Compute exponential backoff delay with jitter.

    Args:
        attempt: Attempt number (0-based)
        base: Base delay in seconds
        max_delay: Maximum delay in seconds
        jitter_ratio: Jitter ratio (0.0 to 1.0)

    Returns:
        Delay in seconds (never negative)
    """
    # Exponential backoff: base * 2^attempt
    delay = min(max_delay, base * (2 ** attempt))

    # Add jitter: ±jitter_ratio of the delay
    jitter = random.uniform(-jitter_ratio, jitter_ratio) * delay

    return max(0.0, delay + jitter)


def run_with_retry(
    session_factory: Callable[[], Session],
    fn: Callable[[Session], T],
    attempts: int = 3,
    base_delay: float = 0.2,
    max_delay: float = 2.0,
    jitter_ratio: float = 0.2,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run ``fn`` on a fresh session, retrying only StoreUnavailableError.

    Each attempt gets its own session so no state leaks from a failed try.

    Raises:
        StoreUnavailableError: If every attempt failed transiently
        BookmateError: Any non-retryable engine error, immediately
    """
    attempts = max(1, attempts)
    for attempt in range(attempts):
        session = session_factory()
        try:
            return fn(session)
        except StoreUnavailableError as e:
            if attempt == attempts - 1:
                logger.warning(
                    "Giving up after %d attempts: %s", attempts, e,
                    extra={"error_kind": e.kind.value},
                )
                raise
            delay = compute_backoff(attempt, base_delay, max_delay, jitter_ratio)
            logger.info(
                "Store unavailable, retrying in %.2fs (attempt %d/%d)",
                delay, attempt + 1, attempts,
            )
            sleep(delay)
        finally:
            session.close()

    raise AssertionError("unreachable")
