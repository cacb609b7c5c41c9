"""Per-pair advisory locking for the reciprocity check.

Two opposite submissions for the same pair must not both observe "mirror
exists". The lock is transaction-scoped: it is released by commit or
rollback, never explicitly.
"""

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, DBAPIError
from sqlalchemy.orm import Session

from ..core.errors import StoreUnavailableError
from ..core.pairs import CanonicalPair
from ..utils.logging_config import get_logger

logger = get_logger('engine')


def acquire_pair_lock(session: Session, pair: CanonicalPair, timeout_ms: int) -> None:
    """
    Take the transaction-scoped lock for ``pair``.

    SQLite write units already hold the database write lock from
    ``BEGIN IMMEDIATE``; the wait there is bounded by ``busy_timeout``.
    PostgreSQL takes ``pg_advisory_xact_lock`` on a hash of the pair key,
    bounded by ``lock_timeout``.

    Raises:
        StoreUnavailableError: If the lock could not be acquired in time
    """
    dialect = session.get_bind().dialect.name

    if dialect != "postgresql":
        return

    try:
        session.execute(text(f"SET LOCAL lock_timeout = {int(timeout_ms)}"))
        session.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
            {"key": pair.lock_key},
        )
    except (OperationalError, DBAPIError) as e:
        logger.warning(
            "Timed out waiting for pair lock",
            extra={"pair": pair.lock_key, "timeout_ms": timeout_ms},
        )
        raise StoreUnavailableError(
            f"Could not lock pair {pair.lock_key} within {timeout_ms}ms",
            context={"pair": pair.lock_key},
        ) from e

    logger.debug("Acquired pair lock %s", pair.lock_key)
