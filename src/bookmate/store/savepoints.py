"""
Savepoint utilities for handling expected database constraint violations.

This module provides a context manager to isolate inserts that might trigger
expected IntegrityError exceptions, preventing them from poisoning the outer
transaction.
"""

from contextlib import contextmanager
from typing import Set, Dict, Any
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from ..core.errors import NotFoundError
from .integrity_policy import (
    ExpectedIntegrityTag,
    classify_integrity_error,
    get_violation_result,
    is_foreign_key_violation,
    log_expected_violation,
    log_unexpected_violation,
)


@contextmanager
def expected_conflict_savepoint(
    session: Session,
    expected_tags: Set[ExpectedIntegrityTag],
    operation_context: Dict[str, Any],
):
    """
    Context manager that wraps operations in a savepoint and handles expected IntegrityError.

    Args:
        session: SQLAlchemy session
        expected_tags: Set of expected integrity violation tags to handle gracefully
        operation_context: Context dict that will be updated with results

    Raises:
        NotFoundError: If the insert referenced a row that does not exist
        IntegrityError: For any violation not listed in ``expected_tags``

    Usage:
        context = {"operation": "form_soulmate", "entity_id": pair.lock_key}
        with expected_conflict_savepoint(session, {ExpectedIntegrityTag.SOULMATE_PAIR_EXISTS}, context):
            session.add(Soulmate(...))
            session.flush()

        if "integrity_tag" in context:
            # Operation hit the expected constraint - handle gracefully
            ...
    """
    try:
        with session.begin_nested():
            yield
    except IntegrityError as exc:
        # The savepoint has been rolled back; the outer transaction is intact
        tag = classify_integrity_error(exc)

        if tag and tag in expected_tags:
            operation_context["integrity_tag"] = tag
            operation_context["violation_result"] = get_violation_result(tag)
            log_expected_violation(tag, exc, operation_context)

        elif is_foreign_key_violation(exc):
            raise NotFoundError(
                f"Referenced row does not exist for {operation_context.get('operation', 'insert')}",
                context={
                    k: v
                    for k, v in operation_context.items()
                    if k in ("operation", "entity_type", "entity_id")
                },
            ) from exc

        else:
            log_unexpected_violation(exc, operation_context)
            raise
