"""
Integrity policy for classifying and handling expected IntegrityError exceptions.

This module distinguishes expected database constraint violations (a repeated
interest edge, a soulmate pair that already exists) from referential failures
(an endpoint that vanished) and from unexpected integrity errors that should be
treated as actual failures.
"""

from enum import Enum
from typing import Optional, Dict, Any
from sqlalchemy.exc import IntegrityError  # type: ignore
from ..utils.logging_config import get_logger


logger = get_logger('database')


class ExpectedIntegrityTag(Enum):
    """Tags for expected integrity constraint violations."""

    PROFILE_INTEREST_DUPLICATE = "profile_interest_duplicate"
    ANSWER_INTEREST_DUPLICATE = "answer_interest_duplicate"
    SOULLINK_REQUEST_DUPLICATE = "soullink_request_duplicate"
    SOULMATE_PAIR_EXISTS = "soulmate_pair_exists"
    BOOKSHELF_ENTRY_DUPLICATE = "bookshelf_entry_duplicate"
    USER_EMAIL_DUPLICATE = "user_email_duplicate"
    BOOK_ISBN_DUPLICATE = "book_isbn_duplicate"


class IntegrityViolationResult(Enum):
    """Result of handling an integrity violation."""

    ALREADY_EXISTS = "already_exists"
    DUPLICATE_REJECTED = "duplicate_rejected"


# Map constraint identifiers to their expected tags. SQLite reports the
# column list ("table.col, table.col"); PostgreSQL reports the constraint name.
CONSTRAINT_TAG_MAP: Dict[str, ExpectedIntegrityTag] = {
    "profile_interests.interested_user_id, profile_interests.target_user_id": ExpectedIntegrityTag.PROFILE_INTEREST_DUPLICATE,
    "uq_profile_interest_edge": ExpectedIntegrityTag.PROFILE_INTEREST_DUPLICATE,
    "answer_interests.interested_user_id, answer_interests.target_answer_id": ExpectedIntegrityTag.ANSWER_INTEREST_DUPLICATE,
    "uq_answer_interest_edge": ExpectedIntegrityTag.ANSWER_INTEREST_DUPLICATE,
    "soullink_requests.sender_id, soullink_requests.receiver_id": ExpectedIntegrityTag.SOULLINK_REQUEST_DUPLICATE,
    "uq_soullink_request_edge": ExpectedIntegrityTag.SOULLINK_REQUEST_DUPLICATE,
    "soulmates.user_a_id, soulmates.user_b_id": ExpectedIntegrityTag.SOULMATE_PAIR_EXISTS,
    "uq_soulmate_pair": ExpectedIntegrityTag.SOULMATE_PAIR_EXISTS,
    "bookshelf_entries.user_id, bookshelf_entries.book_isbn": ExpectedIntegrityTag.BOOKSHELF_ENTRY_DUPLICATE,
    "uq_bookshelf_user_book": ExpectedIntegrityTag.BOOKSHELF_ENTRY_DUPLICATE,
    "users.email": ExpectedIntegrityTag.USER_EMAIL_DUPLICATE,
    "users_email_key": ExpectedIntegrityTag.USER_EMAIL_DUPLICATE,
    "books.isbn": ExpectedIntegrityTag.BOOK_ISBN_DUPLICATE,
    "books_pkey": ExpectedIntegrityTag.BOOK_ISBN_DUPLICATE,
}

# PostgreSQL SQLSTATE codes
_PG_UNIQUE_VIOLATION = "23505"
_PG_FOREIGN_KEY_VIOLATION = "23503"


def _error_message(exc: IntegrityError) -> str:
    return str(exc.orig) if exc.orig else str(exc)


def _pgcode(exc: IntegrityError) -> Optional[str]:
    return getattr(exc.orig, "pgcode", None)


def is_unique_violation(exc: IntegrityError) -> bool:
    """Check if the IntegrityError is a unique constraint violation."""
    if _pgcode(exc) == _PG_UNIQUE_VIOLATION:
        return True
    error_msg = _error_message(exc)
    return "UNIQUE constraint failed" in error_msg or "duplicate key value" in error_msg


def is_foreign_key_violation(exc: IntegrityError) -> bool:
    """Check if the IntegrityError is a foreign key violation (missing parent row)."""
    if _pgcode(exc) == _PG_FOREIGN_KEY_VIOLATION:
        return True
    error_msg = _error_message(exc)
    return "FOREIGN KEY constraint failed" in error_msg or "violates foreign key" in error_msg


def extract_constraint_name(exc: IntegrityError) -> Optional[str]:
    """Extract constraint name from IntegrityError."""
    diag = getattr(exc.orig, "diag", None)
    constraint_name = getattr(diag, "constraint_name", None)
    if constraint_name:
        return constraint_name

    error_msg = _error_message(exc)

    # SQLite format: "UNIQUE constraint failed: table.column1, table.column2"
    if "UNIQUE constraint failed:" in error_msg:
        return error_msg.split("UNIQUE constraint failed:", 1)[1].strip()

    # PostgreSQL format without diagnostics: '... unique constraint "name"'
    if 'constraint "' in error_msg:
        return error_msg.split('constraint "', 1)[1].split('"', 1)[0]

    return None


def classify_integrity_error(exc: IntegrityError) -> Optional[ExpectedIntegrityTag]:
    """
    Classify an IntegrityError to determine if it's an expected constraint violation.

    Args:
        exc: The IntegrityError exception to classify

    Returns:
        ExpectedIntegrityTag if this is an expected violation, None otherwise
    """
    if not is_unique_violation(exc):
        return None

    constraint_name = extract_constraint_name(exc)
    if constraint_name is None:
        return None

    return CONSTRAINT_TAG_MAP.get(constraint_name)


def get_violation_result(tag: ExpectedIntegrityTag) -> IntegrityViolationResult:
    """Get the result type for a given integrity tag."""
    if tag is ExpectedIntegrityTag.SOULMATE_PAIR_EXISTS:
        return IntegrityViolationResult.ALREADY_EXISTS
    return IntegrityViolationResult.DUPLICATE_REJECTED


def log_expected_violation(
    tag: ExpectedIntegrityTag, exc: IntegrityError, context: Dict[str, Any]
) -> None:
    """
    Log an expected integrity violation at INFO level with structured context.

    Args:
        tag: The classification tag for this violation
        exc: The original IntegrityError
        context: Additional context for logging (operation, entity IDs, etc.)
    """
    logger.info(
        "Expected integrity violation",
        extra={
            "integrity_tag": tag.value,
            "constraint_name": extract_constraint_name(exc),
            "operation": context.get("operation", "unknown"),
            "entity_type": context.get("entity_type", "unknown"),
            "entity_id": context.get("entity_id"),
            "outcome": get_violation_result(tag).value,
            "component": "reciprocity_engine",
        },
    )


def log_unexpected_violation(exc: IntegrityError, context: Dict[str, Any]) -> None:
    """
    Log an unexpected integrity violation at ERROR level.

    Args:
        exc: The IntegrityError that was not expected
        context: Additional context for logging
    """
    logger.error(
        "Unexpected integrity violation",
        extra={
            "constraint_name": extract_constraint_name(exc),
            "operation": context.get("operation", "unknown"),
            "entity_type": context.get("entity_type", "unknown"),
            "entity_id": context.get("entity_id"),
            "error_message": str(exc),
            "component": "reciprocity_engine",
        },
        exc_info=exc,
    )
