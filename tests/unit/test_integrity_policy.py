"""Unit tests for integrity error classification."""

from types import SimpleNamespace

import pytest
from sqlalchemy.exc import IntegrityError

from bookmate.store.integrity_policy import (
    ExpectedIntegrityTag,
    IntegrityViolationResult,
    classify_integrity_error,
    extract_constraint_name,
    get_violation_result,
    is_foreign_key_violation,
    is_unique_violation,
)


class FakePgError(Exception):
    """Stand-in for a psycopg2 error carrying SQLSTATE and diagnostics."""

    def __init__(self, message, pgcode, constraint_name=None):
        super().__init__(message)
        self.pgcode = pgcode
        self.diag = SimpleNamespace(constraint_name=constraint_name)


def sqlite_error(message: str) -> IntegrityError:
    return IntegrityError("INSERT ...", {}, Exception(message))


@pytest.mark.unit
class TestSQLiteClassification:
    """SQLite reports violated columns in the message."""

    @pytest.mark.parametrize(
        "message,tag",
        [
            (
                "UNIQUE constraint failed: profile_interests.interested_user_id, profile_interests.target_user_id",
                ExpectedIntegrityTag.PROFILE_INTEREST_DUPLICATE,
            ),
            (
                "UNIQUE constraint failed: answer_interests.interested_user_id, answer_interests.target_answer_id",
                ExpectedIntegrityTag.ANSWER_INTEREST_DUPLICATE,
            ),
            (
                "UNIQUE constraint failed: soullink_requests.sender_id, soullink_requests.receiver_id",
                ExpectedIntegrityTag.SOULLINK_REQUEST_DUPLICATE,
            ),
            (
                "UNIQUE constraint failed: soulmates.user_a_id, soulmates.user_b_id",
                ExpectedIntegrityTag.SOULMATE_PAIR_EXISTS,
            ),
            ("UNIQUE constraint failed: users.email", ExpectedIntegrityTag.USER_EMAIL_DUPLICATE),
            ("UNIQUE constraint failed: books.isbn", ExpectedIntegrityTag.BOOK_ISBN_DUPLICATE),
        ],
    )
    def test_expected_unique_violations(self, message, tag):
        exc = sqlite_error(message)

        assert is_unique_violation(exc)
        assert not is_foreign_key_violation(exc)
        assert classify_integrity_error(exc) is tag

    def test_foreign_key_violation(self):
        exc = sqlite_error("FOREIGN KEY constraint failed")

        assert is_foreign_key_violation(exc)
        assert not is_unique_violation(exc)
        assert classify_integrity_error(exc) is None

    def test_unknown_unique_constraint_is_unexpected(self):
        exc = sqlite_error("UNIQUE constraint failed: notifications.id")
        assert extract_constraint_name(exc) == "notifications.id"
        assert classify_integrity_error(exc) is None

    def test_check_constraint_is_unexpected(self):
        exc = sqlite_error("CHECK constraint failed: ck_soulmate_canonical_order")
        assert not is_unique_violation(exc)
        assert classify_integrity_error(exc) is None


@pytest.mark.unit
class TestPostgresClassification:
    """PostgreSQL reports SQLSTATE and the constraint name."""

    def test_unique_violation_by_constraint_name(self):
        orig = FakePgError("duplicate key value", "23505", "uq_soulmate_pair")
        exc = IntegrityError("INSERT ...", {}, orig)

        assert is_unique_violation(exc)
        assert extract_constraint_name(exc) == "uq_soulmate_pair"
        assert classify_integrity_error(exc) is ExpectedIntegrityTag.SOULMATE_PAIR_EXISTS

    def test_foreign_key_violation_by_sqlstate(self):
        orig = FakePgError("insert violates foreign key", "23503", "profile_interests_target_user_id_fkey")
        exc = IntegrityError("INSERT ...", {}, orig)

        assert is_foreign_key_violation(exc)
        assert classify_integrity_error(exc) is None

    def test_constraint_name_from_message(self):
        orig = Exception('duplicate key value violates unique constraint "users_email_key"')
        exc = IntegrityError("INSERT ...", {}, orig)

        assert extract_constraint_name(exc) == "users_email_key"
        assert classify_integrity_error(exc) is ExpectedIntegrityTag.USER_EMAIL_DUPLICATE


@pytest.mark.unit
class TestViolationResults:
    """Existing pairs count as success, duplicate edges as rejections."""

    def test_soulmate_pair_already_exists(self):
        result = get_violation_result(ExpectedIntegrityTag.SOULMATE_PAIR_EXISTS)
        assert result is IntegrityViolationResult.ALREADY_EXISTS

    @pytest.mark.parametrize(
        "tag",
        [
            ExpectedIntegrityTag.PROFILE_INTEREST_DUPLICATE,
            ExpectedIntegrityTag.SOULLINK_REQUEST_DUPLICATE,
            ExpectedIntegrityTag.BOOKSHELF_ENTRY_DUPLICATE,
        ],
    )
    def test_duplicates_rejected(self, tag):
        assert get_violation_result(tag) is IntegrityViolationResult.DUPLICATE_REJECTED
