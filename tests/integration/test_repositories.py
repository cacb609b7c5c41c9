"""Integration tests for the SQLAlchemy repositories."""

import pytest

from bookmate.core.enums import InterestKind
from bookmate.core.errors import DuplicateEntityError, NotFoundError
from bookmate.db.models import BookshelfEntry, Notification
from bookmate.repositories.interfaces import RepositoryContainer
from bookmate.repositories.sqlalchemy_impl import (
    SQLAlchemyUserRepository,
    build_repository_container,
)
from bookmate.store.reciprocity import ReciprocityDetector


@pytest.fixture
def repos(db_session) -> RepositoryContainer:
    return build_repository_container(db_session)


@pytest.mark.integration
class TestUserRepository:
    """Test user CRUD."""

    def test_create_and_get(self, repos):
        user = repos.user.create("ann@example.com", "hash", name="Ann")

        assert repos.user.get_by_id(user.id).email == "ann@example.com"
        assert repos.user.get_by_email("ann@example.com").id == user.id
        assert repos.user.get_by_email("nobody@example.com") is None
        assert user.display_name == "Ann"

    def test_explicit_id(self, repos):
        user = repos.user.create("ann@example.com", "hash", user_id="a1")
        assert user.id == "a1"

        with pytest.raises(DuplicateEntityError):
            repos.user.create("other@example.com", "hash", user_id="a1")

    def test_duplicate_email(self, repos):
        repos.user.create("ann@example.com", "hash")

        with pytest.raises(DuplicateEntityError) as exc_info:
            repos.user.create("ann@example.com", "hash")

        assert exc_info.value.context["entity_type"] == "user"
        assert len(repos.user.list_all()) == 1

    def test_update_profile(self, repos):
        user = repos.user.create("ann@example.com", "hash")

        updated = repos.user.update_profile(user.id, name="Ann", bio="Reads a lot")
        assert updated.name == "Ann"
        assert updated.bio == "Reads a lot"

        with pytest.raises(ValueError):
            repos.user.update_profile(user.id, email="new@example.com")
        with pytest.raises(NotFoundError):
            repos.user.update_profile("ghost", name="x")

    def test_touch_last_login(self, repos):
        user = repos.user.create("ann@example.com", "hash")
        assert user.last_login_at is None

        repos.user.touch_last_login(user.id)
        assert repos.user.get_by_id(user.id).last_login_at is not None

        with pytest.raises(NotFoundError):
            repos.user.touch_last_login("ghost")

    def test_delete_cascades_notifications(self, db_session, repos):
        user = repos.user.create("ann@example.com", "hash")
        db_session.add(Notification(user_id=user.id, type="SOULMATE_FORMED"))
        db_session.commit()

        assert repos.user.delete_by_id(user.id) is True
        assert repos.user.delete_by_id(user.id) is False
        assert db_session.query(Notification).count() == 0


@pytest.mark.integration
class TestBookRepository:
    """Test book CRUD keyed by ISBN."""

    def test_create_and_search(self, repos):
        repos.book.create("9780156012195", "The Little Prince", "Antoine de Saint-Exupery", "Harcourt")
        repos.book.create("9780141439518", "Pride and Prejudice", "Jane Austen", "Penguin")

        assert repos.book.get_by_isbn("9780156012195").title == "The Little Prince"
        assert [b.isbn for b in repos.book.search("austen")] == ["9780141439518"]
        assert [b.isbn for b in repos.book.search("Prince")] == ["9780156012195"]

    def test_duplicate_isbn(self, repos):
        repos.book.create("9780156012195", "The Little Prince", "Antoine de Saint-Exupery", "Harcourt")

        with pytest.raises(DuplicateEntityError):
            repos.book.create("9780156012195", "Another", "Someone", "Elsewhere")

    def test_delete_book_cascades(self, repos):
        user = repos.user.create("ann@example.com", "hash")
        book = repos.book.create("9780156012195", "The Little Prince", "Antoine de Saint-Exupery", "Harcourt")
        question = repos.question.create(book.isbn, "What is essential?")
        repos.answer.create(user.id, question.id, "Invisible things")
        repos.bookshelf.add(user.id, book.isbn)

        assert repos.book.delete_by_isbn(book.isbn) is True

        assert repos.question.get_by_book(book.isbn) == []
        assert repos.answer.get_by_user(user.id) == []
        assert repos.bookshelf.list_books(user.id) == []


@pytest.mark.integration
class TestBookshelfRepository:
    """Test shelf membership."""

    def test_add_contains_remove(self, db_session, repos):
        user = repos.user.create("ann@example.com", "hash")
        book = repos.book.create("9780156012195", "The Little Prince", "Antoine de Saint-Exupery", "Harcourt")

        repos.bookshelf.add(user.id, book.isbn)
        assert repos.bookshelf.contains(user.id, book.isbn)
        assert [b.isbn for b in repos.bookshelf.list_books(user.id)] == [book.isbn]

        with pytest.raises(DuplicateEntityError):
            repos.bookshelf.add(user.id, book.isbn)
        assert db_session.query(BookshelfEntry).count() == 1

        assert repos.bookshelf.remove(user.id, book.isbn) is True
        assert not repos.bookshelf.contains(user.id, book.isbn)

    def test_missing_book(self, repos):
        user = repos.user.create("ann@example.com", "hash")
        with pytest.raises(NotFoundError):
            repos.bookshelf.add(user.id, "0000000000")


@pytest.mark.integration
class TestQuestionAndAnswerRepositories:
    """Test questions and answers."""

    def test_question_requires_book(self, repos):
        with pytest.raises(NotFoundError):
            repos.question.create("0000000000", "Orphan question?")

    def test_answers(self, repos):
        user = repos.user.create("ann@example.com", "hash")
        book = repos.book.create("9780156012195", "The Little Prince", "Antoine de Saint-Exupery", "Harcourt")
        question = repos.question.create(book.isbn, "What is essential?")

        answer = repos.answer.create(user.id, question.id, "Invisible things")
        assert [a.id for a in repos.answer.get_by_question(question.id)] == [answer.id]

        updated = repos.answer.update_content(answer.id, "What the heart sees")
        assert updated.content == "What the heart sees"

        assert repos.question.delete_by_id(question.id) is True
        assert repos.answer.get_by_user(user.id) == []

        with pytest.raises(NotFoundError):
            repos.answer.update_content(answer.id, "gone")

    def test_answer_requires_question(self, repos):
        user = repos.user.create("ann@example.com", "hash")
        with pytest.raises(NotFoundError):
            repos.answer.create(user.id, "no-such-question", "text")


def test_container_wires_sqlalchemy_repositories(db_session):
    container = build_repository_container(db_session)
    assert isinstance(container.user, SQLAlchemyUserRepository)


@pytest.mark.integration
class TestRepositoryUpdates:
    """Test in-place updates of users, books and questions."""

    def test_update_password_hash(self, repos):
        user = repos.user.create("ann@example.com", "old-hash")

        updated = repos.user.update_password_hash(user.id, "new-hash")

        assert updated.password_hash == "new-hash"
        assert repos.user.get_by_email("ann@example.com").password_hash == "new-hash"
        with pytest.raises(NotFoundError):
            repos.user.update_password_hash("ghost", "hash")

    def test_update_book_title(self, repos):
        repos.book.create("9780156012195", "The Little Prince", "Antoine de Saint-Exupery", "Harcourt")

        updated = repos.book.update("9780156012195", title="Le Petit Prince", pubdate="1943")

        assert updated.title == "Le Petit Prince"
        assert repos.book.get_by_isbn("9780156012195").pubdate == "1943"

        with pytest.raises(ValueError):
            repos.book.update("9780156012195", isbn="0000000000")
        with pytest.raises(NotFoundError):
            repos.book.update("0000000000", title="Missing")

    def test_update_question_content(self, repos):
        book = repos.book.create("9780156012195", "The Little Prince", "Antoine de Saint-Exupery", "Harcourt")
        question = repos.question.create(book.isbn, "What is essential?")

        updated = repos.question.update_content(question.id, "What is invisible to the eye?")

        assert updated.content == "What is invisible to the eye?"
        assert [q.content for q in repos.question.get_by_book(book.isbn)] == [
            "What is invisible to the eye?"
        ]
        with pytest.raises(NotFoundError):
            repos.question.update_content("no-such-question", "text")


@pytest.mark.integration
@pytest.mark.concurrency
class TestRepositoryLocking:
    """Repository sessions never keep other writers waiting."""

    def test_failed_create_releases_write_lock(
        self, db_session, session_factory, repos, make_user, engine_config
    ):
        make_user("a1")
        make_user("a2")
        repos.user.create("ann@example.com", "hash")

        with pytest.raises(DuplicateEntityError):
            repos.user.create("ann@example.com", "hash")
        assert not db_session.in_transaction()

        other = session_factory()
        try:
            result = ReciprocityDetector(other, engine_config).submit_interest(
                "a1", "a2", InterestKind.PROFILE_INTEREST
            )
        finally:
            other.close()

        assert result.mutual is False

    def test_open_reader_does_not_block_writer(
        self, session_factory, make_user, engine_config
    ):
        make_user("a1")
        make_user("a2")

        reader = session_factory()
        writer = session_factory()
        try:
            assert SQLAlchemyUserRepository(reader).get_by_id("a1") is not None
            assert reader.in_transaction()

            result = ReciprocityDetector(writer, engine_config).submit_interest(
                "a1", "a2", InterestKind.PROFILE_INTEREST
            )
            assert result.mutual is False

            # The reader's transaction is still open and still reads
            assert SQLAlchemyUserRepository(reader).get_by_id("a2") is not None
        finally:
            reader.close()
            writer.close()
