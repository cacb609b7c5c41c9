"""SQLAlchemy concrete implementations of repository interfaces.

Every write runs inside :func:`transaction_scope`, so a failed write never
leaves the session holding an open transaction.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import delete, desc, or_
from sqlalchemy.orm import Session

from .interfaces import (
    AnswerRepository,
    BookRepository,
    BookshelfRepository,
    QuestionRepository,
    RepositoryContainer,
    UserRepository,
)
from ..core.errors import DuplicateEntityError, NotFoundError
from ..db.models import Answer, Book, BookshelfEntry, Question, User
from ..store.integrity_policy import ExpectedIntegrityTag
from ..store.savepoints import expected_conflict_savepoint
from ..store.transactions import transaction_scope
from ..utils.logging_config import get_logger

logger = get_logger('database')

PROFILE_FIELDS = ("name", "image", "bio")
BOOK_FIELDS = ("title", "author", "publisher", "pubdate", "image", "link", "description")


class BaseSQLAlchemyRepository:
    """Base SQLAlchemy repository implementation."""

    def __init__(self, session: Session):
        self._session = session

    def save(self, entity) -> None:
        """Save an entity to the repository."""
        self._session.add(entity)

    def delete(self, entity) -> None:
        """Delete an entity from the repository."""
        self._session.delete(entity)

    def commit(self) -> None:
        """Commit the current transaction."""
        self._session.commit()

    def rollback(self) -> None:
        """Rollback the current transaction."""
        self._session.rollback()

    def _duplicate(self, entity_type: str, entity_id: str) -> DuplicateEntityError:
        return DuplicateEntityError(
            f"{entity_type} {entity_id} already exists",
            context={"entity_type": entity_type, "entity_id": entity_id},
        )

    def _insert_unique(self, entity, tag: Optional[ExpectedIntegrityTag], entity_type: str, entity_id: str):
        """
        Flush ``entity`` inside a savepoint of the current write unit.

        Raises:
            DuplicateEntityError: The insert hit the unique constraint ``tag``
            NotFoundError: The insert referenced a row that does not exist
        """
        context = {
            "operation": f"create_{entity_type}",
            "entity_type": entity_type,
            "entity_id": entity_id,
        }
        expected = {tag} if tag is not None else set()
        with expected_conflict_savepoint(self._session, expected, context):
            self.save(entity)
            self._session.flush()

        if "integrity_tag" in context:
            raise self._duplicate(entity_type, entity_id)

    def _create(self, entity, tag: Optional[ExpectedIntegrityTag], entity_type: str, entity_id: str):
        with transaction_scope(self._session, f"create_{entity_type}"):
            self._insert_unique(entity, tag, entity_type, entity_id)
        self._session.refresh(entity)
        return entity

    def _update(self, model, key: str, fields: dict, operation: str):
        """Apply ``fields`` to the row with primary key ``key`` and commit."""
        with transaction_scope(self._session, operation):
            entity = self._session.get(model, key, populate_existing=True)
            if entity is None:
                raise NotFoundError(
                    f"{model.__name__} {key} not found",
                    context={"operation": operation, "entity_id": key},
                )
            for name, value in fields.items():
                setattr(entity, name, value)
        self._session.refresh(entity)
        return entity

    def _delete_where(self, model, *criteria) -> bool:
        with transaction_scope(self._session, f"delete_{model.__tablename__}"):
            # Bulk delete so the database's ON DELETE CASCADE does the fan-out
            result = self._session.execute(delete(model).where(*criteria))
        return result.rowcount > 0


class SQLAlchemyUserRepository(BaseSQLAlchemyRepository, UserRepository):
    """SQLAlchemy implementation of UserRepository."""

    def get_by_id(self, user_id: str) -> Optional[User]:
        """Get a user by ID."""
        return self._session.query(User).filter(User.id == user_id).first()

    def get_by_email(self, email: str) -> Optional[User]:
        """Get a user by e-mail address."""
        return self._session.query(User).filter(User.email == email).first()

    def create(
        self,
        email: str,
        password_hash: str,
        name: Optional[str] = None,
        image: Optional[str] = None,
        bio: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> User:
        """Create a new user."""
        user = User(
            email=email,
            password_hash=password_hash,
            name=name,
            image=image,
            bio=bio,
        )
        if user_id is not None:
            user.id = user_id

        with transaction_scope(self._session, "create_user"):
            if user_id is not None and self._session.get(User, user_id, populate_existing=True) is not None:
                raise self._duplicate("user", user_id)
            self._insert_unique(user, ExpectedIntegrityTag.USER_EMAIL_DUPLICATE, "user", email)
        self._session.refresh(user)
        return user

    def update_profile(self, user_id: str, **fields) -> User:
        """Update name, image or bio."""
        unknown = set(fields) - set(PROFILE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update user fields: {sorted(unknown)}")
        return self._update(User, user_id, fields, "update_profile")

    def update_password_hash(self, user_id: str, password_hash: str) -> User:
        """Replace a user's stored password hash."""
        return self._update(User, user_id, {"password_hash": password_hash}, "update_password_hash")

    def touch_last_login(self, user_id: str) -> None:
        """Record a login time."""
        with transaction_scope(self._session, "touch_last_login"):
            updated = (
                self._session.query(User)
                .filter(User.id == user_id)
                .update({User.last_login_at: datetime.now(timezone.utc)})
            )
            if not updated:
                raise NotFoundError(f"User {user_id} not found", context={"user_id": user_id})

    def delete_by_id(self, user_id: str) -> bool:
        """Delete a user and everything that cascades from it."""
        deleted = self._delete_where(User, User.id == user_id)
        if deleted:
            logger.info("User deleted", extra={"user_id": user_id})
        return deleted

    def list_all(self) -> List[User]:
        """Get all users."""
        return self._session.query(User).order_by(desc(User.created_at)).all()


class SQLAlchemyBookRepository(BaseSQLAlchemyRepository, BookRepository):
    """SQLAlchemy implementation of BookRepository."""

    def get_by_isbn(self, isbn: str) -> Optional[Book]:
        """Get a book by ISBN."""
        return self._session.query(Book).filter(Book.isbn == isbn).first()

    def create(
        self,
        isbn: str,
        title: str,
        author: str,
        publisher: str,
        pubdate: Optional[str] = None,
        image: Optional[str] = None,
        link: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Book:
        """Create a new book."""
        book = Book(
            isbn=isbn,
            title=title,
            author=author,
            publisher=publisher,
            pubdate=pubdate,
            image=image,
            link=link,
            description=description,
        )
        with transaction_scope(self._session, "create_book"):
            # ISBN is the primary key; a second instance with the same identity
            # must never reach the session
            if self.get_by_isbn(isbn) is not None:
                raise self._duplicate("book", isbn)
            self._insert_unique(book, ExpectedIntegrityTag.BOOK_ISBN_DUPLICATE, "book", isbn)
        self._session.refresh(book)
        return book

    def update(self, isbn: str, **fields) -> Book:
        """Update descriptive fields of a book. The ISBN itself is immutable."""
        unknown = set(fields) - set(BOOK_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update book fields: {sorted(unknown)}")
        return self._update(Book, isbn, fields, "update_book")

    def delete_by_isbn(self, isbn: str) -> bool:
        """Delete a book and its questions, answers and shelf entries."""
        return self._delete_where(Book, Book.isbn == isbn)

    def search(self, text: str) -> List[Book]:
        """Find books whose title or author contains ``text``."""
        pattern = f"%{text}%"
        return (
            self._session.query(Book)
            .filter(or_(Book.title.ilike(pattern), Book.author.ilike(pattern)))
            .order_by(Book.title)
            .all()
        )


class SQLAlchemyBookshelfRepository(BaseSQLAlchemyRepository, BookshelfRepository):
    """SQLAlchemy implementation of BookshelfRepository."""

    def add(self, user_id: str, book_isbn: str) -> BookshelfEntry:
        """Put a book on a user's shelf."""
        entry = BookshelfEntry(user_id=user_id, book_isbn=book_isbn)
        return self._create(
            entry,
            ExpectedIntegrityTag.BOOKSHELF_ENTRY_DUPLICATE,
            "bookshelf_entry",
            f"{user_id}:{book_isbn}",
        )

    def remove(self, user_id: str, book_isbn: str) -> bool:
        """Take a book off a user's shelf."""
        return self._delete_where(
            BookshelfEntry,
            BookshelfEntry.user_id == user_id,
            BookshelfEntry.book_isbn == book_isbn,
        )

    def contains(self, user_id: str, book_isbn: str) -> bool:
        """Check whether a book is on a user's shelf."""
        return (
            self._session.query(BookshelfEntry.id)
            .filter(
                BookshelfEntry.user_id == user_id,
                BookshelfEntry.book_isbn == book_isbn,
            )
            .first()
            is not None
        )

    def list_books(self, user_id: str) -> List[Book]:
        """Books on a user's shelf, most recently added first."""
        return (
            self._session.query(Book)
            .join(BookshelfEntry, BookshelfEntry.book_isbn == Book.isbn)
            .filter(BookshelfEntry.user_id == user_id)
            .order_by(desc(BookshelfEntry.created_at))
            .all()
        )


class SQLAlchemyQuestionRepository(BaseSQLAlchemyRepository, QuestionRepository):
    """SQLAlchemy implementation of QuestionRepository."""

    def get_by_id(self, question_id: str) -> Optional[Question]:
        """Get a question by ID."""
        return self._session.query(Question).filter(Question.id == question_id).first()

    def get_by_book(self, book_isbn: str) -> List[Question]:
        """Get all questions about a book."""
        return (
            self._session.query(Question)
            .filter(Question.book_isbn == book_isbn)
            .order_by(Question.created_at)
            .all()
        )

    def create(self, book_isbn: str, content: str) -> Question:
        """Create a new question."""
        question = Question(book_isbn=book_isbn, content=content)
        return self._create(question, None, "question", book_isbn)

    def update_content(self, question_id: str, content: str) -> Question:
        """Replace a question's text."""
        return self._update(Question, question_id, {"content": content}, "update_question")

    def delete_by_id(self, question_id: str) -> bool:
        """Delete a question and its answers."""
        return self._delete_where(Question, Question.id == question_id)


class SQLAlchemyAnswerRepository(BaseSQLAlchemyRepository, AnswerRepository):
    """SQLAlchemy implementation of AnswerRepository."""

    def get_by_id(self, answer_id: str) -> Optional[Answer]:
        """Get an answer by ID."""
        return self._session.query(Answer).filter(Answer.id == answer_id).first()

    def get_by_question(self, question_id: str) -> List[Answer]:
        """Get all answers to a question."""
        return (
            self._session.query(Answer)
            .filter(Answer.question_id == question_id)
            .order_by(Answer.created_at)
            .all()
        )

    def get_by_user(self, user_id: str) -> List[Answer]:
        """Get all answers written by a user."""
        return (
            self._session.query(Answer)
            .filter(Answer.user_id == user_id)
            .order_by(desc(Answer.created_at))
            .all()
        )

    def create(self, user_id: str, question_id: str, content: str) -> Answer:
        """Create a new answer."""
        answer = Answer(user_id=user_id, question_id=question_id, content=content)
        return self._create(answer, None, "answer", question_id)

    def update_content(self, answer_id: str, content: str) -> Answer:
        """Replace an answer's text."""
        return self._update(Answer, answer_id, {"content": content}, "update_answer")

    def delete_by_id(self, answer_id: str) -> bool:
        """Delete an answer and the interest shown in it."""
        return self._delete_where(Answer, Answer.id == answer_id)


def build_repository_container(session: Session) -> RepositoryContainer:
    """Create a repository container with SQLAlchemy implementations."""
    return RepositoryContainer(
        user_repo=SQLAlchemyUserRepository(session),
        book_repo=SQLAlchemyBookRepository(session),
        bookshelf_repo=SQLAlchemyBookshelfRepository(session),
        question_repo=SQLAlchemyQuestionRepository(session),
        answer_repo=SQLAlchemyAnswerRepository(session),
    )
