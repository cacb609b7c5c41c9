"""Abstract repository interfaces for data access layer."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..db.models import Answer, Book, BookshelfEntry, Question, User


class BaseRepository(ABC):
    """Base repository interface with common operations."""

    @abstractmethod
    def save(self, entity) -> None:
        """Save an entity to the repository."""
        pass

    @abstractmethod
    def delete(self, entity) -> None:
        """Delete an entity from the repository."""
        pass

    @abstractmethod
    def commit(self) -> None:
        """Commit the current transaction."""
        pass

    @abstractmethod
    def rollback(self) -> None:
        """Rollback the current transaction."""
        pass


class UserRepository(BaseRepository):
    """Repository interface for User entities."""

    @abstractmethod
    def get_by_id(self, user_id: str) -> Optional[User]:
        """Get a user by ID."""
        pass

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[User]:
        """Get a user by e-mail address."""
        pass

    @abstractmethod
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
        pass

    @abstractmethod
    def update_profile(self, user_id: str, **fields) -> User:
        """Update name, image or bio."""
        pass

    @abstractmethod
    def update_password_hash(self, user_id: str, password_hash: str) -> User:
        """Replace a user's stored password hash."""
        pass

    @abstractmethod
    def touch_last_login(self, user_id: str) -> None:
        """Record a login time."""
        pass

    @abstractmethod
    def delete_by_id(self, user_id: str) -> bool:
        """Delete a user and everything that cascades from it."""
        pass

    @abstractmethod
    def list_all(self) -> List[User]:
        """Get all users."""
        pass


class BookRepository(BaseRepository):
    """Repository interface for Book entities."""

    @abstractmethod
    def get_by_isbn(self, isbn: str) -> Optional[Book]:
        """Get a book by ISBN."""
        pass

    @abstractmethod
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
        pass

    @abstractmethod
    def update(self, isbn: str, **fields) -> Book:
        """Update descriptive fields of a book."""
        pass

    @abstractmethod
    def delete_by_isbn(self, isbn: str) -> bool:
        """Delete a book and its questions, answers and shelf entries."""
        pass

    @abstractmethod
    def search(self, text: str) -> List[Book]:
        """Find books whose title or author contains ``text``."""
        pass


class BookshelfRepository(BaseRepository):
    """Repository interface for bookshelf entries."""

    @abstractmethod
    def add(self, user_id: str, book_isbn: str) -> BookshelfEntry:
        """Put a book on a user's shelf."""
        pass

    @abstractmethod
    def remove(self, user_id: str, book_isbn: str) -> bool:
        """Take a book off a user's shelf."""
        pass

    @abstractmethod
    def contains(self, user_id: str, book_isbn: str) -> bool:
        """Check whether a book is on a user's shelf."""
        pass

    @abstractmethod
    def list_books(self, user_id: str) -> List[Book]:
        """Books on a user's shelf, most recently added first."""
        pass


class QuestionRepository(BaseRepository):
    """Repository interface for Question entities."""

    @abstractmethod
    def get_by_id(self, question_id: str) -> Optional[Question]:
        """Get a question by ID."""
        pass

    @abstractmethod
    def get_by_book(self, book_isbn: str) -> List[Question]:
        """Get all questions about a book."""
        pass

    @abstractmethod
    def create(self, book_isbn: str, content: str) -> Question:
        """Create a new question."""
        pass

    @abstractmethod
    def update_content(self, question_id: str, content: str) -> Question:
        """Replace a question's text."""
        pass

    @abstractmethod
    def delete_by_id(self, question_id: str) -> bool:
        """Delete a question and its answers."""
        pass


class AnswerRepository(BaseRepository):
    """Repository interface for Answer entities."""

    @abstractmethod
    def get_by_id(self, answer_id: str) -> Optional[Answer]:
        """Get an answer by ID."""
        pass

    @abstractmethod
    def get_by_question(self, question_id: str) -> List[Answer]:
        """Get all answers to a question."""
        pass

    @abstractmethod
    def get_by_user(self, user_id: str) -> List[Answer]:
        """Get all answers written by a user."""
        pass

    @abstractmethod
    def create(self, user_id: str, question_id: str, content: str) -> Answer:
        """Create a new answer."""
        pass

    @abstractmethod
    def update_content(self, answer_id: str, content: str) -> Answer:
        """Replace an answer's text."""
        pass

    @abstractmethod
    def delete_by_id(self, answer_id: str) -> bool:
        """Delete an answer and the interest shown in it."""
        pass


class RepositoryContainer:
    """Container for all repository interfaces to support dependency injection."""

    def __init__(
        self,
        user_repo: UserRepository,
        book_repo: BookRepository,
        bookshelf_repo: BookshelfRepository,
        question_repo: QuestionRepository,
        answer_repo: AnswerRepository,
    ):
        self.user = user_repo
        self.book = book_repo
        self.bookshelf = bookshelf_repo
        self.question = question_repo
        self.answer = answer_repo
