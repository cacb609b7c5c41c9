"""SQLAlchemy models for Bookmate.

Referential topology: every edge row (bookshelf entries, interests, soullink
requests, soulmate pairs) is owned by both of its endpoints and is removed by
``ON DELETE CASCADE`` when either goes away. Notifications are owned only by
their recipient; their ``related_*`` columns are plain identifiers without a
foreign key so history survives deletion of the referenced rows.
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Column,
    String,
    Text,
    DateTime,
    Boolean,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship

from .database import Base


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """A reader. Root of most edges in the graph."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)  # Hashed outside this package
    name = Column(String(100), nullable=True)
    image = Column(String(500), nullable=True)
    bio = Column(Text, nullable=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    bookshelf_entries = relationship(
        "BookshelfEntry",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    answers = relationship(
        "Answer", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    notifications = relationship(
        "Notification",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def display_name(self) -> str:
        """Name shown to other users, falling back to the e-mail address."""
        return self.name or self.email

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"


class Book(Base):
    """A book, identified by its ISBN."""

    __tablename__ = "books"

    isbn = Column(String(32), primary_key=True)
    title = Column(String(500), nullable=False)
    author = Column(String(255), nullable=False)
    publisher = Column(String(255), nullable=False)
    pubdate = Column(String(32), nullable=True)
    image = Column(String(500), nullable=True)
    link = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    questions = relationship(
        "Question", back_populates="book", cascade="all, delete-orphan", passive_deletes=True
    )
    bookshelf_entries = relationship(
        "BookshelfEntry",
        back_populates="book",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Book(isbn='{self.isbn}', title='{self.title}')>"


class BookshelfEntry(Base):
    """A book placed on a user's shelf."""

    __tablename__ = "bookshelf_entries"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    book_isbn = Column(
        String(32), ForeignKey("books.isbn", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    # Relationships
    user = relationship("User", back_populates="bookshelf_entries")
    book = relationship("Book", back_populates="bookshelf_entries")

    __table_args__ = (
        UniqueConstraint("user_id", "book_isbn", name="uq_bookshelf_user_book"),
        Index("ix_bookshelf_book_isbn", "book_isbn"),
    )

    def __repr__(self) -> str:
        return f"<BookshelfEntry(user_id={self.user_id}, book_isbn='{self.book_isbn}')>"


class Question(Base):
    """A discussion question about a book."""

    __tablename__ = "questions"

    id = Column(String(36), primary_key=True, default=_new_id)
    book_isbn = Column(
        String(32), ForeignKey("books.isbn", ondelete="CASCADE"), nullable=False
    )
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    book = relationship("Book", back_populates="questions")
    answers = relationship(
        "Answer", back_populates="question", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (Index("ix_question_book_isbn", "book_isbn"),)

    def __repr__(self) -> str:
        return f"<Question(id={self.id}, book_isbn='{self.book_isbn}')>"


class Answer(Base):
    """A user's answer to a question."""

    __tablename__ = "answers"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(
        String(36), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    user = relationship("User", back_populates="answers")
    question = relationship("Question", back_populates="answers")

    __table_args__ = (
        Index("ix_answer_question_id", "question_id"),
        Index("ix_answer_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Answer(id={self.id}, question_id={self.question_id}, user_id={self.user_id})>"


class ProfileInterest(Base):
    """Directional "I am interested in this profile" edge."""

    __tablename__ = "profile_interests"

    id = Column(String(36), primary_key=True, default=_new_id)
    interested_user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    target_user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint(
            "interested_user_id", "target_user_id", name="uq_profile_interest_edge"
        ),
        Index("ix_profile_interest_target", "target_user_id"),
    )

    def __repr__(self) -> str:
        return f"<ProfileInterest({self.interested_user_id} -> {self.target_user_id})>"


class AnswerInterest(Base):
    """Directional "I am interested in this answer" edge."""

    __tablename__ = "answer_interests"

    id = Column(String(36), primary_key=True, default=_new_id)
    interested_user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    target_answer_id = Column(
        String(36), ForeignKey("answers.id", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint(
            "interested_user_id", "target_answer_id", name="uq_answer_interest_edge"
        ),
        Index("ix_answer_interest_target", "target_answer_id"),
    )

    def __repr__(self) -> str:
        return f"<AnswerInterest({self.interested_user_id} -> answer {self.target_answer_id})>"


class SoullinkRequest(Base):
    """Directional request to become soulmates."""

    __tablename__ = "soullink_requests"

    id = Column(String(36), primary_key=True, default=_new_id)
    sender_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    receiver_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("sender_id", "receiver_id", name="uq_soullink_request_edge"),
        Index("ix_soullink_request_receiver", "receiver_id"),
    )

    def __repr__(self) -> str:
        return f"<SoullinkRequest({self.sender_id} -> {self.receiver_id})>"


class Soulmate(Base):
    """Canonical undirected soulmate pair, stored with ``user_a_id < user_b_id``."""

    __tablename__ = "soulmates"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_a_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    user_b_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    # Relationships
    user_a = relationship("User", foreign_keys=[user_a_id])
    user_b = relationship("User", foreign_keys=[user_b_id])

    __table_args__ = (
        UniqueConstraint("user_a_id", "user_b_id", name="uq_soulmate_pair"),
        CheckConstraint("user_a_id < user_b_id", name="ck_soulmate_canonical_order"),
        Index("ix_soulmate_user_b", "user_b_id"),
    )

    def __repr__(self) -> str:
        return f"<Soulmate(id={self.id}, user_a_id={self.user_a_id}, user_b_id={self.user_b_id})>"


class Notification(Base):
    """A notification owned by its recipient.

    The ``related_*`` columns are weak references: lookup-only identifiers that
    may point at rows which no longer exist.
    """

    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(40), nullable=False)  # NotificationType enum
    content = Column(Text, nullable=True)
    related_user_id = Column(String(36), nullable=True)
    related_book_isbn = Column(String(32), nullable=True)
    related_question_id = Column(String(36), nullable=True)
    related_answer_id = Column(String(36), nullable=True)
    related_soulmate_id = Column(String(36), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    # Relationships
    user = relationship("User", back_populates="notifications")

    __table_args__ = (
        Index("ix_notification_user_read", "user_id", "is_read"),
        Index("ix_notification_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user_id={self.user_id}, type='{self.type}', is_read={self.is_read})>"
