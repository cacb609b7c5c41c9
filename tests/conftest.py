"""Pytest configuration and shared fixtures."""

import os
import tempfile
import uuid
from pathlib import Path
from typing import Dict, Optional

import pytest
from sqlalchemy import delete

from bookmate.config import EngineConfig, reset_config
from bookmate.db.database import Base, create_database_engine, init_db, make_session_factory
from bookmate.db.models import Answer, Book, Question, User


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: Fast tests without a database")
    config.addinivalue_line("markers", "integration: Tests against a real database file")
    config.addinivalue_line("markers", "concurrency: Multi-threaded race tests")


@pytest.fixture(scope="session")
def setup_test_env(tmp_path_factory):
    """Point configuration at a scratch directory and create the test database URL."""
    original_env: Dict[str, Optional[str]] = {}
    config_dir = tmp_path_factory.mktemp("config")

    # Prefer an external database when supplied, otherwise a temp SQLite file
    external_db_url = os.environ.get("BOOKMATE_TEST_DATABASE_URL")
    temp_db = None
    if external_db_url:
        db_url = external_db_url
    else:
        temp_db = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
        temp_db.close()
        db_url = f"sqlite:///{temp_db.name}"

    env_vars = {
        "BOOKMATE_CONFIG_DIR": str(config_dir),
        "BOOKMATE_DATABASE_URL": db_url,
    }
    for key, value in env_vars.items():
        original_env[key] = os.environ.get(key)
        os.environ[key] = value
    reset_config()

    try:
        yield db_url
    finally:
        for key, original_value in original_env.items():
            if original_value is not None:
                os.environ[key] = original_value
            else:
                os.environ.pop(key, None)
        reset_config()

        if temp_db is not None:
            for suffix in ("", "-wal", "-shm"):
                Path(temp_db.name + suffix).unlink(missing_ok=True)


@pytest.fixture(scope="session")
def test_engine(setup_test_env):
    """Engine for the test database with the schema created."""
    engine = create_database_engine(setup_test_env)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="session")
def test_db(test_engine):
    """Session factory bound to the test database."""
    return make_session_factory(test_engine)


@pytest.fixture
def session_factory(test_db):
    """Session factory for tests that open their own sessions (threads, retries)."""
    return test_db


@pytest.fixture
def db_session(test_db):
    """Create a database session for a single test.

    Objects stay loaded after commit, so reading ids off factory results does
    not open a new transaction that stays open for the rest of the test.
    """
    session = test_db(expire_on_commit=False)

    yield session

    session.rollback()
    session.close()


# Autouse cleanup: wipe every table after each test to keep tests isolated
@pytest.fixture(autouse=True)
def db_cleanup(test_engine):
    """Delete all rows, children first, once the test's sessions are closed."""
    yield
    with test_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(delete(table))


@pytest.fixture
def engine_config():
    """Engine configuration with fast retries."""
    return EngineConfig(retry_base_delay=0.0, retry_max_delay=0.0, retry_jitter_ratio=0.0)


@pytest.fixture
def barrier_factory():
    """Return a factory for threading barriers."""
    from tests.helpers.concurrency import barrier_sync
    return barrier_sync


# Factory helpers to create graph nodes on demand

@pytest.fixture
def make_user(db_session):
    """Factory to create a user. Ids may be given explicitly, e.g. ``"a1"``."""
    def _maker(user_id: Optional[str] = None, email: Optional[str] = None, name: Optional[str] = None, **fields):
        user = User(
            email=email or f"{uuid.uuid4().hex[:12]}@example.com",
            password_hash="not-a-real-hash",
            name=name,
            **fields,
        )
        if user_id is not None:
            user.id = user_id
        db_session.add(user)
        db_session.commit()
        return user
    return _maker


@pytest.fixture
def make_book(db_session):
    """Factory to create a book."""
    def _maker(isbn: Optional[str] = None, title: str = "The Little Prince", author: str = "Antoine de Saint-Exupery"):
        book = Book(
            isbn=isbn or uuid.uuid4().hex[:13],
            title=title,
            author=author,
            publisher="Reynal & Hitchcock",
        )
        db_session.add(book)
        db_session.commit()
        return book
    return _maker


@pytest.fixture
def make_question(db_session):
    """Factory to create a question about a book."""
    def _maker(book_isbn: str, content: str = "What is essential?"):
        question = Question(book_isbn=book_isbn, content=content)
        db_session.add(question)
        db_session.commit()
        return question
    return _maker


@pytest.fixture
def make_answer(db_session):
    """Factory to create an answer written by a user."""
    def _maker(user_id: str, question_id: str, content: str = "It is invisible to the eye."):
        answer = Answer(user_id=user_id, question_id=question_id, content=content)
        db_session.add(answer)
        db_session.commit()
        return answer
    return _maker
