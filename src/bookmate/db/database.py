"""Database configuration and setup."""

import logging
import time
from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.engine import Engine
from typing import Optional

from ..config import get_config

# Query performance logger
query_logger = logging.getLogger("sqlalchemy.query_performance")


def _is_sqlite_url(url: str) -> bool:
    """Check if database URL is for SQLite."""
    return url.startswith("sqlite:")


def _make_sqlite_connect_hook(busy_timeout_ms: int):
    """Build the per-connection SQLite setup hook."""

    def _setup_sqlite_pragma(dbapi_connection, connection_record):
        """Set SQLite pragmas for referential integrity and concurrency."""
        # Stop pysqlite from emitting its own BEGIN; see _make_begin_hook
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")  # ON DELETE CASCADE needs this
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
        cursor.execute("PRAGMA temp_store=MEMORY")
        cursor.close()

    return _setup_sqlite_pragma


# Execution option marking a connection whose transaction is a write unit
WRITE_LOCK_OPTION = "bookmate_write_lock"


def _make_begin_hook(immediate_transactions: bool):
    """Build the SQLite transaction-start hook.

    A connection carrying ``WRITE_LOCK_OPTION`` starts with ``BEGIN IMMEDIATE``
    when ``immediate_transactions`` is on: the write lock is taken up front and
    writers are serialized for the whole read-check-write sequence. Every other
    transaction starts deferred, so readers never hold the write lock.
    """

    def _begin(conn):
        if immediate_transactions and conn.get_execution_options().get(WRITE_LOCK_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")

    return _begin


def _setup_query_logging(engine: Engine, enable_query_logging: bool = False):
    """Set up query performance logging if enabled."""
    if not enable_query_logging:
        return

    @event.listens_for(engine, "before_cursor_execute")
    def receive_before_cursor_execute(
        conn, cursor, statement, parameters, context, executemany
    ):
        context._query_start_time = time.time()

    @event.listens_for(engine, "after_cursor_execute")
    def receive_after_cursor_execute(
        conn, cursor, statement, parameters, context, executemany
    ):
        total = time.time() - context._query_start_time

        # Log slow queries (>100ms) as warnings, others as debug
        if total > 0.1:
            query_logger.warning(
                f"Slow query ({total:.3f}s): {statement[:200]}{'...' if len(statement) > 200 else ''}"
            )
        else:
            query_logger.debug(
                f"Query ({total:.3f}s): {statement[:100]}{'...' if len(statement) > 100 else ''}"
            )


def create_database_engine(
    database_url: Optional[str] = None,
    enable_query_logging: Optional[bool] = None,
    busy_timeout_ms: Optional[int] = None,
    immediate_transactions: Optional[bool] = None,
    **engine_kwargs,
):
    """Create database engine with appropriate configuration."""
    db_config = get_config().database

    if database_url is None:
        database_url = db_config.url
    if enable_query_logging is None:
        enable_query_logging = db_config.log_queries
    if busy_timeout_ms is None:
        busy_timeout_ms = db_config.busy_timeout_ms
    if immediate_transactions is None:
        immediate_transactions = db_config.immediate_transactions

    if _is_sqlite_url(database_url):
        connect_args = engine_kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        engine = create_engine(
            database_url,
            connect_args=connect_args,
            echo=db_config.echo,
            **engine_kwargs,
        )

        event.listen(
            engine,
            "connect",
            _make_sqlite_connect_hook(busy_timeout_ms),
        )
        event.listen(engine, "begin", _make_begin_hook(immediate_transactions))
    else:
        engine = create_engine(
            database_url,
            echo=db_config.echo,
            pool_pre_ping=db_config.pool_pre_ping,
            **engine_kwargs,
        )

    # Set up query performance logging if enabled
    _setup_query_logging(engine, enable_query_logging)

    return engine


# Base class for models
Base = declarative_base()

_engine: Optional[Engine] = None


def get_engine() -> Engine:
    """Return the default engine, creating it from configuration on first use."""
    global _engine
    if _engine is None:
        _engine = create_database_engine()
    return _engine


def make_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to ``engine`` with the project's session settings."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Optional[Engine] = None) -> None:
    """Create all tables. Schema migrations are managed outside this package."""
    from . import models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(bind=engine or get_engine())
