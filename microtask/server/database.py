"""
SOLE RESPONSIBILITY: Manages the database engine, schema creation, sessions and transaction scopes.
Contains no application logic.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool, StaticPool
from sqlmodel import SQLModel, Session, create_engine

from microtask.core.error_codes import MicrotaskError, StorageUnavailableError, TransactionFailedError
from . import models  # noqa: F401  registers the tables on SQLModel.metadata
from .config import get_config
from .server_logger import log_database_operation

logger = logging.getLogger(__name__)


def get_database_url(db_path: Optional[str] = None) -> str:
    """
    Get database URL, with priority:
    1. Provided db_path
    2. Configuration (DATABASE_URL / MICROTASK_DB / config files)
    3. Default location
    """
    if db_path:
        return f"sqlite:///{db_path}"
    return get_config().database.resolve_url()


def _is_memory_database(db_url: str) -> bool:
    database = make_url(db_url).database
    return not database or database == ":memory:"


def create_engine_for_db(db_url: str, echo: bool = False, lock_timeout: int = 30) -> Engine:
    """Create the SQLAlchemy engine: the single storage handle for the process.

    CRITICAL: Uses NullPool for file databases to avoid SQLite thread-safety issues.
    pysqlite runs in autocommit mode and the engine emits BEGIN itself, so every
    Session transaction is a real SQLite transaction and rollback is total.
    """
    if _is_memory_database(db_url):
        # One connection shared by every thread: each new connection would be a new, empty database
        engine_kwargs = {"poolclass": StaticPool}
    else:
        Path(make_url(db_url).database).parent.mkdir(parents=True, exist_ok=True)
        engine_kwargs = {"poolclass": NullPool}

    engine = create_engine(
        db_url,
        echo=echo,
        connect_args={
            "check_same_thread": False,  # SQLite thread safety
            "timeout": lock_timeout,  # Seconds to wait on a locked database
            "isolation_level": None,  # BEGIN is emitted by the engine below
        },
        **engine_kwargs,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        # ON DELETE CASCADE on task_steps only fires with foreign keys on
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin_transaction(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def create_db_and_tables(engine: Engine):
    """Create the schema if absent. Called once at server startup."""
    try:
        SQLModel.metadata.create_all(engine)
    except SQLAlchemyError as e:
        logger.error(f"Schema creation failed: {e}")
        raise StorageUnavailableError("Failed to initialize database schema") from e
    logger.info("Database schema ensured (tasks, task_steps)")


def init_database(db_path: Optional[str] = None) -> Engine:
    """Build the engine from configuration and ensure the schema exists."""
    settings = get_config().database
    engine = create_engine_for_db(
        get_database_url(db_path),
        echo=settings.echo,
        lock_timeout=settings.lock_timeout_seconds,
    )
    create_db_and_tables(engine)
    return engine


def check_connection(engine: Engine) -> bool:
    """Round-trip a trivial statement; raises StorageUnavailableError when storage is unreachable."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        raise StorageUnavailableError("Database is unavailable") from e
    return True


def get_session(request: Request) -> Iterator[Session]:
    """
    Dependency provider for database sessions.
    The engine is created once at startup and held on app.state; each request
    gets its own session which is always closed after use.
    """
    with Session(request.app.state.engine) as session:
        yield session


@contextmanager
def atomic(session: Session, operation: str, task_id: Optional[int] = None) -> Iterator[Session]:
    """
    Transaction scope for composite writes.

    Commits when the block completes. Any exception rolls the whole transaction
    back: typed MicrotaskErrors propagate unchanged, everything else surfaces as
    a single TransactionFailedError. Failing to obtain a connection surfaces as
    StorageUnavailableError.
    """
    details = {"task_id": task_id}
    try:
        session.connection()
    except SQLAlchemyError as e:
        session.rollback()
        log_database_operation(f"{operation} (begin)", details, error=e)
        raise StorageUnavailableError(f"Failed to start transaction for {operation}") from e

    try:
        yield session
        session.commit()
    except MicrotaskError:
        session.rollback()
        raise
    except Exception as e:
        session.rollback()
        log_database_operation(operation, details, error=e)
        raise TransactionFailedError(f"Failed to {operation}", task_id=task_id) from e
    except BaseException:
        session.rollback()
        raise

    log_database_operation(operation, details)


@contextmanager
def storage_errors(operation: str, task_id: Optional[int] = None) -> Iterator[None]:
    """Maps storage failures to StorageUnavailableError."""
    try:
        yield
    except SQLAlchemyError as e:
        log_database_operation(operation, {"task_id": task_id}, error=e)
        raise StorageUnavailableError(f"Failed to {operation}") from e


@contextmanager
def read_scope(session: Session, operation: str, task_id: Optional[int] = None) -> Iterator[Session]:
    """
    Read-side scope. The transaction the reads begin is always ended on exit,
    so the SHARED lock is released before the session goes back to the caller.
    Results must be converted to read models inside the block.
    """
    try:
        with storage_errors(operation, task_id):
            yield session
    finally:
        if session.in_transaction():
            session.rollback()
