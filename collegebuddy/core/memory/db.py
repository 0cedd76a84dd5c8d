"""
Database connection and session management.

Handles SQLite database initialization, connection pooling, and session factory.

All sessions must be created via `get_db()` or `db_session()` and are single-owner:
they may only be used in the thread that created them and within their scope.
The live messaging gateway runs store calls in executor threads, so this matters.
"""
import logging
import os
import threading
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import NullPool

from collegebuddy.core.config import get_database_url, settings
from collegebuddy.core.memory.models import Base


logger = logging.getLogger(__name__)


# NullPool: new connection per session; no sharing across threads.
engine = create_engine(
    get_database_url(),
    connect_args={
        "timeout": 30,
        "check_same_thread": False,
    },
    poolclass=NullPool,
    echo=settings.database_echo,
)

DB_DEBUG_LOG = (
    settings.database_echo
    or os.getenv("DB_DEBUG_LOG", "0").lower() in ("1", "true", "yes")
)

# One Session instance per unit of work (request, websocket event).
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

_init_lock = threading.Lock()


def init_db() -> None:
    """Initialize database schema (create tables)."""
    with _init_lock:
        try:
            Base.metadata.create_all(bind=engine)
            logger.info("Database schema initialized")
        except Exception as e:
            logger.error("Failed to initialize database: %s", e, exc_info=True)
            raise


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI to get database session.

    Usage:
        @router.get("/endpoint")
        def endpoint(db: Session = Depends(get_db)):
            ...

    Repositories handle their own commits, so nothing is committed here.
    """
    db = SessionLocal()
    if DB_DEBUG_LOG:
        logger.debug("DB session created id=%s thread_id=%s", id(db), threading.get_ident())
    try:
        yield db
    except Exception:
        try:
            if db.is_active:
                db.rollback()
        except Exception as e:
            logger.debug("Rollback failed for session %s: %s", id(db), e)
        raise
    finally:
        if DB_DEBUG_LOG:
            logger.debug("DB session closing id=%s thread_id=%s", id(db), threading.get_ident())
        db.close()


@contextmanager
def db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Use only in the thread that calls this; do not pass the yielded session
    to another thread. Commits on success, rolls back and re-raises on error.
    """
    db = SessionLocal()
    db.info["owner_thread_id"] = threading.get_ident()
    if DB_DEBUG_LOG:
        logger.debug("DB session (context) created id=%s thread_id=%s", id(db), threading.get_ident())
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        if DB_DEBUG_LOG:
            logger.debug("DB session (context) closing id=%s thread_id=%s", id(db), threading.get_ident())
        db.close()


@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints and WAL mode in SQLite."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    # WAL allows concurrent reads while a writer is active
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.close()


@event.listens_for(Session, "before_flush")
def validate_session_owner_thread(session, flush_context, instances):
    """
    Catch cross-thread usage of db_session() sessions early.

    db_session() records its creating thread; a flush from any other thread
    raises RuntimeError. Request sessions from get_db() are exempt because
    FastAPI may run dependencies and the endpoint on different pool threads.
    """
    owner_thread_id = session.info.get("owner_thread_id")
    if owner_thread_id is None:
        return

    current_thread_id = threading.get_ident()
    if owner_thread_id != current_thread_id:
        msg = (
            f"Session {id(session)} used from wrong thread: "
            f"owner_thread_id={owner_thread_id}, current_thread_id={current_thread_id}. "
            "Do not pass sessions or ORM objects across threads or use them after their scope."
        )
        logger.error(msg)
        raise RuntimeError(msg)
