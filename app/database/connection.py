"""Database connection and session management."""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Any, Generator
from functools import lru_cache

from app.config import get_settings


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """Let SQLAlchemy own BEGIN so SAVEPOINT works on pysqlite."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(url: str, echo: bool = False, **kwargs: Any) -> Engine:
    """Create an engine for ``url`` with per-dialect defaults."""
    options: dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    elif "poolclass" not in kwargs:
        options.update(pool_size=5, max_overflow=10)
    options.update(kwargs)

    engine = create_engine(url, **options)
    if url.startswith("sqlite"):
        _enable_sqlite_savepoints(engine)
    return engine


@lru_cache
def get_engine() -> Engine:
    """Create and cache the SQLAlchemy engine for ``settings.database_url``."""
    settings = get_settings()
    return build_engine(settings.database_url, echo=settings.debug)


@lru_cache
def get_session_factory() -> sessionmaker:
    """Session factory bound to the cached engine."""
    return sessionmaker(bind=get_engine(), expire_on_commit=False)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency function for FastAPI to get a transactional session.

    Commits when the request handler returns and rolls back on any exception,
    so every multi-step mutation is all-or-nothing.

    Usage in FastAPI:
        @router.post("/{assessment_id}/submit")
        def submit(db: Session = Depends(get_db)):
            ...
    """
    db = get_session_factory()()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
