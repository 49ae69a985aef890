from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config import get_settings

IN_MEMORY_URLS = {"sqlite://", "sqlite:///:memory:"}


def create_db_engine(database_url: str) -> Engine:
    """Engine for ``database_url``.

    SQLite connections enforce foreign keys; file databases also run in WAL
    mode. An in-memory database keeps one shared connection so every session
    sees the same tables.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)

    kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    in_memory = database_url in IN_MEMORY_URLS
    if in_memory:
        kwargs["poolclass"] = StaticPool
    eng = create_engine(database_url, **kwargs)
    event.listen(
        eng, "connect", _enable_foreign_keys if in_memory else _enable_sqlite_pragmas
    )
    return eng


def _enable_foreign_keys(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


def _enable_sqlite_pragmas(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


def make_sessionmaker(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)


engine = create_db_engine(get_settings().database_url)
SessionLocal = make_sessionmaker(engine)


class Base(DeclarativeBase):
    pass


def get_db() -> Iterator[Session]:
    """Request-scoped session; routes and the auth dependency share it."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
