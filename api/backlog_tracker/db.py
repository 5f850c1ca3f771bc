from __future__ import annotations

from typing import Iterator

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import sessionmaker, Session, DeclarativeBase

from backlog_tracker.config import settings


def _make_engine_url() -> str:
    return settings.database_url


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection."""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _record):  # type: ignore[no-untyped-def]
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Create engine and session factory
_engine = create_engine(
    _make_engine_url(),
    future=True,
    pool_pre_ping=True,
    connect_args={"check_same_thread": False}
    if "sqlite" in (_make_engine_url())
    else {},
)
enable_sqlite_foreign_keys(_engine)

SessionLocal = sessionmaker(bind=_engine, autoflush=False, autocommit=False, future=True)


class Base(DeclarativeBase):
    pass


def create_schema(engine: Engine | None = None) -> None:
    # Register mappers on Base.metadata before creating tables
    from backlog_tracker import db_models  # noqa: F401  pylint: disable=import-outside-toplevel

    Base.metadata.create_all(bind=engine or _engine)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
