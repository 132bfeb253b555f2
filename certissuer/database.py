"""Synchronous SQLAlchemy engine used for schema bootstrap and migrations."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from certissuer.config import settings
from certissuer.db_events import attach_sqlite_listeners


class Base(DeclarativeBase):
    """Declarative base class for ORM models."""


def ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite" or not url.database:
        return
    if url.database == ":memory:":
        return
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)


_database_url = settings.resolved_database_url
_is_sqlite = _database_url.startswith("sqlite")
engine_kwargs: dict[str, object] = {
    "echo": settings.db_echo,
    "pool_pre_ping": True,
}
if _is_sqlite:
    engine_kwargs["connect_args"] = {"check_same_thread": False}

ensure_sqlite_directory(_database_url)
engine: Engine = create_engine(_database_url, **engine_kwargs)
if _is_sqlite:
    attach_sqlite_listeners(engine)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
