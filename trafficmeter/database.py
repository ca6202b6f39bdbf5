"""
Database setup using SQLAlchemy.

We provide:
- a Base class to declare ORM models
- factories for an Engine and a session factory bound to a URL

Nothing is connected at import time; the history store opens its engine
lazily on first use.
"""

from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker

# Base class for all ORM models
Base = declarative_base()


def ensure_sqlite_directory(url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return
    database = parsed.database
    if not database or database == ":memory:":
        return
    Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)


def make_engine(url: str) -> Engine:
    """Engine: the core connection to the DB (SQLite by default)."""
    return create_engine(
        url,
        future=True,
        echo=False,  # set True if you want to see SQL in the logs
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    """Session factory: each unit of work gets its own session."""
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        future=True,
    )
