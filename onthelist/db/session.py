from typing import Callable

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase, Session

"""Database engine / session factory construction.

NOTE: In-memory SQLite (":memory:") creates a new database per connection which
breaks code paths that open multiple connections. Local runs use a file-based
SQLite database unless DATABASE_URL is provided; PostgreSQL works unchanged.
"""

SessionFactory = Callable[[], Session]


class Base(DeclarativeBase):
    pass


def build_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # FastAPI runs sync handlers in a threadpool
        connect_args["check_same_thread"] = False
    return create_engine(database_url, echo=False, future=True, connect_args=connect_args)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def init_schema(engine: Engine) -> None:
    """Create tables for local/dev databases (idempotent)."""
    from . import models  # noqa: F401 register models before create_all
    Base.metadata.create_all(bind=engine)

