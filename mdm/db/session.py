"""Database engine and session management."""

from pathlib import Path
from typing import Callable

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from mdm.config.settings import Settings


def create_db_engine(settings: Settings) -> Engine:
    """
    Build an engine for `settings.DATABASE_URL`.

    In-memory SQLite shares one connection across threads so every
    session sees the same database.
    """
    url = make_url(settings.DATABASE_URL)
    kwargs = {"echo": settings.DATABASE_ECHO}

    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        else:
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    else:
        kwargs["pool_pre_ping"] = True

    return create_engine(url, **kwargs)


def create_session_factory(engine: Engine) -> Callable[[], Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
