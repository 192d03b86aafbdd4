# FILE: app/db.py
"""
Interaction log database.

The URL comes from TUTOR_DATABASE_URL (default ./data/tutor_interactions.db).
Sessions are opened per operation by InteractionStore, never per request.
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from config.settings import get_settings

Base = declarative_base()

_MEMORY_URLS = {"sqlite://", "sqlite:///:memory:"}


def create_db_engine(url: str) -> Engine:
    """
    Engine for `url`. SQLite connections are shared with the threadpool that
    runs background logging; an in-memory database keeps one connection so
    every session sees the same tables.
    """
    kwargs = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    if url in _MEMORY_URLS:
        kwargs["poolclass"] = StaticPool
    return create_engine(url, echo=False, **kwargs)


engine = create_db_engine(get_settings().database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine = engine) -> None:
    """Create the interaction tables. Called once at startup."""
    from app.interactions import models  # noqa: F401
    Base.metadata.create_all(bind=bind)
