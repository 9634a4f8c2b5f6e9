"""
Database connection and session management.

Provides the engine, table creation and a transactional session helper
for the SQL collection store.
"""

from contextlib import contextmanager
from functools import lru_cache
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from schemaflow.config.settings import get_settings
from schemaflow.catalog.models import Base


@lru_cache()
def get_engine(database_url: Optional[str] = None) -> Engine:
    """
    Create (once per URL) the database engine.

    SQLite URLs get a connection shared across threads; an in-memory
    database keeps a single connection so all sessions see the same data.
    """
    settings = get_settings()
    url = database_url or settings.database_url

    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    else:
        # pool_pre_ping: Verify connections before use
        kwargs = {"pool_pre_ping": True, "pool_recycle": 3600}

    return create_engine(url, echo=settings.db_echo, **kwargs)


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(bind=engine)


def get_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for a transactional session.

    Usage:
        with session_scope(factory) as db:
            db.get(CollectionDef, "users")
    """
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

