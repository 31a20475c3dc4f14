import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from dive_platform.core.db import register_query_timing

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./diving.db"

# Create Base class for models
Base = declarative_base()

# Internal lazy globals
_engine = None
_SessionLocal = None
_database_url = None


def _build_engine(database_url: str) -> Engine:
    url = make_url(database_url)
    if url.drivername.startswith("postgres"):
        return create_engine(
            database_url,
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,
            pool_recycle=3600,
            connect_args={"application_name": "dive_platform", "connect_timeout": 10},
        )
    if url.drivername.startswith("sqlite") and url.database in (None, "", ":memory:"):
        # One shared in-memory database per process so tables survive across sessions
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if url.drivername.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url)


def get_engine() -> Engine:
    """Return a cached engine built from DATABASE_URL on first call.

    Rebuilt when DATABASE_URL changes, so tests can point it elsewhere before use.
    """
    global _engine, _database_url, _SessionLocal
    database_url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    if _engine is None or _database_url != database_url:
        if _engine is not None:
            _engine.dispose()
        _engine = _build_engine(database_url)
        register_query_timing(_engine)
        _database_url = database_url
        _SessionLocal = None
        logger.info(
            "Database engine created",
            extra={"context": {"dialect": _engine.dialect.name}},
        )
    return _engine


def get_sessionmaker() -> sessionmaker:
    """Return a cached sessionmaker bound to the lazy engine."""
    global _SessionLocal
    engine = get_engine()
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
        )
    return _SessionLocal


def SessionLocal() -> Session:
    """Open a new Session; callers close it (controllers do so in ``finally``)."""
    return get_sessionmaker()()


def create_tables() -> None:
    """Create all tables registered on Base."""
    # Import models so Base.metadata is populated
    from dive_platform.db import base  # noqa: F401

    Base.metadata.create_all(bind=get_engine())


def drop_tables() -> None:
    from dive_platform.db import base  # noqa: F401

    Base.metadata.drop_all(bind=get_engine())
