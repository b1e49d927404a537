"""
Database Session
================

SQLAlchemy engine, session factory and the declarative Base every table
inherits from.

FastAPI endpoints get a session through the get_db() dependency; services
that need their own sessions (the report builder runs many device lookups at
once) take the SessionLocal factory instead.
"""

import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from agritech.config import Config

logger = logging.getLogger(__name__)


def _engine_kwargs(url: str) -> dict:
    # SQLite connections are handed between the event loop and threadpool workers
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(Config.DATABASE_URL, **_engine_kwargs(Config.DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """Yield a session for one request and always close it afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Create any missing tables."""
    # Import the tables so they're registered on Base.metadata
    from agritech.database import tables  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables ready")
