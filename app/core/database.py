"""
Database Setup
Engine, session factory and declarative base for the NPC store.
SQLite for local development and tests, PostgreSQL in production.
"""

import logging
from typing import Any, Dict

from sqlalchemy import create_engine, inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings

logger = logging.getLogger(__name__)


def engine_options(url: str) -> Dict[str, Any]:
    """Keyword arguments for ``create_engine`` depending on the backend."""
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}

    # Sessions are used from worker threads (scheduler, threadpool routes)
    options: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in url:
        # An in-memory database exists only on its one connection
        options["poolclass"] = StaticPool
    return options


engine = create_engine(settings.DATABASE_URL, **engine_options(settings.DATABASE_URL))

SessionLocal = sessionmaker(bind=engine, autoflush=False)

Base = declarative_base()


def init_db():
    """Create missing tables. A read-only or pre-provisioned database is not fatal."""
    from app.models import User, Campaign, NPCRecord  # noqa: F401  (register tables)

    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as e:
        logger.warning(f"Could not create database tables, continuing with existing schema: {e}")
        return
    logger.info(f"Database ready: {', '.join(sorted(inspect(engine).get_table_names()))}")
