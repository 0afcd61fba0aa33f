"""
Database Configuration
======================

This module sets up:
1. SQLAlchemy engine (the connection pool shared by every request)
2. SessionLocal (database session factory)
3. Base (declarative base for models)
4. get_db (FastAPI dependency: one request = one session)

Multi-statement flows (checkout, order status changes, points redemption)
run inside the request's session and commit once at the end.
"""

from typing import Generator

import logging

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from storefront import config

logger = logging.getLogger(__name__)

DATABASE_URL = config.DATABASE_URL

# ============================================================================
# SQLAlchemy ENGINE
# ============================================================================
# - pool_pre_ping=True
#   Tests connections before use, so a restarted Postgres does not surface
#   as "connection lost" errors.
#
# - SQLite (used by the test-suite) needs check_same_thread=False because
#   FastAPI runs sync endpoints in a threadpool; an in-memory database must
#   also stay on a single connection or every session sees an empty schema.

_engine_kwargs = {"pool_pre_ping": True, "echo": config.SQL_ECHO}

if DATABASE_URL.startswith("sqlite"):
    _engine_kwargs["connect_args"] = {"check_same_thread": False}
    if ":memory:" in DATABASE_URL or DATABASE_URL.rstrip("/") == "sqlite:":
        _engine_kwargs["poolclass"] = StaticPool

engine = create_engine(DATABASE_URL, **_engine_kwargs)

if engine.dialect.name == "sqlite":
    # SQLite ignores ON DELETE clauses unless foreign keys are switched on
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

# ============================================================================
# SESSION FACTORY
# ============================================================================
# autocommit=False: nothing is written until session.commit()
# autoflush=False: we decide when pending objects are flushed

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

# ============================================================================
# DECLARATIVE BASE
# ============================================================================

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Yield a session for one request and always close it.

    Closing a session with an open transaction rolls it back, so a request
    that fails half-way never leaves partial writes behind.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def db_healthcheck() -> bool:
    """Return True if the database answers ``SELECT 1``."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as exc:
        logger.warning("Database health check failed: %s", exc)
        return False
