"""
Database connection management for the K&R collection store.
Handles SQLAlchemy engine creation, session management, and connection verification.
"""

import os
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base

logger = logging.getLogger(__name__)

# SQLAlchemy Base for model declarations
Base = declarative_base()

# Engine and SessionLocal are created on first use
engine = None
SessionLocal = None


def normalize_database_url(url):
    """Handle Render's postgres:// vs postgresql:// URL format"""
    if url and url.startswith('postgres://'):
        return url.replace('postgres://', 'postgresql://', 1)
    return url


def get_engine(database_url=None):
    """Get or create the SQLAlchemy engine."""
    global engine

    if engine is not None:
        return engine

    database_url = normalize_database_url(database_url or os.environ.get('DATABASE_URL'))
    if not database_url:
        logger.error("DATABASE_URL is not set, the database collection store is unavailable")
        raise RuntimeError(
            "DATABASE_URL not configured. Set it or run with the JSON collection store."
        )

    options = {'pool_pre_ping': True, 'echo': False}
    if not database_url.startswith('sqlite'):
        options.update(pool_size=5, max_overflow=10, pool_recycle=300)

    try:
        engine = create_engine(database_url, **options)
        logger.info("Database engine created successfully")
        return engine
    except Exception as e:
        logger.error(f"Failed to create database engine: {e}")
        raise RuntimeError(f"Failed to connect to database: {e}")


def get_session_factory(database_url=None):
    """Get or create the session factory."""
    global SessionLocal

    if SessionLocal is not None:
        return SessionLocal

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine(database_url))
    return SessionLocal


@contextmanager
def get_db_session(session_factory=None):
    """
    Context manager for getting a database session.

    Example:
        with get_db_session() as db:
            row = db.get(CollectionRecord, 'quotes')
    """
    factory = session_factory or get_session_factory()
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def check_db_connection():
    """
    Verify that the database connection is working.
    Returns True if connection is successful, raises exception otherwise.
    """
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        logger.info("Database connection verified successfully")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        raise RuntimeError(f"Cannot connect to database: {e}")


def init_db(bind=None):
    """Create the collections table if it does not exist."""
    from database import models  # noqa: F401

    Base.metadata.create_all(bind=bind or get_engine())
    logger.info("Database tables created/verified")


def is_db_configured():
    """Check if DATABASE_URL is configured (without failing)."""
    return bool(os.environ.get('DATABASE_URL'))
