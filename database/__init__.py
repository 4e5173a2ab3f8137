"""
Database package for the K&R back office.
Provides the SQLAlchemy collection table, connection management, and session handling.
"""

from database.connection import (
    Base,
    get_engine,
    get_session_factory,
    get_db_session,
    init_db,
    check_db_connection,
    is_db_configured
)

from database.models import CollectionRecord

__all__ = [
    # Connection
    'Base',
    'get_engine',
    'get_session_factory',
    'get_db_session',
    'init_db',
    'check_db_connection',
    'is_db_configured',
    # Models
    'CollectionRecord'
]
