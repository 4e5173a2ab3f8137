"""
SQLAlchemy models for the K&R collection store.
Each named collection is stored whole in one row, with a write counter.
"""

from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON
from database.connection import Base


class CollectionRecord(Base):
    """
    One named collection (customers, quotes, jobs, ...).
    Writes replace `records` in full and bump `version`.
    """
    __tablename__ = 'collections'

    name = Column(String(100), primary_key=True)
    records = Column(JSON, nullable=False, default=list)
    version = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'name': self.name,
            'records': self.records or [],
            'version': self.version,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
