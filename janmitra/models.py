"""
SQLAlchemy ORM models for database tables.

For Pydantic request/response schemas, see schemas.py.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, Float, Integer, String, Text

from janmitra.storage import Base


DEFAULT_STATUS = "Pending"


class Issue(Base):
    """
    A citizen-reported civic issue.

    Table: issues
    Primary Key: id (autoincrement; the ticket id is derived from it)
    """
    __tablename__ = "issues"

    # sqlite_autoincrement keeps ids strictly increasing even after deletes
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    filename = Column(String, nullable=False)  # Media store key
    originalname = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=True)
    lat = Column(Float, nullable=True)
    lon = Column(Float, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now, index=True)  # Local time
    status = Column(String, nullable=False, default=DEFAULT_STATUS, server_default=DEFAULT_STATUS)
