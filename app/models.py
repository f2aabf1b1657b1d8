"""
SQLAlchemy ORM models for database tables.

This module contains database table definitions using SQLAlchemy.
For the domain entity, see domain.py; for request/response schemas, see schemas.py.
"""

from sqlalchemy import Boolean, Column, Index, String, Text, text

from app.storage import Base


class MessageRecord(Base):
    """
    SQLAlchemy model for organization-scoped messages.

    Table: messages
    Primary Key: id
    Unique: (organization_id, title) among active rows
    """
    __tablename__ = "messages"
    __table_args__ = (
        Index(
            "uq_messages_org_active_title",
            "organization_id",
            "title",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id = Column(String, primary_key=True, index=True)
    organization_id = Column(String, nullable=False, index=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(String, nullable=False)  # ISO-8601 UTC string
    updated_at = Column(String, nullable=False)  # ISO-8601 UTC string
