"""
Database models for the SQL collection store.

This module defines the SQLAlchemy ORM models holding collection schemas
and the documents imported into them.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy import DateTime, ForeignKey, Integer, JSON, String, Text, Index  # type: ignore
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship  # type: ignore


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class CollectionDef(Base):
    """
    A collection and its current wire schema.

    The schema is kept as the exact bytes pushed by the importer so that
    describe returns what was stored.
    """
    __tablename__ = "collection_def"

    name: Mapped[str] = mapped_column(String(255), primary_key=True)
    schema_json: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    documents: Mapped[List["StoredDocument"]] = relationship(
        "StoredDocument", back_populates="collection", cascade="all, delete-orphan")


class StoredDocument(Base):
    """One imported document."""
    __tablename__ = "stored_document"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    collection_name: Mapped[str] = mapped_column(
        String(255), ForeignKey("collection_def.name"), nullable=False)
    body: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False)

    collection: Mapped["CollectionDef"] = relationship(
        "CollectionDef", back_populates="documents")

    __table_args__ = (
        Index('idx_stored_document_collection', 'collection_name'),
    )
