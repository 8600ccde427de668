"""
Generic document table backing the document store.

Every chapter collection (position assignments, permission matrix snapshots,
members) lives in this one table, keyed by (collection, id). The document body
is stored as JSON so collections stay schemaless, matching the hosted document
database the chapter system was built on.
"""
from datetime import datetime
from typing import Any, Dict
from sqlalchemy import DateTime, Index, JSON, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from ulid import ULID


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


class Base(DeclarativeBase):
    """Declarative base for every table; ``init_db`` creates its metadata."""
    pass


class TimestampMixin:
    """created_at / updated_at maintained by the database."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class Document(Base, TimestampMixin):
    """A single JSON document inside a named collection."""
    __tablename__ = "documents"

    collection: Mapped[str] = mapped_column(String(100), primary_key=True)
    # Deterministic keys (e.g. "president:2025:M1") or generated ULIDs
    id: Mapped[str] = mapped_column(String(200), primary_key=True, default=generate_ulid)
    data: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    __table_args__ = (
        Index("ix_documents_collection", "collection"),
    )

    def __repr__(self) -> str:
        return f"<Document(collection={self.collection!r}, id={self.id!r})>"
