"""EntityRecordRow, EntitySequenceRow ORM models: table backing for the store.

Every entity kind shares one ``entity_records`` table keyed by
``(kind, id)``; the record body is kept as JSON in the same camelCase shape
the API serves.  ``entity_sequences`` holds the last identifier handed out per
kind so identifiers survive restarts and are never reused after a delete.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, BigInteger, DateTime, Index, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for the record tables."""


class TimestampMixin:
    """Audit columns; the store supplies both values, server defaults cover manual rows."""

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class EntityRecordRow(Base, TimestampMixin):
    """One persisted domain record of any kind."""

    __tablename__ = "entity_records"
    __table_args__ = (Index("ix_entity_records_kind_created", "kind", "created_at"),)

    kind: Mapped[str] = mapped_column(String(32), primary_key=True)
    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    def __repr__(self) -> str:
        return f"<EntityRecordRow kind={self.kind!r} id={self.id}>"


class EntitySequenceRow(Base):
    """Monotonic identifier counter for one entity kind."""

    __tablename__ = "entity_sequences"

    kind: Mapped[str] = mapped_column(String(32), primary_key=True)
    last_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<EntitySequenceRow kind={self.kind!r} last_id={self.last_id}>"
