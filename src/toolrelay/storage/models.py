"""SQLAlchemy models for the key-value store."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    """Current UTC time for timestamps."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Declarative base for all toolrelay models."""


class KeyValueEntry(Base):
    """One JSON blob stored under a string key."""

    __tablename__ = "kv_entries"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, default="null")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )
