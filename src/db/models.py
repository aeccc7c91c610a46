"""
Progress store tables.

Progress is persisted as JSON blobs under well-known keys ("progress",
"encompassing_graph", ...), one row per key.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class KvBlob(Base):
    """A JSON document stored under a string key."""

    __tablename__ = "kv_blobs"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<KvBlob key={self.key!r} bytes={len(self.value)}>"
