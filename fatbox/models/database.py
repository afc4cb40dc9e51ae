"""
Database model for the content-hash dedup cache

One row per SHA-256 fingerprint, one nullable column per cacheable
destination. Rows are only ever inserted or updated, never deleted.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, Text, DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models"""
    pass


class FileHash(Base):
    """Forwarded URL per destination for a given content fingerprint"""
    __tablename__ = "hash"

    hash: Mapped[str] = mapped_column(String(64), primary_key=True)

    # Cacheable destinations (litterbox links expire, so it has no column)
    catbox: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    pomf: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self):
        return f"<FileHash hash={self.hash[:10]} catbox={self.catbox} pomf={self.pomf}>"
