"""SQLAlchemy database models for photodatefix.

The library is a single table of assets. Each row points at the original
file on disk and carries the mutable recorded creation date that the
mismatch engine compares against EXIF.
Uses SQLAlchemy 2.x type-safe patterns with Mapped and mapped_column.
"""
from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Optional
import uuid

from sqlalchemy import Integer, String, DateTime, Index
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from photodatefix import db


# ============================================================================
# Enums
# ============================================================================

class MediaType(str, PyEnum):
    """Kind of asset; only images are scanned."""
    IMAGE = "image"
    VIDEO = "video"


# ============================================================================
# Helpers
# ============================================================================

def to_storage(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to the naive UTC form stored in SQLite."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Re-attach UTC to a datetime read back from SQLite (stored naive)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _new_identifier() -> str:
    return str(uuid.uuid4()).upper()


# ============================================================================
# Models
# ============================================================================

class Asset(db.Model):
    """A photo or video in the library."""
    __tablename__ = 'assets'

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Stable opaque identifier exposed to the engine and the API
    identifier: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, default=_new_identifier
    )

    # Original file information
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_path: Mapped[str] = mapped_column(String(500), nullable=False)
    media_type: Mapped[MediaType] = mapped_column(
        SQLEnum(MediaType),
        default=MediaType.IMAGE,
        nullable=False
    )

    # Recorded creation date shown by the library (naive UTC, mutable)
    creation_date: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Indexes
    __table_args__ = (
        Index('ix_assets_creation_date', 'creation_date'),
        Index('ix_assets_media_type', 'media_type'),
    )

    @property
    def recorded_date(self) -> Optional[datetime]:
        """Recorded creation date as an aware UTC datetime."""
        return as_utc(self.creation_date)

    def __repr__(self):
        return f"<Asset {self.identifier}: {self.filename}>"
