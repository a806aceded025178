"""
SQLAlchemy-backed asset store.

Implements the AssetStore contract over the `assets` table: enumeration with
the date interval pushed down into SQL, payload fetch from disk, and atomic
batch updates of recorded creation dates in a single session transaction.
All methods must run inside a Flask application context.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import Iterator, Optional
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from photodatefix import db
from photodatefix.lib.exceptions import TransactionError
from photodatefix.lib.filtering import DateInterval
from photodatefix.lib.scanner import Candidate
from photodatefix.models import Asset, MediaType, as_utc, to_storage

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {'jpg', 'jpeg', 'png', 'heic', 'heif', 'tif', 'tiff', 'webp'}
VIDEO_EXTENSIONS = {'mp4', 'mov', 'avi', 'mkv'}

# Identifiers per IN (...) lookup, well below SQLite's bound parameter limit
LOOKUP_CHUNK_SIZE = 500


@dataclass(frozen=True)
class AssetRef:
    """Detached snapshot of an Asset row, safe to hand across threads."""
    id: int
    identifier: str
    filename: str
    storage_path: str


def media_type_for(path: Path) -> Optional[MediaType]:
    """Map a file extension to a MediaType, or None if not a media file."""
    extension = path.suffix.lower().lstrip('.')
    if extension in IMAGE_EXTENSIONS:
        return MediaType.IMAGE
    if extension in VIDEO_EXTENSIONS:
        return MediaType.VIDEO
    return None


def read_payload(storage_path: Path | str) -> Optional[bytes]:
    """Read an asset's original bytes; unreadable files yield None."""
    try:
        return Path(storage_path).read_bytes()
    except OSError as e:
        logger.warning(f"Payload unavailable at {storage_path}: {e}")
        return None


class LibraryStore:
    """Asset store over the photodatefix database."""

    def _image_query(self, interval: Optional[DateInterval]):
        stmt = select(Asset).where(Asset.media_type == MediaType.IMAGE)
        if interval is not None:
            if interval.start is not None:
                stmt = stmt.where(Asset.creation_date >= to_storage(interval.start))
            if interval.end is not None:
                stmt = stmt.where(Asset.creation_date <= to_storage(interval.end))
        return stmt

    def count(self, interval: Optional[DateInterval] = None) -> int:
        """Number of image assets enumerate() would yield."""
        stmt = select(func.count()).select_from(self._image_query(interval).subquery())
        return db.session.scalar(stmt) or 0

    def enumerate(
        self,
        interval: Optional[DateInterval] = None,
        newest_first: bool = True
    ) -> Iterator[Candidate]:
        """
        Yield image assets as scan candidates.

        Args:
            interval: Only assets whose recorded date is inside the interval
            newest_first: Sort by recorded date descending (default) or ascending

        Yields:
            Candidate with a lazy payload fetch from disk
        """
        order = Asset.creation_date.desc() if newest_first else Asset.creation_date.asc()
        stmt = self._image_query(interval).order_by(order, Asset.id)

        # Snapshot rows up front; no session is held while payloads are read
        rows = [
            (AssetRef(a.id, a.identifier, a.filename, a.storage_path), as_utc(a.creation_date))
            for a in db.session.scalars(stmt)
        ]
        for ref, recorded_date in rows:
            yield Candidate(
                identifier=ref.identifier,
                recorded_date=recorded_date,
                fetch_payload=partial(read_payload, ref.storage_path),
                handle=ref,
            )

    def get(self, identifier: str) -> Optional[Asset]:
        return db.session.scalar(select(Asset).where(Asset.identifier == identifier))

    def fetch_payload(self, identifier: str) -> Optional[bytes]:
        """Original bytes of an asset, or None if unknown or unreadable."""
        asset = self.get(identifier)
        if asset is None:
            return None
        return read_payload(asset.storage_path)

    def perform_changes(self, changes: list[tuple[str, datetime]]) -> None:
        """
        Overwrite recorded dates for a batch of assets in one transaction.

        Raises:
            TransactionError: if any identifier is unknown or the commit
                              fails; the whole batch is rolled back
        """
        if not changes:
            return

        session = db.session
        identifiers = [identifier for identifier, _ in changes]
        try:
            assets = {}
            for i in range(0, len(identifiers), LOOKUP_CHUNK_SIZE):
                chunk = identifiers[i:i + LOOKUP_CHUNK_SIZE]
                for asset in session.scalars(select(Asset).where(Asset.identifier.in_(chunk))):
                    assets[asset.identifier] = asset

            missing = [identifier for identifier in identifiers if identifier not in assets]
            if missing:
                raise TransactionError(f"Unknown asset identifier(s): {', '.join(missing)}")

            for identifier, new_date in changes:
                assets[identifier].creation_date = to_storage(new_date)

            session.commit()
            logger.info(f"Updated creation date for {len(changes)} assets")
        except TransactionError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Batch date update failed: {e}", exc_info=True)
            raise TransactionError(str(e)) from e

    def add_asset(
        self,
        path: Path | str,
        creation_date: Optional[datetime] = None,
        commit: bool = True
    ) -> Asset:
        """
        Register a file in the library.

        Args:
            path: File on disk (stays in place)
            creation_date: Recorded date; defaults to the file's modification time
            commit: Commit immediately (False lets callers batch inserts)

        Raises:
            ValueError: if the file extension is not a supported media type
        """
        path = Path(path)
        media_type = media_type_for(path)
        if media_type is None:
            raise ValueError(f"Unsupported media file: {path.name}")

        if creation_date is None:
            creation_date = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)

        asset = Asset(
            filename=path.name,
            storage_path=str(path.absolute()),
            media_type=media_type,
            creation_date=to_storage(creation_date),
        )
        db.session.add(asset)
        if commit:
            db.session.commit()
        return asset

    def import_directory(self, root: Path | str) -> list[Asset]:
        """
        Register every media file under root (recursive, alphabetical).

        Files already registered by storage path are skipped.
        """
        root = Path(root)
        if not root.is_dir():
            raise ValueError(f"Path is not a directory: {root}")

        known = set(db.session.scalars(select(Asset.storage_path)))
        file_paths = sorted(
            p for p in root.rglob('*')
            if p.is_file() and media_type_for(p) is not None
        )

        added = []
        for file_path in file_paths:
            if str(file_path.absolute()) in known:
                continue
            added.append(self.add_asset(file_path, commit=False))

        db.session.commit()
        logger.info(f"Imported {len(added)} assets from {root}")
        return added
