"""
Asset store contract consumed by the scanner and the correction applier.

Any object with these methods can back a scan: the bundled SQLAlchemy
LibraryStore, or a fake in tests.
"""
from datetime import datetime
from typing import Iterator, Optional, Protocol

from photodatefix.lib.filtering import DateInterval
from photodatefix.lib.scanner import Candidate


class AssetStore(Protocol):
    """Enumeration, payload fetch and atomic date mutation over image assets."""

    def count(self, interval: Optional[DateInterval] = None) -> int:
        """Number of image assets enumerate() would yield."""
        ...

    def enumerate(
        self,
        interval: Optional[DateInterval] = None,
        newest_first: bool = True
    ) -> Iterator[Candidate]:
        """Yield image assets ordered by recorded date, optionally restricted to interval."""
        ...

    def fetch_payload(self, identifier: str) -> Optional[bytes]:
        """Original bytes of an asset, or None if unavailable."""
        ...

    def perform_changes(self, changes: list[tuple[str, datetime]]) -> None:
        """
        Overwrite recorded dates for all (identifier, new_date) pairs atomically.

        Raises:
            TransactionError: if the batch was rejected; nothing was applied
        """
        ...
