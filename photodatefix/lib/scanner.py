"""
Mismatch scanning over a sequence of library candidates.

For every candidate the scanner fetches the original bytes, extracts the
EXIF capture date and compares it with the date the library records. Assets
without a usable EXIF date are skipped; one bad asset never stops the pass.

A scan has no side effects on the asset store, so a caller may stop consuming
iter_scan() (or signal should_cancel) at any point between candidates.
"""
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from functools import partial
from typing import Any, Callable, Iterable, Iterator, Optional
import logging

from photodatefix.lib.exceptions import PayloadUnavailable
from photodatefix.lib.metadata import extract_original_date
from photodatefix.lib.tolerance import (
    DEFAULT_TOLERANCE_SECONDS,
    format_time_difference,
    is_mismatch,
    time_difference,
    validate_tolerance,
)

logger = logging.getLogger(__name__)

# Emit a progress event every N candidates (and always on the last one)
PROGRESS_EVERY = 10


@dataclass
class Candidate:
    """One asset as enumerated from the store."""
    identifier: str
    recorded_date: Optional[datetime]
    fetch_payload: Callable[[], Optional[bytes]]
    handle: Any = None


@dataclass
class FlaggedItem:
    """An asset whose recorded date disagrees with its EXIF capture date."""
    identifier: str
    recorded_date: datetime
    extracted_date: datetime
    asset_handle: Any = field(default=None, repr=False, compare=False)
    selected: bool = False

    @property
    def time_difference(self) -> float:
        """Seconds from recorded to extracted date (negative = EXIF is earlier)."""
        return time_difference(self.extracted_date, self.recorded_date)

    @property
    def formatted_time_difference(self) -> str:
        return format_time_difference(self.time_difference)


@dataclass(frozen=True)
class ScanProgress:
    """Snapshot of a running scan."""
    position: int
    total: int
    flagged: int

    @property
    def fraction(self) -> float:
        if self.total <= 0:
            return 1.0
        return min(self.position / self.total, 1.0)


@dataclass
class ScanResult:
    """Outcome of one complete (or cancelled) scan pass."""
    items: list[FlaggedItem]
    scanned: int
    total: int
    cancelled: bool = False

    @property
    def flagged_count(self) -> int:
        return len(self.items)


def _fetch(candidate: Candidate) -> Optional[bytes]:
    """Fetch a candidate's payload; unavailability is reported as None."""
    try:
        return candidate.fetch_payload()
    except PayloadUnavailable as e:
        logger.debug(f"Payload unavailable for {candidate.identifier}: {e}")
    except Exception as e:
        logger.warning(f"Payload fetch failed for {candidate.identifier}: {e}", exc_info=True)
    return None


class MismatchScanner:
    """
    Compare library dates against EXIF capture dates, one pass at a time.

    Counters (position, flagged, total, cancelled) describe the most recent
    pass and are reset whenever a new pass starts.
    """

    def __init__(
        self,
        tolerance_seconds: float = DEFAULT_TOLERANCE_SECONDS,
        extractor: Optional[Callable[[Optional[bytes]], Optional[datetime]]] = None,
        reader=None,
        default_tz: str | tzinfo | None = None,
        progress_every: int = PROGRESS_EVERY,
    ):
        self.tolerance_seconds = validate_tolerance(tolerance_seconds)
        if extractor is None:
            extractor = partial(extract_original_date, reader=reader, default_tz=default_tz)
        self.extractor = extractor
        self.progress_every = max(int(progress_every), 1)

        self.position = 0
        self.flagged = 0
        self.total = 0
        self.cancelled = False

    def _check(self, candidate: Candidate) -> Optional[FlaggedItem]:
        if candidate.recorded_date is None:
            logger.debug(f"Skipping {candidate.identifier}: no recorded date")
            return None

        payload = _fetch(candidate)
        try:
            extracted = self.extractor(payload)
        except Exception as e:
            logger.warning(f"Date extraction failed for {candidate.identifier}: {e}", exc_info=True)
            extracted = None

        if extracted is None:
            logger.debug(f"Skipping {candidate.identifier}: no EXIF capture date")
            return None

        try:
            mismatched = is_mismatch(extracted, candidate.recorded_date, self.tolerance_seconds)
        except Exception as e:
            # e.g. a naive recorded date against an aware EXIF date
            logger.warning(f"Date comparison failed for {candidate.identifier}: {e}")
            return None

        if not mismatched:
            return None

        return FlaggedItem(
            identifier=candidate.identifier,
            recorded_date=candidate.recorded_date,
            extracted_date=extracted,
            asset_handle=candidate.handle,
        )

    def iter_scan(
        self,
        candidates: Iterable[Candidate],
        total: Optional[int] = None,
        on_progress: Optional[Callable[[ScanProgress], None]] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> Iterator[FlaggedItem]:
        """
        Lazily yield FlaggedItems for candidates whose dates disagree.

        Args:
            candidates: Candidates in enumeration order
            total: Candidate count (computed from candidates when omitted)
            on_progress: Called with ScanProgress every progress_every
                         candidates and once on the final candidate
            should_cancel: Polled between candidates; True stops the pass

        Yields:
            Fresh FlaggedItem instances in enumeration order
        """
        if total is None:
            if not hasattr(candidates, '__len__'):
                candidates = list(candidates)
            total = len(candidates)

        self.position = 0
        self.flagged = 0
        self.total = total
        self.cancelled = False

        if total == 0:
            return

        for candidate in candidates:
            if should_cancel is not None and should_cancel():
                self.cancelled = True
                logger.info(f"Scan cancelled after {self.position}/{total} candidates")
                return

            item = self._check(candidate)
            self.position += 1
            if item is not None:
                self.flagged += 1
                yield item

            if on_progress is not None and self.position <= total and (
                self.position == total or self.position % self.progress_every == 0
            ):
                on_progress(ScanProgress(position=self.position, total=total, flagged=self.flagged))

    def scan(
        self,
        candidates: Iterable[Candidate],
        total: Optional[int] = None,
        on_progress: Optional[Callable[[ScanProgress], None]] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> ScanResult:
        """Run a full pass and collect its results."""
        items = list(self.iter_scan(candidates, total, on_progress, should_cancel))
        logger.info(f"Scan finished: {len(items)} mismatches in {self.position}/{self.total} candidates")
        return ScanResult(
            items=items,
            scanned=self.position,
            total=self.total,
            cancelled=self.cancelled,
        )


def iter_scan(
    candidates: Iterable[Candidate],
    tolerance_seconds: float = DEFAULT_TOLERANCE_SECONDS,
    *,
    extractor=None,
    reader=None,
    default_tz: str | tzinfo | None = None,
    progress_every: int = PROGRESS_EVERY,
    total: Optional[int] = None,
    on_progress: Optional[Callable[[ScanProgress], None]] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> Iterator[FlaggedItem]:
    """Functional shortcut for MismatchScanner(...).iter_scan(...)."""
    scanner = MismatchScanner(tolerance_seconds, extractor, reader, default_tz, progress_every)
    return scanner.iter_scan(candidates, total, on_progress, should_cancel)


def scan(
    candidates: Iterable[Candidate],
    tolerance_seconds: float = DEFAULT_TOLERANCE_SECONDS,
    *,
    extractor=None,
    reader=None,
    default_tz: str | tzinfo | None = None,
    progress_every: int = PROGRESS_EVERY,
    total: Optional[int] = None,
    on_progress: Optional[Callable[[ScanProgress], None]] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> ScanResult:
    """Functional shortcut for MismatchScanner(...).scan(...)."""
    scanner = MismatchScanner(tolerance_seconds, extractor, reader, default_tz, progress_every)
    return scanner.scan(candidates, total, on_progress, should_cancel)
