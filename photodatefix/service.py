"""
Library service: scan state, working set, date filter and selection.

One PhotoLibraryService lives per Flask app (app.extensions['photodatefix']).
Scans can run synchronously (scan_for_mismatches) or on a single background
worker thread (start_scan). While a scan runs, the running working set and
progress are published under a lock, so readers always see a prefix of the
final result.
"""
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import date, datetime, tzinfo
from enum import Enum as PyEnum
from typing import Optional
import logging
import threading

from photodatefix.lib.corrections import apply_corrections
from photodatefix.lib.exceptions import ScanInProgress
from photodatefix.lib.filtering import DateInterval, apply_range, day_interval
from photodatefix.lib.scanner import FlaggedItem, MismatchScanner, ScanProgress, ScanResult
from photodatefix.lib.store import AssetStore
from photodatefix.lib.tolerance import DEFAULT_TOLERANCE_SECONDS, validate_tolerance

logger = logging.getLogger(__name__)


class ScanState(str, PyEnum):
    """Lifecycle of the most recent scan."""
    IDLE = "idle"
    SCANNING = "scanning"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERROR = "error"


class PhotoLibraryService:
    """Stateful front for the mismatch engine over one asset store."""

    def __init__(
        self,
        store: AssetStore,
        tolerance_seconds: float = DEFAULT_TOLERANCE_SECONDS,
        default_tz: str | tzinfo | None = None,
        reader=None,
        progress_every: int = 10,
        app=None,
    ):
        self.store = store
        self.tolerance_seconds = validate_tolerance(tolerance_seconds)
        self.default_tz = default_tz
        self.reader = reader
        self.progress_every = progress_every
        self.app = app

        self._lock = threading.RLock()
        self._cancel = threading.Event()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._future: Optional[Future] = None

        self._state = ScanState.IDLE
        self._progress = 0.0
        self._total_scanned = 0
        self._total_candidates = 0
        self._error_message: Optional[str] = None
        self._working_set: list[FlaggedItem] = []
        self._filter = DateInterval()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def scan_state(self) -> ScanState:
        with self._lock:
            return self._state

    @property
    def progress(self) -> float:
        with self._lock:
            return self._progress

    @property
    def total_scanned(self) -> int:
        with self._lock:
            return self._total_scanned

    @property
    def error_message(self) -> Optional[str]:
        with self._lock:
            return self._error_message

    @property
    def is_scanning(self) -> bool:
        return self.scan_state == ScanState.SCANNING

    @property
    def mismatched_photos(self) -> list[FlaggedItem]:
        """Snapshot of the working set."""
        with self._lock:
            return list(self._working_set)

    # ------------------------------------------------------------------
    # Filter
    # ------------------------------------------------------------------

    @property
    def filter(self) -> DateInterval:
        with self._lock:
            return self._filter

    @property
    def is_filter_active(self) -> bool:
        return self.filter.is_active

    def set_filter(self, start: date | datetime | None, end: date | datetime | None) -> DateInterval:
        """
        Set the date filter used both to narrow results and to pre-filter scans.

        Plain dates cover whole days in the service timezone; datetimes are
        used as given.
        """
        days = day_interval(
            start if _is_day(start) else None,
            end if _is_day(end) else None,
            self.default_tz,
        )
        interval = DateInterval(
            start=days.start if _is_day(start) else start,
            end=days.end if _is_day(end) else end,
        )
        with self._lock:
            self._filter = interval
        return interval

    def clear_filter(self):
        with self._lock:
            self._filter = DateInterval()

    @property
    def filtered_photos(self) -> list[FlaggedItem]:
        """Working set narrowed to the current filter, order preserved."""
        with self._lock:
            return apply_range(self._working_set, self._filter)

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def _begin_scan(self):
        with self._lock:
            if self._state == ScanState.SCANNING:
                raise ScanInProgress("A scan is already running")
            self._cancel.clear()
            self._state = ScanState.SCANNING
            self._progress = 0.0
            self._total_scanned = 0
            self._total_candidates = 0
            self._error_message = None
            self._working_set = []

    def _run_scan(self) -> Optional[ScanResult]:
        interval = self.filter if self.is_filter_active else None
        scanner = MismatchScanner(
            tolerance_seconds=self.tolerance_seconds,
            reader=self.reader,
            default_tz=self.default_tz,
            progress_every=self.progress_every,
        )
        results: list[FlaggedItem] = []

        def _on_progress(progress: ScanProgress):
            with self._lock:
                self._progress = progress.fraction
                self._total_scanned = progress.position
                self._working_set = list(results)

        try:
            total = self.store.count(interval)
            with self._lock:
                self._total_candidates = total
            logger.info(f"Scanning {total} photos (tolerance {self.tolerance_seconds}s)")

            candidates = self.store.enumerate(interval)
            for item in scanner.iter_scan(candidates, total, _on_progress, self._cancel.is_set):
                results.append(item)
        except Exception as e:
            logger.error(f"Scan failed: {e}", exc_info=True)
            with self._lock:
                self._state = ScanState.ERROR
                self._error_message = str(e)
            raise

        with self._lock:
            self._working_set = results
            self._total_scanned = scanner.position
            if scanner.cancelled:
                self._state = ScanState.CANCELLED
            else:
                self._progress = 1.0
                self._state = ScanState.COMPLETED

        return ScanResult(
            items=list(results),
            scanned=scanner.position,
            total=scanner.total,
            cancelled=scanner.cancelled,
        )

    def _run_scan_in_context(self) -> Optional[ScanResult]:
        if self.app is None:
            return self._run_scan()
        with self.app.app_context():
            return self._run_scan()

    def scan_for_mismatches(self) -> ScanResult:
        """
        Run a fresh scan pass synchronously, replacing the working set.

        Raises:
            ScanInProgress: if another scan is running
        """
        self._begin_scan()
        return self._run_scan()

    def start_scan(self) -> Future:
        """
        Run a fresh scan pass on the background worker.

        Raises:
            ScanInProgress: if another scan is running
        """
        self._begin_scan()
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='photodatefix-scan')
            self._future = self._executor.submit(self._run_scan_in_context)
            return self._future

    def cancel_scan(self) -> bool:
        """Ask a running scan to stop before its next candidate."""
        if not self.is_scanning:
            return False
        self._cancel.set()
        return True

    def wait(self, timeout: Optional[float] = None) -> Optional[ScanResult]:
        """Block until the background scan (if any) finishes."""
        with self._lock:
            future = self._future
        if future is None:
            return None
        return future.result(timeout=timeout)

    def shutdown(self):
        self._cancel.set()
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def toggle_selection(self, identifier: str) -> Optional[bool]:
        """Flip selection of one item; returns the new value, or None if unknown."""
        with self._lock:
            for item in self._working_set:
                if item.identifier == identifier:
                    item.selected = not item.selected
                    return item.selected
        return None

    def select_all(self):
        with self._lock:
            for item in apply_range(self._working_set, self._filter):
                item.selected = True

    def deselect_all(self):
        with self._lock:
            for item in apply_range(self._working_set, self._filter):
                item.selected = False

    @property
    def selected_items(self) -> list[FlaggedItem]:
        return [item for item in self.filtered_photos if item.selected]

    @property
    def all_selected(self) -> bool:
        visible = self.filtered_photos
        return bool(visible) and all(item.selected for item in visible)

    # ------------------------------------------------------------------
    # Fixing
    # ------------------------------------------------------------------

    def fix_dates(self, items: list[FlaggedItem]) -> int:
        """
        Commit EXIF dates for items and drop them from the working set.

        Returns:
            Number of items corrected

        Raises:
            ScanInProgress: if a scan is running
            TransactionError: if the store rejected the batch (state unchanged)
        """
        if self.is_scanning:
            raise ScanInProgress("Cannot fix dates while a scan is running")

        items = list(items)
        if not items:
            return 0

        with self._lock:
            current = list(self._working_set)

        remaining = apply_corrections(self.store, items, current)

        with self._lock:
            self._working_set = remaining
        logger.info(f"Fixed {len(items)} photo dates, {len(remaining)} mismatches remain")
        return len(items)

    def fix_selected(self) -> int:
        return self.fix_dates(self.selected_items)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def snapshot(self) -> dict:
        """JSON-ready summary of the current scan state."""
        with self._lock:
            visible = apply_range(self._working_set, self._filter)
            return {
                'state': self._state.value,
                'progress': round(self._progress, 4),
                'total_scanned': self._total_scanned,
                'total_candidates': self._total_candidates,
                'mismatch_count': len(self._working_set),
                'filtered_count': len(visible),
                'selected_count': sum(1 for item in visible if item.selected),
                'error': self._error_message,
                'filter': {
                    'start': self._filter.start.isoformat() if self._filter.start else None,
                    'end': self._filter.end.isoformat() if self._filter.end else None,
                },
                'tolerance_seconds': self.tolerance_seconds,
            }


def _is_day(value) -> bool:
    """True for a plain date (datetime is a date subclass, so exclude it)."""
    return isinstance(value, date) and not isinstance(value, datetime)
