"""
Library modules for photodatefix.

The mismatch engine: EXIF capture date decoding and extraction, tolerance
comparison, scanning, range filtering and batch correction.
"""
from photodatefix.lib.exceptions import (
    PhotoDateFixError, MalformedTimestamp, PayloadUnavailable, TransactionError, ScanInProgress
)
from photodatefix.lib.timestamp import decode, parse_offset, local_timezone
from photodatefix.lib.tolerance import is_mismatch, format_time_difference, DEFAULT_TOLERANCE_SECONDS
from photodatefix.lib.metadata import extract_original_date, get_reader, PillowExifReader, ExifToolReader
from photodatefix.lib.scanner import (
    Candidate, FlaggedItem, ScanProgress, ScanResult, MismatchScanner, iter_scan, scan
)
from photodatefix.lib.filtering import DateInterval, apply_range, day_interval
from photodatefix.lib.corrections import apply_corrections
from photodatefix.lib.store import AssetStore

__all__ = [
    # Errors
    'PhotoDateFixError',
    'MalformedTimestamp',
    'PayloadUnavailable',
    'TransactionError',
    'ScanInProgress',
    # Timestamp decoding
    'decode',
    'parse_offset',
    'local_timezone',
    # Tolerance
    'is_mismatch',
    'format_time_difference',
    'DEFAULT_TOLERANCE_SECONDS',
    # Metadata extraction
    'extract_original_date',
    'get_reader',
    'PillowExifReader',
    'ExifToolReader',
    # Scanning
    'Candidate',
    'FlaggedItem',
    'ScanProgress',
    'ScanResult',
    'MismatchScanner',
    'iter_scan',
    'scan',
    # Filtering
    'DateInterval',
    'apply_range',
    'day_interval',
    # Corrections
    'apply_corrections',
    # Store contract
    'AssetStore',
]
