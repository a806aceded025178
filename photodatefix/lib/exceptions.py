"""
Error taxonomy for the mismatch engine.

Only TransactionError is ever surfaced to callers of the correction path.
MalformedTimestamp and PayloadUnavailable are recovered inside a scan and
turn into "no authoritative date" for that asset.
"""


class PhotoDateFixError(Exception):
    """Base class for all photodatefix errors."""


class MalformedTimestamp(PhotoDateFixError, ValueError):
    """A capture timestamp string does not match 'YYYY:MM:DD HH:MM:SS'."""

    def __init__(self, text):
        self.text = text
        super().__init__(f"Malformed capture timestamp: {text!r}")


class PayloadUnavailable(PhotoDateFixError):
    """The original binary content of an asset could not be fetched."""


class TransactionError(PhotoDateFixError):
    """A batch mutation was rejected by the asset store as a unit."""

    def __init__(self, message: str = 'Batch mutation failed'):
        self.message = message
        super().__init__(message)


class ScanInProgress(PhotoDateFixError):
    """A scan is already running for this library."""
