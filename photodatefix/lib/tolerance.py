"""
Tolerance policy for comparing a library date against an EXIF date.

Sub-second rounding and clock drift between the camera and the library
produce tiny differences that are not worth correcting, so two dates only
count as a mismatch when they are further apart than a configured tolerance.
"""
from datetime import datetime

# Default tolerance in seconds (matches DATE_TOLERANCE_SECONDS in config)
DEFAULT_TOLERANCE_SECONDS = 2.0


def validate_tolerance(tolerance_seconds: float) -> float:
    """Return tolerance as float, rejecting negative values."""
    tolerance = float(tolerance_seconds)
    if tolerance < 0:
        raise ValueError(f"Tolerance must be non-negative, got {tolerance_seconds}")
    return tolerance


def time_difference(extracted: datetime, recorded: datetime) -> float:
    """Signed difference in seconds, positive when extracted is later."""
    return (extracted - recorded).total_seconds()


def is_mismatch(a: datetime, b: datetime, tolerance_seconds: float) -> bool:
    """
    Decide whether two absolute times disagree.

    Symmetric in a and b. A difference exactly equal to the tolerance is
    not a mismatch.

    Args:
        a: Timezone-aware datetime
        b: Timezone-aware datetime
        tolerance_seconds: Non-negative allowed difference

    Returns:
        True if |a - b| > tolerance_seconds
    """
    tolerance = validate_tolerance(tolerance_seconds)
    return abs((a - b).total_seconds()) > tolerance


def format_time_difference(seconds: float) -> str:
    """
    Render a signed difference compactly, e.g. '+3h 30m' or '−2d 1h 0m'.

    Only the two or three most significant units are shown.
    """
    sign = '−' if seconds < 0 else '+'
    total = int(abs(seconds))

    days = total // 86400
    hours = (total % 86400) // 3600
    minutes = (total % 3600) // 60
    secs = total % 60

    if days > 0:
        return f"{sign}{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{sign}{hours}h {minutes}m"
    if minutes > 0:
        return f"{sign}{minutes}m {secs}s"
    return f"{sign}{secs}s"
