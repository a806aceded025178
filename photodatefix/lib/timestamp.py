"""
Capture timestamp decoding.

EXIF stores the original capture time as a local wall-clock string
("2024:01:15 14:30:00") and, on newer cameras, a separate UTC offset
("+09:00"). This module turns that pair into a timezone-aware datetime in UTC.

When the offset is missing or unusable the string is read as local time in a
default timezone: an explicit IANA name / tzinfo when the caller supplies one,
otherwise the system timezone of the running process. That fallback is an
approximation (the same string decodes differently on machines in different
zones) but it keeps photos without offset tags in play.
"""
from datetime import datetime, timezone, timedelta, tzinfo
from zoneinfo import ZoneInfo
from typing import Optional
import re

from photodatefix.lib.exceptions import MalformedTimestamp

# Fixed EXIF layout; digits and literal separators only (no locale involved)
EXIF_DATETIME_REGEX = re.compile(
    r'^(\d{4}):(\d{2}):(\d{2}) (\d{2}):(\d{2}):(\d{2})$', re.ASCII
)
# "+09:00", "-0500"
EXIF_OFFSET_REGEX = re.compile(r'^([-+])([01][0-9]|2[0-3]):?([0-5][0-9])$', re.ASCII)


def local_timezone(moment: Optional[datetime] = None) -> tzinfo:
    """
    Return the system timezone in force at a wall-clock moment.

    Used when a timestamp carries no offset and the caller did not pin a
    default timezone. The result is a fixed offset, so it is looked up for
    the moment itself (DST on that date, not today).

    Args:
        moment: Naive local datetime (default: now)
    """
    if moment is None:
        moment = datetime.now()
    return moment.astimezone().tzinfo


def resolve_timezone(default_tz: str | tzinfo | None) -> Optional[tzinfo]:
    """
    Normalize a default timezone argument.

    Args:
        default_tz: IANA name ('America/New_York'), a tzinfo, or None

    Returns:
        tzinfo instance, or None meaning "system local time"
    """
    if default_tz is None:
        return None
    if isinstance(default_tz, tzinfo):
        return default_tz
    return ZoneInfo(default_tz)


def parse_offset(offset_text: Optional[str]) -> Optional[timezone]:
    """
    Parse an EXIF OffsetTime* value into a fixed-offset timezone.

    Accepts "+HH:MM", "-HH:MM", "+HHMM" and "-HHMM".

    Returns:
        datetime.timezone, or None if absent or unparseable
    """
    if not isinstance(offset_text, str):
        return None

    match = EXIF_OFFSET_REGEX.match(offset_text.strip())
    if not match:
        return None

    sign = -1 if match.group(1) == '-' else 1
    hours = int(match.group(2))
    minutes = int(match.group(3))
    offset_seconds = sign * (hours * 3600 + minutes * 60)
    return timezone(timedelta(seconds=offset_seconds))


def decode(
    timestamp_text: str,
    offset_text: Optional[str] = None,
    default_tz: str | tzinfo | None = None
) -> datetime:
    """
    Decode an EXIF capture timestamp into an absolute time.

    Args:
        timestamp_text: "YYYY:MM:DD HH:MM:SS"
        offset_text: Optional "+HH:MM" / "+HHMM" offset for the timestamp
        default_tz: Timezone for timestamps without a usable offset
                    (None = system local time)

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        MalformedTimestamp: if timestamp_text does not match the EXIF layout
                            or names an impossible date/time
    """
    if not isinstance(timestamp_text, str):
        raise MalformedTimestamp(timestamp_text)

    match = EXIF_DATETIME_REGEX.match(timestamp_text)
    if not match:
        raise MalformedTimestamp(timestamp_text)

    year, month, day, hour, minute, second = (int(part) for part in match.groups())
    try:
        naive = datetime(year, month, day, hour, minute, second)
    except ValueError:
        raise MalformedTimestamp(timestamp_text) from None

    tz = parse_offset(offset_text)
    if tz is None:
        tz = resolve_timezone(default_tz)

    try:
        if tz is None:
            tz = local_timezone(naive)
        return naive.replace(tzinfo=tz).astimezone(timezone.utc)
    except (OverflowError, OSError):
        raise MalformedTimestamp(timestamp_text) from None
