"""
Original capture date extraction from raw image bytes.

Readers turn a binary payload into a small mapping of EXIF fields
({'DateTimeOriginal': ..., 'OffsetTimeOriginal': ...}) or None when the
payload carries no recognizable metadata block. Two readers are provided:
Pillow (in-memory, default; HEIC/HEIF via pillow-heif) and PyExifTool
(spools to a temporary file, needs the exiftool executable).
"""
from datetime import datetime, tzinfo
from io import BytesIO
from typing import Optional, Any
import logging
import os
import tempfile

import exiftool
from PIL import Image
from pillow_heif import register_heif_opener

from photodatefix.lib.exceptions import MalformedTimestamp
from photodatefix.lib.timestamp import decode

logger = logging.getLogger(__name__)

# Let Image.open() read HEIC/HEIF, the iPhone default format
register_heif_opener()

# Path to exiftool executable - use system default or override via environment
EXIFTOOL_PATH = os.environ.get('EXIFTOOL_PATH', 'exiftool')

# EXIF tag IDs (per EXIF spec)
TAG_EXIF_IFD = 0x8769               # Pointer to the Exif sub-IFD
TAG_DATETIME_ORIGINAL = 36867       # "DateTimeOriginal"
TAG_OFFSET_TIME_ORIGINAL = 36881    # "OffsetTimeOriginal"

# Field names handed to the timestamp codec
DATETIME_FIELD = 'DateTimeOriginal'
OFFSET_FIELD = 'OffsetTimeOriginal'


def _clean_value(value: Any) -> Optional[str]:
    """Normalize an EXIF ASCII value: decode bytes, drop NUL padding."""
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode('ascii', errors='ignore')
    if not isinstance(value, str):
        value = str(value)
    value = value.replace('\x00', '').strip()
    return value or None


class PillowExifReader:
    """Read capture date fields with Pillow, entirely in memory."""

    name = 'pillow'

    def read(self, payload: bytes) -> Optional[dict[str, str]]:
        with Image.open(BytesIO(payload)) as img:
            exif = img.getexif()
            if not exif:
                return None
            exif_ifd = exif.get_ifd(TAG_EXIF_IFD)

        fields = {}
        for field, tag in ((DATETIME_FIELD, TAG_DATETIME_ORIGINAL),
                           (OFFSET_FIELD, TAG_OFFSET_TIME_ORIGINAL)):
            value = _clean_value(exif_ifd.get(tag))
            if value is not None:
                fields[field] = value
        return fields


class ExifToolReader:
    """
    Read capture date fields with PyExifTool.

    ExifTool only reads files, so the payload is written to a temporary file
    for the duration of the call.
    """

    name = 'exiftool'
    TAGS = ['EXIF:DateTimeOriginal', 'EXIF:OffsetTimeOriginal']

    def __init__(self, executable: Optional[str] = None):
        self.executable = executable or EXIFTOOL_PATH

    def read(self, payload: bytes) -> Optional[dict[str, str]]:
        fd, tmp_path = tempfile.mkstemp(prefix='photodatefix-', suffix='.img')
        try:
            with os.fdopen(fd, 'wb') as tmp:
                tmp.write(payload)

            with exiftool.ExifToolHelper(executable=self.executable) as et:
                metadata_list = et.get_tags(tmp_path, tags=self.TAGS)
        finally:
            os.unlink(tmp_path)

        metadata = metadata_list[0] if metadata_list else {}
        fields = {}
        for field in (DATETIME_FIELD, OFFSET_FIELD):
            value = _clean_value(metadata.get(f'EXIF:{field}'))
            if value is not None:
                fields[field] = value
        return fields or None


READERS = {
    PillowExifReader.name: PillowExifReader,
    ExifToolReader.name: ExifToolReader,
}


def get_reader(name: str = 'pillow', **kwargs):
    """
    Build a metadata reader by name.

    Raises:
        ValueError: if name is not a known reader
    """
    try:
        reader_cls = READERS[name]
    except KeyError:
        raise ValueError(
            f"Unknown metadata reader '{name}' (expected one of: {', '.join(READERS)})"
        ) from None
    return reader_cls(**kwargs)


_default_reader = PillowExifReader()


def extract_original_date(
    payload: Optional[bytes],
    reader=None,
    default_tz: str | tzinfo | None = None
) -> Optional[datetime]:
    """
    Get the original capture time embedded in an image payload.

    Missing payload, missing/unreadable metadata, a missing DateTimeOriginal
    field and a malformed timestamp all mean the same thing to the caller:
    there is no authoritative date for this asset. None is returned in every
    one of those cases; this function does not raise for bad payloads.

    Args:
        payload: Raw bytes of the original image
        reader: Metadata reader (defaults to PillowExifReader)
        default_tz: Timezone for timestamps stored without an offset
                    (None = system local time)

    Returns:
        Timezone-aware datetime in UTC, or None
    """
    if not payload:
        return None

    reader = reader or _default_reader
    try:
        fields = reader.read(payload)
    except Exception as e:
        logger.debug(f"Metadata read failed ({type(e).__name__}): {e}")
        return None

    if not fields or not fields.get(DATETIME_FIELD):
        return None

    try:
        return decode(fields[DATETIME_FIELD], fields.get(OFFSET_FIELD), default_tz)
    except MalformedTimestamp as e:
        logger.debug(str(e))
        return None
