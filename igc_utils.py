#!/usr/bin/env python3
"""
Utility functions for the IGC flight import toolkit
"""

import re
import math
from datetime import datetime, date, timezone
from typing import Any, Optional

from igc_constants import (
    EARTH_RADIUS_KM,
    FILE_EXTENSIONS,
    SECONDS_PER_HOUR,
    SECONDS_PER_MINUTE,
    DATE_FORMAT_ISO,
)

_DURATION_SECONDS = re.compile(r'^\d+(\.\d+)?$')
_DURATION_CLOCK = re.compile(r'^(\d{1,2}):(\d{2})(?::(\d{2}))?$')
_DURATION_WORDS = re.compile(r'(?:(\d+)\s*h)?\s*(\d+)\s*m', re.IGNORECASE)
_ISO_DATE = re.compile(r'\d{4}-\d{2}-\d{2}')


def calculateDistance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great circle distance between two points on earth.
    Returns distance in kilometers.
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)

    # Haversine formula
    dlon = math.radians(lon2 - lon1)
    dlat = lat2_rad - lat1_rad
    a = math.sin(dlat/2)**2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon/2)**2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1-a))

    return EARTH_RADIUS_KM * c


def formatDuration(seconds: Optional[float]) -> Optional[str]:
    """Format seconds as '<H>h <M>m', dropping the hours when zero"""
    if seconds is None or seconds < 0:
        return None
    hours = int(seconds // SECONDS_PER_HOUR)
    minutes = int((seconds % SECONDS_PER_HOUR) // SECONDS_PER_MINUTE)
    return f"{hours}h {minutes}m" if hours > 0 else f"{minutes}m"


def parseDurationSeconds(value: Any) -> Optional[float]:
    """
    Parse a duration given as plain seconds, H:MM[:SS], or free text 'Xh Ym'.
    Returns None when the value is not recognisable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None

    raw = str(value).strip()
    if not raw:
        return None

    if _DURATION_SECONDS.match(raw):
        return float(raw)

    clock = _DURATION_CLOCK.match(raw)
    if clock:
        hours, minutes, seconds = clock.groups()
        return int(hours) * SECONDS_PER_HOUR + int(minutes) * SECONDS_PER_MINUTE + int(seconds or 0)

    words = _DURATION_WORDS.search(raw)
    if words:
        hours, minutes = words.groups()
        return int(hours or 0) * SECONDS_PER_HOUR + int(minutes) * SECONDS_PER_MINUTE

    return None


def toNumberOrNone(value: Any) -> Optional[float]:
    """Coerce a value to a finite float, or None"""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def normalizeDateOnly(value: Any) -> Optional[str]:
    """Normalize a date, datetime, or date-bearing string to YYYY-MM-DD"""
    if not value:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.strftime(DATE_FORMAT_ISO)
    if isinstance(value, date):
        return value.strftime(DATE_FORMAT_ISO)
    if isinstance(value, str):
        iso = _ISO_DATE.search(value)
        if iso:
            return iso.group(0)
        try:
            return normalizeDateOnly(datetime.fromisoformat(value.strip()))
        except ValueError:
            return None
    return None


def formatCoordinates(lat: float, lon: float) -> str:
    """Human-readable coordinates, e.g. '46.1234° N, 7.5678° E'"""
    lat_dir = 'N' if lat >= 0 else 'S'
    lon_dir = 'E' if lon >= 0 else 'W'
    return f"{abs(lat):.4f}° {lat_dir}, {abs(lon):.4f}° {lon_dir}"


def inferImportFileType(file_name: str) -> Optional[str]:
    """Infer the import type from the file extension only (case-insensitive)"""
    lower = str(file_name or '').lower()
    for extension, file_type in FILE_EXTENSIONS.items():
        if lower.endswith(extension):
            return file_type
    return None


def normalizeBasename(value: Any) -> str:
    """Lower-cased basename of a path using either separator"""
    raw = str(value or '').strip().replace('\\', '/')
    if not raw:
        return ''
    return raw.split('/')[-1].lower()
