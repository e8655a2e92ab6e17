#!/usr/bin/env python3
"""
Import reconciliation for the IGC flight import toolkit

Content fingerprints for duplicate detection, the CSV/IGC statistics merge
with its consistency checks, and classification of import items from a
duplicate-preview response.
"""

import hashlib
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from igc_model import DedupeStatus, FlightStatistics, ImportItem
from igc_utils import normalizeDateOnly, parseDurationSeconds, toNumberOrNone
from igc_constants import (
    FINGERPRINT_ALGORITHM,
    FINGERPRINT_FALLBACK_PREFIX,
    IGC_ALT_DATE_PREFIX,
    IGC_CANONICAL_DATE_PREFIX,
    IGC_RECORD_POSITION,
    MERGE_DATE_MISMATCH,
    MERGE_DISTANCE_FIELDS,
    MERGE_DISTANCE_MAX_ABS_KM,
    MERGE_DISTANCE_MAX_RATIO,
    MERGE_DISTANCE_MISMATCH,
    MERGE_DURATION_FIELDS,
    MERGE_DURATION_MAX_ABS_SECONDS,
    MERGE_DURATION_MAX_RATIO,
    MERGE_DURATION_MISMATCH,
    MERGE_FILL_FIELDS,
    POINT_FIRST_FIX,
    POINT_TAKEOFF,
    PREVIEW_CLASSIFICATION_DUPLICATE,
    PREVIEW_CLASSIFICATION_POSSIBLE,
)

# Configure logger
logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    """Merged statistics plus the consistency checks that failed"""
    merged: FlightStatistics
    consistency_errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.consistency_errors


def normalizeIgcForHash(content: str) -> str:
    """
    Reduce IGC text to the lines that identify a flight: the date header
    and the fix records. Descriptive headers (pilot, glider) are dropped
    so they do not affect the fingerprint.
    """
    lines = [line.strip() for line in str(content or '').splitlines()]
    lines = [line for line in lines if line]

    date_line = next((line for line in lines if line.startswith(IGC_CANONICAL_DATE_PREFIX)), '')
    if date_line.startswith(IGC_ALT_DATE_PREFIX):
        date_line = IGC_CANONICAL_DATE_PREFIX + date_line[len(IGC_ALT_DATE_PREFIX):]

    fix_lines = [line for line in lines if line.startswith(IGC_RECORD_POSITION)]
    if not fix_lines:
        return date_line

    return '\n'.join(line for line in [date_line] + fix_lines if line)


def fallbackHash(text: str) -> str:
    """32-bit rolling hash (h * 31 + c), not collision resistant"""
    value = 0
    for char in text:
        value = ((value << 5) - value + ord(char)) & 0xFFFFFFFF
    if value & 0x80000000:
        value -= 0x100000000
    return f"{FINGERPRINT_FALLBACK_PREFIX}{abs(value)}"


def _numbers_compatible(left: Any, right: Any, max_ratio: float, max_abs: float) -> bool:
    left_value = toNumberOrNone(left)
    right_value = toNumberOrNone(right)
    if not left_value or not right_value:
        return True
    difference = abs(left_value - right_value)
    if difference <= max_abs:
        return True
    return difference / max(left_value, right_value) <= max_ratio


def _dates_compatible(left: Any, right: Any) -> bool:
    left_date = normalizeDateOnly(left)
    right_date = normalizeDateOnly(right)
    if not left_date or not right_date:
        return True
    return left_date == right_date


def _duration_of(stats: FlightStatistics) -> Optional[float]:
    duration_field, text_field = MERGE_DURATION_FIELDS
    return toNumberOrNone(getattr(stats, duration_field)) or parseDurationSeconds(getattr(stats, text_field))


def _distance_of(stats: FlightStatistics) -> Optional[float]:
    for name in MERGE_DISTANCE_FIELDS:
        value = toNumberOrNone(getattr(stats, name))
        if value:
            return value
    return None


class ImportReconciler:
    """
    Fingerprinting, merging and classification of import items.
    """

    def __init__(self, algorithm: str = FINGERPRINT_ALGORITHM):
        """Initialize with the digest algorithm to use for fingerprints"""
        self.algorithm = algorithm

    def fingerprint(self, content: str) -> str:
        """
        Hex digest of the normalized IGC text. Falls back to a prefixed
        32-bit hash when the digest is not available in this runtime.
        """
        normalized = normalizeIgcForHash(content)
        if self.algorithm not in hashlib.algorithms_available:
            logger.warning(f"{self.algorithm} unavailable, using non-cryptographic fallback fingerprint")
            return fallbackHash(normalized)
        return hashlib.new(self.algorithm, normalized.encode('utf-8')).hexdigest()

    @staticmethod
    def merge(igc_stats: FlightStatistics, csv_stats: FlightStatistics) -> MergeResult:
        """
        Fill gaps in the IGC statistics from a CSV row when date, duration
        and distance agree. On any mismatch the IGC statistics are returned
        unmodified with the failed checks listed.
        """
        errors = []

        if not _dates_compatible(igc_stats.date, csv_stats.date):
            errors.append(MERGE_DATE_MISMATCH)

        if not _numbers_compatible(_duration_of(igc_stats), _duration_of(csv_stats),
                                   MERGE_DURATION_MAX_RATIO, MERGE_DURATION_MAX_ABS_SECONDS):
            errors.append(MERGE_DURATION_MISMATCH)

        if not _numbers_compatible(_distance_of(igc_stats), _distance_of(csv_stats),
                                   MERGE_DISTANCE_MAX_RATIO, MERGE_DISTANCE_MAX_ABS_KM):
            errors.append(MERGE_DISTANCE_MISMATCH)

        if errors:
            logger.info(f"CSV row not merged: {', '.join(errors)}")
            return MergeResult(merged=igc_stats, consistency_errors=errors)

        filled = {}
        for name in MERGE_FILL_FIELDS:
            current = getattr(igc_stats, name)
            incoming = getattr(csv_stats, name)
            if not current and incoming:
                filled[name] = list(incoming) if isinstance(incoming, list) else incoming

        return MergeResult(merged=replace(igc_stats, **filled) if filled else igc_stats)

    @staticmethod
    def classify(items: List[ImportItem], preview_response: Optional[Dict[str, Any]]) -> List[ImportItem]:
        """
        Apply a duplicate-preview response to the items. Items with no
        matching response entry keep their status; new items become ready.
        """
        entries = {}
        for entry in (preview_response or {}).get('items') or []:
            local_id = entry.get('localId')
            # First classification for an id wins
            if local_id is not None and local_id not in entries:
                entries[local_id] = entry

        classified = []
        for item in items:
            entry = entries.get(item.local_id)
            if entry is None:
                status = DedupeStatus.READY if item.dedupe_status == DedupeStatus.UNCLASSIFIED else item.dedupe_status
                classified.append(replace(item, dedupe_status=status))
                continue

            classification = entry.get('classification')
            if classification == PREVIEW_CLASSIFICATION_DUPLICATE:
                status = DedupeStatus.DUPLICATE
            elif classification == PREVIEW_CLASSIFICATION_POSSIBLE:
                status = DedupeStatus.POSSIBLE_DUPLICATE
            else:
                status = DedupeStatus.READY
            classified.append(replace(item, dedupe_status=status, duplicate_explanation=entry.get('explanation')))

        return classified

    @staticmethod
    def preview_flight_stats(stats: FlightStatistics, include_first_point_fallback: bool = False,
                             max_preview_points: int = 2) -> Dict[str, Any]:
        """Reduced statistics sent to the duplicate-preview endpoint"""
        points = []
        for index, point in enumerate(stats.points):
            if point.label in (POINT_FIRST_FIX, POINT_TAKEOFF) or (include_first_point_fallback and index == 0):
                points.append({
                    'label': point.label,
                    'latitude': toNumberOrNone(point.latitude),
                    'longitude': toNumberOrNone(point.longitude),
                    'time': point.time or None,
                })
        points = points[:max_preview_points]

        preview = {
            'date': stats.date.isoformat() if stats.date else None,
            'duration_s': toNumberOrNone(stats.duration_s),
            'flight_duration': stats.flight_duration or None,
            'max_altitude': toNumberOrNone(stats.max_altitude),
            'route_distance': toNumberOrNone(stats.route_distance or stats.free_distance),
            'site': stats.site or None,
            'start_time': stats.start_time or None,
            'total_distance': toNumberOrNone(stats.total_distance),
        }
        if points:
            preview['points'] = points
        return preview


# Public functions

def fingerprint(content: str) -> str:
    """SHA-256 fingerprint of the flight-identifying IGC lines"""
    return ImportReconciler().fingerprint(content)

def mergeCsvIntoIgc(igc_stats: FlightStatistics, csv_stats: FlightStatistics) -> MergeResult:
    """Merge CSV-only fields into IGC statistics when both agree"""
    return ImportReconciler.merge(igc_stats, csv_stats)

def classify(items: List[ImportItem], preview_response: Optional[Dict[str, Any]]) -> List[ImportItem]:
    """Classify items from a duplicate-preview response"""
    return ImportReconciler.classify(items, preview_response)

def buildPreviewFlightStats(stats: FlightStatistics, include_first_point_fallback: bool = False,
                            max_preview_points: int = 2) -> Dict[str, Any]:
    """Reduced statistics for the preview request"""
    return ImportReconciler.preview_flight_stats(stats, include_first_point_fallback, max_preview_points)
