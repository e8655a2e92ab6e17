"""
Tests for igc_utils.py utility functions
"""
import pytest
from datetime import datetime, date, timezone
from igc_utils import (
    calculateDistance,
    formatDuration,
    parseDurationSeconds,
    toNumberOrNone,
    normalizeDateOnly,
    formatCoordinates,
    inferImportFileType,
    normalizeBasename,
)


class TestDistanceCalculation:
    """Tests for calculateDistance (haversine formula)"""

    def test_same_point(self):
        assert calculateDistance(45.5, 8.1, 45.5, 8.1) == 0.0

    def test_one_degree_of_latitude(self):
        # One degree along a meridian is about 111.19 km on a 6371 km sphere
        distance = calculateDistance(46.0, 10.0, 47.0, 10.0)
        assert distance == pytest.approx(111.195, abs=0.01)

    def test_symmetry(self):
        d1 = calculateDistance(46.5, 10.0, 47.1, 11.3)
        d2 = calculateDistance(47.1, 11.3, 46.5, 10.0)
        assert d1 == pytest.approx(d2)


class TestFormatDuration:
    """Tests for formatDuration"""

    def test_minutes_only(self):
        assert formatDuration(120) == "2m"
        assert formatDuration(59) == "0m"

    def test_hours_and_minutes(self):
        assert formatDuration(3 * 3600 + 25 * 60 + 40) == "3h 25m"

    def test_negative_or_missing(self):
        assert formatDuration(None) is None
        assert formatDuration(-1) is None


class TestParseDurationSeconds:
    """Tests for parseDurationSeconds"""

    def test_plain_seconds(self):
        assert parseDurationSeconds("5400") == 5400.0
        assert parseDurationSeconds(90) == 90.0

    def test_clock_formats(self):
        assert parseDurationSeconds("1:30") == 5400
        assert parseDurationSeconds("01:30:15") == 5415

    def test_free_text(self):
        assert parseDurationSeconds("2h 5m") == 7500
        assert parseDurationSeconds("45m") == 2700

    def test_unrecognised(self):
        assert parseDurationSeconds("") is None
        assert parseDurationSeconds("soon") is None
        assert parseDurationSeconds(None) is None
        assert parseDurationSeconds(True) is None


class TestToNumberOrNone:
    """Tests for toNumberOrNone"""

    def test_numbers(self):
        assert toNumberOrNone("12.5") == 12.5
        assert toNumberOrNone(3) == 3.0

    def test_rejects_non_finite_and_junk(self):
        assert toNumberOrNone("nan") is None
        assert toNumberOrNone("inf") is None
        assert toNumberOrNone("abc") is None
        assert toNumberOrNone(None) is None
        assert toNumberOrNone(False) is None


class TestNormalizeDateOnly:
    """Tests for normalizeDateOnly"""

    def test_date_object(self):
        assert normalizeDateOnly(date(2025, 5, 9)) == "2025-05-09"

    def test_aware_datetime_uses_utc(self):
        moment = datetime(2025, 5, 9, 23, 30, tzinfo=timezone.utc)
        assert normalizeDateOnly(moment) == "2025-05-09"

    def test_string_with_embedded_date(self):
        assert normalizeDateOnly("2025-05-09T12:00:00Z") == "2025-05-09"

    def test_invalid_values(self):
        assert normalizeDateOnly("") is None
        assert normalizeDateOnly("yesterday") is None
        assert normalizeDateOnly(12) is None


class TestCoordinateFormatting:
    """Tests for formatCoordinates"""

    def test_format_coordinates(self):
        assert formatCoordinates(46.5, 10.0) == "46.5000° N, 10.0000° E"
        assert formatCoordinates(-33.25, -70.5) == "33.2500° S, 70.5000° W"


class TestFileNames:
    """Tests for inferImportFileType and normalizeBasename"""

    def test_infer_by_extension(self):
        assert inferImportFileType("flight.igc") == "igc"
        assert inferImportFileType("FLIGHT.IGC") == "igc"
        assert inferImportFileType("logs.zip") == "zip"
        assert inferImportFileType("logbook.csv") == "csv"

    def test_infer_unknown(self):
        assert inferImportFileType("track.gpx") is None
        assert inferImportFileType("") is None
        assert inferImportFileType(None) is None

    def test_normalize_basename(self):
        assert normalizeBasename("2025/May/Flight1.IGC") == "flight1.igc"
        assert normalizeBasename("C:\\logs\\Flight1.igc") == "flight1.igc"
        assert normalizeBasename(None) == ""
