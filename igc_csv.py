#!/usr/bin/env python3
"""
Legacy CSV flight log parser for the IGC flight import toolkit

A quote-aware tokenizer plus column alias resolution and value coercion.
Row level problems are collected instead of raised so one bad row never
fails the whole table.
"""

import re
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from igc_model import CsvRow, Point
from igc_utils import formatDuration, parseDurationSeconds
from igc_constants import (
    CLASSIFICATION_FAI_TRIANGLE,
    CLASSIFICATION_FREE_FLIGHT,
    CLASSIFICATION_FREE_TRIANGLE,
    CSV_EMPTY_ERROR,
    CSV_FIELD_ALIASES,
    CSV_FIRST_DATA_ROW,
    CSV_ROW_DATE_ERROR,
    POINT_LANDING,
    POINT_TAKEOFF,
    SECONDS_PER_DAY,
    SECONDS_PER_HOUR,
    SECONDS_PER_MINUTE,
)

# Configure logger
logger = logging.getLogger(__name__)

_ISO_DATE = re.compile(r'^(\d{4})-(\d{2})-(\d{2})$')
_DAY_FIRST_DATE = re.compile(r'^(\d{1,2})[./-](\d{1,2})[./-](\d{2,4})$')
_CLOCK = re.compile(r'^(\d{1,2}):(\d{2})(?::(\d{2}))?$')
_NON_NUMERIC = re.compile(r'[^0-9.+-]')


@dataclass
class CsvTable:
    """Tokenized CSV: trimmed header row plus raw data rows"""
    headers: List[str] = field(default_factory=list)
    rows: List[List[str]] = field(default_factory=list)


@dataclass
class CsvNormalization:
    """Normalized rows and the row-level errors collected along the way"""
    rows: List[CsvRow] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def normalizeDate(raw: str) -> Optional[str]:
    """Coerce YYYY-MM-DD, D/M/YY(YY), D.M.YYYY or an ISO datetime to YYYY-MM-DD"""
    trimmed = (raw or '').strip()
    if not trimmed:
        return None

    iso = _ISO_DATE.match(trimmed)
    if iso:
        try:
            return datetime.strptime(trimmed, '%Y-%m-%d').date().isoformat()
        except ValueError:
            return None

    day_first = _DAY_FIRST_DATE.match(trimmed)
    if day_first:
        day, month, year = (int(group) for group in day_first.groups())
        if year < 100:
            year += 2000
        if 2000 <= year < 2200:
            try:
                return datetime(year, month, day).date().isoformat()
            except ValueError:
                return None

    try:
        return datetime.fromisoformat(trimmed).date().isoformat()
    except ValueError:
        return None


def parseTime(raw: str) -> Optional[str]:
    """Coerce H:MM or HH:MM:SS to HH:MM:SS"""
    match = _CLOCK.match((raw or '').strip())
    if not match:
        return None
    hours, minutes, seconds = match.groups()
    return f"{int(hours):02d}:{int(minutes):02d}:{int(seconds or 0):02d}"


def toNumber(raw: str) -> Optional[float]:
    """Lenient number parsing: comma decimal separator, stray characters dropped"""
    normalized = (raw or '').replace(',', '.', 1).strip()
    if not normalized:
        return None
    cleaned = _NON_NUMERIC.sub('', normalized)
    try:
        return float(cleaned)
    except ValueError:
        return None


def classifyRouteType(route_type: str) -> Optional[str]:
    """Map a free-text route type to a classification label"""
    lowered = (route_type or '').lower()
    if not lowered:
        return None
    if 'fai' in lowered:
        return CLASSIFICATION_FAI_TRIANGLE
    if 'flat' in lowered or 'triangle' in lowered:
        return CLASSIFICATION_FREE_TRIANGLE
    if 'free' in lowered:
        return CLASSIFICATION_FREE_FLIGHT
    return None


def _clock_seconds(value: str) -> int:
    hours, minutes, seconds = (int(part) for part in value.split(':'))
    return hours * SECONDS_PER_HOUR + minutes * SECONDS_PER_MINUTE + seconds


class CsvTableParser:
    """
    Parses legacy CSV flight logs into normalized rows.
    """

    def __init__(self, aliases: Dict[str, List[str]] = None):
        """Initialize with an optional alias table"""
        self.aliases = aliases or CSV_FIELD_ALIASES

    @staticmethod
    def tokenize(content: str) -> CsvTable:
        """
        Split CSV text into rows of fields. Doubled quotes escape a quote,
        CR, LF and CRLF all end a row outside quotes, blank rows are dropped.
        """
        rows: List[List[str]] = []
        row: List[str] = []
        value = []
        in_quotes = False
        i = 0
        length = len(content)

        while i < length:
            char = content[i]
            following = content[i + 1] if i + 1 < length else ''

            if char == '"' and in_quotes and following == '"':
                value.append('"')
                i += 2
                continue

            if char == '"':
                in_quotes = not in_quotes
            elif char == ',' and not in_quotes:
                row.append(''.join(value))
                value = []
            elif char in '\r\n' and not in_quotes:
                if char == '\r' and following == '\n':
                    i += 1
                row.append(''.join(value))
                rows.append(row)
                row = []
                value = []
            else:
                value.append(char)
            i += 1

        if value or row:
            row.append(''.join(value))
            rows.append(row)

        non_blank = [r for r in rows if any(cell.strip() for cell in r)]
        if not non_blank:
            return CsvTable()

        return CsvTable(headers=[header.strip() for header in non_blank[0]], rows=non_blank[1:])

    def build_field_map(self, headers: List[str]) -> Dict[str, int]:
        """Resolve each logical field to a column index, -1 when absent"""
        normalized_headers = [header.strip().lower() for header in headers]
        mapping = {}
        for name, aliases in self.aliases.items():
            mapping[name] = -1
            for alias in aliases:
                if alias.strip().lower() in normalized_headers:
                    mapping[name] = normalized_headers.index(alias.strip().lower())
                    break
        return mapping

    @staticmethod
    def _cell(row: List[str], index: int) -> str:
        if index < 0 or index >= len(row):
            return ''
        return (row[index] or '').strip()

    def normalize_row(self, row: List[str], field_map: Dict[str, int], row_number: int,
                      source_file: Optional[str] = None) -> Optional[CsvRow]:
        """Normalize one data row; None when it has no usable date"""
        def cell(name: str) -> str:
            return self._cell(row, field_map.get(name, -1))

        flight_date = normalizeDate(cell('date'))
        if not flight_date:
            return None

        start_time = parseTime(cell('start_time'))
        end_time = parseTime(cell('end_time'))
        duration = parseDurationSeconds(cell('duration'))

        # Fall back to the clock difference, wrapping past midnight
        if not duration and start_time and end_time:
            difference = _clock_seconds(end_time) - _clock_seconds(start_time)
            if difference < 0:
                difference += SECONDS_PER_DAY
            if difference > 0:
                duration = float(difference)

        points = []
        takeoff_lat, takeoff_lng = toNumber(cell('takeoff_lat')), toNumber(cell('takeoff_lng'))
        if takeoff_lat is not None and takeoff_lng is not None:
            points.append(Point(POINT_TAKEOFF, takeoff_lat, takeoff_lng, time=start_time))
        landing_lat, landing_lng = toNumber(cell('landing_lat')), toNumber(cell('landing_lng'))
        if landing_lat is not None and landing_lng is not None:
            points.append(Point(POINT_LANDING, landing_lat, landing_lng, time=end_time))

        route_type = cell('route_type')
        igc_file_name = cell('igc_file_name')

        return CsvRow(
            row_number=row_number,
            date=flight_date,
            source_file=source_file,
            distance_km=toNumber(cell('distance')),
            duration_s=duration or None,
            flight_duration=formatDuration(duration) if duration else None,
            start_time=start_time,
            end_time=end_time,
            takeoff=cell('takeoff') or cell('site') or None,
            landing=cell('landing') or None,
            site=cell('site') or None,
            pilot=cell('pilot') or None,
            route_type=route_type or None,
            classification=classifyRouteType(route_type),
            max_altitude=toNumber(cell('max_altitude')),
            igc_file_name=igc_file_name.replace('\\', '/').split('/')[-1] if igc_file_name else None,
            points=points,
            raw_row=list(row),
        )

    def normalize(self, headers: List[str], rows: List[List[str]], source_file: Optional[str] = None) -> CsvNormalization:
        """
        Normalize data rows against the header row. A row without a valid
        date is reported and skipped; later rows are still processed.
        """
        result = CsvNormalization()
        if not headers:
            result.errors.append(CSV_EMPTY_ERROR)
            return result

        field_map = self.build_field_map(headers)
        if field_map.get('date', -1) < 0:
            logger.warning(f"No date column found in {source_file or 'CSV'} headers: {headers}")

        for index, row in enumerate(rows):
            row_number = index + CSV_FIRST_DATA_ROW
            normalized = self.normalize_row(row, field_map, row_number, source_file)
            if normalized is None:
                result.errors.append(CSV_ROW_DATE_ERROR.format(row_number))
                continue
            result.rows.append(normalized)

        logger.debug(f"Normalized {len(result.rows)} CSV rows with {len(result.errors)} errors")
        return result

    def parse(self, content: str, source_file: Optional[str] = None) -> CsvNormalization:
        """Tokenize and normalize CSV text"""
        table = self.tokenize(content or '')
        return self.normalize(table.headers, table.rows, source_file)


# Public functions

def tokenize(content: str) -> CsvTable:
    """Split CSV text into a header row and data rows"""
    return CsvTableParser.tokenize(content)

def normalize(headers: List[str], rows: List[List[str]], source_file: Optional[str] = None) -> CsvNormalization:
    """Normalize tokenized CSV rows"""
    return CsvTableParser().normalize(headers, rows, source_file)

def parseCsvContent(content: str, source_file: Optional[str] = None) -> CsvNormalization:
    """
    Parse CSV text into normalized rows plus row-level errors.
    Main entry point for CSV parsing.
    """
    return CsvTableParser().parse(content, source_file)
