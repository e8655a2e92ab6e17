#!/usr/bin/env python3
"""
IGC file parser module for the IGC flight import toolkit

This module handles parsing of IGC files including header metadata extraction
and position (B record) decoding. TrackParser wraps the line decoder with a
single reformatting retry for common non-standard header spellings.
"""

import re
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Tuple

from igc_errors import IgcDecodeError, InvalidFormatError
from igc_model import Fix, FlightTrack
from igc_constants import (
    DEFAULT_STRIP_PREFIXES,
    IGC_HEADER_COMPETITION_CLASS,
    IGC_HEADER_DATE,
    IGC_HEADER_GLIDER_ID,
    IGC_HEADER_GLIDER_TYPE,
    IGC_HEADER_PILOT,
    IGC_HEADER_SITE,
    IGC_HEADER_SOURCES,
    IGC_MIN_POSITION_RECORD_LENGTH,
    IGC_MISSING_ALTITUDE,
    IGC_RECORD_HEADER,
    IGC_RECORD_POSITION,
    IGC_REFORMAT_RULES,
    MS_PER_SECOND,
)

# Configure logger
logger = logging.getLogger(__name__)

_CANONICAL_DATE = re.compile(r'^H[FSO]DTE(\d{2})(\d{2})(\d{2})', re.IGNORECASE)
_COMPETITION_CLASS = re.compile(r'^H[FSO]CCLCOMPETITION ?CLASS:(.*)$', re.IGNORECASE | re.MULTILINE)
_VALUE_LABEL = re.compile(r'^[A-Za-z ]{2,32}:')


class IgcHeaderParser:
    """
    Parses header records from IGC files and extracts metadata.
    Accepts records from any source (F, S or O).
    """

    def __init__(self, prefixes_to_strip: List[str] = None):
        """
        Initialize with optional list of prefixes to strip from header values
        """
        self.prefixes_to_strip = prefixes_to_strip or DEFAULT_STRIP_PREFIXES

    @staticmethod
    def strip_prefixes(text: str, prefixes: List[str]) -> str:
        """Remove common prefixes from a text string"""
        if not text:
            return text

        upper = text.upper()
        for prefix in prefixes:
            if upper.startswith(prefix):
                return text[len(prefix):].strip()

        # Unknown long-form label, e.g. "HFPLTPILOT NAME:John"
        label = _VALUE_LABEL.match(text)
        if label:
            return text[label.end():].strip()

        return text

    @staticmethod
    def parse_date(line: str) -> Optional[date]:
        """Parse the canonical DDMMYY date header, or None"""
        match = _CANONICAL_DATE.match(line)
        if not match:
            return None
        day, month, year = (int(group) for group in match.groups())
        try:
            return date(2000 + year, month, day)
        except ValueError:
            logger.warning(f"Invalid date in IGC header: {line}")
            return None

    def parse_header_line(self, line: str, track: FlightTrack) -> FlightTrack:
        """
        Parse a single header line and update the track metadata
        """
        if len(line) < 5 or line[0].upper() != IGC_RECORD_HEADER:
            return track
        if line[1].upper() not in IGC_HEADER_SOURCES:
            return track

        header_type = line[2:5].upper()
        value = self.strip_prefixes(line[5:].strip(), self.prefixes_to_strip)

        if header_type == IGC_HEADER_PILOT:
            track.pilot = value or None

        elif header_type == IGC_HEADER_GLIDER_TYPE:
            track.glider_type = value or None

        elif header_type == IGC_HEADER_GLIDER_ID:
            track.glider_id = value or None

        elif header_type == IGC_HEADER_SITE:
            track.site = value or None

        elif header_type == IGC_HEADER_COMPETITION_CLASS:
            track.competition_class = value or None

        elif header_type == IGC_HEADER_DATE and track.date is None:
            track.date = self.parse_date(line)

        return track


class IgcPositionParser:
    """
    Parses position records (B records) from IGC files.
    Extracts time, coordinates, validity and altitude data.
    """

    @staticmethod
    def parse_time(line: str) -> time:
        """Extract the UTC time of day from a B record"""
        return time(int(line[1:3]), int(line[3:5]), int(line[5:7]))

    @staticmethod
    def parse_latitude(line: str) -> float:
        """Extract latitude from a B record (DDMMmmmN)"""
        lat_deg = int(line[7:9])
        lat_min = int(line[9:11])
        lat_frac = int(line[11:14]) / 1000
        lat_dir = line[14].upper()

        if lat_dir not in ('N', 'S'):
            raise ValueError(f"Invalid latitude hemisphere: {lat_dir!r}")

        latitude = lat_deg + (lat_min + lat_frac) / 60.0
        if lat_dir == 'S':
            latitude = -latitude

        return latitude

    @staticmethod
    def parse_longitude(line: str) -> float:
        """Extract longitude from a B record (DDDMMmmmE)"""
        lon_deg = int(line[15:18])
        lon_min = int(line[18:20])
        lon_frac = int(line[20:23]) / 1000
        lon_dir = line[23].upper()

        if lon_dir not in ('E', 'W'):
            raise ValueError(f"Invalid longitude hemisphere: {lon_dir!r}")

        longitude = lon_deg + (lon_min + lon_frac) / 60.0
        if lon_dir == 'W':
            longitude = -longitude

        return longitude

    @staticmethod
    def parse_altitude(line: str) -> Tuple[Optional[int], Optional[int]]:
        """
        Extract pressure and GPS altitude from a B record
        Returns tuple of (pressure_altitude, gps_altitude) in meters, None when absent
        """
        def field(start: int, end: int) -> Optional[int]:
            raw = line[start:end]
            if len(raw) != end - start:
                return None
            value = int(raw)
            return None if value == IGC_MISSING_ALTITUDE else value

        alt_pressure = field(25, 30)
        alt_gps = field(30, 35)

        # A 'V' fix is 2D only, so its GPS altitude is meaningless
        if line[24].upper() == 'V':
            alt_gps = None

        return alt_pressure, alt_gps

    def parse_position_record(self, line: str, flight_date: date, day_offset: int = 0) -> Fix:
        """
        Parse a complete B record and return a Fix
        """
        fix_time = self.parse_time(line)
        moment = datetime.combine(flight_date, fix_time, tzinfo=timezone.utc) + timedelta(days=day_offset)
        alt_pressure, alt_gps = self.parse_altitude(line)

        return Fix(
            timestamp=int(moment.timestamp() * MS_PER_SECOND),
            latitude=round(self.parse_latitude(line), 9),
            longitude=round(self.parse_longitude(line), 9),
            gps_altitude=alt_gps,
            pressure_altitude=alt_pressure,
            valid=line[24].upper() == 'A',
            time=fix_time.strftime('%H:%M:%S'),
        )


class IgcDecoder:
    """
    Line-oriented IGC decoder. Strict about the date header: content
    without a canonical H?DTE record or without fixes is rejected.
    """

    def __init__(self, prefixes_to_strip: List[str] = None):
        """Initialize with header and position parsers"""
        self.header_parser = IgcHeaderParser(prefixes_to_strip)
        self.position_parser = IgcPositionParser()

    def decode(self, content: str) -> FlightTrack:
        """Decode IGC text into a FlightTrack"""
        track = FlightTrack()
        lines = [line.strip() for line in content.splitlines()]

        # First pass: header records
        for line in lines:
            if line and line[0].upper() == IGC_RECORD_HEADER:
                track = self.header_parser.parse_header_line(line, track)

        if track.date is None:
            raise IgcDecodeError("Missing or invalid HFDTE date header")

        # Second pass: position records, rolling over past midnight
        day_offset = 0
        previous_time = None
        skipped = 0

        for line_number, line in enumerate(lines, start=1):
            if not line or line[0] != IGC_RECORD_POSITION:
                continue
            if len(line) < IGC_MIN_POSITION_RECORD_LENGTH:
                logger.warning(f"Skipping short B record on line {line_number}")
                skipped += 1
                continue

            try:
                fix_time = self.position_parser.parse_time(line)
                if previous_time is not None and fix_time < previous_time:
                    day_offset += 1
                fix = self.position_parser.parse_position_record(line, track.date, day_offset)
            except (ValueError, IndexError) as e:
                logger.warning(f"Skipping malformed B record on line {line_number}: {e}")
                skipped += 1
                continue

            previous_time = fix_time
            track.fixes.append(fix)

        if not track.fixes:
            raise IgcDecodeError("No valid B records found")

        if skipped:
            logger.debug(f"Decoded {len(track.fixes)} fixes, skipped {skipped} records")
        return track


class TrackParser:
    """
    Main parser class for IGC content. Delegates to the decoder and retries
    once after normalizing known non-standard header spellings.
    """

    def __init__(self, decoder: Optional[IgcDecoder] = None):
        """Initialize with an optional decoder"""
        self.decoder = decoder or IgcDecoder()

    @staticmethod
    def reformat(content: str) -> str:
        """Rewrite alternate header spellings to the canonical ones"""
        reformatted = []
        for line in content.split('\n'):
            for old, new in IGC_REFORMAT_RULES:
                if line.startswith(old):
                    line = new + line[len(old):]
                    break
            reformatted.append(line)
        return '\n'.join(reformatted)

    def parse(self, content: str) -> FlightTrack:
        """
        Parse IGC text into a FlightTrack.
        Raises InvalidFormatError when the content is unusable even after reformatting.
        """
        if not content or not isinstance(content, str):
            raise InvalidFormatError("Invalid IGC file content")

        try:
            return self.decoder.decode(content)
        except IgcDecodeError as first_error:
            logger.debug(f"IGC decode failed ({first_error}), retrying with reformatted headers")

        reformatted = self.reformat(content)
        try:
            return self.decoder.decode(reformatted)
        except IgcDecodeError as e:
            raise InvalidFormatError(f"Failed to parse IGC file: {e}") from e


# Public functions

def strip_prefixes(text, prefixes):
    """Remove common prefixes from a text string"""
    return IgcHeaderParser.strip_prefixes(text, prefixes)

def reformatIgcContent(content: str) -> str:
    """Normalize known non-standard IGC header spellings"""
    return TrackParser.reformat(content)

def parseIgc(content: str) -> FlightTrack:
    """
    Parse IGC text into a FlightTrack.
    Main entry point for IGC parsing.
    """
    return TrackParser().parse(content)

def extractCompetitionClass(content) -> Optional[str]:
    """Free-text competition class from the H?CCL header, or None"""
    if not content or not isinstance(content, str):
        return None
    match = _COMPETITION_CLASS.search(content.replace('\r\n', '\n'))
    if not match:
        return None
    value = match.group(1).strip()
    return value or None
