#!/usr/bin/env python3
"""
Constants for the IGC flight import toolkit
"""

# File types
class FileType:
    IGC = "igc"
    ZIP = "zip"
    CSV = "csv"

# File extensions recognised for import (extension only, no content sniffing)
FILE_EXTENSIONS = {
    ".igc": FileType.IGC,
    ".zip": FileType.ZIP,
    ".csv": FileType.CSV,
}

# Default configuration values
DEFAULT_MAX_ZIP_ENTRIES = 2000
DEFAULT_MAX_UNCOMPRESSED_BYTES = 250 * 1024 * 1024
DEFAULT_ALLOW_CSV = False
DEFAULT_SMOOTHING_WINDOW_SECONDS = 10.0
DEFAULT_ALTITUDE_NOISE_THRESHOLD = 0.5
DEFAULT_CLIMB_WINDOW_SECONDS = 30.0
DEFAULT_SPEED_WINDOW_FIXES = 15
DEFAULT_PREVIEW_MAX_ITEMS = 50
DEFAULT_PREVIEW_MAX_PAYLOAD_BYTES = 900 * 1024
DEFAULT_REVERSE_GEOCODER = "none"
DEFAULT_GEOCODE_CACHE = "geocode_cache.json"
DEFAULT_USER_AGENT = "igc-import/0.1.0 (country lookup)"

# ZIP container format
ZIP_EOCD_SIGNATURE = 0x06054B50
ZIP_CENTRAL_FILE_HEADER_SIGNATURE = 0x02014B50
ZIP_LOCAL_FILE_HEADER_SIGNATURE = 0x04034B50
ZIP_EOCD_MIN_SIZE = 22
ZIP_EOCD_MAX_SEARCH = 65557  # EOCD record plus the longest possible comment
ZIP_CENTRAL_HEADER_SIZE = 46
ZIP_LOCAL_HEADER_SIZE = 30
ZIP_METHOD_STORED = 0
ZIP_METHOD_DEFLATE = 8

# IGC file constants
IGC_RECORD_POSITION = "B"
IGC_RECORD_HEADER = "H"
IGC_HEADER_SOURCES = "FSO"
IGC_HEADER_PILOT = "PLT"
IGC_HEADER_GLIDER_TYPE = "GTY"
IGC_HEADER_GLIDER_ID = "GID"
IGC_HEADER_SITE = "SIT"
IGC_HEADER_DATE = "DTE"
IGC_HEADER_COMPETITION_CLASS = "CCL"
IGC_CANONICAL_DATE_PREFIX = "HFDTE"
IGC_ALT_DATE_PREFIX = "HFDTEDATE:"
IGC_MIN_POSITION_RECORD_LENGTH = 35
IGC_MISSING_ALTITUDE = 0

# Header spellings rewritten by the one-shot reformatting retry
IGC_REFORMAT_RULES = [
    ("HFDTEDATE:", "HFDTE"),
    ("HSCCLCOMPETITION CLASS:", "HFCCLCOMPETITIONCLASS:"),
]

# Standard prefixes to strip from IGC header values
DEFAULT_STRIP_PREFIXES = [
    "PILOTINCHARGE:",
    "PILOT:",
    "GLIDERTYPE:",
    "GLIDERID:",
    "SITE:",
    "COMPETITIONCLASS:",
    "COMPETITION CLASS:",
]

# Earth radius in kilometers (for distance calculations)
EARTH_RADIUS_KM = 6371.0

# Statistics labels
POINT_FIRST_FIX = "First Fix"
POINT_LAST_FIX = "Last Fix"
POINT_CP_IN = "CP In"
POINT_CP_OUT = "CP Out"
POINT_START = "Start"
POINT_FINISH = "Finish"
POINT_TURNPOINT = "TP{}"
POINT_TAKEOFF = "Takeoff"
POINT_LANDING = "Landing"

# Built-in named regions: (name, [(lat, lon), ...])
DEFAULT_REGIONS = [
    ("alps", [
        (43.70, 5.20),
        (44.10, 7.70),
        (45.40, 7.10),
        (45.90, 8.90),
        (46.00, 10.50),
        (46.10, 12.20),
        (46.40, 13.80),
        (47.10, 16.00),
        (47.80, 15.90),
        (47.75, 12.90),
        (47.60, 10.50),
        (47.55, 9.40),
        (47.10, 7.60),
        (46.40, 6.20),
        (45.20, 5.60),
        (44.20, 5.00),
    ]),
]

# CSV import (legacy)
CSV_EMPTY_ERROR = "CSV appears empty"
CSV_ROW_DATE_ERROR = "Row {}: missing or invalid date"
CSV_FIRST_DATA_ROW = 2  # header row is row 1

CSV_FIELD_ALIASES = {
    "date": ["date", "flight_date", "flight date", "day"],
    "distance": ["distance", "distance_km", "distance km", "route_distance", "route_distance_km"],
    "duration": ["duration", "duration_s", "duration_sec", "flight_duration", "flight duration", "time"],
    "end_time": ["end_time", "landing_time", "end", "time_end"],
    "igc_file_name": ["igc", "igc_file", "igc_filename", "igc_file_name", "track_file", "track_filename"],
    "landing": ["landing", "landing_name", "landing site", "ldg"],
    "landing_lat": ["landing_lat", "landing_latitude", "ldg_lat", "landing latitude"],
    "landing_lng": ["landing_lng", "landing_longitude", "ldg_lng", "landing longitude"],
    "max_altitude": ["max_altitude", "max_altitude_m", "max altitude", "altitude_max"],
    "pilot": ["pilot", "pilot_name", "name"],
    "route_type": ["route_type", "route", "type"],
    "site": ["site", "site_name", "takeoff_site", "launch_site"],
    "start_time": ["start_time", "takeoff_time", "launch_time", "start", "time_start"],
    "takeoff": ["takeoff", "takeoff_name", "launch", "launch_name", "to"],
    "takeoff_lat": ["takeoff_lat", "takeoff_latitude", "launch_lat", "takeoff latitude"],
    "takeoff_lng": ["takeoff_lng", "takeoff_longitude", "launch_lng", "takeoff longitude"],
}

CLASSIFICATION_FAI_TRIANGLE = "FAI Triangle"
CLASSIFICATION_FREE_TRIANGLE = "Free Triangle"
CLASSIFICATION_FREE_FLIGHT = "Free Flight"

# Merge consistency checks
MERGE_DURATION_MAX_RATIO = 0.25
MERGE_DURATION_MAX_ABS_SECONDS = 20 * 60
MERGE_DISTANCE_MAX_RATIO = 0.2
MERGE_DISTANCE_MAX_ABS_KM = 5.0
MERGE_DATE_MISMATCH = "date mismatch"
MERGE_DURATION_MISMATCH = "duration mismatch"
MERGE_DISTANCE_MISMATCH = "distance mismatch"

# Precedence of the statistics fields read by the merge checks
MERGE_DURATION_FIELDS = ["duration_s", "flight_duration"]
MERGE_DISTANCE_FIELDS = ["route_distance", "free_distance"]

# Fields filled from CSV when the IGC value is absent
MERGE_FILL_FIELDS = ["site", "pilot", "start_time", "end_time", "max_altitude", "points"]

# Fingerprinting
FINGERPRINT_ALGORITHM = "sha256"
FINGERPRINT_FALLBACK_PREFIX = "fallback-"

# Preview / commit
PREVIEW_CLASSIFICATION_DUPLICATE = "duplicate"
PREVIEW_CLASSIFICATION_POSSIBLE = "possible_duplicate"
COMMIT_STATUS_IMPORTED = "imported"
COMMIT_STATUS_ERROR = "error"
CHUNK_ENVELOPE_BYTES = 2  # "[" and "]"
CHUNK_SEPARATOR_BYTES = 1  # ","

# Configuration sections
CONFIG_SECTION_DEFAULTS = "Defaults"
CONFIG_SECTION_REGION_PREFIX = "region "
CONFIG_FILE_NAMES = ("igcimport.conf", "igcimport.ini")

# Time constants
MS_PER_SECOND = 1000
SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400
DATE_FORMAT_ISO = "%Y-%m-%d"
