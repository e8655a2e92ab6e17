#!/usr/bin/env python3
"""
Configuration handling for the IGC flight import toolkit

This module handles command line arguments, config file loading, archive
limits, statistics tuning, and the named regions used for tagging flights.
Settings are resolved once, then handed to the components that need them.
"""

import configparser
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from igc_constants import (
    CONFIG_FILE_NAMES,
    CONFIG_SECTION_DEFAULTS,
    CONFIG_SECTION_REGION_PREFIX,
    DEFAULT_ALLOW_CSV,
    DEFAULT_ALTITUDE_NOISE_THRESHOLD,
    DEFAULT_CLIMB_WINDOW_SECONDS,
    DEFAULT_GEOCODE_CACHE,
    DEFAULT_MAX_UNCOMPRESSED_BYTES,
    DEFAULT_MAX_ZIP_ENTRIES,
    DEFAULT_PREVIEW_MAX_ITEMS,
    DEFAULT_PREVIEW_MAX_PAYLOAD_BYTES,
    DEFAULT_REGIONS,
    DEFAULT_REVERSE_GEOCODER,
    DEFAULT_SMOOTHING_WINDOW_SECONDS,
    DEFAULT_SPEED_WINDOW_FIXES,
    DEFAULT_USER_AGENT,
)

# Configure logger
logger = logging.getLogger(__name__)


@dataclass
class ZipLimits:
    """Resource ceilings applied while extracting an archive"""
    max_entries: int = DEFAULT_MAX_ZIP_ENTRIES
    max_uncompressed_bytes: int = DEFAULT_MAX_UNCOMPRESSED_BYTES
    allow_csv: bool = DEFAULT_ALLOW_CSV


@dataclass
class StatisticsSettings:
    """Tuning knobs for the statistics engine"""
    smoothing_window_seconds: float = DEFAULT_SMOOTHING_WINDOW_SECONDS
    altitude_noise_threshold: float = DEFAULT_ALTITUDE_NOISE_THRESHOLD
    climb_window_seconds: float = DEFAULT_CLIMB_WINDOW_SECONDS
    speed_window_fixes: int = DEFAULT_SPEED_WINDOW_FIXES


@dataclass
class ChunkLimits:
    """Bounds for a single preview/commit request"""
    max_items: Optional[int] = DEFAULT_PREVIEW_MAX_ITEMS
    max_payload_bytes: Optional[int] = DEFAULT_PREVIEW_MAX_PAYLOAD_BYTES


@dataclass
class GeocoderSettings:
    """Reverse geocoding backend used for country tags"""
    backend: str = DEFAULT_REVERSE_GEOCODER
    cache_path: str = DEFAULT_GEOCODE_CACHE
    user_agent: str = DEFAULT_USER_AGENT


@dataclass
class RegionDefinition:
    """A named polygon, vertices as (lat, lon)"""
    name: str
    polygon: List[Tuple[float, float]] = field(default_factory=list)


def parsePolygon(value: str) -> List[Tuple[float, float]]:
    """Parse 'lat lon; lat lon; ...' into a vertex list"""
    vertices = []
    for pair in value.split(';'):
        pair = pair.strip()
        if not pair:
            continue
        parts = pair.replace(',', ' ').split()
        if len(parts) != 2:
            raise ValueError(f"Invalid polygon vertex (expected 'lat lon'): {pair!r}")
        vertices.append((float(parts[0]), float(parts[1])))
    if len(vertices) < 3:
        raise ValueError(f"A polygon needs at least 3 vertices, got {len(vertices)}")
    return vertices


class ConfigParser:
    """
    Handles parsing of configuration files.
    Separates the parsing logic from the configuration storage.
    """

    def __init__(self):
        """Initialize the config parser"""
        self.parser = configparser.RawConfigParser()

    def find_config_file(self, cli_path: Optional[str] = None) -> Optional[str]:
        """Find a configuration file to use"""
        if cli_path and os.path.isfile(cli_path):
            logger.info(f"Using configuration file: {cli_path}")
            return cli_path
        if cli_path:
            logger.warning(f"Configuration file not found: {cli_path}")

        # Look in standard locations
        paths = ('.', os.path.dirname(os.path.abspath(__file__)))

        for path in paths:
            for file in CONFIG_FILE_NAMES:
                full_path = os.path.join(path, file)
                if Path(full_path).is_file():
                    logger.info(f"Found configuration file: {full_path}")
                    return full_path

        logger.debug("No configuration file found, using defaults")
        return None

    def load_config_file(self, file_path: Optional[str] = None) -> bool:
        """Load configuration from file"""
        config_file = self.find_config_file(file_path)
        if not config_file:
            return False

        try:
            self.parser.read(config_file)
            return True
        except configparser.Error as e:
            logger.error(f"Error reading config file: {e}")
            return False

    def get_section(self, section_name: str) -> Dict[str, str]:
        """Get a section from the configuration file"""
        if section_name in self.parser:
            return dict(self.parser[section_name])
        return {}

    def get_default_settings(self) -> Dict[str, str]:
        """Get default settings from configuration (keys are lower-cased)"""
        return self.get_section(CONFIG_SECTION_DEFAULTS)

    def get_regions(self) -> List[RegionDefinition]:
        """Extract '[Region <name>]' sections"""
        regions = []

        for section_name in self.parser.sections():
            if not section_name.lower().startswith(CONFIG_SECTION_REGION_PREFIX):
                continue
            name = section_name[len(CONFIG_SECTION_REGION_PREFIX):].strip().lower()
            section = self.parser[section_name]
            if not name or 'polygon' not in section:
                logger.warning(f"Ignoring region section without a name or polygon: {section_name}")
                continue
            try:
                regions.append(RegionDefinition(name, parsePolygon(section['polygon'])))
            except ValueError as e:
                logger.warning(f"Invalid polygon in section {section_name}: {e}")

        return regions


def _as_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in configparser.RawConfigParser.BOOLEAN_STATES:
        return configparser.RawConfigParser.BOOLEAN_STATES[lowered]
    raise ValueError(f"Not a boolean: {value!r}")


def _as_limit(value: str) -> Optional[int]:
    """Integer limit where 0, 'none' or 'unbounded' means no limit"""
    lowered = value.strip().lower()
    if lowered in ('', 'none', 'unbounded'):
        return None
    number = int(lowered)
    return number if number > 0 else None


class Config:
    """Main configuration class for the import toolkit"""

    def __init__(self, cli_args=None):
        """Initialize with command line arguments (any object with the expected attributes)"""
        self.parser = ConfigParser()
        self.cli_args = cli_args

        # Initialize defaults
        self.zip_limits = ZipLimits()
        self.statistics = StatisticsSettings()
        self.chunk_limits = ChunkLimits()
        self.geocoder = GeocoderSettings()
        self.regions: List[RegionDefinition] = [
            RegionDefinition(name, list(polygon)) for name, polygon in DEFAULT_REGIONS
        ]

        # Load configuration
        self._load_config()

    def _cli(self, name: str):
        return getattr(self.cli_args, name, None) if self.cli_args is not None else None

    def _load_config(self):
        """Load and process configuration"""
        self.parser.load_config_file(self._cli('config'))
        defaults = self.parser.get_default_settings()

        readers = {
            'maxzipentries': (self.zip_limits, 'max_entries', int),
            'maxuncompressedbytes': (self.zip_limits, 'max_uncompressed_bytes', int),
            'allowcsv': (self.zip_limits, 'allow_csv', _as_bool),
            'smoothingwindowseconds': (self.statistics, 'smoothing_window_seconds', float),
            'altitudenoisethreshold': (self.statistics, 'altitude_noise_threshold', float),
            'climbwindowseconds': (self.statistics, 'climb_window_seconds', float),
            'speedwindowfixes': (self.statistics, 'speed_window_fixes', int),
            'previewmaxitems': (self.chunk_limits, 'max_items', _as_limit),
            'previewmaxpayloadbytes': (self.chunk_limits, 'max_payload_bytes', _as_limit),
            'reversegeocoder': (self.geocoder, 'backend', lambda v: v.strip().lower()),
            'geocodecache': (self.geocoder, 'cache_path', str.strip),
            'useragent': (self.geocoder, 'user_agent', str.strip),
        }
        for key, (target, attribute, convert) in readers.items():
            if key in defaults:
                try:
                    setattr(target, attribute, convert(defaults[key]))
                except ValueError as e:
                    logger.warning(f"Invalid value for {key} in configuration, keeping default: {e}")

        # Configured regions replace built-in ones of the same name
        for region in self.parser.get_regions():
            self.regions = [r for r in self.regions if r.name != region.name]
            self.regions.append(region)

        # Apply CLI arguments (override config file)
        if self._cli('allow_csv'):
            self.zip_limits.allow_csv = True
        if self._cli('max_items') is not None:
            self.chunk_limits.max_items = _as_limit(str(self._cli('max_items')))
        if self._cli('max_bytes') is not None:
            self.chunk_limits.max_payload_bytes = _as_limit(str(self._cli('max_bytes')))
        if self._cli('geocoder'):
            self.geocoder.backend = self._cli('geocoder').lower()
