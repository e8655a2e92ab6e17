#!/usr/bin/env python3
"""
Reverse geocoding (lat/lon -> country) for the IGC flight import toolkit

Country lookups go through OpenStreetMap Nominatim. Results are cached on
disk keyed by rounded coordinates; respect the service usage policy by
keeping a descriptive User-Agent and at most one request per second.
"""

import json
import logging
import time
import urllib.error
import urllib.parse
import urllib.request
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from igc_config import GeocoderSettings

# Configure logger
logger = logging.getLogger(__name__)

NOMINATIM_REVERSE_URL = "https://nominatim.openstreetmap.org/reverse"
CACHE_PRECISION = 2  # ~1 km, plenty for a country
REQUEST_TIMEOUT_SECONDS = 20.0
MIN_REQUEST_INTERVAL_SECONDS = 1.0

CountryLookup = Callable[[float, float], Optional[str]]


def coordKey(lat: float, lon: float, precision: int = CACHE_PRECISION) -> str:
    """Stable cache key from rounded coordinates"""
    return f"{round(lat, precision):.{precision}f},{round(lon, precision):.{precision}f}"


class JsonDiskCache:
    """Small JSON cache persisted on disk (key -> country or None)"""

    def __init__(self, path):
        self.path = Path(path)
        self._data: Dict[str, Optional[str]] = {}
        self._loaded = False

    def load(self):
        """Load cache from disk (no-op if the file does not exist)"""
        if self._loaded:
            return
        self._loaded = True
        if not self.path.exists():
            return
        try:
            self._data = json.loads(self.path.read_text(encoding='utf-8') or '{}')
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring corrupt geocode cache {self.path}: {e}")
            self._data = {}

    def __contains__(self, key: str) -> bool:
        self.load()
        return key in self._data

    def get(self, key: str) -> Optional[str]:
        self.load()
        return self._data.get(key)

    def set(self, key: str, value: Optional[str]):
        self.load()
        self._data[key] = value

    def flush(self):
        """Persist the cache to disk"""
        self.load()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + '.tmp')
        tmp.write_text(json.dumps(self._data, ensure_ascii=False, indent=2), encoding='utf-8')
        tmp.replace(self.path)


def nominatimReverse(lat: float, lon: float, user_agent: str) -> Optional[Dict[str, Any]]:
    """Call the Nominatim reverse API; None when the request fails"""
    params = {
        'format': 'jsonv2',
        'lat': f"{lat:.6f}",
        'lon': f"{lon:.6f}",
        'zoom': '3',
        'addressdetails': '1',
        'accept-language': 'en',
    }
    request = urllib.request.Request(
        f"{NOMINATIM_REVERSE_URL}?{urllib.parse.urlencode(params)}",
        headers={'User-Agent': user_agent, 'Accept': 'application/json'},
        method='GET',
    )
    try:
        with urllib.request.urlopen(request, timeout=REQUEST_TIMEOUT_SECONDS) as response:
            return json.loads(response.read().decode('utf-8', errors='replace'))
    except (urllib.error.URLError, OSError, ValueError) as e:
        logger.warning(f"Reverse geocoding failed for {lat:.4f},{lon:.4f}: {e}")
        return None


class NominatimCountryLookup:
    """
    Callable country lookup backed by Nominatim with a disk cache.
    Failed requests are not cached so they are retried on the next run.
    """

    def __init__(self, user_agent: str, cache: Optional[JsonDiskCache] = None,
                 fetch: Callable[[float, float, str], Optional[Dict[str, Any]]] = nominatimReverse):
        self.user_agent = user_agent
        self.cache = cache
        self.fetch = fetch
        self._last_request_at = 0.0

    def _sleep_if_needed(self):
        wait = MIN_REQUEST_INTERVAL_SECONDS - (time.monotonic() - self._last_request_at)
        if wait > 0:
            time.sleep(wait)
        self._last_request_at = time.monotonic()

    def __call__(self, lat: float, lon: float) -> Optional[str]:
        key = coordKey(lat, lon)
        if self.cache is not None and key in self.cache:
            return self.cache.get(key)

        self._sleep_if_needed()
        raw = self.fetch(lat, lon, self.user_agent)
        if raw is None:
            return None

        country = (raw.get('address') or {}).get('country') or None
        if self.cache is not None:
            self.cache.set(key, country)
        return country

    def flush(self):
        if self.cache is not None:
            self.cache.flush()


def createCountryLookup(settings: GeocoderSettings) -> Optional[NominatimCountryLookup]:
    """Build the configured country lookup, or None when geocoding is disabled"""
    if settings.backend == 'nominatim':
        logger.info(f"Reverse geocoding via Nominatim, cache: {settings.cache_path}")
        return NominatimCountryLookup(settings.user_agent, JsonDiskCache(settings.cache_path))
    if settings.backend not in ('', 'none'):
        logger.warning(f"Unknown reverse geocoder '{settings.backend}', country tags disabled")
    return None
