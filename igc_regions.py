#!/usr/bin/env python3
"""
Named geographic regions for tagging flights
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Tuple

from igc_config import RegionDefinition
from igc_constants import DEFAULT_REGIONS


@dataclass(frozen=True)
class Region:
    """A named polygon; vertices are (lat, lon) pairs"""
    name: str
    polygon: Tuple[Tuple[float, float], ...] = field(default_factory=tuple)

    def contains(self, latitude: float, longitude: float) -> bool:
        """Ray-casting point-in-polygon test"""
        inside = False
        vertices = self.polygon
        count = len(vertices)
        if count < 3:
            return False

        j = count - 1
        for i in range(count):
            lat_i, lon_i = vertices[i]
            lat_j, lon_j = vertices[j]
            if (lon_i > longitude) != (lon_j > longitude):
                crossing = (lat_j - lat_i) * (longitude - lon_i) / (lon_j - lon_i) + lat_i
                if latitude < crossing:
                    inside = not inside
            j = i

        return inside


def regionsFromDefinitions(definitions: Iterable[RegionDefinition]) -> List[Region]:
    """Build Region objects from configured definitions"""
    return [Region(d.name, tuple(tuple(vertex) for vertex in d.polygon)) for d in definitions]


def defaultRegions() -> List[Region]:
    """Built-in regions"""
    return [Region(name, tuple(polygon)) for name, polygon in DEFAULT_REGIONS]


def regionsContaining(regions: Iterable[Region], latitude: float, longitude: float) -> List[str]:
    """Names of all regions containing the point"""
    return [region.name for region in regions if region.contains(latitude, longitude)]
