#!/usr/bin/env python3
"""
Data models and enums for the IGC flight import toolkit
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from datetime import date
from typing import Any, Dict, List, Optional

from igc_constants import FileType as FileTypeConstants


class FileType(Enum):
    IGC = FileTypeConstants.IGC
    ZIP = FileTypeConstants.ZIP
    CSV = FileTypeConstants.CSV


class DedupeStatus(Enum):
    UNCLASSIFIED = "unclassified"
    READY = "ready"
    DUPLICATE = "duplicate"
    POSSIBLE_DUPLICATE = "possible_duplicate"
    ERROR = "error"


@dataclass(frozen=True)
class Fix:
    """A single GPS sample from a B record"""
    timestamp: int
    latitude: float
    longitude: float
    gps_altitude: Optional[int] = None
    pressure_altitude: Optional[int] = None
    valid: bool = True
    time: str = ''

    @property
    def altitude(self) -> float:
        """GPS altitude, falling back to pressure altitude, then 0"""
        if self.gps_altitude is not None:
            return self.gps_altitude
        if self.pressure_altitude is not None:
            return self.pressure_altitude
        return 0


@dataclass
class FlightTrack:
    """A parsed IGC log: ordered fixes plus header metadata"""
    fixes: List[Fix] = field(default_factory=list)
    date: Optional[date] = None
    pilot: Optional[str] = None
    glider_type: Optional[str] = None
    glider_id: Optional[str] = None
    site: Optional[str] = None
    competition_class: Optional[str] = None


@dataclass(frozen=True)
class ScoringPoint:
    """A solver point: an index into the fix list plus the solver's own coordinates"""
    index: int
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['ScoringPoint']:
        if not data:
            return None
        return cls(
            index=int(data['r']),
            latitude=data.get('y', data.get('latitude')),
            longitude=data.get('x', data.get('longitude')),
        )


@dataclass(frozen=True)
class ScoringLeg:
    distance: float
    finish: Optional[ScoringPoint] = None


@dataclass
class ScoringResult:
    """
    Output of the external route optimizer for one track.
    Points refer back into FlightTrack.fixes by index.
    """
    distance: float = 0.0
    score: float = 0.0
    turnpoints: List[ScoringPoint] = field(default_factory=list)
    legs: List[ScoringLeg] = field(default_factory=list)
    closing_in: Optional[ScoringPoint] = None
    closing_out: Optional[ScoringPoint] = None
    endpoint_start: Optional[ScoringPoint] = None
    endpoint_finish: Optional[ScoringPoint] = None
    name: Optional[str] = None
    multiplier: Optional[float] = None

    @property
    def has_closing_points(self) -> bool:
        return self.closing_in is not None and self.closing_out is not None

    @property
    def has_endpoints(self) -> bool:
        return self.endpoint_start is not None and self.endpoint_finish is not None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScoringResult':
        """
        Build from the solver's JSON shape. Accepts either the bare score info
        ({distance, score, tp, legs, cp, ep}) or a wrapper holding it under
        'scoreInfo' with the rule under 'opt.scoring'.
        """
        info = data.get('scoreInfo', data)
        rule = (data.get('opt') or {}).get('scoring') or data.get('scoring') or {}
        closing = info.get('cp') or {}
        endpoints = info.get('ep') or {}

        return cls(
            distance=float(info.get('distance') or 0.0),
            score=float(info.get('score') or 0.0),
            turnpoints=[ScoringPoint.from_dict(tp) for tp in info.get('tp') or []],
            legs=[
                ScoringLeg(distance=float(leg.get('d', 0.0)), finish=ScoringPoint.from_dict(leg.get('finish')))
                for leg in info.get('legs') or []
            ],
            closing_in=ScoringPoint.from_dict(closing.get('in')),
            closing_out=ScoringPoint.from_dict(closing.get('out')),
            endpoint_start=ScoringPoint.from_dict(endpoints.get('start')),
            endpoint_finish=ScoringPoint.from_dict(endpoints.get('finish')),
            name=rule.get('name') or data.get('name'),
            multiplier=rule.get('multiplier') or info.get('multiplier') or data.get('multiplier'),
        )


@dataclass(frozen=True)
class Point:
    """A labelled waypoint in the statistics output"""
    label: str
    latitude: float
    longitude: float
    timestamp: Optional[int] = None
    time: Optional[str] = None
    altitude: Optional[float] = None


@dataclass(frozen=True)
class LegDetail:
    length: float
    percent_of_route: float


@dataclass
class FlightStatistics:
    """Computed statistics bundle for one track; never mutated after construction, changes are made on replace() copies"""
    date: Optional[date] = None
    pilot: Optional[str] = None
    glider_type: Optional[str] = None
    site: Optional[str] = None
    competition_class: Optional[str] = None
    classification: Optional[str] = None
    score: Optional[float] = None
    multiplier: Optional[float] = None
    duration_s: Optional[float] = None
    flight_duration: Optional[str] = None
    route_distance: Optional[float] = None
    route_duration_s: Optional[float] = None
    route_duration: Optional[str] = None
    avg_speed: Optional[float] = None
    free_distance: Optional[float] = None
    free_distance_avg_speed: Optional[float] = None
    total_distance: Optional[float] = None
    max_speed: Optional[float] = None
    max_climb: Optional[float] = None
    max_sink: Optional[float] = None
    max_altitude: Optional[float] = None
    max_altitude_gain: Optional[float] = None
    launch_altitude: Optional[float] = None
    landing_altitude: Optional[float] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    points: List[Point] = field(default_factory=list)
    route_leg_details: List[LegDetail] = field(default_factory=list)
    free_leg_details: List[LegDetail] = field(default_factory=list)
    regions: List[str] = field(default_factory=list)
    countries: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe mapping of all fields"""
        data = asdict(self)
        if self.date is not None:
            data['date'] = self.date.isoformat()
        return data


@dataclass
class CsvRow:
    """One normalized data row of a legacy CSV flight log"""
    row_number: int
    date: str
    source_file: Optional[str] = None
    distance_km: Optional[float] = None
    duration_s: Optional[float] = None
    flight_duration: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    takeoff: Optional[str] = None
    landing: Optional[str] = None
    site: Optional[str] = None
    pilot: Optional[str] = None
    route_type: Optional[str] = None
    classification: Optional[str] = None
    max_altitude: Optional[float] = None
    igc_file_name: Optional[str] = None
    points: List[Point] = field(default_factory=list)
    raw_row: List[str] = field(default_factory=list)

    def to_flight_statistics(self) -> FlightStatistics:
        """Lightweight statistics record for the CSV import path"""
        return FlightStatistics(
            date=date.fromisoformat(self.date),
            pilot=self.pilot,
            site=self.takeoff or self.site,
            classification=self.classification,
            duration_s=self.duration_s,
            flight_duration=self.flight_duration,
            route_distance=self.distance_km,
            free_distance=self.distance_km,
            total_distance=self.distance_km,
            max_altitude=self.max_altitude,
            start_time=self.start_time,
            end_time=self.end_time,
            points=list(self.points),
        )


@dataclass(frozen=True)
class ZipEntry:
    """A file extracted from an archive, held in memory only"""
    path: str
    inferred_type: Optional[FileType]
    file_bytes: bytes

    @property
    def name(self) -> str:
        return self.path.rsplit('/', 1)[-1]


@dataclass
class ImportItem:
    """A unit of reconciliation work within an import session"""
    local_id: str
    fingerprint: str
    flight_stats: FlightStatistics
    type: str = FileTypeConstants.IGC
    dedupe_status: DedupeStatus = DedupeStatus.UNCLASSIFIED
    duplicate_explanation: Optional[str] = None
    file_name: Optional[str] = None
    file_path: Optional[str] = None
    error: Optional[str] = None

    def to_payload(self, flight_stats: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Request shape for the preview and commit endpoints"""
        return {
            'localId': self.local_id,
            'type': self.type,
            'fingerprint': self.fingerprint,
            'fileName': self.file_name,
            'flightStats': flight_stats if flight_stats is not None else self.flight_stats.to_dict(),
        }
