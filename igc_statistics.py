#!/usr/bin/env python3
"""
Flight statistics engine for the IGC flight import toolkit

Combines a parsed fix sequence with the route optimizer's scoring result
into the statistics bundle attached to an imported flight: durations,
distances, climb/sink rates, speeds, named waypoints and region tags.

All distances are in kilometers, speeds in km/h, altitudes in meters and
vertical rates in m/s.
"""

import logging
from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Tuple

from igc_config import StatisticsSettings
from igc_model import FlightStatistics, FlightTrack, Fix, LegDetail, Point, ScoringPoint, ScoringResult
from igc_regions import Region, defaultRegions, regionsContaining
from igc_utils import calculateDistance, formatDuration
from igc_constants import (
    MS_PER_SECOND,
    POINT_CP_IN,
    POINT_CP_OUT,
    POINT_FINISH,
    POINT_FIRST_FIX,
    POINT_LAST_FIX,
    POINT_START,
    POINT_TURNPOINT,
    SECONDS_PER_HOUR,
)

# Configure logger
logger = logging.getLogger(__name__)

CountryLookup = Callable[[float, float], Optional[str]]


class AltitudeAnalyzer:
    """
    Altitude derived values: smoothed gain and climb/sink rates.
    """

    def __init__(self, settings: StatisticsSettings):
        self.settings = settings

    def smooth(self, fixes: List[Fix]) -> List[float]:
        """
        Centered time-window moving average of fix altitudes.
        Fixes are time ordered, so the window bounds only move forward.
        """
        half_window_ms = self.settings.smoothing_window_seconds * MS_PER_SECOND / 2
        smoothed = []
        low = 0
        high = 0
        running_sum = 0.0

        for fix in fixes:
            while high < len(fixes) and fixes[high].timestamp <= fix.timestamp + half_window_ms:
                running_sum += fixes[high].altitude
                high += 1
            while fixes[low].timestamp < fix.timestamp - half_window_ms:
                running_sum -= fixes[low].altitude
                low += 1
            smoothed.append(running_sum / (high - low))

        return smoothed

    def altitude_gain(self, fixes: List[Fix]) -> float:
        """Cumulative positive change of the smoothed altitude above the noise threshold"""
        smoothed = self.smooth(fixes)
        gain = 0.0
        for previous, current in zip(smoothed, smoothed[1:]):
            delta = current - previous
            if delta > self.settings.altitude_noise_threshold:
                gain += delta
        return gain

    def climb_and_sink(self, fixes: List[Fix]) -> Tuple[float, float]:
        """
        Max climb and max sink over a forward window. For each fix the window
        ends at the first fix at least climb_window_seconds later.
        Sink is returned as a positive magnitude.
        """
        window_ms = self.settings.climb_window_seconds * MS_PER_SECOND
        max_climb = None
        max_sink = None
        end = 0

        for start, fix in enumerate(fixes):
            end = max(end, start)
            while end < len(fixes) and fixes[end].timestamp - fix.timestamp < window_ms:
                end += 1
            if end >= len(fixes):
                break

            elapsed = (fixes[end].timestamp - fix.timestamp) / MS_PER_SECOND
            if elapsed <= 0:
                continue
            rate = (fixes[end].altitude - fix.altitude) / elapsed
            if rate > 0:
                max_climb = rate if max_climb is None else max(max_climb, rate)
            else:
                max_sink = rate if max_sink is None else min(max_sink, rate)

        climb = round(max_climb, 1) if max_climb is not None else 0.0
        sink = round(-max_sink, 1) if max_sink is not None else 0.0
        return climb, abs(sink)


def trackDistance(fixes: List[Fix]) -> float:
    """Sum of great-circle distances between consecutive fixes"""
    return sum(
        calculateDistance(a.latitude, a.longitude, b.latitude, b.longitude)
        for a, b in zip(fixes, fixes[1:])
    )


def maxWindowSpeed(fixes: List[Fix], window: int) -> float:
    """
    Highest average speed over any run of `window` consecutive fixes.
    Count based, so irregular sample rates bias the result.
    """
    if window < 2 or len(fixes) < window:
        return 0.0

    steps = [
        (calculateDistance(a.latitude, a.longitude, b.latitude, b.longitude),
         (b.timestamp - a.timestamp) / MS_PER_SECOND)
        for a, b in zip(fixes, fixes[1:])
    ]

    best = 0.0
    span = window - 1
    distance = sum(d for d, _ in steps[:span])
    elapsed = sum(t for _, t in steps[:span])

    for i in range(len(steps) - span + 1):
        if i > 0:
            distance += steps[i + span - 1][0] - steps[i - 1][0]
            elapsed += steps[i + span - 1][1] - steps[i - 1][1]
        if elapsed > 0:
            best = max(best, distance / (elapsed / SECONDS_PER_HOUR))

    return round(best, 2)


def legDetails(lengths: Iterable[float], total: float) -> List[LegDetail]:
    """Per-leg length and share of the total, both to 2 dp"""
    details = []
    for length in lengths:
        percent = (length / total) * 100 if total else 0.0
        details.append(LegDetail(length=round(length, 2), percent_of_route=round(percent, 2)))
    return details


class FlightStatisticsEngine:
    """
    Computes FlightStatistics from a FlightTrack and a ScoringResult.
    The scoring result must come from the same track: its indices point
    straight into track.fixes and are never clamped.
    """

    def __init__(self, settings: Optional[StatisticsSettings] = None,
                 regions: Optional[List[Region]] = None,
                 country_lookup: Optional[CountryLookup] = None):
        """Initialize with tuning settings, named regions and an optional country lookup"""
        self.settings = settings or StatisticsSettings()
        self.regions = regions if regions is not None else defaultRegions()
        self.country_lookup = country_lookup
        self.altitude = AltitudeAnalyzer(self.settings)

    @staticmethod
    def _fix_at(track: FlightTrack, point: ScoringPoint) -> Fix:
        if point.index < 0 or point.index >= len(track.fixes):
            raise IndexError(
                f"Scoring index {point.index} outside track of {len(track.fixes)} fixes; "
                "scoring result does not belong to this track"
            )
        return track.fixes[point.index]

    def _validate(self, track: FlightTrack, scoring: ScoringResult):
        if not track.fixes:
            raise ValueError("Cannot compute statistics for a track without fixes")
        if not scoring.turnpoints:
            raise ValueError("Scoring result has no turnpoints")

        references = list(scoring.turnpoints)
        references += [p for p in (scoring.closing_in, scoring.closing_out,
                                   scoring.endpoint_start, scoring.endpoint_finish) if p is not None]
        references += [leg.finish for leg in scoring.legs if leg.finish is not None]
        for point in references:
            self._fix_at(track, point)

    @staticmethod
    def _point(label: str, fix: Fix) -> Point:
        return Point(label, fix.latitude, fix.longitude, fix.timestamp, fix.time, fix.altitude)

    def waypoints(self, track: FlightTrack, scoring: ScoringResult) -> List[Point]:
        """Ordered, labelled waypoints from the scoring references"""
        points = [self._point(POINT_FIRST_FIX, track.fixes[0])]

        if scoring.closing_in is not None:
            points.append(self._point(POINT_CP_IN, self._fix_at(track, scoring.closing_in)))
        elif scoring.endpoint_start is not None:
            points.append(self._point(POINT_START, self._fix_at(track, scoring.endpoint_start)))

        for number, turnpoint in enumerate(scoring.turnpoints, start=1):
            points.append(self._point(POINT_TURNPOINT.format(number), self._fix_at(track, turnpoint)))

        if scoring.closing_out is not None:
            points.append(self._point(POINT_CP_OUT, self._fix_at(track, scoring.closing_out)))
        elif scoring.endpoint_finish is not None:
            points.append(self._point(POINT_FINISH, self._fix_at(track, scoring.endpoint_finish)))

        points.append(self._point(POINT_LAST_FIX, track.fixes[-1]))
        return points

    def route_duration_seconds(self, track: FlightTrack, scoring: ScoringResult) -> float:
        """Seconds between start/finish, else between closing in/out, else 0"""
        if scoring.has_endpoints:
            start = self._fix_at(track, scoring.endpoint_start)
            finish = self._fix_at(track, scoring.endpoint_finish)
            span = (finish.timestamp - start.timestamp) / MS_PER_SECOND
            if span:
                return span
        if scoring.has_closing_points:
            entry = self._fix_at(track, scoring.closing_in)
            exit_ = self._fix_at(track, scoring.closing_out)
            return (exit_.timestamp - entry.timestamp) / MS_PER_SECOND
        return 0.0

    @staticmethod
    def route_distance_for_speed(scoring: ScoringResult) -> float:
        if scoring.multiplier:
            return scoring.score / scoring.multiplier
        return scoring.distance

    def tag_locations(self, points: List[Point]) -> Tuple[List[str], List[str]]:
        """Region names and countries touched by the waypoints, deduplicated and sorted"""
        regions = set()
        countries = set()
        for point in points:
            regions.update(regionsContaining(self.regions, point.latitude, point.longitude))
            if self.country_lookup is not None:
                country = self.country_lookup(point.latitude, point.longitude)
                if country:
                    countries.add(country)
        return sorted(regions), sorted(countries)

    def compute_track(self, track: FlightTrack, points: Optional[List[Point]] = None) -> FlightStatistics:
        """Statistics derived from the fixes alone, without any route"""
        if not track.fixes:
            raise ValueError("Cannot compute statistics for a track without fixes")

        fixes = track.fixes
        duration = (fixes[-1].timestamp - fixes[0].timestamp) / MS_PER_SECOND
        climb, sink = self.altitude.climb_and_sink(fixes)
        altitudes = [fix.altitude for fix in fixes]
        if points is None:
            points = [self._point(POINT_FIRST_FIX, fixes[0]), self._point(POINT_LAST_FIX, fixes[-1])]
        regions, countries = self.tag_locations(points)

        return FlightStatistics(
            date=track.date,
            pilot=track.pilot,
            glider_type=track.glider_type,
            site=track.site,
            competition_class=track.competition_class,
            duration_s=duration,
            flight_duration=formatDuration(duration),
            total_distance=round(trackDistance(fixes), 2),
            max_speed=maxWindowSpeed(fixes, self.settings.speed_window_fixes),
            max_climb=climb,
            max_sink=sink,
            max_altitude=max(altitudes),
            max_altitude_gain=round(self.altitude.altitude_gain(fixes), 2),
            launch_altitude=altitudes[0],
            landing_altitude=altitudes[-1],
            start_time=fixes[0].time,
            end_time=fixes[-1].time,
            points=points,
            regions=regions,
            countries=countries,
        )

    def compute(self, track: FlightTrack, scoring: Optional[ScoringResult] = None) -> FlightStatistics:
        """
        Compute the full statistics bundle.

        Raises IndexError when a scoring index falls outside track.fixes and
        ValueError when the track has no fixes or the scoring no turnpoints.
        """
        if scoring is None:
            return self.compute_track(track)

        self._validate(track, scoring)
        points = self.waypoints(track, scoring)
        stats = self.compute_track(track, points)
        fixes = track.fixes

        # Free distance: launch to the first turnpoint, then the scored legs
        first_turnpoint = self._fix_at(track, scoring.turnpoints[0])
        opening_leg = calculateDistance(fixes[0].latitude, fixes[0].longitude,
                                        first_turnpoint.latitude, first_turnpoint.longitude)
        leg_lengths = [leg.distance for leg in scoring.legs]
        free_distance = opening_leg + sum(leg_lengths)

        route_duration = self.route_duration_seconds(track, scoring)
        avg_speed = None
        if route_duration > 0:
            avg_speed = round(self.route_distance_for_speed(scoring) / (route_duration / SECONDS_PER_HOUR), 2)

        free_avg_speed = None
        if stats.duration_s:
            free_avg_speed = round(free_distance / (stats.duration_s / SECONDS_PER_HOUR), 2)

        stats = replace(
            stats,
            classification=scoring.name,
            score=scoring.score,
            multiplier=scoring.multiplier,
            route_distance=round(scoring.distance, 2),
            route_duration_s=route_duration,
            route_duration=formatDuration(route_duration),
            avg_speed=avg_speed,
            free_distance=round(free_distance, 2),
            free_distance_avg_speed=free_avg_speed,
            route_leg_details=legDetails(leg_lengths, scoring.distance),
            free_leg_details=legDetails([opening_leg] + leg_lengths, free_distance),
        )

        logger.debug(
            f"Computed statistics: {stats.flight_duration}, route {stats.route_distance} km, "
            f"free {stats.free_distance} km, {len(points)} waypoints"
        )
        return stats


# Public functions

def computeFlightStatistics(track: FlightTrack, scoring: Optional[ScoringResult] = None,
                            settings: Optional[StatisticsSettings] = None,
                            regions: Optional[List[Region]] = None,
                            country_lookup: Optional[CountryLookup] = None) -> FlightStatistics:
    """
    Compute the statistics bundle for one track.
    Main entry point for statistics computation.
    """
    engine = FlightStatisticsEngine(settings, regions, country_lookup)
    return engine.compute(track, scoring)
