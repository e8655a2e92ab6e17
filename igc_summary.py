#!/usr/bin/env python3
"""
Flight summary functions for the IGC flight import toolkit
"""

from igc_model import FlightStatistics
from igc_utils import formatCoordinates


def _value(value, unit: str = '', precision: int = 2) -> str:
    if value is None:
        return "N/A"
    if isinstance(value, float):
        return f"{value:.{precision}f}{unit}"
    return f"{value}{unit}"


def flightSummary(stats: FlightStatistics, title: str = None) -> str:
    """Generate a summary string for the flight"""
    pilot = f" by {stats.pilot}" if stats.pilot else ""
    distance = f" {stats.free_distance:.2f} km" if stats.free_distance else ""
    duration_str = stats.flight_duration or "N/A"

    # Create heading with file name and date
    date_str = stats.date.isoformat() if stats.date else "Unknown Date"
    heading = f"{title or stats.site or 'Flight'} - {date_str}{distance}{pilot} ({duration_str})"
    underline = "\n" + ("-" * len(heading))

    glider = stats.glider_type or "Unknown"
    if stats.competition_class:
        glider += f" ({stats.competition_class})"

    lines = [
        f"{heading}{underline}",
        f"    Site: {stats.site or 'N/A'}",
        f"  Glider: {glider}",
        f"    Time: {stats.start_time or 'N/A'}Z - {stats.end_time or 'N/A'}Z",
        f"Altitude: launch {_value(stats.launch_altitude, ' m', 0)}, "
        f"max {_value(stats.max_altitude, ' m', 0)}, gain {_value(stats.max_altitude_gain, ' m', 0)}",
        f"   Climb: +{_value(stats.max_climb, ' m/s', 1)} / -{_value(stats.max_sink, ' m/s', 1)}",
        f"   Speed: max {_value(stats.max_speed, ' km/h')}, track {_value(stats.total_distance, ' km')}",
    ]

    if stats.classification:
        lines.append(
            f"   Route: {stats.classification} {_value(stats.route_distance, ' km')}, "
            f"score {_value(stats.score)}, {stats.route_duration or 'N/A'} @ {_value(stats.avg_speed, ' km/h')}"
        )

    lines.append(f" Regions: {', '.join(stats.regions + stats.countries) or 'N/A'}")

    if stats.points:
        lines.append("  Points:")
        for point in stats.points:
            time_str = point.time or "--:--:--"
            lines.append(f"    {point.label:<9} {time_str}Z {formatCoordinates(point.latitude, point.longitude)}")
    else:
        lines.append("  Points: N/A")

    return "\n".join(lines)
