"""
Tests for igc_summary.py flight summary generation
"""
import pytest
from datetime import date
from igc_summary import flightSummary
from igc_model import FlightStatistics
from igc_parser import parseIgc
from igc_statistics import FlightStatisticsEngine


@pytest.fixture
def route_stats(sample_igc_content, sample_scoring):
    return FlightStatisticsEngine().compute(parseIgc(sample_igc_content), sample_scoring)


class TestFlightSummary:
    """Tests for flightSummary function"""

    def test_heading(self, route_stats):
        """Heading carries title, date, free distance, pilot and duration"""
        heading = flightSummary(route_stats, 'test_flight.igc').split('\n')[0]
        assert heading == 'test_flight.igc - 2025-05-09 0.74 km by Jane Doe (2m)'

    def test_heading_underline(self, route_stats):
        lines = flightSummary(route_stats).split('\n')
        assert lines[0].startswith('Passo del Tonale - 2025-05-09')
        assert lines[1] == '-' * len(lines[0])

    def test_details(self, route_stats):
        summary = flightSummary(route_stats)
        assert 'Glider: Ozone Rush 6 (Sport)' in summary
        assert 'Time: 12:14:00Z - 12:16:00Z' in summary
        assert 'launch 1520 m, max 1550 m, gain 30 m' in summary
        assert 'Climb: +0.3 m/s / -0.2 m/s' in summary
        assert 'Route: Free Flight 0.50 km, score 0.75, 2m @ 15.00 km/h' in summary
        assert 'Regions: alps' in summary

    def test_points_listed(self, route_stats):
        summary = flightSummary(route_stats)
        assert 'TP1' in summary
        assert '12:15:00Z 46.5033° N, 10.0000° E' in summary

    def test_summary_without_pilot(self):
        """Test summary without pilot information"""
        summary = flightSummary(FlightStatistics(date=date(2025, 5, 9), flight_duration='1h 0m'))
        assert 'by' not in summary.split('\n')[0]
        assert summary.split('\n')[0] == 'Flight - 2025-05-09 (1h 0m)'

    def test_minimal_data(self):
        """Test summary with no statistics at all"""
        summary = flightSummary(FlightStatistics())
        assert 'Unknown Date' in summary
        assert 'Site: N/A' in summary
        assert 'Glider: Unknown' in summary
        assert 'Route:' not in summary
        assert 'Regions: N/A' in summary
        assert 'Points: N/A' in summary
