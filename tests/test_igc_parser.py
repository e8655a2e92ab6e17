"""
Tests for igc_parser.py IGC file parsing
"""
import pytest
from datetime import date, datetime, time, timezone
from igc_parser import (
    IgcHeaderParser,
    IgcPositionParser,
    IgcDecoder,
    TrackParser,
    strip_prefixes,
    reformatIgcContent,
    parseIgc,
    extractCompetitionClass,
)
from igc_errors import IgcDecodeError, InvalidFormatError, TrackImportError
from igc_model import FlightTrack


class TestIgcHeaderParser:
    """Tests for IgcHeaderParser"""

    def test_strip_prefixes(self):
        prefixes = ['PILOT:', 'GLIDERID:', 'GLIDERTYPE:']
        assert IgcHeaderParser.strip_prefixes('PILOT:John Doe', prefixes) == 'John Doe'
        assert IgcHeaderParser.strip_prefixes('gliderid:CC-JUGA', prefixes) == 'CC-JUGA'
        assert IgcHeaderParser.strip_prefixes('No prefix', prefixes) == 'No prefix'

    def test_strip_unknown_label(self):
        assert strip_prefixes('PILOT NAME:John Doe', []) == 'John Doe'

    def test_parse_pilot_header(self):
        track = IgcHeaderParser().parse_header_line('HFPLTPILOTINCHARGE:Juan Gabriel', FlightTrack())
        assert track.pilot == 'Juan Gabriel'

    def test_parse_glider_headers(self):
        parser = IgcHeaderParser()
        track = parser.parse_header_line('HFGTYGLIDERTYPE:Ozone Rush 6', FlightTrack())
        track = parser.parse_header_line('HFGIDGLIDERID:D-1234', track)
        assert track.glider_type == 'Ozone Rush 6'
        assert track.glider_id == 'D-1234'

    def test_parse_site_and_class(self):
        parser = IgcHeaderParser()
        track = parser.parse_header_line('HFSITSITE:Passo del Tonale', FlightTrack())
        track = parser.parse_header_line('HSCCLCOMPETITION CLASS:Sport', track)
        assert track.site == 'Passo del Tonale'
        assert track.competition_class == 'Sport'

    def test_parse_date_header(self):
        track = IgcHeaderParser().parse_header_line('HFDTE090525', FlightTrack())
        assert track.date == date(2025, 5, 9)

    def test_parse_invalid_date(self):
        assert IgcHeaderParser.parse_date('HFDTE320525') is None
        assert IgcHeaderParser.parse_date('HFDTEDATE:090525') is None

    def test_ignores_unknown_source(self):
        track = IgcHeaderParser().parse_header_line('HXPLTPILOT:Nobody', FlightTrack())
        assert track.pilot is None


class TestIgcPositionParser:
    """Tests for IgcPositionParser"""

    LINE = 'B1214284630100S01000500WA0150001520'

    def test_parse_time(self):
        assert IgcPositionParser.parse_time(self.LINE) == time(12, 14, 28)

    def test_parse_coordinates(self):
        assert IgcPositionParser.parse_latitude(self.LINE) == pytest.approx(-(46 + 30.1 / 60))
        assert IgcPositionParser.parse_longitude(self.LINE) == pytest.approx(-(10 + 0.5 / 60))

    def test_invalid_hemisphere(self):
        with pytest.raises(ValueError):
            IgcPositionParser.parse_latitude('B1214284630100X01000500WA0150001520')

    def test_parse_altitude(self):
        assert IgcPositionParser.parse_altitude(self.LINE) == (1500, 1520)

    def test_missing_altitudes(self):
        assert IgcPositionParser.parse_altitude('B1214284630100N01000500EA0000000000') == (None, None)

    def test_2d_fix_has_no_gps_altitude(self):
        assert IgcPositionParser.parse_altitude('B1214284630100N01000500EV0150001520') == (1500, None)

    def test_parse_position_record(self):
        fix = IgcPositionParser().parse_position_record(self.LINE, date(2025, 5, 9))
        expected = datetime(2025, 5, 9, 12, 14, 28, tzinfo=timezone.utc).timestamp() * 1000
        assert fix.timestamp == expected
        assert fix.time == '12:14:28'
        assert fix.valid
        assert fix.gps_altitude == 1520


class TestIgcDecoder:
    """Tests for IgcDecoder"""

    def test_decode_sample(self, sample_igc_content):
        track = IgcDecoder().decode(sample_igc_content)
        assert track.date == date(2025, 5, 9)
        assert track.pilot == 'Jane Doe'
        assert len(track.fixes) == 5
        assert track.fixes[0].latitude == pytest.approx(46.5)
        assert track.fixes[-1].time == '12:16:00'

    def test_missing_date(self):
        with pytest.raises(IgcDecodeError):
            IgcDecoder().decode('AXXX001\nB1214004630000N01000000EA0150001520\n')

    def test_no_fixes(self):
        with pytest.raises(IgcDecodeError):
            IgcDecoder().decode('AXXX001\nHFDTE090525\n')

    def test_skips_short_and_malformed_records(self):
        content = (
            'HFDTE090525\n'
            'B12140046300\n'
            'B1214304630100X01000000EA0151001530\n'
            'B1215004630200N01000000EA0152001540\n'
        )
        track = IgcDecoder().decode(content)
        assert len(track.fixes) == 1

    def test_midnight_rollover(self):
        content = (
            'HFDTE090525\n'
            'B2359504630000N01000000EA0150001520\n'
            'B0000104630100N01000000EA0151001530\n'
        )
        track = IgcDecoder().decode(content)
        first, second = track.fixes
        assert second.timestamp - first.timestamp == 20 * 1000

    def test_crlf_line_endings(self, sample_igc_content):
        track = IgcDecoder().decode(sample_igc_content.replace('\n', '\r\n'))
        assert len(track.fixes) == 5


class TestTrackParser:
    """Tests for TrackParser and the reformatting retry"""

    def test_parse_valid(self, sample_igc_content):
        track = parseIgc(sample_igc_content)
        assert track.glider_type == 'Ozone Rush 6'
        assert track.site == 'Passo del Tonale'

    def test_reformat_rewrites_alternate_date(self):
        assert reformatIgcContent('HFDTEDATE:090525,01\nB123') == 'HFDTE090525,01\nB123'

    def test_reformat_competition_class(self):
        assert reformatIgcContent('HSCCLCOMPETITION CLASS:Open') == 'HFCCLCOMPETITIONCLASS:Open'

    def test_alternate_date_parsed_after_retry(self, sample_igc_content):
        content = sample_igc_content.replace('HFDTE090525', 'HFDTEDATE:090525,01')
        track = TrackParser().parse(content)
        assert track.date == date(2025, 5, 9)
        assert len(track.fixes) == 5

    def test_invalid_content(self):
        with pytest.raises(InvalidFormatError) as excinfo:
            parseIgc('')
        assert excinfo.value.message == 'Invalid IGC file content'

    def test_failure_after_retry(self):
        with pytest.raises(InvalidFormatError) as excinfo:
            parseIgc('this is not an igc file')
        assert excinfo.value.message.startswith('Failed to parse IGC file:')
        assert isinstance(excinfo.value, TrackImportError)
        assert isinstance(excinfo.value, ValueError)


class TestCompetitionClass:
    """Tests for extractCompetitionClass"""

    def test_extract(self, sample_igc_content):
        assert extractCompetitionClass(sample_igc_content) == 'Sport'

    def test_extract_spaced_variant(self):
        assert extractCompetitionClass('HOCCLCOMPETITION CLASS: Club \r\nB123') == 'Club'

    def test_missing(self):
        assert extractCompetitionClass('HFDTE090525\n') is None
        assert extractCompetitionClass('HFCCLCOMPETITIONCLASS:   \n') is None
        assert extractCompetitionClass(None) is None
