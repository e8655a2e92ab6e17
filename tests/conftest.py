"""
Pytest configuration and shared fixtures for igc-import tests
"""
import io
import json
import struct
import zipfile

import pytest

from igc_model import ScoringResult


SAMPLE_IGC = """AXXX001
HFDTE090525
HFPLTPILOTINCHARGE:Jane Doe
HFGTYGLIDERTYPE:Ozone Rush 6
HFGIDGLIDERID:D-1234
HFSITSITE:Passo del Tonale
HFCCLCOMPETITIONCLASS:Sport
B1214004630000N01000000EA0150001520
B1214304630100N01000000EA0151001530
B1215004630200N01000000EA0152001540
B1215304630300N01000000EA0153001550
B1216004630400N01000000EA0152501545
"""


@pytest.fixture
def sample_igc_content():
    """Five fixes 30 s apart heading north, 2 minutes in total"""
    return SAMPLE_IGC


@pytest.fixture
def sample_igc_file(tmp_path, sample_igc_content):
    """Create a temporary IGC file for testing"""
    igc_file = tmp_path / "test_flight.igc"
    igc_file.write_text(sample_igc_content)
    return igc_file


@pytest.fixture
def sample_scoring_dict():
    """Route optimizer output matching the sample track"""
    return {
        "scoreInfo": {
            "distance": 0.5,
            "score": 0.75,
            "tp": [{"r": 2, "x": 10.0, "y": 46.50333}],
            "legs": [{"d": 0.37, "finish": {"r": 4, "x": 10.0, "y": 46.50667}}],
            "ep": {"start": {"r": 0}, "finish": {"r": 4}},
        },
        "opt": {"scoring": {"name": "Free Flight", "multiplier": 1.5}},
    }


@pytest.fixture
def sample_scoring(sample_scoring_dict):
    return ScoringResult.from_dict(sample_scoring_dict)


@pytest.fixture
def make_zip():
    """Build an in-memory ZIP archive from a {name: text} mapping"""
    def _make(entries, compression=zipfile.ZIP_DEFLATED):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, 'w', compression=compression) as archive:
            for name, content in entries.items():
                archive.writestr(zipfile.ZipInfo(name), content, compress_type=compression)
        return buffer.getvalue()
    return _make


@pytest.fixture
def set_central_method():
    """Rewrite the compression method of the n-th central directory entry"""
    def _patch(data, method, index=0):
        data = bytearray(data)
        offset = -1
        for _ in range(index + 1):
            offset = data.index(b'PK\x01\x02', offset + 1)
        struct.pack_into('<H', data, offset + 10, method)
        return bytes(data)
    return _patch


@pytest.fixture
def sample_config_content():
    """Sample configuration file content"""
    return """[Defaults]
MaxZipEntries = 10
MaxUncompressedBytes = 1048576
AllowCsv = yes
SmoothingWindowSeconds = 20
AltitudeNoiseThreshold = 1.0
ClimbWindowSeconds = 60
SpeedWindowFixes = 5
PreviewMaxItems = 25
PreviewMaxPayloadBytes = 4096
ReverseGeocoder = none

[Region Dolomites]
Polygon = 46.2 11.4; 46.2 12.4; 46.8 12.4; 46.8 11.4
"""


@pytest.fixture
def sample_config_file(tmp_path, sample_config_content):
    """Create a temporary config file for testing"""
    config_file = tmp_path / "test_config.conf"
    config_file.write_text(sample_config_content)
    return config_file


@pytest.fixture
def mock_cli_args(sample_config_file):
    """Mock command-line arguments for testing"""
    class MockArgs:
        def __init__(self):
            self.config = str(sample_config_file)
            self.allow_csv = False
            self.max_items = None
            self.max_bytes = None
            self.geocoder = None

    return MockArgs()


@pytest.fixture
def scoring_file(tmp_path, sample_scoring_dict):
    path = tmp_path / "test_flight.scoring.json"
    path.write_text(json.dumps(sample_scoring_dict))
    return path
