"""
Tests for igc_session.py import pipeline and session
"""
import json
import zipfile

import pytest
from igc_config import ChunkLimits, ZipLimits
from igc_model import DedupeStatus, ScoringResult
from igc_session import FileOutcome, ImportPipeline, ImportSession


CSV_LOG = (
    'date,site,igc_file\n'
    '2025-05-09,Tonale,a.igc\n'
    '2025-06-01,Elsewhere,b.igc\n'
    'someday,Nowhere,c.igc\n'
)


@pytest.fixture
def siteless_igc(sample_igc_content):
    return sample_igc_content.replace('HFSITSITE:Passo del Tonale\n', '')


@pytest.fixture
def archive(make_zip, sample_igc_content, siteless_igc):
    return make_zip({
        'a.igc': siteless_igc,
        'b.igc': sample_igc_content.replace('B1216004630400N', 'B1216004630500N'),
        'bad.igc': 'garbage',
        'log.csv': CSV_LOG,
    })


class FakeEndpoint:
    """Records requests and answers with a canned response per call"""

    def __init__(self, respond):
        self.respond = respond
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.respond(request, len(self.requests))


class TestImportPipeline:
    """Tests for ImportPipeline.process"""

    def test_single_igc(self, sample_igc_content, sample_scoring):
        pipeline = ImportPipeline(solver=lambda track, path: sample_scoring)
        outcomes = pipeline.process('flight.igc', sample_igc_content.encode('utf-8'))

        assert len(outcomes) == 1
        outcome = outcomes[0]
        assert outcome.ok
        assert outcome.file_type == 'igc'
        assert outcome.item.file_name == 'flight.igc'
        assert len(outcome.item.fingerprint) == 64
        assert outcome.item.flight_stats.classification == 'Free Flight'
        assert outcome.item.flight_stats.competition_class == 'Sport'
        assert outcome.item.dedupe_status == DedupeStatus.UNCLASSIFIED
        assert len(outcome.track.fixes) == 5

    def test_without_solver(self, sample_igc_content):
        outcome = ImportPipeline().process('flight.igc', sample_igc_content.encode('utf-8'))[0]
        assert outcome.item.flight_stats.classification is None
        assert outcome.item.flight_stats.flight_duration == '2m'

    def test_invalid_igc(self):
        outcome = ImportPipeline().process('bad.igc', b'garbage')[0]
        assert not outcome.ok
        assert outcome.item is None
        assert outcome.errors[0].startswith('Failed to parse IGC file')

    def test_unsupported_type(self):
        outcome = ImportPipeline().process('track.gpx', b'<gpx/>')[0]
        assert outcome.errors == ['Unsupported file type: track.gpx']

    def test_csv_disabled(self):
        outcome = ImportPipeline().process('log.csv', CSV_LOG.encode('utf-8'))[0]
        assert outcome.errors == ['CSV import is disabled']
        assert outcome.csv_rows == []

    def test_csv_enabled(self):
        pipeline = ImportPipeline(zip_limits=ZipLimits(allow_csv=True))
        outcome = pipeline.process('log.csv', CSV_LOG.encode('utf-8'))[0]
        assert len(outcome.csv_rows) == 2
        assert outcome.errors == ['Row 4: missing or invalid date']

    def test_broken_archive(self):
        outcomes = ImportPipeline().process('flights.zip', b'not a zip at all, definitely not')
        assert len(outcomes) == 1
        assert outcomes[0].file_type == 'zip'
        assert 'Invalid ZIP' in outcomes[0].errors[0]

    def test_archive(self, archive):
        paths = []

        def solver(track, path):
            paths.append(path)
            return None

        outcomes = ImportPipeline(solver=solver).process('flights.zip', archive)

        assert [outcome.name for outcome in outcomes] == ['a.igc', 'b.igc', 'bad.igc']
        assert paths == ['flights.zip/a.igc', 'flights.zip/b.igc']
        assert outcomes[0].item.fingerprint != outcomes[1].item.fingerprint
        assert not outcomes[2].ok

    def test_archive_statistics_failure_stays_with_entry(self, make_zip, sample_igc_content, sample_scoring):
        """A bad scoring result for one entry leaves the other entry intact"""
        data = make_zip({
            'a.igc': sample_igc_content,
            'b.igc': sample_igc_content.replace('B1216004630400N', 'B1216004630500N'),
        })

        def solver(track, path):
            if path.endswith('b.igc'):
                return ScoringResult.from_dict({"distance": 1.0, "score": 1.0, "tp": []})
            return sample_scoring

        outcomes = ImportPipeline(solver=solver).process('flights.zip', data)

        assert [outcome.name for outcome in outcomes] == ['a.igc', 'b.igc']
        assert outcomes[0].ok
        assert outcomes[0].item.flight_stats.classification == 'Free Flight'
        assert outcomes[1].item is None
        assert outcomes[1].errors == ['Failed to compute flight statistics: Scoring result has no turnpoints']

    @pytest.mark.parametrize('solver', [
        lambda track, path: ScoringResult.from_dict({"distance": 1.0, "tp": [{"x": 10.0, "y": 46.5}]}),
        lambda track, path: ScoringResult.from_dict({"distance": 1.0, "tp": [{"r": 99}]}),
        lambda track, path: ScoringResult.from_dict(json.loads('{"distance": ')),
    ])
    def test_solver_errors_are_per_file(self, sample_igc_content, solver):
        outcome = ImportPipeline(solver=solver).process('flight.igc', sample_igc_content.encode('utf-8'))[0]
        assert not outcome.ok
        assert outcome.item is None
        assert len(outcome.track.fixes) == 5
        assert outcome.errors[0].startswith('Failed to compute flight statistics')

    def test_archive_csv_merge(self, archive):
        pipeline = ImportPipeline(zip_limits=ZipLimits(allow_csv=True))
        outcomes = pipeline.process('flights.zip', archive)
        by_name = {outcome.name: outcome for outcome in outcomes}

        assert by_name['a.igc'].item.flight_stats.site == 'Tonale'
        assert by_name['a.igc'].merge_errors == []
        assert by_name['b.igc'].item.flight_stats.site == 'Passo del Tonale'
        assert by_name['b.igc'].merge_errors == ['Row 3: date mismatch']
        assert by_name['log.csv'].errors == ['Row 4: missing or invalid date']

    def test_unsupported_compression_entry(self, make_zip, set_central_method, sample_igc_content):
        data = make_zip({'a.igc': sample_igc_content, 'b.igc': sample_igc_content},
                        compression=zipfile.ZIP_STORED)
        outcomes = ImportPipeline().process('f.zip', set_central_method(data, 14, index=1))

        assert [outcome.name for outcome in outcomes] == ['a.igc', 'b.igc']
        assert outcomes[0].ok
        assert outcomes[1].path == 'f.zip/b.igc'
        assert 'compression method 14' in outcomes[1].errors[0]


class TestImportSession:
    """Tests for ImportSession preview and commit"""

    @pytest.fixture
    def session(self, archive):
        session = ImportSession(ChunkLimits(max_items=1, max_payload_bytes=None))
        session.add_outcomes(ImportPipeline().process('flights.zip', archive))
        return session

    def test_add_outcomes(self, session):
        assert len(session.items) == 3
        error_item = session.items[2]
        assert error_item.dedupe_status == DedupeStatus.ERROR
        assert error_item.file_name == 'bad.igc'
        assert error_item.error.startswith('Failed to parse IGC file')

    def test_csv_failures_are_not_items(self):
        session = ImportSession()
        session.add_outcomes([FileOutcome(name='log.csv', path='log.csv', file_type='csv', errors=['x'])])
        assert session.items == []

    def test_preview_chunks(self, session):
        chunks = session.preview_chunks()
        assert [len(chunk) for chunk in chunks] == [1, 1]
        payload = chunks[0][0]
        assert payload['localId'] == session.items[0].local_id
        assert payload['flightStats']['date'] == '2025-05-09'
        assert payload['flightStats']['points'][0]['label'] == 'First Fix'

    def test_preview(self, session):
        a_id, b_id = session.items[0].local_id, session.items[1].local_id

        def respond(request, call):
            local_id = request['items'][0]['localId']
            if local_id == b_id:
                return {'items': [{'localId': b_id, 'classification': 'possible_duplicate',
                                   'explanation': 'Same date and takeoff'}]}
            return {'items': []}

        endpoint = FakeEndpoint(respond)
        items = session.preview(endpoint, 'user-1')

        assert len(endpoint.requests) == 2
        assert endpoint.requests[0]['userId'] == 'user-1'
        assert [item.dedupe_status for item in items] == [
            DedupeStatus.READY, DedupeStatus.POSSIBLE_DUPLICATE, DedupeStatus.ERROR,
        ]
        assert items[1].duplicate_explanation == 'Same date and takeoff'
        assert session.preview_counts() == {
            'ready': 1, 'duplicates': 0, 'possibleDuplicates': 1, 'errors': 1, 'willUpload': 1,
        }
        assert session.preview_counts([b_id])['willUpload'] == 2
        assert a_id in [item.local_id for item in session.items]

    def test_commit(self, session):
        a_id, b_id = session.items[0].local_id, session.items[1].local_id
        session.preview(FakeEndpoint(lambda request, call: {'items': [
            {'localId': b_id, 'classification': 'possible_duplicate'},
        ]}), 'user-1')

        def respond(request, call):
            local_id = request['items'][0]['localId']
            if call == 1:
                return {'sessionId': 'sess-1', 'counts': {'imported': 1},
                        'items': [{'localId': local_id, 'status': 'imported'}]}
            return {'counts': {'errors': 1},
                    'items': [{'localId': local_id, 'status': 'error', 'explanation': 'Storage full'}]}

        endpoint = FakeEndpoint(respond)
        counts = session.commit(endpoint, force_possible_duplicate_ids=[b_id])

        assert len(endpoint.requests) == 2
        first, second = endpoint.requests
        assert 'sessionId' not in first
        assert first['items'][0]['localId'] == a_id
        assert first['forcePossibleDuplicateIds'] == []
        assert second['sessionId'] == 'sess-1'
        assert second['forcePossibleDuplicateIds'] == [b_id]
        assert counts == {'imported': 1, 'duplicateSkipped': 0, 'possibleSkipped': 0, 'errors': 1}

        assert [item.file_name for item in session.items] == ['b.igc', 'bad.igc']
        assert session.items[0].local_id == b_id
        assert session.items[0].dedupe_status == DedupeStatus.ERROR
        assert session.items[0].error == 'Storage full'

    def test_commit_skips_unforced_possible_duplicates(self, session):
        b_id = session.items[1].local_id
        session.preview(FakeEndpoint(lambda request, call: {'items': [
            {'localId': b_id, 'classification': 'possible_duplicate'},
        ]}), 'user-1')

        endpoint = FakeEndpoint(lambda request, call: {'counts': {'imported': 1}})
        session.commit(endpoint)

        assert len(endpoint.requests) == 1
        assert endpoint.requests[0]['items'][0]['localId'] != b_id
        assert session.counts['imported'] == 1
