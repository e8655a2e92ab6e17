#!/usr/bin/env python3
"""
Import pipeline and session for the IGC flight import toolkit

ImportPipeline turns one uploaded file (IGC, ZIP or legacy CSV) into
per-file outcomes. ImportSession holds the resulting items and drives the
duplicate preview and the batched commit through injected endpoint
callables, one chunk at a time.
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, List, Optional

from igc_config import ChunkLimits, ZipLimits
from igc_batch import chunkItems
from igc_csv import CsvTableParser
from igc_errors import TrackImportError
from igc_model import CsvRow, DedupeStatus, FileType, FlightStatistics, FlightTrack, ImportItem, ScoringResult
from igc_parser import TrackParser, extractCompetitionClass
from igc_reconcile import ImportReconciler
from igc_statistics import FlightStatisticsEngine
from igc_utils import inferImportFileType, normalizeBasename
from igc_zip import ZipReader
from igc_constants import COMMIT_STATUS_ERROR, COMMIT_STATUS_IMPORTED

# Configure logger
logger = logging.getLogger(__name__)

Solver = Callable[[FlightTrack, str], Optional[ScoringResult]]
Endpoint = Callable[[Dict[str, Any]], Dict[str, Any]]

COUNT_KEYS = ('imported', 'duplicateSkipped', 'possibleSkipped', 'errors')


@dataclass
class FileOutcome:
    """Result of processing one file or archive entry"""
    name: str
    path: str
    file_type: Optional[str] = None
    item: Optional[ImportItem] = None
    track: Optional[FlightTrack] = None
    csv_rows: List[CsvRow] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    merge_errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class ImportPipeline:
    """
    Per-file import: type inference, archive extraction, parsing,
    statistics and fingerprinting. Input-data errors are captured in the
    outcome of the file they belong to.
    """

    def __init__(self, zip_limits: Optional[ZipLimits] = None,
                 engine: Optional[FlightStatisticsEngine] = None,
                 reconciler: Optional[ImportReconciler] = None,
                 solver: Optional[Solver] = None,
                 track_parser: Optional[TrackParser] = None,
                 csv_parser: Optional[CsvTableParser] = None):
        """Initialize with components; a missing solver means no route statistics"""
        self.zip_limits = zip_limits or ZipLimits()
        self.zip_reader = ZipReader(self.zip_limits)
        self.engine = engine or FlightStatisticsEngine()
        self.reconciler = reconciler or ImportReconciler()
        self.solver = solver
        self.track_parser = track_parser or TrackParser()
        self.csv_parser = csv_parser or CsvTableParser()

    @staticmethod
    def _new_id() -> str:
        return uuid.uuid4().hex

    def process_igc(self, name: str, path: str, data: bytes) -> FileOutcome:
        """Parse one IGC file into an import item"""
        outcome = FileOutcome(name=name, path=path, file_type=FileType.IGC.value)
        content = data.decode('utf-8', errors='replace')

        try:
            track = self.track_parser.parse(content)
        except TrackImportError as e:
            outcome.errors.append(e.message)
            return outcome

        track.competition_class = extractCompetitionClass(content) or track.competition_class
        outcome.track = track
        try:
            scoring = self.solver(track, path) if self.solver is not None else None
            stats = self.engine.compute(track, scoring)
        except IndexError as e:
            # Scoring indices from another track
            logger.error(f"Scoring result does not match {path}: {e}")
            outcome.errors.append(f"Failed to compute flight statistics: {e}")
            return outcome
        except (ValueError, KeyError, TypeError, OSError) as e:
            logger.warning(f"Statistics failed for {path}: {e}")
            outcome.errors.append(f"Failed to compute flight statistics: {e}")
            return outcome

        outcome.item = ImportItem(
            local_id=self._new_id(),
            fingerprint=self.reconciler.fingerprint(content),
            flight_stats=stats,
            file_name=name,
            file_path=path,
        )
        logger.info(f"Parsed {path}: {len(track.fixes)} fixes, {stats.flight_duration}")
        return outcome

    def process_csv(self, name: str, path: str, data: bytes) -> FileOutcome:
        """Parse a legacy CSV flight log into normalized rows"""
        outcome = FileOutcome(name=name, path=path, file_type=FileType.CSV.value)
        if not self.zip_limits.allow_csv:
            outcome.errors.append("CSV import is disabled")
            return outcome

        normalization = self.csv_parser.parse(data.decode('utf-8', errors='replace'), path)
        outcome.csv_rows = normalization.rows
        outcome.errors.extend(normalization.errors)
        return outcome

    def process_zip(self, name: str, data: bytes) -> List[FileOutcome]:
        """Extract an archive and process every supported entry"""
        try:
            extraction = self.zip_reader.extract_entries(data, name)
        except TrackImportError as e:
            return [FileOutcome(name=name, path=name, file_type=FileType.ZIP.value, errors=[e.message])]

        outcomes = []
        for entry in extraction.entries:
            if entry.inferred_type == FileType.CSV:
                outcomes.append(self.process_csv(entry.name, entry.path, entry.file_bytes))
            else:
                outcomes.append(self.process_igc(entry.name, entry.path, entry.file_bytes))

        for error in extraction.errors:
            entry_name = (error.path or name).rsplit('/', 1)[-1]
            outcomes.append(FileOutcome(name=entry_name, path=error.path or name, errors=[error.message]))

        self.merge_csv_rows(outcomes)
        return outcomes

    def merge_csv_rows(self, outcomes: List[FileOutcome]):
        """
        Merge CSV rows into the IGC items they name. Rows whose checks fail
        leave the IGC statistics untouched and record the mismatch.
        """
        by_name = {
            normalizeBasename(outcome.name): outcome
            for outcome in outcomes if outcome.item is not None
        }
        for outcome in outcomes:
            for row in outcome.csv_rows:
                target = by_name.get(normalizeBasename(row.igc_file_name))
                if target is None:
                    continue
                result = self.reconciler.merge(target.item.flight_stats, row.to_flight_statistics())
                if result.ok:
                    target.item.flight_stats = result.merged
                else:
                    target.merge_errors.extend(f"Row {row.row_number}: {error}" for error in result.consistency_errors)

    def process(self, name: str, data: bytes) -> List[FileOutcome]:
        """
        Process one uploaded file. Returns one outcome per track file
        (several for an archive).
        """
        file_type = inferImportFileType(name)
        logger.debug(f"Processing {name} as {file_type}")

        if file_type == FileType.ZIP.value:
            return self.process_zip(name, data)
        if file_type == FileType.IGC.value:
            return [self.process_igc(name, name, data)]
        if file_type == FileType.CSV.value:
            return [self.process_csv(name, name, data)]

        return [FileOutcome(name=name, path=name, errors=[f"Unsupported file type: {name}"])]


class ImportSession:
    """
    Pending import items plus aggregate commit counts. Endpoint calls are
    made sequentially per chunk.
    """

    def __init__(self, chunk_limits: Optional[ChunkLimits] = None):
        """Initialize with request chunk bounds"""
        self.chunk_limits = chunk_limits or ChunkLimits()
        self.items: List[ImportItem] = []
        self.counts: Dict[str, int] = {key: 0 for key in COUNT_KEYS}
        self.session_id: Optional[str] = None

    def add_outcomes(self, outcomes: Iterable[FileOutcome]):
        """Add parsed items; failed files become error items"""
        for outcome in outcomes:
            if outcome.item is not None:
                self.items.append(outcome.item)
            elif outcome.errors and outcome.file_type != FileType.CSV.value:
                self.items.append(ImportItem(
                    local_id=uuid.uuid4().hex,
                    fingerprint='',
                    flight_stats=FlightStatistics(),
                    dedupe_status=DedupeStatus.ERROR,
                    file_name=outcome.name,
                    file_path=outcome.path,
                    error='; '.join(outcome.errors),
                ))

    def _chunks(self, payloads: List[Dict[str, Any]]) -> List[List[Dict[str, Any]]]:
        return chunkItems(payloads, self.chunk_limits.max_items, self.chunk_limits.max_payload_bytes)

    def preview_chunks(self) -> List[List[Dict[str, Any]]]:
        """Preview request items for all non-error items, split into chunks"""
        payloads = [
            item.to_payload(ImportReconciler.preview_flight_stats(item.flight_stats))
            for item in self.items if item.dedupe_status != DedupeStatus.ERROR
        ]
        return self._chunks(payloads)

    def preview(self, send_preview: Endpoint, user_id: str) -> List[ImportItem]:
        """
        Ask the preview endpoint to classify all non-error items and apply
        the aggregated response. The first classification for an id wins.
        """
        aggregated: List[Dict[str, Any]] = []
        seen = set()
        for number, chunk in enumerate(self.preview_chunks(), start=1):
            logger.debug(f"Preview chunk {number}: {len(chunk)} items")
            response = send_preview({'userId': user_id, 'items': chunk}) or {}
            for entry in response.get('items') or []:
                if entry.get('localId') in seen:
                    continue
                seen.add(entry.get('localId'))
                aggregated.append(entry)

        self.items = ImportReconciler.classify(self.items, {'items': aggregated})
        return self.items

    def commit(self, send_commit: Endpoint, force_possible_duplicate_ids: Iterable[str] = ()) -> Dict[str, int]:
        """
        Commit ready items, plus possible duplicates the user chose to force.
        Imported items leave the session; counts accumulate across chunks.
        """
        forced = set(force_possible_duplicate_ids)
        uploadable = [
            item for item in self.items
            if item.dedupe_status == DedupeStatus.READY
            or (item.dedupe_status == DedupeStatus.POSSIBLE_DUPLICATE and item.local_id in forced)
        ]
        by_id = {item.local_id: item for item in self.items}

        for number, chunk in enumerate(self._chunks([item.to_payload() for item in uploadable]), start=1):
            request = {
                'items': chunk,
                'forcePossibleDuplicateIds': [p['localId'] for p in chunk if p['localId'] in forced],
            }
            if self.session_id:
                request['sessionId'] = self.session_id

            logger.debug(f"Commit chunk {number}: {len(chunk)} items")
            response = send_commit(request) or {}
            self.session_id = response.get('sessionId') or self.session_id

            for key, value in (response.get('counts') or {}).items():
                if key in self.counts:
                    self.counts[key] += int(value or 0)

            for entry in response.get('items') or []:
                item = by_id.get(entry.get('localId'))
                if item is None:
                    continue
                status = entry.get('status')
                if status == COMMIT_STATUS_IMPORTED:
                    by_id.pop(item.local_id)
                elif status == COMMIT_STATUS_ERROR:
                    by_id[item.local_id] = replace(item, dedupe_status=DedupeStatus.ERROR,
                                                   error=entry.get('explanation') or 'Import failed')

        self.items = [by_id[item.local_id] for item in self.items if item.local_id in by_id]
        logger.info(f"Commit finished: {self.counts}")
        return dict(self.counts)

    def preview_counts(self, possible_duplicate_overrides: Iterable[str] = ()) -> Dict[str, int]:
        """Totals per status; forced possible duplicates count as uploads"""
        overrides = set(possible_duplicate_overrides)
        counts = {'ready': 0, 'duplicates': 0, 'possibleDuplicates': 0, 'errors': 0, 'willUpload': 0}

        for item in self.items:
            if item.dedupe_status == DedupeStatus.READY:
                counts['ready'] += 1
                counts['willUpload'] += 1
            elif item.dedupe_status == DedupeStatus.DUPLICATE:
                counts['duplicates'] += 1
            elif item.dedupe_status == DedupeStatus.POSSIBLE_DUPLICATE:
                counts['possibleDuplicates'] += 1
                if item.local_id in overrides:
                    counts['willUpload'] += 1
            elif item.dedupe_status == DedupeStatus.ERROR:
                counts['errors'] += 1

        return counts
