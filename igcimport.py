#!/usr/bin/env python3
"""
IGC flight import

This script parses IGC flight logs (or ZIP archives of them), computes flight
statistics and prints a summary per flight. Route statistics need the route
optimizer's output, read from a `<track>.scoring.json` file next to each
track or from -s. With -p the duplicate-preview request payloads are written
as JSON, split into request-sized chunks.

Usage:
    python igcimport.py [-c config] [-s scoring.json] [-p preview.json] file.igc [flights.zip ...]
"""

import os
import argparse
import json
import sys
import logging
from pathlib import Path
from typing import List, Optional

# Add the current directory to the Python path
current_dir = os.path.dirname(os.path.abspath(__file__))
sys.path.append(current_dir)

from igc_config import Config
from igc_batch import serializePayload
from igc_geocode import createCountryLookup
from igc_model import FlightTrack, ScoringResult
from igc_regions import regionsFromDefinitions
from igc_session import FileOutcome, ImportPipeline, ImportSession
from igc_statistics import FlightStatisticsEngine
from igc_summary import flightSummary

SCORING_SUFFIX = '.scoring.json'

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger('igcimport')


def loadScoring(path) -> ScoringResult:
    """Read route optimizer output from a JSON file"""
    with open(path, 'r', encoding='utf-8') as scoring_file:
        return ScoringResult.from_dict(json.load(scoring_file))


class SidecarSolver:
    """
    Supplies scoring results from JSON files: an explicit file for every
    track, or `<track stem>.scoring.json` in the given directory.
    """

    def __init__(self, directory: Path, explicit: Optional[ScoringResult] = None):
        self.directory = directory
        self.explicit = explicit

    def __call__(self, track: FlightTrack, path: str) -> Optional[ScoringResult]:
        if self.explicit is not None:
            return self.explicit
        candidate = self.directory / (Path(path).stem + SCORING_SUFFIX)
        if not candidate.is_file():
            logger.debug(f"No scoring file for {path}, route statistics skipped")
            return None
        logger.debug(f"Using scoring file {candidate}")
        return loadScoring(candidate)


def process_file(pipeline: ImportPipeline, in_path: str) -> List[FileOutcome]:
    """Read one input file and run it through the import pipeline"""
    with open(in_path, 'rb') as track_file:
        data = track_file.read()
    return pipeline.process(Path(in_path).name, data)


def report(outcomes: List[FileOutcome]) -> int:
    """Print summaries and errors; returns the number of failed files"""
    failures = 0
    for outcome in outcomes:
        if outcome.item is not None:
            print(flightSummary(outcome.item.flight_stats, outcome.path))
            print(f"Fingerprint: {outcome.item.fingerprint}\n")
        for row in outcome.csv_rows:
            logger.info(f"{outcome.path} row {row.row_number}: {row.date} {row.takeoff or ''} {row.flight_duration or ''}")
        for warning in outcome.merge_errors:
            logger.warning(f"{outcome.path}: CSV data not merged ({warning})")
        for error in outcome.errors:
            logger.error(f"{outcome.path}: {error}")
        if outcome.errors and outcome.item is None:
            failures += 1
    return failures


def main():
    parser = argparse.ArgumentParser(
        description='Parse IGC flight logs and prepare them for deduplicated import',
        epilog='Example: python igcimport.py -c igcimport.conf -p preview.json flights.zip'
    )

    parser.add_argument('-c', '--config', default=None, help='Path to config file')
    parser.add_argument('-s', '--scoring', default=None, help='Route optimizer output (JSON) to use for every track')
    parser.add_argument('-p', '--preview', default=None, help='Write chunked duplicate-preview payloads to this JSON file')
    parser.add_argument('-u', '--user', default='local', help='User id placed in preview payloads')
    parser.add_argument('--allow-csv', dest='allow_csv', action='store_true', help='Accept legacy CSV flight logs')
    parser.add_argument('--max-items', dest='max_items', type=int, default=None, help='Maximum items per request chunk')
    parser.add_argument('--max-bytes', dest='max_bytes', type=int, default=None, help='Maximum request chunk size in bytes')
    parser.add_argument('-g', '--geocoder', default=None, choices=['none', 'nominatim'], help='Reverse geocoder for country tags')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose output')
    parser.add_argument('trackfile', default=None, nargs='+', help='Path to one or more IGC, ZIP or CSV files')
    args = parser.parse_args()

    # Set log level based on verbose flag
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = Config(args)
    explicit_scoring = loadScoring(args.scoring) if args.scoring else None
    country_lookup = createCountryLookup(config.geocoder)
    engine = FlightStatisticsEngine(config.statistics, regionsFromDefinitions(config.regions), country_lookup)
    session = ImportSession(config.chunk_limits)

    failures = 0
    for in_path in args.trackfile:
        logger.info(f"Processing {in_path}...")
        pipeline = ImportPipeline(
            zip_limits=config.zip_limits,
            engine=engine,
            solver=SidecarSolver(Path(in_path).parent, explicit_scoring),
        )
        try:
            outcomes = process_file(pipeline, in_path)
        except Exception as e:
            logger.error(f"Error processing {in_path}: {e}", exc_info=args.verbose)
            failures += 1
            continue
        failures += report(outcomes)
        session.add_outcomes(outcomes)

    if country_lookup is not None:
        country_lookup.flush()

    if args.preview:
        chunks = session.preview_chunks()
        requests = [{'userId': args.user, 'items': chunk} for chunk in chunks]
        with open(args.preview, 'w', encoding='utf-8') as preview_file:
            preview_file.write(serializePayload(requests))
        logger.info(f"Wrote {len(requests)} preview request(s) to {args.preview}")

    counts = session.preview_counts()
    logger.info(f"Processing complete: {len(session.items) - counts['errors']} flights parsed, {counts['errors']} errors.")
    return 1 if failures else 0

if __name__ == "__main__":
    try:
        sys.exit(main())
    except FileNotFoundError as e:
        logger.critical(f"File not found: {e.filename}")
        sys.exit(3)
    except ValueError as e:
        logger.critical(f"Invalid input: {e}")
        sys.exit(2)
    except Exception as e:
        logger.critical(f"Unexpected error: {e}", exc_info=True)
        sys.exit(1)
