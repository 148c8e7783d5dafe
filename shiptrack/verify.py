"""End-to-end check of the scraper against a recorded fixture.

Runs the scraper for one reference in a subprocess, recovers its payload and
compares it, keys sorted, with ``<expected_dir>/<reference>.json``. On a
mismatch the actual payload is written to ``<reference>.actual.json``.

Exit codes:
    0  payload matches the fixture
    1  payload differs from the fixture
    2  scraper, recovery or fixture failure

Usage:
    shiptrack-verify 1806203236
    python -m shiptrack.verify 1806203236 --expected-dir test_values
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from loguru import logger

from config.settings import get_config
from shiptrack.exceptions import LoggingInitializationError, ShipTrackError
from shiptrack.logger import configure_logging
from shiptrack.normalizer import unwrap
from shiptrack.recovery import fetch_raw_payload
from shiptrack.reporter import PayloadReporter, canonical_json, records_match

DEFAULT_REFERENCE = "1806203236"

EXIT_MATCH = 0
EXIT_MISMATCH = 1
EXIT_FAILURE = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shiptrack-verify",
        description="Compare a live scrape with the recorded expected payload.",
    )
    parser.add_argument("reference", nargs="?", default=DEFAULT_REFERENCE)
    parser.add_argument(
        "--expected-dir",
        type=Path,
        default=None,
        help="Directory holding <reference>.json fixtures",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    config = get_config()
    try:
        configure_logging(config)
    except LoggingInitializationError as exc:
        print(f"FATAL: {exc}", file=sys.stderr)
        return EXIT_FAILURE

    reporter = PayloadReporter(config)
    expected_dir = args.expected_dir or config.expected_dir
    reference = args.reference

    try:
        actual = asyncio.run(fetch_raw_payload(reference, config))
    except ShipTrackError as exc:
        logger.error("Scraper run failed", reference=reference, error=exc.message)
        return EXIT_FAILURE
    except OSError as exc:
        logger.error("Scraper command could not be started", error=str(exc))
        return EXIT_FAILURE

    try:
        expected = reporter.load_expected(reference, expected_dir)
    except FileNotFoundError:
        logger.error(
            "Expected JSON not found; save a scraper payload to the fixture path",
            path=str(expected_dir / f"{reference}.json"),
        )
        return EXIT_FAILURE
    except json.JSONDecodeError as exc:
        logger.error("Expected JSON invalid", reference=reference, error=str(exc))
        return EXIT_FAILURE

    if records_match(actual, expected):
        print(f"E2E test PASSED for {reference}")
        return EXIT_MATCH

    try:
        actual_path = reporter.write_actual(reference, actual, expected_dir)
    except ShipTrackError as exc:
        logger.error("Could not write actual payload", error=exc.message)
        return EXIT_FAILURE

    logger.error(
        "E2E test FAILED, actual output differs from expected",
        reference=reference,
        actual_path=str(actual_path),
    )
    print(f"--- Expected ---\n{canonical_json(unwrap(expected))}", file=sys.stderr)
    print(f"--- Actual ---\n{canonical_json(unwrap(actual))}", file=sys.stderr)
    return EXIT_MISMATCH


if __name__ == "__main__":
    sys.exit(main())
