"""ShipTrack Entry Point.

This module serves as the bootstrap and orchestration layer.
It contains NO business logic - all functional code resides in /shiptrack.

Responsibilities:
    1. Parse the command line into InvocationOptions
    2. Load configuration and initialize logging (fail-fast on error)
    3. Run the scrape pipeline under the invocation timeout
    4. Print the shipment payload on stdout
    5. Map fatal errors onto exit codes

Usage:
    python main.py 1806203236
    python main.py 1806203236 --headed --no-sentinels
    SCRAPER_HEADLESS=false python main.py 1806203236
"""

import argparse
import asyncio
import sys
from typing import NoReturn

from loguru import logger
from pydantic import ValidationError

from config.settings import GlobalConfig, InvocationOptions, get_config
from shiptrack.exceptions import (
    InvocationTimeoutError,
    LoggingInitializationError,
    ShipTrackError,
)
from shiptrack.logger import configure_logging

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2
EXIT_TIMEOUT = 3
EXIT_INTERRUPTED = 130


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shiptrack",
        description="Scrape DB Schenker shipment tracking data as JSON.",
    )
    parser.add_argument("reference", help="Shipment reference or tracking number")
    parser.add_argument(
        "--headed", action="store_true", help="Show the browser window (overrides everything)"
    )
    parser.add_argument(
        "--headless", action="store_true", help="Force headless mode"
    )
    parser.add_argument(
        "--no-sentinels",
        action="store_true",
        help="Print bare JSON without the start/end marker lines",
    )
    parser.add_argument(
        "--save", action="store_true", help="Also write the record to OUTPUT_DIR/<reference>.json"
    )
    return parser


async def _run_pipeline(config: GlobalConfig, options: InvocationOptions) -> int:
    """Scrape the reference and print the payload.

    Args:
        config: The validated GlobalConfig instance.
        options: Per-invocation options.

    Returns:
        Exit code (0 for success).
    """
    from shiptrack.pipeline import scrape_shipment
    from shiptrack.reporter import PayloadReporter

    record = await scrape_shipment(options, config)

    reporter = PayloadReporter(config)
    if options.save_snapshot:
        reporter.save_snapshot(record)
    reporter.emit(record, sentinels=options.emit_sentinels)

    if record.is_empty:
        logger.warning("No shipment data found", reference=options.reference)

    return EXIT_OK


def _handle_fatal_error(exc: Exception) -> NoReturn:
    """Handle fatal errors with structured logging and exit.

    Args:
        exc: The exception that caused the fatal error.
    """
    if isinstance(exc, InvocationTimeoutError):
        logger.critical(
            "CRITICAL: Invocation timed out",
            reference=exc.reference,
            timeout_sec=exc.timeout_sec,
        )
        sys.exit(EXIT_TIMEOUT)

    if isinstance(exc, ShipTrackError):
        logger.critical(
            "Fatal application error",
            error_type=type(exc).__name__,
            message=exc.message,
            context=exc.context,
        )
        sys.exit(EXIT_FATAL)

    # Unexpected error - log full traceback
    logger.exception("Unexpected fatal error", error=str(exc))
    sys.exit(EXIT_FATAL)


def main(argv: list[str] | None = None) -> int:
    """Application entry point.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    # Step 1: Parse arguments (argparse exits with 2 on usage errors)
    args = _build_parser().parse_args(argv)

    # Step 2: Load configuration (validates via Pydantic)
    try:
        config = get_config()
    except Exception as exc:
        # Cannot log yet - print to stderr
        print(f"FATAL: Configuration loading failed: {exc}", file=sys.stderr)
        return EXIT_FATAL

    # Step 3: Initialize logging (fail-fast)
    try:
        configure_logging(config)
    except LoggingInitializationError as exc:
        print(f"FATAL: {exc}", file=sys.stderr)
        return EXIT_FATAL

    # Step 4: Resolve per-invocation options
    try:
        options = InvocationOptions.from_cli(
            args.reference,
            config,
            headed=args.headed,
            headless=args.headless,
            no_sentinels=args.no_sentinels,
            save=args.save,
        )
    except ValidationError as exc:
        logger.error("Invalid invocation", errors=exc.error_count(), details=str(exc))
        return EXIT_USAGE

    # Step 5: Execute async pipeline
    try:
        return asyncio.run(_run_pipeline(config, options))
    except KeyboardInterrupt:
        logger.warning("Pipeline interrupted by user (Ctrl+C)")
        return EXIT_INTERRUPTED  # Standard Unix SIGINT exit code
    except Exception as exc:
        _handle_fatal_error(exc)


if __name__ == "__main__":
    sys.exit(main())
