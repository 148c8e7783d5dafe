"""Consumer side: run the scraper as a subprocess and recover its record.

Recovery is two-stage. The located JSON candidate is decoded into an untyped
value, then the total normalizer maps it onto ShipmentRecord. Only the first
stage can fail: a missing candidate raises JsonLocationError and an
undecodable one raises PayloadDecodeError.
"""

import asyncio
import json
from typing import Any

from config.settings import GlobalConfig, get_config
from shiptrack.exceptions import (
    InvocationTimeoutError,
    JsonLocationError,
    PayloadDecodeError,
    ScraperProcessError,
)
from shiptrack.locator import locate_json
from shiptrack.logger import get_logger
from shiptrack.normalizer import normalize_shipment
from shiptrack.validator import ShipmentRecord

log = get_logger(__name__)

PREVIEW_CHARS = 500


def decode_payload(text: str) -> Any:
    """Locate and decode the JSON value embedded in ``text``.

    Raises:
        JsonLocationError: If no JSON candidate exists.
        PayloadDecodeError: If the candidate is not valid JSON.
    """
    candidate = locate_json(text)
    if candidate is None:
        log.error("No JSON found in scraper output", preview=text[:PREVIEW_CHARS])
        raise JsonLocationError(text_length=len(text), preview=text[:PREVIEW_CHARS])

    try:
        return json.loads(candidate)
    except json.JSONDecodeError as exc:
        log.error("Failed to decode scraper JSON", snippet=candidate[:PREVIEW_CHARS])
        raise PayloadDecodeError(reason=str(exc), snippet=candidate[:PREVIEW_CHARS]) from exc


def recover_record(text: str, reference: str | None = None) -> ShipmentRecord:
    """Recover a ShipmentRecord from arbitrary scraper output."""
    return normalize_shipment(decode_payload(text), reference=reference)


async def run_scraper_process(
    reference: str,
    config: GlobalConfig | None = None,
    timeout_sec: float | None = None,
) -> str:
    """Run the scraper command for ``reference`` and return its stdout.

    Args:
        reference: Reference appended to ``config.scraper_command``.
        config: Optional GlobalConfig. Uses singleton if not provided.
        timeout_sec: Overrides ``config.invocation_timeout_sec``.

    Raises:
        InvocationTimeoutError: If the process outlives the timeout; it is killed.
        ScraperProcessError: If the process exits with a non-zero status.
    """
    config = config or get_config()
    timeout = timeout_sec or config.invocation_timeout_sec
    command = [*config.scraper_command, reference]

    log.info("Running scraper process", command=" ".join(command), timeout_sec=timeout)

    process = await asyncio.create_subprocess_exec(
        *command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        process.kill()
        await process.wait()
        raise InvocationTimeoutError(reference, timeout) from exc

    out = stdout.decode("utf-8", errors="replace")
    err = stderr.decode("utf-8", errors="replace").strip()

    if err:
        log.debug("Scraper stderr", reference=reference, stderr=err[-2000:])

    if process.returncode != 0:
        raise ScraperProcessError(reference, process.returncode, stderr=err[-2000:])

    return out


async def fetch_raw_payload(reference: str, config: GlobalConfig | None = None) -> Any:
    """Run the scraper and return the decoded, not yet normalized, payload."""
    return decode_payload(await run_scraper_process(reference, config))


async def fetch_record(reference: str, config: GlobalConfig | None = None) -> ShipmentRecord:
    """Run the scraper and return the normalized record."""
    return recover_record(await run_scraper_process(reference, config), reference=reference)
