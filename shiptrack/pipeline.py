"""One scrape invocation: open, search, extract, close.

The pipeline is the only place that composes BrowserSession,
SearchNavigator and ShipmentExtractor. It runs under a single
invocation-level timeout; cancellation by the timeout still closes the
browser because the session is an async context manager.
"""

import asyncio

from config.settings import GlobalConfig, InvocationOptions, get_config
from shiptrack.browser import BrowserSession
from shiptrack.exceptions import InvocationTimeoutError
from shiptrack.logger import bind_reference, get_logger
from shiptrack.navigator import SearchNavigator
from shiptrack.scraper import ShipmentExtractor
from shiptrack.validator import ShipmentRecord

log = get_logger(__name__)


async def _scrape(options: InvocationOptions, config: GlobalConfig) -> ShipmentRecord:
    navigator = SearchNavigator(config)
    extractor = ShipmentExtractor(config)

    async with BrowserSession.open(config, headless=options.headless) as session:
        await navigator.search(session, options.reference)
        return await extractor.extract(session.page, options.reference)


async def scrape_shipment(
    options: InvocationOptions, config: GlobalConfig | None = None
) -> ShipmentRecord:
    """Scrape one reference into a ShipmentRecord.

    Args:
        options: Per-invocation values (reference, headless, timeout).
        config: Optional GlobalConfig. Uses singleton if not provided.

    Returns:
        The extracted record; the canonical empty record when extraction
        found nothing.

    Raises:
        SearchError: If the search sequence fails.
        InvocationTimeoutError: If the invocation exceeds ``options.timeout_sec``.
        playwright.async_api.Error: If the browser cannot be launched.
    """
    config = config or get_config()
    run_log = bind_reference(log, options.reference)

    run_log.info(
        "Pipeline execution started",
        headless=options.headless,
        timeout_sec=options.timeout_sec,
    )

    try:
        record = await asyncio.wait_for(_scrape(options, config), timeout=options.timeout_sec)
    except asyncio.TimeoutError as exc:
        raise InvocationTimeoutError(options.reference, options.timeout_sec) from exc

    run_log.info(
        "Pipeline execution completed",
        events=len(record.tracking_history),
        empty=record.is_empty,
    )
    return record
