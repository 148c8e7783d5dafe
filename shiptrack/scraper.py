"""Concrete extractor for the DB Schenker public tracking page.

This module reads the rendered result state into a ShipmentRecord:
- History rows through one batched in-page evaluation
- Shipper, consignee and total weight through three isolated reads
- The single-package shape, sharing the history with the package

Design Rationale:
    ShipmentExtractor is intentionally coupled to the tracking page's
    ``data-test`` attributes. The attributes are externalized to
    GlobalConfig, so a renamed attribute can be patched without code changes.

    Row filtering and defaulting happen in Python, not in the page script,
    so they follow the same rules as the consumer-side normalizer.
"""

from collections.abc import Mapping
from typing import Any

from playwright.async_api import Page

from shiptrack.extractor import BaseExtractor
from shiptrack.logger import get_logger
from shiptrack.normalizer import normalize_events
from shiptrack.validator import (
    Package,
    Party,
    ShipmentRecord,
    TrackingEvent,
    empty_shipment,
    parse_weight,
)

log = get_logger(__name__)

# Row i carries cells whose data-test starts with "<prefix><kind>_<i>".
HISTORY_ROWS_JS = """
(rows, prefix) => rows.map((row, index) => {
    const read = (kind) => {
        const el = row.querySelector(`[data-test^="${prefix}${kind}_${index}"]`);
        return el && el.textContent ? el.textContent.trim() : '';
    };
    return {
        event: read('event'),
        date: read('date'),
        location: read('location'),
        reason: read('reasons'),
    };
})
"""


def rows_to_events(rows: Any) -> tuple[TrackingEvent, ...]:
    """Convert raw row dictionaries into events, dropping empty rows.

    Blank labels become "Status Update" and blank reasons are dropped.
    """
    if not isinstance(rows, list):
        return ()
    return normalize_events([row for row in rows if isinstance(row, Mapping)])


class ShipmentExtractor(BaseExtractor[ShipmentRecord]):
    """Reads a tracking result page into a ShipmentRecord.

    Example:
        async with BrowserSession.open() as session:
            await SearchNavigator(config).search(session, "1806203236")
            record = await ShipmentExtractor(config).extract(session.page, "1806203236")
    """

    @property
    def name(self) -> str:
        return "ShipmentExtractor"

    def empty_result(self, reference: str) -> ShipmentRecord:
        return empty_shipment(reference)

    async def extract_history(self, page: Page) -> tuple[TrackingEvent, ...]:
        """Read all history rows in a single page evaluation.

        Errors propagate; the base ``extract`` turns them into the empty record.
        """
        rows = await page.eval_on_selector_all(
            self.config.css_selector_history_rows,
            HISTORY_ROWS_JS,
            self.config.history_attribute_prefix,
        )
        events = rows_to_events(rows)

        log.debug(
            "History rows read",
            rows=len(rows) if isinstance(rows, list) else 0,
            events=len(events),
        )
        return events

    async def extract_from_page(self, page: Page, reference: str) -> ShipmentRecord:
        history = await self.extract_history(page)

        shipper = await self.safe_read_text(page, self.config.css_selector_shipper, "shipper")
        consignee = await self.safe_read_text(
            page, self.config.css_selector_consignee, "consignee"
        )
        weight_text = await self.safe_read_text(page, self.config.css_selector_weight, "weight")

        return ShipmentRecord(
            reference=reference,
            sender=Party(address=shipper),
            receiver=Party(address=consignee),
            packages=(Package(weight=parse_weight(weight_text), tracking_events=history),),
            tracking_history=history,
        )

    def get_quality_summary(self) -> dict:
        """Field-read metrics from the last extraction."""
        return self.monitor.get_summary()
