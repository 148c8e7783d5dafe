"""Search sequence for the public tracking application.

The navigator drives an open BrowserSession from a blank page to the
rendered result state for one reference:

1. Navigate to the tracking URL and wait for network idle
2. Dismiss the consent banner (advisory)
3. Fill the reference and submit the search
4. Expand the "See more" details (advisory)
5. Wait a fixed settle interval

Steps 1 and 3 are mandatory: any failure is re-raised as SearchError naming
the reference. Steps 2 and 4 are advisory: they report an AdvisoryOutcome
and never raise.
"""

import re
from enum import Enum

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from config.settings import GlobalConfig, get_config
from shiptrack.browser import BrowserSession
from shiptrack.exceptions import SearchError
from shiptrack.logger import get_logger

log = get_logger(__name__)


class AdvisoryOutcome(str, Enum):
    """Result of a best-effort UI step."""

    ATTEMPTED = "attempted"
    SUCCEEDED = "succeeded"
    ABSENT = "absent"


class SearchNavigator:
    """Drives the navigate, dismiss, fill, submit, expand, settle sequence.

    Attributes:
        config: GlobalConfig providing the URL, selectors and timings.
        _consent_pattern: Compiled case-insensitive accept-button text.
    """

    def __init__(self, config: GlobalConfig | None = None) -> None:
        self.config = config or get_config()
        self._consent_pattern = re.compile(self.config.consent_text_pattern, re.IGNORECASE)

    async def search(self, session: BrowserSession, reference: str) -> None:
        """Bring the session page to the result state for ``reference``.

        Args:
            session: Open BrowserSession.
            reference: Shipment reference to search for.

        Raises:
            SearchError: If navigation or the fill/submit step fails.
        """
        log.info("Starting search", reference=reference)

        try:
            await session.navigate(self.config.tracking_url, wait_until="networkidle")
        except Exception as exc:
            log.error("Navigation failed", reference=reference, error=str(exc))
            raise SearchError(reference=reference, reason=str(exc)) from exc

        page = session.page
        await self.dismiss_consent_banner(page)

        try:
            await page.fill(self.config.css_selector_search_input, reference)
            await page.click(self.config.css_selector_search_submit)
        except Exception as exc:
            log.error("Search submission failed", reference=reference, error=str(exc))
            raise SearchError(reference=reference, reason=str(exc)) from exc

        await self.expand_details(page)

        await page.wait_for_timeout(self.config.settle_ms)
        log.info("Search complete", reference=reference)

    async def dismiss_consent_banner(self, page: Page) -> AdvisoryOutcome:
        """Click the privacy banner's accept button if it shows up.

        Returns:
            ABSENT when no matching button became visible in time,
            ATTEMPTED when it was found but the click failed,
            SUCCEEDED when it was clicked.
        """
        button = (
            page.locator(self.config.css_selector_consent_button)
            .filter(has_text=self._consent_pattern)
            .first
        )

        try:
            await button.wait_for(state="visible", timeout=self.config.consent_timeout_ms)
        except PlaywrightTimeoutError:
            log.debug("Consent banner did not appear")
            return AdvisoryOutcome.ABSENT
        except Exception as exc:
            log.debug("Consent banner lookup failed", error=str(exc))
            return AdvisoryOutcome.ABSENT

        try:
            await button.click()
        except Exception as exc:
            log.warning("Consent banner click failed", error=str(exc))
            return AdvisoryOutcome.ATTEMPTED

        log.info("Privacy banner dismissed")
        return AdvisoryOutcome.SUCCEEDED

    async def expand_details(self, page: Page) -> AdvisoryOutcome:
        """Open the "See more" details panel when it is offered."""
        control = page.locator(self.config.css_selector_see_more)

        try:
            visible = await control.is_visible()
        except Exception as exc:
            log.debug("Details control lookup failed", error=str(exc))
            return AdvisoryOutcome.ABSENT

        if not visible:
            return AdvisoryOutcome.ABSENT

        try:
            await control.click()
            await page.wait_for_timeout(self.config.expand_pause_ms)
        except Exception as exc:
            log.warning("Details expansion failed", error=str(exc))
            return AdvisoryOutcome.ATTEMPTED

        log.debug("Details expanded")
        return AdvisoryOutcome.SUCCEEDED
