"""Browser session lifecycle management.

This module wraps Playwright behind a small session object:
- One browser, one context, one page per invocation
- A fixed user agent on every context
- Headless mode resolved from CLI flags, an explicit override and the
  SCRAPER_HEADLESS environment toggle
- Guaranteed teardown through an async context manager

Design Rationale:
    The session is created through ``BrowserSession.open()`` rather than
    constructed directly so that every exit path, including cancellation by
    the invocation timeout, runs ``close()``. ``close()`` is idempotent and
    tolerates a session that never finished opening.

    A launch failure is an infrastructure fault. Whatever was started is
    released and the original Playwright exception propagates unchanged.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Self

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    async_playwright,
)
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from config.settings import GlobalConfig, get_config, resolve_headless
from shiptrack.exceptions import NavigationError
from shiptrack.logger import get_logger

log = get_logger(__name__)


class BrowserSession:
    """Owns the Playwright browser, context and page for one invocation.

    Attributes:
        config: GlobalConfig instance for runtime configuration.
        headless: Resolved headless mode for this session.
        _playwright: Playwright driver (set while open).
        _browser: Chromium browser (set while open).
        _context: BrowserContext with the fixed user agent.
        _page: The single page used by navigator and extractor.

    Example:
        async with BrowserSession.open(headless=True) as session:
            await session.navigate(config.tracking_url)
            text = await session.page.title()
    """

    def __init__(self, config: GlobalConfig, headless: bool = True) -> None:
        """Initialize an unopened session.

        Note:
            Do not instantiate directly. Use ``BrowserSession.open()`` so that
            teardown is guaranteed.
        """
        self.config = config
        self.headless = headless
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    @classmethod
    @asynccontextmanager
    async def open(
        cls,
        config: GlobalConfig | None = None,
        headed_override: bool | None = None,
        *,
        headless: bool | None = None,
    ) -> AsyncGenerator[Self, None]:
        """Launch a browser session and close it on exit.

        Args:
            config: Optional GlobalConfig. Uses singleton if not provided.
            headed_override: True forces a visible browser, False forces
                headless, None defers to the environment toggle.
            headless: Already-resolved headless mode (from InvocationOptions).
                Takes precedence over ``headed_override`` when given.

        Yields:
            An open BrowserSession.

        Raises:
            playwright.async_api.Error: If the browser cannot be launched.
        """
        if config is None:
            config = get_config()

        if headless is None:
            headless = resolve_headless(config, headed_override=headed_override)

        session = cls(config, headless=headless)
        try:
            await session._launch()
            yield session
        finally:
            await session.close()

    async def _launch(self) -> None:
        log.info("Launching browser", headless=self.headless)

        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self.headless)
        self._context = await self._browser.new_context(user_agent=self.config.user_agent)

        self._page = await self._context.new_page()
        self._page.set_default_timeout(self.config.request_timeout_ms)
        self._page.set_default_navigation_timeout(self.config.request_timeout_ms)

        log.debug("Browser session ready", user_agent=self.config.user_agent[:50] + "...")

    @property
    def page(self) -> Page:
        """The session page.

        Raises:
            RuntimeError: If the session is not open.
        """
        if self._page is None:
            raise RuntimeError("Browser session is not open")
        return self._page

    @property
    def is_open(self) -> bool:
        """Check if browser, context and page are all available."""
        return all([
            self._playwright is not None,
            self._browser is not None,
            self._context is not None,
            self._page is not None,
        ])

    async def navigate(self, url: str, wait_until: str = "networkidle") -> None:
        """Navigate the session page to ``url``.

        Args:
            url: Target URL.
            wait_until: Navigation wait condition (load, domcontentloaded, networkidle).

        Raises:
            NavigationError: On timeout, missing response or HTTP status >= 400.
        """
        log.debug("Navigating to URL", url=url, wait_until=wait_until)

        try:
            response = await self.page.goto(url, wait_until=wait_until)

            if response is None:
                raise NavigationError(url=url, reason="No response received")

            status_code = response.status

            if status_code >= 400:
                raise NavigationError(
                    url=url,
                    reason=f"HTTP {status_code}",
                    status_code=status_code,
                )

            log.info("Navigation successful", url=url, status_code=status_code)

        except PlaywrightTimeoutError as exc:
            raise NavigationError(
                url=url,
                reason=f"Navigation timeout after {self.config.request_timeout_ms}ms",
            ) from exc
        except NavigationError:
            raise
        except Exception as exc:
            raise NavigationError(url=url, reason=str(exc)) from exc

    async def close(self) -> None:
        """Release browser resources in reverse order. Safe to call twice."""
        if not any([self._page, self._context, self._browser, self._playwright]):
            return

        self._page = None

        if self._context is not None:
            try:
                await self._context.close()
            except Exception as exc:
                log.warning("Error closing context", error=str(exc))
            self._context = None

        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as exc:
                log.warning("Error closing browser", error=str(exc))
            self._browser = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as exc:
                log.warning("Error stopping playwright", error=str(exc))
            self._playwright = None

        log.info("Browser resources cleaned up")
