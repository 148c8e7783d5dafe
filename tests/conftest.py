"""Pytest configuration and shared fixtures for the ShipTrack test suite.

This module provides hermetic test infrastructure with the following guarantees:
- No external network requests or subprocesses (all I/O mocked)
- Isolated configuration (no cross-test contamination through the singleton)
- Realistic tracking-page data shapes

Design Rationale:
    Factory fixtures over static fixtures let each test describe only the
    page state it cares about. The mock_config fixture overrides the singleton
    GlobalConfig to prevent state leakage between tests.
"""

from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from pytest_mock import MockerFixture

from config.settings import GlobalConfig

SHIPPER_SELECTOR = '[data-test="shipper_place_value"]'
CONSIGNEE_SELECTOR = '[data-test="consignee_place_value"]'
WEIGHT_SELECTOR = '[data-test="total_weight_value"]'


@pytest.fixture
def mock_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> GlobalConfig:
    """Provide isolated GlobalConfig with safe test defaults.

    Overrides the lru_cache singleton to prevent state leakage between tests.
    Uses tmp_path for all file operations to avoid polluting the filesystem.

    Example:
        def test_something(mock_config: GlobalConfig) -> None:
            assert mock_config.settle_ms == 0  # No real waiting in tests
    """
    # Clear the lru_cache to force fresh instantiation
    from config.settings import get_config

    get_config.cache_clear()

    log_dir = tmp_path / "logs"
    output_dir = tmp_path / "output"
    expected_dir = tmp_path / "test_values"
    log_dir.mkdir()
    output_dir.mkdir()
    expected_dir.mkdir()

    # The outer environment must not leak a headless toggle into tests
    monkeypatch.delenv("SCRAPER_HEADLESS", raising=False)
    monkeypatch.delenv("SCRAPER_COMMAND", raising=False)

    test_env = {
        "APP_NAME": "ShipTrack-Test",
        "ENVIRONMENT": "test",
        "DEBUG": "false",
        "HEADLESS": "true",
        "LOG_LEVEL": "DEBUG",
        "LOG_DIR": str(log_dir),
        "LOG_ROTATION": "1 day",
        "LOG_RETENTION": "1 day",
        "TRACKING_URL": "https://tracking.test.example.com/",
        "REQUEST_TIMEOUT_MS": "5000",
        "INVOCATION_TIMEOUT_SEC": "30",
        "CONSENT_TIMEOUT_MS": "100",
        "EXPAND_PAUSE_MS": "0",
        "SETTLE_MS": "0",
        "WATCHDOG_FAILURE_THRESHOLD": "0.30",
        "OUTPUT_DIR": str(output_dir),
        "EXPECTED_DIR": str(expected_dir),
    }

    for key, value in test_env.items():
        monkeypatch.setenv(key, value)

    config = get_config()

    yield config

    # Cleanup: clear cache again after test
    get_config.cache_clear()


@pytest.fixture
def sample_history_rows() -> list[dict[str, str]]:
    """Raw rows as returned by the in-page history evaluation."""
    return [
        {"event": "Booked", "date": "2024-03-01", "location": "Stockholm", "reason": ""},
        {"event": "", "date": "2024-03-02", "location": "Malmo", "reason": ""},
        {"event": "Ghost", "date": "", "location": "", "reason": ""},
        {
            "event": "Delivered",
            "date": "2024-03-04",
            "location": "Hamburg",
            "reason": "Signed by receiver",
        },
    ]


@pytest.fixture
def sample_payload() -> dict[str, Any]:
    """Wire payload of a delivered shipment."""
    history = [
        {"event": "Booked", "date": "2024-03-01", "location": "Stockholm"},
        {"event": "In transit", "date": "2024-03-02", "location": "Malmo"},
        {
            "event": "Delivered",
            "date": "2024-03-04",
            "location": "Hamburg",
            "reason": "Signed by receiver",
        },
    ]
    return {
        "reference": "1806203236",
        "sender": {"address": "Stockholm, SE"},
        "receiver": {"address": "Hamburg, DE"},
        "packages": [{"weight": 12.5, "trackingEvents": history}],
        "trackingHistory": history,
    }


@pytest.fixture
def mock_page_factory(mocker: MockerFixture) -> Callable[..., MagicMock]:
    """Factory fixture for mocked Playwright pages at the result state.

    Args (of the returned factory):
        rows: Raw history rows, or an exception to raise from the row query.
        fields: Mapping of selector to text; missing selectors raise.

    Example:
        page = mock_page_factory(rows=[...], fields={SHIPPER_SELECTOR: "Oslo"})
    """

    def _make_page(
        rows: list[dict[str, Any]] | Exception | None = None,
        fields: dict[str, str] | None = None,
    ) -> MagicMock:
        fields = fields or {}
        page = mocker.MagicMock()
        page.url = "https://tracking.test.example.com/"

        if isinstance(rows, Exception):
            page.eval_on_selector_all = mocker.AsyncMock(side_effect=rows)
        else:
            page.eval_on_selector_all = mocker.AsyncMock(return_value=rows or [])

        async def _eval_on_selector(selector: str, expression: str) -> str:
            if selector not in fields:
                raise RuntimeError(f"No element matches selector {selector}")
            return fields[selector]

        page.eval_on_selector = mocker.AsyncMock(side_effect=_eval_on_selector)
        page.fill = mocker.AsyncMock()
        page.click = mocker.AsyncMock()
        page.wait_for_timeout = mocker.AsyncMock()
        page.goto = mocker.AsyncMock(return_value=mocker.MagicMock(status=200))
        return page

    return _make_page


@pytest.fixture
def mock_browser_context(mocker: MockerFixture) -> MagicMock:
    """Provide mocked Playwright BrowserContext."""
    page = mocker.MagicMock()
    page.goto = mocker.AsyncMock(return_value=mocker.MagicMock(status=200))

    context = mocker.MagicMock()
    context.new_page = mocker.AsyncMock(return_value=page)
    context.close = mocker.AsyncMock()
    return context


@pytest.fixture
def mock_browser(mocker: MockerFixture, mock_browser_context: MagicMock) -> MagicMock:
    """Provide mocked Playwright Browser."""
    browser = mocker.MagicMock()
    browser.new_context = mocker.AsyncMock(return_value=mock_browser_context)
    browser.close = mocker.AsyncMock()
    return browser


@pytest.fixture
def mock_playwright(mocker: MockerFixture, mock_browser: MagicMock) -> MagicMock:
    """Provide mocked Playwright driver and patch ``async_playwright``.

    ``async_playwright().start()`` resolves to this mock inside
    ``shiptrack.browser``.
    """
    playwright = mocker.MagicMock()
    playwright.chromium.launch = mocker.AsyncMock(return_value=mock_browser)
    playwright.stop = mocker.AsyncMock()

    starter = MagicMock()
    starter.start = AsyncMock(return_value=playwright)
    mocker.patch("shiptrack.browser.async_playwright", return_value=starter)
    return playwright


# Pytest configuration
def pytest_configure(config: Any) -> None:
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests requiring full stack",
    )
