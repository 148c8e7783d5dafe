"""Integration tests for end-to-end pipeline execution.

Validates scrape orchestration and main.py including:
- Browser, navigator and extractor wiring against a mocked result page
- Invocation timeout with guaranteed teardown
- stdout payload and exit codes

Testing Philosophy:
    Integration tests verify component interactions, not individual logic.
    All external dependencies (Playwright, filesystem) are mocked, but
    the internal component wiring is tested end-to-end.
"""

import asyncio
import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from pytest_mock import MockerFixture

from config.settings import GlobalConfig, InvocationOptions
from shiptrack.exceptions import InvocationTimeoutError, SearchError
from shiptrack.locator import END_MARKER, START_MARKER
from shiptrack.pipeline import scrape_shipment
from shiptrack.validator import ShipmentRecord, empty_shipment
from tests.conftest import CONSIGNEE_SELECTOR, SHIPPER_SELECTOR, WEIGHT_SELECTOR


def prepare_result_page(
    page: MagicMock,
    rows: list[dict[str, str]],
    fields: dict[str, str],
) -> MagicMock:
    """Configure the session page to look like a rendered result."""
    page.fill = AsyncMock()
    page.click = AsyncMock()
    page.wait_for_timeout = AsyncMock()

    hidden = MagicMock()
    hidden.filter.return_value.first.wait_for = AsyncMock(
        side_effect=PlaywrightTimeoutError("Timeout 100ms")
    )
    hidden.is_visible = AsyncMock(return_value=False)
    page.locator = MagicMock(return_value=hidden)

    async def _eval_on_selector(selector: str, expression: str) -> str:
        if selector not in fields:
            raise RuntimeError(f"No element matches selector {selector}")
        return fields[selector]

    page.eval_on_selector = AsyncMock(side_effect=_eval_on_selector)
    page.eval_on_selector_all = AsyncMock(return_value=rows)
    return page


class TestScrapeShipment:
    """Test suite for the scoped scrape invocation."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_delivered_shipment(
        self,
        mock_config: GlobalConfig,
        mock_playwright: MagicMock,
        mock_browser: MagicMock,
        mock_browser_context: MagicMock,
        sample_history_rows: list[dict[str, str]],
    ) -> None:
        """A delivered reference yields a chronological history ending in delivery."""
        prepare_result_page(
            mock_browser_context.new_page.return_value,
            sample_history_rows,
            {
                SHIPPER_SELECTOR: "Stockholm, SE",
                CONSIGNEE_SELECTOR: "Hamburg, DE",
                WEIGHT_SELECTOR: "12.5 kg",
            },
        )
        options = InvocationOptions.from_cli("1806203236", mock_config)

        record = await scrape_shipment(options, mock_config)

        assert record.reference == "1806203236"
        assert record.tracking_history
        assert record.tracking_history[-1].event == "Delivered"
        assert record.packages[0].tracking_events == record.tracking_history
        mock_browser.close.assert_awaited_once()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_unknown_reference(
        self,
        mock_config: GlobalConfig,
        mock_playwright: MagicMock,
        mock_browser_context: MagicMock,
    ) -> None:
        prepare_result_page(mock_browser_context.new_page.return_value, [], {})
        options = InvocationOptions.from_cli("0000000000", mock_config)

        record = await scrape_shipment(options, mock_config)

        assert record == empty_shipment("0000000000")

    @pytest.mark.asyncio
    async def test_search_failure_propagates_after_teardown(
        self,
        mock_config: GlobalConfig,
        mock_playwright: MagicMock,
        mock_browser: MagicMock,
        mock_browser_context: MagicMock,
    ) -> None:
        page = prepare_result_page(mock_browser_context.new_page.return_value, [], {})
        page.goto = AsyncMock(return_value=MagicMock(status=500))
        options = InvocationOptions.from_cli("1806203236", mock_config)

        with pytest.raises(SearchError):
            await scrape_shipment(options, mock_config)

        mock_browser.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_timeout_closes_browser(
        self,
        mock_config: GlobalConfig,
        mock_playwright: MagicMock,
        mock_browser: MagicMock,
        mocker: MockerFixture,
    ) -> None:
        async def _hang(session: Any, reference: str) -> None:
            await asyncio.sleep(10)

        navigator = mocker.patch("shiptrack.pipeline.SearchNavigator")
        navigator.return_value.search = AsyncMock(side_effect=_hang)
        options = InvocationOptions(reference="1806203236", timeout_sec=0.05)

        with pytest.raises(InvocationTimeoutError) as exc_info:
            await scrape_shipment(options, mock_config)

        assert exc_info.value.timeout_sec == 0.05
        mock_browser.close.assert_awaited_once()
        mock_playwright.stop.assert_awaited_once()


class TestMainEntryPoint:
    """Test suite for main.py argument handling and exit codes."""

    @pytest.fixture(autouse=True)
    def _quiet_logging(self, mocker: MockerFixture) -> None:
        mocker.patch("main.configure_logging")

    def _patch_scrape(self, mocker: MockerFixture, **kwargs: Any) -> AsyncMock:
        return mocker.patch("shiptrack.pipeline.scrape_shipment", new=AsyncMock(**kwargs))

    def test_prints_sentinel_wrapped_payload(
        self,
        mock_config: GlobalConfig,
        mocker: MockerFixture,
        capsys: pytest.CaptureFixture[str],
        sample_payload: dict[str, Any],
    ) -> None:
        from main import main

        record = ShipmentRecord.model_validate(sample_payload)
        self._patch_scrape(mocker, return_value=record)

        assert main(["1806203236"]) == 0

        out = capsys.readouterr().out
        assert out.startswith(START_MARKER + "\n")
        assert out.rstrip().endswith(END_MARKER)
        body = out.split(START_MARKER)[1].split(END_MARKER)[0]
        assert json.loads(body) == sample_payload

    def test_no_sentinels_and_save(
        self,
        mock_config: GlobalConfig,
        mocker: MockerFixture,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        from main import main

        self._patch_scrape(mocker, return_value=empty_shipment("ABC"))

        assert main(["ABC", "--no-sentinels", "--save"]) == 0

        out = capsys.readouterr().out
        assert START_MARKER not in out
        assert json.loads(out)["reference"] == "ABC"
        assert (mock_config.output_dir / "ABC.json").exists()

    def test_headed_flag_reaches_options(
        self,
        mock_config: GlobalConfig,
        mocker: MockerFixture,
    ) -> None:
        from main import main

        scrape = self._patch_scrape(mocker, return_value=empty_shipment("ABC"))

        main(["ABC", "--headed"])

        options: InvocationOptions = scrape.await_args.args[0]
        assert options.headless is False

    def test_missing_reference_is_usage_error(self, mock_config: GlobalConfig) -> None:
        from main import main

        with pytest.raises(SystemExit) as exc_info:
            main([])

        assert exc_info.value.code == 2

    def test_blank_reference_is_usage_error(self, mock_config: GlobalConfig) -> None:
        from main import main

        assert main(["  "]) == 2

    def test_search_error_exits_1(
        self,
        mock_config: GlobalConfig,
        mocker: MockerFixture,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        from main import main

        self._patch_scrape(mocker, side_effect=SearchError("XYZ", "boom"))

        with pytest.raises(SystemExit) as exc_info:
            main(["XYZ"])

        assert exc_info.value.code == 1
        assert capsys.readouterr().out == ""

    def test_timeout_exits_3(self, mock_config: GlobalConfig, mocker: MockerFixture) -> None:
        from main import main

        self._patch_scrape(mocker, side_effect=InvocationTimeoutError("XYZ", 30.0))

        with pytest.raises(SystemExit) as exc_info:
            main(["XYZ"])

        assert exc_info.value.code == 3

    def test_unexpected_error_exits_1(
        self, mock_config: GlobalConfig, mocker: MockerFixture
    ) -> None:
        from main import main

        self._patch_scrape(mocker, side_effect=RuntimeError("browser crashed"))

        with pytest.raises(SystemExit) as exc_info:
            main(["XYZ"])

        assert exc_info.value.code == 1

    def test_keyboard_interrupt_returns_130(
        self, mock_config: GlobalConfig, mocker: MockerFixture
    ) -> None:
        from main import main

        mocker.patch("main.asyncio.run", side_effect=KeyboardInterrupt)

        assert main(["XYZ"]) == 130
