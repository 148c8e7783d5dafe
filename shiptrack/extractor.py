"""Data extraction base class implementing the Strategy Pattern.

An extractor reads a rendered result page into a pydantic record. The base
class owns the failure policy so that every concrete strategy shares it:

- Single field reads are isolated. A failed read is logged, tallied by the
  FieldReadMonitor, and the field takes its default.
- The whole extraction is soft. Any exception escaping the concrete
  ``extract_from_page`` is logged and replaced by ``empty_result``, so the
  caller always receives a structurally valid record.

Design Rationale:
    Separating the policy from site-specific DOM traversal lets a new target
    be supported by one subclass, without touching the pipeline.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from playwright.async_api import Page
from pydantic import BaseModel

from config.settings import GlobalConfig, get_config
from shiptrack.exceptions import FieldExtractionError
from shiptrack.logger import get_logger
from shiptrack.validator import FieldReadMonitor

log = get_logger(__name__)

# Generic type variable for Pydantic models
T = TypeVar("T", bound=BaseModel)

TEXT_CONTENT_JS = "el => (el.textContent || '').trim()"


class BaseExtractor(ABC, Generic[T]):
    """Abstract base class for page extraction strategies.

    Attributes:
        config: GlobalConfig instance for selectors and thresholds.
        monitor: FieldReadMonitor tallying isolated reads.

    Type Parameters:
        T: Pydantic model type produced by the extractor.

    Example:
        class ShipmentExtractor(BaseExtractor[ShipmentRecord]):
            async def extract_from_page(self, page, reference):
                ...
    """

    def __init__(self, config: GlobalConfig | None = None) -> None:
        self.config = config or get_config()
        self.monitor = FieldReadMonitor(self.config)

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name used in logs."""
        ...

    @abstractmethod
    async def extract_from_page(self, page: Page, reference: str) -> T:
        """Read the page into a record.

        May raise; ``extract`` absorbs the failure.
        """
        ...

    @abstractmethod
    def empty_result(self, reference: str) -> T:
        """Return the canonical record used when extraction fails entirely."""
        ...

    async def extract(self, page: Page, reference: str) -> T:
        """Extract a record from ``page``; never raises.

        Args:
            page: Playwright Page at the rendered result state.
            reference: Reference the page was searched for.

        Returns:
            The extracted record, or ``empty_result(reference)`` on any failure.
        """
        log.info("Starting extraction", extractor=self.name, reference=reference)
        self.monitor.start(reference)

        try:
            result = await self.extract_from_page(page, reference)
        except Exception as exc:
            log.error(
                "Extraction failed, returning empty record",
                extractor=self.name,
                reference=reference,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return self.empty_result(reference)

        self.monitor.evaluate()
        log.info("Extraction complete", extractor=self.name, **self.monitor.get_summary())
        return result

    async def read_text(self, page: Page, selector: str) -> str:
        """Read the trimmed text content of the first match of ``selector``.

        Raises:
            FieldExtractionError: If the element is missing or evaluation fails.
        """
        try:
            value = await page.eval_on_selector(selector, TEXT_CONTENT_JS)
        except Exception as exc:
            raise FieldExtractionError(selector=selector, reason=str(exc)) from exc
        return value if isinstance(value, str) else ""

    async def safe_read_text(self, page: Page, selector: str, field: str) -> str:
        """Isolated field read: failures yield ``""`` and are tallied."""
        try:
            value = await self.read_text(page, selector)
        except FieldExtractionError as exc:
            log.warning("Field read failed", field=field, selector=selector, error=str(exc))
            self.monitor.record_failure(field)
            return ""

        self.monitor.record_success(field)
        return value
