"""Custom exception hierarchy for ShipTrack.

This module defines domain-specific exceptions that provide semantic clarity
and enable targeted error handling throughout the application. Each exception
includes contextual information to aid debugging and observability.

Failures that happen before any record could exist (navigation, search,
payload recovery) are raised to the caller. Failures that happen while a
record is being read (field reads) are absorbed into schema defaults and only
exist as exceptions inside the extractor boundary.
"""

from datetime import UTC, datetime
from typing import Any


class ShipTrackError(Exception):
    """Base exception for all ShipTrack errors.

    Attributes:
        message: Human-readable error description.
        context: Optional dictionary with additional debugging information.
        timestamp: UTC timestamp when the exception was raised.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        self.message = message
        self.context = context or {}
        self.timestamp = datetime.now(UTC)
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format exception message with context for logging."""
        base = f"[{self.timestamp.isoformat()}] {self.message}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{base} | Context: {context_str}"
        return base


class NavigationError(ShipTrackError):
    """Raised when page navigation fails.

    This may indicate network issues, invalid URLs, or blocked requests.
    Includes the target URL for debugging.
    """

    def __init__(self, url: str, reason: str, status_code: int | None = None) -> None:
        super().__init__(
            message=f"Navigation to '{url}' failed: {reason}",
            context={"url": url, "reason": reason, "status_code": status_code},
        )
        self.url = url
        self.status_code = status_code


class SearchError(ShipTrackError):
    """Raised when the navigate/fill/submit sequence cannot complete.

    The reference is always embedded so the caller can tell which
    invocation failed.
    """

    def __init__(self, reference: str, reason: str) -> None:
        super().__init__(
            message=f"Failed to perform search for reference {reference}",
            context={"reference": reference, "reason": reason},
        )
        self.reference = reference


class FieldExtractionError(ShipTrackError):
    """Raised when a single selector read fails.

    Never leaves the extractor: the field takes its default value.
    """

    def __init__(self, selector: str, reason: str) -> None:
        super().__init__(
            message=f"Extraction failed for selector '{selector}': {reason}",
            context={"selector": selector, "reason": reason},
        )
        self.selector = selector


class JsonLocationError(ShipTrackError):
    """Raised when no JSON value can be located in a text stream."""

    def __init__(self, text_length: int, preview: str = "") -> None:
        super().__init__(
            message="No JSON found in scraper output",
            context={"text_length": text_length, "preview": preview},
        )


class PayloadDecodeError(ShipTrackError):
    """Raised when the located JSON candidate cannot be decoded."""

    def __init__(self, reason: str, snippet: str = "") -> None:
        super().__init__(
            message=f"Failed to parse JSON from scraper output: {reason}",
            context={"reason": reason, "snippet": snippet},
        )


class InvocationTimeoutError(ShipTrackError):
    """Raised when a whole scrape invocation exceeds its time budget."""

    def __init__(self, reference: str, timeout_sec: float) -> None:
        super().__init__(
            message=f"Scrape for reference {reference} exceeded {timeout_sec:g}s",
            context={"reference": reference, "timeout_sec": timeout_sec},
        )
        self.reference = reference
        self.timeout_sec = timeout_sec


class ScraperProcessError(ShipTrackError):
    """Raised when the scraper subprocess exits with a non-zero status."""

    def __init__(self, reference: str, returncode: int, stderr: str = "") -> None:
        super().__init__(
            message=f"Scraper process for reference {reference} exited with {returncode}",
            context={"reference": reference, "returncode": returncode, "stderr": stderr},
        )
        self.returncode = returncode
        self.stderr = stderr


class SnapshotWriteError(ShipTrackError):
    """Raised when a record snapshot cannot be written to disk."""

    def __init__(self, output_path: str, reason: str) -> None:
        super().__init__(
            message=f"Failed to write snapshot '{output_path}': {reason}",
            context={"output_path": output_path, "reason": reason},
        )
        self.output_path = output_path


class LoggingInitializationError(ShipTrackError):
    """Raised when the logging system fails to initialize.

    This is a startup-blocking error - the application cannot proceed
    without a functioning logging infrastructure.
    """

    def __init__(self, log_dir: str, reason: str) -> None:
        super().__init__(
            message=f"Failed to initialize logging at '{log_dir}': {reason}",
            context={"log_dir": log_dir, "reason": reason},
        )
