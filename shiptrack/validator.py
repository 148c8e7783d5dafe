"""Shipment schema and field-read quality monitoring.

This module implements:
- Pydantic schemas for the shipment wire contract
- The canonical empty record and the weight text parser
- FieldReadMonitor (Watchdog) for spotting selector drift

Design Rationale:
    The schema is the compatibility-bearing contract between the scraper and
    every consumer. Models are frozen, every field has a default, and the
    serialized key names and default values never change. A record built
    from nothing at all is still a valid record.

    Unlike a strict pipeline, extraction here is soft: the Watchdog reports a
    probable layout shift but never halts, because a defaulted record is the
    expected outcome for an unknown reference.
"""

import math
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from config.settings import GlobalConfig, get_config
from shiptrack.logger import get_logger

log = get_logger(__name__)

DEFAULT_EVENT_LABEL = "Status Update"

_NON_NUMERIC = re.compile(r"[^0-9.]")
_LEADING_NUMBER = re.compile(r"\d+(?:\.\d*)?|\.\d+")


def parse_weight(value: Any) -> float:
    """Convert weight text such as ``"1 234,5 kg"`` to a number.

    Every character that is not a digit or a decimal point is stripped, then
    the leading decimal number is parsed. Anything unparsable yields 0.

    Args:
        value: Raw weight text or an already numeric value.

    Returns:
        Non-negative weight, 0.0 when nothing could be parsed.
    """
    if isinstance(value, bool) or value is None:
        return 0.0

    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) and number > 0 else 0.0

    cleaned = _NON_NUMERIC.sub("", str(value))
    match = _LEADING_NUMBER.match(cleaned)
    if match is None:
        return 0.0
    number = float(match.group())
    return number if math.isfinite(number) else 0.0


class _WireModel(BaseModel):
    """Frozen model that accepts both attribute names and wire aliases."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class TrackingEvent(_WireModel):
    """One row of the tracking history.

    Attributes:
        event: Status label, "Status Update" when the source shows none.
        date: Date text as rendered, empty when unknown.
        location: Location text as rendered, empty when unknown.
        reason: Reason text, None (absent on the wire) when not rendered.
    """

    event: str = DEFAULT_EVENT_LABEL
    date: str = ""
    location: str = ""
    reason: str | None = None

    @field_validator("event", mode="before")
    @classmethod
    def default_label(cls, value: Any) -> str:
        """Replace a missing or blank label with the placeholder."""
        if value is None:
            return DEFAULT_EVENT_LABEL
        text = str(value).strip()
        return text or DEFAULT_EVENT_LABEL

    @field_validator("date", "location", mode="before")
    @classmethod
    def clean_text(cls, value: Any) -> str:
        """Strip surrounding whitespace; None becomes an empty string."""
        return "" if value is None else str(value).strip()

    @field_validator("reason", mode="before")
    @classmethod
    def drop_blank_reason(cls, value: Any) -> str | None:
        """Blank reasons are absent, not empty."""
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @property
    def is_informative(self) -> bool:
        """A row without date and location carries no information."""
        return bool(self.date or self.location)


class Party(_WireModel):
    """Sender or receiver; only the address is tracked."""

    address: str = ""

    @field_validator("address", mode="before")
    @classmethod
    def clean_address(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()


class Package(_WireModel):
    """A package with its weight and the events that apply to it."""

    weight: float = Field(default=0.0, ge=0.0)
    tracking_events: tuple[TrackingEvent, ...] = Field(
        default=(), alias="trackingEvents"
    )

    @field_validator("weight", mode="before")
    @classmethod
    def coerce_weight(cls, value: Any) -> float:
        return parse_weight(value)

    @field_serializer("weight")
    def serialize_weight(self, weight: float) -> int | float:
        """Integral weights go on the wire as integers (``0``, not ``0.0``)."""
        return int(weight) if weight.is_integer() else weight


class ShipmentRecord(_WireModel):
    """Root entity of one scrape invocation.

    Attributes:
        reference: Caller-supplied reference, copied verbatim.
        sender: Shipper party.
        receiver: Consignee party.
        packages: Never empty; an empty input yields one empty package.
        tracking_history: Events in the order the source rendered them.
    """

    reference: str
    sender: Party = Field(default_factory=Party)
    receiver: Party = Field(default_factory=Party)
    packages: tuple[Package, ...] = Field(default_factory=lambda: (Package(),))
    tracking_history: tuple[TrackingEvent, ...] = Field(
        default=(), alias="trackingHistory"
    )

    @field_validator("packages", mode="after")
    @classmethod
    def ensure_package(cls, value: tuple[Package, ...]) -> tuple[Package, ...]:
        """Synthesize one empty package rather than an empty sequence."""
        return value or (Package(),)

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-ready dictionary using wire key names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @property
    def is_empty(self) -> bool:
        """True when no real data was recovered."""
        return self == empty_shipment(self.reference)


def empty_shipment(reference: str) -> ShipmentRecord:
    """Build the canonical empty record for a reference."""
    return ShipmentRecord(
        reference=reference,
        sender=Party(),
        receiver=Party(),
        packages=(Package(),),
        tracking_history=(),
    )


class FieldReadMonitor:
    """Watchdog for field-read failures during one extraction.

    Tracks each isolated read and reports when the failure ratio exceeds the
    configured threshold. A page where every selector fails usually means the
    layout changed, or that the reference matched nothing.

    Attributes:
        config: GlobalConfig with threshold settings.
        _attempts: Number of reads attempted.
        _successes: Number of reads that found their element.
        _failed_fields: Names of the fields whose read failed.

    Example:
        monitor = FieldReadMonitor()
        monitor.start("1806203236")
        monitor.record_success("shipper")
        monitor.record_failure("weight")
        monitor.evaluate()
    """

    def __init__(self, config: GlobalConfig | None = None) -> None:
        self.config = config or get_config()
        self._attempts: int = 0
        self._successes: int = 0
        self._failed_fields: list[str] = []
        self._reference: str = ""

    def start(self, reference: str) -> None:
        """Reset counters for a new extraction."""
        self._attempts = 0
        self._successes = 0
        self._failed_fields = []
        self._reference = reference

    def record_success(self, field: str) -> None:
        self._attempts += 1
        self._successes += 1

    def record_failure(self, field: str) -> None:
        self._attempts += 1
        self._failed_fields.append(field)

    @property
    def failure_ratio(self) -> float:
        """Failure ratio in [0.0, 1.0]; 0.0 when nothing was attempted."""
        if self._attempts == 0:
            return 0.0
        return 1.0 - (self._successes / self._attempts)

    def evaluate(self) -> bool:
        """Log the read quality and report whether it looks degraded.

        Returns:
            True when the failure ratio exceeds the threshold.
        """
        threshold = self.config.watchdog_failure_threshold
        ratio = self.failure_ratio

        # Epsilon keeps a ratio exactly at the threshold on the passing side
        degraded = self._attempts > 0 and ratio > threshold + 1e-9

        if degraded:
            log.warning(
                "WATCHDOG: field reads failing, possible layout shift or unknown reference",
                reference=self._reference,
                failed_fields=self._failed_fields,
                failure_ratio=f"{ratio:.1%}",
                threshold=f"{threshold:.1%}",
            )
        else:
            log.debug(
                "Field read quality evaluated",
                reference=self._reference,
                attempts=self._attempts,
                failure_ratio=f"{ratio:.1%}",
            )
        return degraded

    def get_summary(self) -> dict[str, Any]:
        return {
            "reference": self._reference,
            "attempts": self._attempts,
            "successes": self._successes,
            "failed_fields": list(self._failed_fields),
            "failure_rate": f"{self.failure_ratio:.1%}",
        }
