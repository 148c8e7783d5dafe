"""Total mapping from loosely-typed parsed JSON onto ShipmentRecord.

The consumer side never trusts the producer's shape. A payload may be wrapped
in a tool envelope (``structuredContent``), carry ``packages`` as a bare
object instead of a list, omit ``trackingHistory``, or hold nulls anywhere.
``normalize_shipment`` accepts any of these and always returns a valid record;
it never raises on shape problems.
"""

from collections.abc import Mapping
from typing import Any

from shiptrack.logger import get_logger
from shiptrack.validator import (
    Package,
    Party,
    ShipmentRecord,
    TrackingEvent,
    parse_weight,
)

log = get_logger(__name__)

WRAPPER_KEY = "structuredContent"


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _as_text(value: Any) -> str:
    """Strings pass through, numbers are rendered, everything else is empty."""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def unwrap(parsed: Any) -> Any:
    """Return the ``structuredContent`` payload when the value is wrapped."""
    if isinstance(parsed, Mapping) and WRAPPER_KEY in parsed:
        return parsed[WRAPPER_KEY]
    return parsed


def normalize_events(raw: Any) -> tuple[TrackingEvent, ...]:
    """Coerce a raw event list, dropping non-objects and empty rows."""
    if not isinstance(raw, list):
        return ()

    events: list[TrackingEvent] = []
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        reason = item.get("reason")
        event = TrackingEvent(
            event=_as_text(item.get("event")),
            date=_as_text(item.get("date")),
            location=_as_text(item.get("location")),
            reason=reason if isinstance(reason, str) else None,
        )
        if event.is_informative:
            events.append(event)
    return tuple(events)


def _normalize_party(raw: Any) -> Party:
    return Party(address=_as_text(_as_mapping(raw).get("address")))


def _normalize_package(
    raw: Any, inherited: tuple[TrackingEvent, ...] | None
) -> Package:
    data = _as_mapping(raw)
    if isinstance(data.get("trackingEvents"), list):
        events = normalize_events(data["trackingEvents"])
    else:
        events = inherited or ()
    return Package(weight=parse_weight(data.get("weight")), tracking_events=events)


def _raw_packages(payload: Mapping[str, Any]) -> list[Any]:
    raw = payload.get("packages")
    if isinstance(raw, list):
        return raw
    if isinstance(raw, Mapping):
        return [raw]
    return []


def _raw_history(payload: Mapping[str, Any], packages: list[Any]) -> Any:
    history = payload.get("trackingHistory")
    if isinstance(history, list):
        return history
    if packages:
        return _as_mapping(packages[0]).get("trackingEvents")
    return None


def normalize_shipment(parsed: Any, reference: str | None = None) -> ShipmentRecord:
    """Build a ShipmentRecord from any parsed JSON value.

    Args:
        parsed: Result of ``json.loads`` on the located payload.
        reference: Reference the caller asked for; used when the payload
            carries none.

    Returns:
        A structurally valid ShipmentRecord.
    """
    payload = _as_mapping(unwrap(parsed))

    record_reference = _as_text(payload.get("reference")) or (reference or "")

    raw_packages = _raw_packages(payload)
    history = normalize_events(_raw_history(payload, raw_packages))

    # Only a lone package may borrow the shipment history
    inherited = history if len(raw_packages) <= 1 else None
    packages = tuple(_normalize_package(item, inherited) for item in raw_packages)
    if not packages:
        packages = (Package(tracking_events=history),)

    record = ShipmentRecord(
        reference=record_reference,
        sender=_normalize_party(payload.get("sender")),
        receiver=_normalize_party(payload.get("receiver")),
        packages=packages,
        tracking_history=history,
    )

    log.debug(
        "Payload normalized",
        reference=record.reference,
        packages=len(record.packages),
        events=len(record.tracking_history),
    )
    return record
