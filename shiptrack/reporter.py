"""Payload output: stdout rendering, snapshots and fixture comparison.

The producer's stdout is a contract. The record is printed as indented JSON,
by default between the ``---JSON-START---`` and ``---JSON-END---`` lines so
that a consumer can recover it even when other output leaks onto stdout.

Snapshots and comparisons work on the wire dictionary, never on pydantic
objects, so a snapshot file is exactly what a consumer would have read.
"""

import json
import sys
from pathlib import Path
from typing import Any, TextIO

from config.settings import GlobalConfig, get_config
from shiptrack.exceptions import SnapshotWriteError
from shiptrack.locator import END_MARKER, START_MARKER
from shiptrack.logger import get_logger
from shiptrack.normalizer import unwrap
from shiptrack.validator import ShipmentRecord

log = get_logger(__name__)


def canonical_json(value: Any) -> str:
    """Serialize with keys sorted at every depth, for order-free comparison."""
    return json.dumps(value, indent=2, sort_keys=True, ensure_ascii=False)


def records_match(actual: Any, expected: Any) -> bool:
    """Compare two payloads after unwrapping and key sorting."""
    return canonical_json(unwrap(actual)) == canonical_json(unwrap(expected))


class PayloadReporter:
    """Renders, emits and persists shipment records.

    Attributes:
        config: GlobalConfig instance for output paths.

    Example:
        reporter = PayloadReporter(config)
        reporter.emit(record, sentinels=True)
        reporter.save_snapshot(record)
    """

    def __init__(self, config: GlobalConfig | None = None) -> None:
        self.config = config or get_config()

    @staticmethod
    def render(record: ShipmentRecord, sentinels: bool = True) -> str:
        """Return the stdout text for ``record``.

        Args:
            record: Record to serialize.
            sentinels: Wrap the JSON in the start and end marker lines.

        Returns:
            Indented JSON, newline terminated.
        """
        body = json.dumps(record.to_wire(), indent=2, ensure_ascii=False)
        if sentinels:
            return f"{START_MARKER}\n{body}\n{END_MARKER}\n"
        return body + "\n"

    def emit(
        self,
        record: ShipmentRecord,
        sentinels: bool = True,
        stream: TextIO | None = None,
    ) -> None:
        """Write the rendered record to ``stream`` (stdout by default)."""
        stream = stream or sys.stdout
        stream.write(self.render(record, sentinels=sentinels))
        stream.flush()
        log.debug("Payload emitted", reference=record.reference, sentinels=sentinels)

    def _ensure_dir(self, directory: Path) -> Path:
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise SnapshotWriteError(
                output_path=str(directory),
                reason=f"Cannot create output directory: {exc}",
            ) from exc
        return directory

    def _write_json(self, path: Path, payload: Any) -> Path:
        try:
            path.write_text(
                json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
            )
        except OSError as exc:
            raise SnapshotWriteError(output_path=str(path), reason=str(exc)) from exc
        return path

    def save_snapshot(self, record: ShipmentRecord, directory: Path | None = None) -> Path:
        """Write ``<directory>/<reference>.json`` (output_dir by default).

        Raises:
            SnapshotWriteError: If the directory or file cannot be written.
        """
        target = self._ensure_dir(directory or self.config.output_dir)
        path = self._write_json(target / f"{record.reference}.json", record.to_wire())
        log.info("Snapshot saved", reference=record.reference, path=str(path))
        return path

    def load_expected(self, reference: str, directory: Path | None = None) -> Any:
        """Load the expected payload for ``reference``.

        Raises:
            FileNotFoundError: If there is no fixture for the reference.
            json.JSONDecodeError: If the fixture is not valid JSON.
        """
        path = (directory or self.config.expected_dir) / f"{reference}.json"
        return json.loads(path.read_text(encoding="utf-8"))

    def write_actual(
        self, reference: str, actual: Any, directory: Path | None = None
    ) -> Path:
        """Write a mismatching payload next to its fixture for inspection."""
        target = self._ensure_dir(directory or self.config.expected_dir)
        path = self._write_json(target / f"{reference}.actual.json", unwrap(actual))
        log.info("Actual payload written", reference=reference, path=str(path))
        return path
