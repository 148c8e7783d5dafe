"""Structured logging configuration using loguru.

Two sinks are installed:
- A colourised, human-readable console sink on stderr. Stdout carries the
  shipment payload and must never receive log lines.
- A rotating, gz-compressed JSON file sink, one object per line.

Records bound with a ``reference`` (see ``bind_reference``) carry it as a
top-level JSON key so that all lines of one scrape can be grepped together.
The log directory is validated first; an unwritable location aborts startup.
"""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loguru import logger

from config.settings import GlobalConfig, get_config
from shiptrack.exceptions import LoggingInitializationError

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

LOG_FILE_PATTERN = "shiptrack_{time:YYYY-MM-DD}.json"

# Keys bound by get_logger/bind_reference or used internally by the file sink
_PROMOTED_KEYS = ("module", "reference")
_INTERNAL_KEYS = ("serialized",)


def _json_serializer(record: dict[str, Any]) -> str:
    """Render a loguru record as one JSON line."""
    extra = record["extra"]
    entry: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "module": extra.get("module", record["name"]),
        "function": record["function"],
        "line": record["line"],
    }

    if "reference" in extra:
        entry["reference"] = extra["reference"]

    exception = record["exception"]
    if exception is not None:
        entry["exception"] = {
            "type": exception.type.__name__ if exception.type else None,
            "value": str(exception.value) if exception.value else None,
        }

    context = {
        key: value
        for key, value in extra.items()
        if key not in _PROMOTED_KEYS and key not in _INTERNAL_KEYS
    }
    if context:
        entry["context"] = context

    return json.dumps(entry, default=str) + "\n"


def _serialize_filter(record: dict[str, Any]) -> bool:
    record["extra"]["serialized"] = _json_serializer(record)
    return True


def _validate_log_directory(log_dir: Path) -> None:
    """Create ``log_dir`` and prove it is writable.

    Raises:
        LoggingInitializationError: If creation or the write probe fails.
    """
    probe = log_dir / ".write_test"
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        probe.write_text("write_test")
        probe.unlink()
    except PermissionError as exc:
        raise LoggingInitializationError(
            log_dir=str(log_dir),
            reason=f"Permission denied: {exc}",
        ) from exc
    except OSError as exc:
        raise LoggingInitializationError(
            log_dir=str(log_dir),
            reason=f"OS error during directory validation: {exc}",
        ) from exc


def _add_console_sink(config: GlobalConfig) -> None:
    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=config.log_level,
        colorize=True,
        backtrace=config.debug,
        diagnose=config.debug,
    )


def _add_file_sink(config: GlobalConfig) -> Path:
    path = config.log_dir / LOG_FILE_PATTERN
    logger.add(
        str(path),
        format="{extra[serialized]}",
        level=config.log_level,
        rotation=config.log_rotation,
        retention=config.log_retention,
        compression="gz",
        serialize=False,
        filter=_serialize_filter,
    )
    return path


def configure_logging(config: GlobalConfig | None = None) -> None:
    """Install the console and file sinks.

    Call once during bootstrap, before other modules log. Calling it again
    replaces the sinks rather than adding duplicates.

    Args:
        config: Optional GlobalConfig instance. If None, uses singleton.

    Raises:
        LoggingInitializationError: If log directory validation fails.
    """
    if config is None:
        config = get_config()

    _validate_log_directory(config.log_dir)

    logger.remove()
    _add_console_sink(config)
    file_pattern = _add_file_sink(config)

    logger.info(
        "Logging infrastructure initialized",
        app_name=config.app_name,
        environment=config.environment,
        log_level=config.log_level,
        log_file=str(file_pattern),
    )


def get_logger(name: str) -> "logger":
    """Get a logger bound with the module name.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("Search submitted", reference="1806203236")
    """
    return logger.bind(module=name)


def bind_reference(log: "logger", reference: str) -> "logger":
    """Return ``log`` bound to one shipment reference."""
    return log.bind(reference=reference)
