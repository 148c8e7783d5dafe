"""Global configuration management using pydantic-settings.

This module implements the 12-factor app methodology for configuration,
loading values from environment variables with strict type validation.
The Singleton pattern ensures consistent configuration state across the application.

Per-invocation values (reference, resolved headless mode, timeout) are not
global: they are resolved once at the entry point into an immutable
InvocationOptions value and passed down explicitly.
"""

import json
import sys
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Literal values of the headless toggle that select a visible browser.
HEADED_TOGGLE_VALUES = ("false", "0")


class GlobalConfig(BaseSettings):
    """Centralized configuration with environment variable binding.

    All configuration values are loaded from environment variables,
    with sensible defaults for development. Production deployments
    should override these via .env or environment injection.

    Attributes:
        app_name: Application identifier for logging and telemetry.
        environment: Deployment environment (development/staging/production).
        debug: Enable verbose debugging output.
        headless: Headless toggle read from SCRAPER_HEADLESS (or HEADLESS).
        log_level: Minimum log level for output filtering.
        log_dir: Directory path for structured JSON log files.
        log_rotation: Log file rotation interval.
        log_retention: Log file retention period.
        tracking_url: Public tracking application entry point.
        user_agent: Fixed client identity used for every browser context.
        request_timeout_ms: Default page action/navigation timeout.
        invocation_timeout_sec: Upper bound for one whole scrape invocation.
        consent_timeout_ms: Wait bound for the consent banner button.
        expand_pause_ms: Pause after expanding the "See more" details.
        settle_ms: Fixed settle interval after submitting a search.
        watchdog_failure_threshold: Field-read failure ratio that is reported
            as a probable layout shift.
        emit_sentinels: Wrap stdout payloads in sentinel lines.
        output_dir: Directory for saved record snapshots.
        expected_dir: Directory holding expected records for verification.
        scraper_command: Command that runs the scraper as a subprocess.
        css_selector_*: DOM selectors for the tracking application.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Metadata
    app_name: str = Field(default="ShipTrack", description="Application identifier")
    environment: Literal["development", "staging", "production", "test"] = Field(
        default="development", description="Deployment environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Browser Configuration
    headless: bool = Field(
        default=True,
        validation_alias=AliasChoices("scraper_headless", "headless"),
        description="Run browser in headless mode",
    )

    # Logging Configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Minimum log level"
    )
    log_dir: Path = Field(default=Path("logs"), description="Log output directory")
    log_rotation: str = Field(default="1 week", description="Log rotation interval")
    log_retention: str = Field(default="1 month", description="Log retention period")

    # Target Configuration
    tracking_url: str = Field(
        default="https://www.dbschenker.com/app/tracking-public/",
        description="Tracking application URL",
    )
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 Chrome/120 Safari/537.36"
        ),
        description="Fixed browser identity",
    )

    # Timing
    request_timeout_ms: int = Field(
        default=30000, ge=5000, le=120000, description="Page timeout in milliseconds"
    )
    invocation_timeout_sec: float = Field(
        default=120.0, ge=10.0, le=600.0, description="Whole-invocation timeout"
    )
    consent_timeout_ms: int = Field(
        default=5000, ge=0, le=30000, description="Consent banner wait bound"
    )
    expand_pause_ms: int = Field(
        default=500, ge=0, le=10000, description="Pause after expanding details"
    )
    settle_ms: int = Field(
        default=2000, ge=0, le=30000, description="Result settle interval"
    )

    # Watchdog Configuration
    watchdog_failure_threshold: float = Field(
        default=0.30, ge=0.0, le=1.0, description="Field-read failure ratio threshold"
    )

    # Output Configuration
    emit_sentinels: bool = Field(default=True, description="Wrap payload in sentinels")
    output_dir: Path = Field(default=Path("output"), description="Snapshot output directory")
    expected_dir: Path = Field(
        default=Path("test_values"), description="Expected record fixtures"
    )
    scraper_command: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: [sys.executable, "-m", "main"],
        description="Command running the scraper; the reference is appended",
    )

    # CSS Selectors (Target: DB Schenker public tracking)
    css_selector_consent_button: str = Field(
        default="shell-privacy-overview shell-button", description="Consent banner buttons"
    )
    consent_text_pattern: str = Field(
        default="Required cookies|Accept|Acceptera",
        description="Case-insensitive accept-button text pattern",
    )
    css_selector_search_input: str = Field(
        default="input[matinput]", description="Reference search input"
    )
    css_selector_search_submit: str = Field(
        default="button.hero.primary", description="Search submit button"
    )
    css_selector_see_more: str = Field(
        default='button:has-text("See more")', description="Details expansion control"
    )
    css_selector_history_rows: str = Field(
        default="tbody tr.ng-star-inserted", description="Tracking history table rows"
    )
    history_attribute_prefix: str = Field(
        default="shipment_status_history_",
        description="data-test prefix of index-qualified history cells",
    )
    css_selector_shipper: str = Field(
        default='[data-test="shipper_place_value"]', description="Shipper address"
    )
    css_selector_consignee: str = Field(
        default='[data-test="consignee_place_value"]', description="Consignee address"
    )
    css_selector_weight: str = Field(
        default='[data-test="total_weight_value"]', description="Total weight"
    )

    @field_validator("headless", mode="before")
    @classmethod
    def parse_headless_toggle(cls, value: Any) -> bool:
        """Apply the literal toggle rule: only "false" and "0" mean headed."""
        if isinstance(value, bool):
            return value
        return str(value).strip() not in HEADED_TOGGLE_VALUES

    @field_validator("log_dir", "output_dir", "expected_dir", mode="before")
    @classmethod
    def ensure_path(cls, value: str | Path) -> Path:
        """Convert string paths to Path objects."""
        return Path(value) if isinstance(value, str) else value

    @field_validator("scraper_command", mode="before")
    @classmethod
    def split_command(cls, value: Any) -> Any:
        """Accept a JSON list or a whitespace separated command string."""
        if isinstance(value, str):
            if value.lstrip().startswith("["):
                return json.loads(value)
            return value.split()
        return value


@lru_cache(maxsize=1)
def get_config() -> GlobalConfig:
    """Retrieve the singleton GlobalConfig instance.

    Uses LRU cache to ensure single instantiation across the application lifecycle.

    Returns:
        GlobalConfig: The validated configuration instance.
    """
    return GlobalConfig()


def resolve_headless(
    config: GlobalConfig | None = None,
    *,
    cli_headed: bool = False,
    cli_headless: bool = False,
    headed_override: bool | None = None,
) -> bool:
    """Resolve the effective headless mode.

    Precedence, highest first: ``--headed``, ``--headless``, an explicit
    override parameter, the environment toggle, then headless by default.

    Args:
        config: Optional GlobalConfig carrying the environment toggle.
        cli_headed: ``--headed`` was passed on the command line.
        cli_headless: ``--headless`` was passed on the command line.
        headed_override: Programmatic override; True forces a visible browser,
            False forces headless, None defers to the environment.

    Returns:
        True when the browser should run headless.
    """
    if cli_headed:
        return False
    if cli_headless:
        return True
    if headed_override is not None:
        return not headed_override
    if config is None:
        config = get_config()
    return config.headless


class InvocationOptions(BaseModel):
    """Per-invocation values, constructed once at the entry point.

    Attributes:
        reference: Shipment reference to search for.
        headless: Resolved headless mode.
        timeout_sec: Invocation-level timeout.
        emit_sentinels: Wrap the stdout payload in sentinel lines.
        save_snapshot: Also write the record to the output directory.
    """

    model_config = ConfigDict(frozen=True)

    reference: str = Field(..., min_length=1)
    headless: bool = True
    timeout_sec: float = Field(default=120.0, gt=0.0)
    emit_sentinels: bool = True
    save_snapshot: bool = False

    @field_validator("reference", mode="before")
    @classmethod
    def strip_reference(cls, value: Any) -> Any:
        """Trim surrounding whitespace from the reference."""
        return value.strip() if isinstance(value, str) else value

    @classmethod
    def from_cli(
        cls,
        reference: str,
        config: GlobalConfig | None = None,
        *,
        headed: bool = False,
        headless: bool = False,
        no_sentinels: bool = False,
        save: bool = False,
    ) -> "InvocationOptions":
        """Build options from parsed command-line flags and configuration."""
        config = config or get_config()
        return cls(
            reference=reference,
            headless=resolve_headless(config, cli_headed=headed, cli_headless=headless),
            timeout_sec=config.invocation_timeout_sec,
            emit_sentinels=config.emit_sentinels and not no_sentinels,
            save_snapshot=save,
        )
