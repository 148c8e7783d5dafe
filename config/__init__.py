"""Configuration module for ShipTrack.

This module provides centralized configuration management using pydantic-settings,
ensuring 12-factor app compliance and strict validation of all environment variables.
"""

from config.settings import (
    GlobalConfig,
    InvocationOptions,
    get_config,
    resolve_headless,
)

__all__ = ["GlobalConfig", "InvocationOptions", "get_config", "resolve_headless"]
