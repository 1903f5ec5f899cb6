"""Utility functions for environment loading and settings."""

from .config import (
    StructuredOutputSettings,
    get_available_providers,
    load_environment,
    load_settings,
)

__all__ = [
    "StructuredOutputSettings",
    "load_environment",
    "load_settings",
    "get_available_providers",
]
