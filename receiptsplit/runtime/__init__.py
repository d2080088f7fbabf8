"""Runtime infrastructure for receiptsplit.

This package provides process/runtime services including:
- Logging setup via get_logger()
- Settings loading via load_settings(), Settings
- Extraction service access lives in receiptsplit.runtime.extraction_client

Usage:
    from receiptsplit.runtime import get_logger, load_settings

    logger = get_logger(__name__)
    settings = load_settings()
    print(settings.gemini_model, settings.is_configured)
"""

from receiptsplit.runtime.logging import (
    DEFAULT_LOG_LEVEL,
    LOG_FORMAT,
    LOG_FORMAT_DEBUG,
    configure_logging,
    get_logger,
    set_log_level,
)
from receiptsplit.runtime.settings import Settings, load_settings

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "set_log_level",
    "DEFAULT_LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_FORMAT_DEBUG",
    # Settings
    "Settings",
    "load_settings",
]
