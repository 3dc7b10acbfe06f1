"""
revenue_config -- settings for the revenue ledger.

Responsibility:
    Provides the single runtime entrypoint for configuration,
    ``get_settings()``.  Reads the packaged ``defaults.yaml`` (or the file
    named by ``REVENUE_LEDGER_CONFIG``), applies ``REVENUE_LEDGER_*``
    environment overrides, and returns frozen ``RevenueSettings``.

Architecture position:
    Configuration.  Sits above ``revenue_kernel`` and below
    ``revenue_modules`` / scripts.  The kernel MUST NEVER import from
    ``revenue_config``; ``revenue_config.bridges`` hands settings to the
    kernel as plain arguments.

Failure modes:
    - ``FileNotFoundError`` -- the configured YAML file does not exist.
    - ``KeyError`` / ``ValueError`` -- missing or malformed settings.

Audit relevance:
    Every successful ``get_settings()`` call logs ``REVENUE_CONFIG_TRACE``
    with the source file and checksum of the effective settings.
"""

from __future__ import annotations

import logging
from pathlib import Path

from revenue_config.loader import load_settings
from revenue_config.schema import (
    DatabaseSettings,
    LedgerSettings,
    LoggingSettings,
    RevenueSettings,
)

_logger = logging.getLogger("revenue_kernel.config")


def get_settings(path: Path | None = None) -> RevenueSettings:
    """
    The public configuration entrypoint.

    Args:
        path: Explicit settings file.  Defaults to ``$REVENUE_LEDGER_CONFIG``
            or the packaged defaults.

    Raises:
        FileNotFoundError: If the settings file does not exist.
        KeyError: If a required key is missing.
        ValueError: If a value cannot be parsed.
    """
    settings = load_settings(path)
    _logger.info(
        "REVENUE_CONFIG_TRACE",
        extra={
            "trace_type": "REVENUE_CONFIG_TRACE",
            "config_source": settings.source,
            "checksum": settings.checksum,
            "dialect": settings.database.url.split(":", 1)[0],
            "strict_restore": settings.ledger.strict_restore,
            "lock_timeout_seconds": settings.ledger.lock_timeout_seconds,
        },
    )
    return settings


__all__ = [
    "DatabaseSettings",
    "LedgerSettings",
    "LoggingSettings",
    "RevenueSettings",
    "get_settings",
]
