"""
Revenue ledger settings schema.

Typed, frozen views of the YAML configuration.  The loader parses the raw
YAML into these; everything downstream (bridges, CLI) reads only these.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection and bounded-call settings for the ledger database."""

    url: str
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 10
    pool_timeout_seconds: int = 30
    pool_recycle_seconds: int = 1800
    statement_timeout_seconds: float = 10.0


@dataclass(frozen=True)
class LedgerSettings:
    """Balance Engine policy."""

    lock_timeout_seconds: float = 5.0
    # Raise instead of clamping when a restore exceeds total_spent
    strict_restore: bool = False
    max_page_size: int = 500


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class RevenueSettings:
    """Root settings object returned by ``revenue_config.get_settings()``."""

    database: DatabaseSettings
    ledger: LedgerSettings = field(default_factory=LedgerSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    source: str | None = None
    checksum: str | None = None
