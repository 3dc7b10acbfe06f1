"""
Configuration Loader (``revenue_config.loader``).

Responsibility
--------------
Loads the settings YAML file, applies environment overrides, and parses the
result into the frozen dataclasses of ``revenue_config.schema``.  Runtime
callers use ``revenue_config.get_settings()``, not this module.

Architecture position
---------------------
**Config layer**.  No dependency on the kernel or the modules.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; ``database.url`` has no silent default.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` gives a deterministic SHA-256 of the effective
  settings, so a log line identifies exactly what a process ran with.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``database`` section or ``url``  -> ``KeyError``.
* Unparseable boolean / number  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from revenue_config.schema import (
    DatabaseSettings,
    LedgerSettings,
    LoggingSettings,
    RevenueSettings,
)

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

ENV_CONFIG_PATH = "REVENUE_LEDGER_CONFIG"
ENV_DATABASE_URL = "REVENUE_LEDGER_DATABASE_URL"
ENV_STRICT_RESTORE = "REVENUE_LEDGER_STRICT_RESTORE"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}

_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level of a settings file must be a mapping")
    return data


def parse_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
    raise ValueError(f"{name}: cannot parse boolean from {value!r}")


def parse_positive(value: Any, name: str, kind: type = float):
    try:
        number = kind(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name}: expected a number, got {value!r}") from exc
    if number <= 0:
        raise ValueError(f"{name}: must be greater than zero, got {value!r}")
    return number


def parse_database(data: Mapping[str, Any]) -> DatabaseSettings:
    """Parse the ``database`` section.  ``url`` is required."""
    url = data["url"]
    if not isinstance(url, str) or not url.strip():
        raise ValueError("database.url must be a non-empty string")
    return DatabaseSettings(
        url=url,
        echo=parse_bool(data.get("echo", False), "database.echo"),
        pool_size=parse_positive(data.get("pool_size", 10), "database.pool_size", int),
        max_overflow=int(data.get("max_overflow", 10)),
        pool_timeout_seconds=parse_positive(
            data.get("pool_timeout_seconds", 30), "database.pool_timeout_seconds", int
        ),
        pool_recycle_seconds=int(data.get("pool_recycle_seconds", 1800)),
        statement_timeout_seconds=parse_positive(
            data.get("statement_timeout_seconds", 10.0),
            "database.statement_timeout_seconds",
        ),
    )


def parse_ledger(data: Mapping[str, Any]) -> LedgerSettings:
    return LedgerSettings(
        lock_timeout_seconds=parse_positive(
            data.get("lock_timeout_seconds", 5.0), "ledger.lock_timeout_seconds"
        ),
        strict_restore=parse_bool(data.get("strict_restore", False), "ledger.strict_restore"),
        max_page_size=parse_positive(
            data.get("max_page_size", 500), "ledger.max_page_size", int
        ),
    )


def parse_logging(data: Mapping[str, Any]) -> LoggingSettings:
    level = str(data.get("level", "INFO")).upper()
    if level not in _VALID_LEVELS:
        raise ValueError(f"logging.level: unknown level {level!r}")
    return LoggingSettings(level=level)


def apply_env_overrides(
    data: dict[str, Any], environ: Mapping[str, str]
) -> dict[str, Any]:
    """Return a copy of ``data`` with REVENUE_LEDGER_* overrides applied."""
    merged = {key: dict(value or {}) for key, value in data.items()}
    if environ.get(ENV_DATABASE_URL):
        merged.setdefault("database", {})["url"] = environ[ENV_DATABASE_URL]
    if environ.get(ENV_STRICT_RESTORE):
        merged.setdefault("ledger", {})["strict_restore"] = parse_bool(
            environ[ENV_STRICT_RESTORE], ENV_STRICT_RESTORE
        )
    return merged


def parse_settings(data: Mapping[str, Any], source: str | None = None) -> RevenueSettings:
    """
    Parse a full settings mapping.

    Raises:
        KeyError: if the ``database`` section or its ``url`` is missing.
        ValueError: on malformed values.
    """
    return RevenueSettings(
        database=parse_database(data["database"]),
        ledger=parse_ledger(data.get("ledger") or {}),
        logging=parse_logging(data.get("logging") or {}),
        source=source,
        checksum=compute_checksum(data),
    )


def load_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> RevenueSettings:
    """
    Resolve the settings file, apply environment overrides, and parse.

    Resolution order for the file: ``path`` argument, then
    ``$REVENUE_LEDGER_CONFIG``, then the packaged ``defaults.yaml``.
    """
    environ = os.environ if environ is None else environ
    if path is None:
        override = environ.get(ENV_CONFIG_PATH)
        path = Path(override) if override else DEFAULTS_PATH
    raw = load_yaml_file(Path(path))
    return parse_settings(apply_env_overrides(raw, environ), source=str(path))


def compute_checksum(data: Mapping[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
