"""
Settings Loader (``stock_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the frozen dataclasses of
``stock_config.schema``, then applies environment overrides.  Runtime code
calls ``stock_config.get_active_settings()``, not this module.

Invariants enforced
-------------------
* Unknown sections or keys raise ``ValueError`` (typos are not ignored).
* Values are type-checked and range-checked; errors name the offending key.
* ``compute_checksum`` is a deterministic SHA-256 of the effective settings.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping
from dataclasses import asdict, fields, replace
from pathlib import Path
from typing import Any

import yaml

from stock_config.schema import (
    AlertSettings,
    DatabaseSettings,
    DispatchGuideSettings,
    InventorySettings,
    LedgerSettings,
    LoggingSettings,
    PurchasingSettings,
)

ENV_DATABASE_URL = "STOCK_DATABASE_URL"
ENV_LOG_LEVEL = "STOCK_LOG_LEVEL"

_SECTIONS: dict[str, type] = {
    "database": DatabaseSettings,
    "logging": LoggingSettings,
    "ledger": LedgerSettings,
    "alerts": AlertSettings,
    "purchasing": PurchasingSettings,
    "dispatch_guide": DispatchGuideSettings,
}

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file.  An empty file yields an empty dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def _coerce(section: str, key: str, value: Any, expected: Any) -> Any:
    name = f"{section}.{key}"
    if isinstance(expected, bool):
        if not isinstance(value, bool):
            raise ValueError(f"{name} must be a boolean, got {value!r}")
        return value
    if isinstance(expected, int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{name} must be an integer, got {value!r}")
        return value
    if isinstance(expected, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{name} must be a number, got {value!r}")
        return float(value)
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string, got {value!r}")
    return value


def _parse_section(section: str, data: Any) -> Any:
    cls = _SECTIONS[section]
    defaults = cls()
    if data is None:
        return defaults
    if not isinstance(data, Mapping):
        raise ValueError(f"section {section!r} must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"unknown keys in {section!r}: {sorted(unknown)}")
    values = {
        key: _coerce(section, key, value, getattr(defaults, key))
        for key, value in data.items()
    }
    return replace(defaults, **values)


def validate_settings(settings: InventorySettings) -> None:
    """Range checks across the parsed settings.  Raises ValueError."""
    if not settings.database.url:
        raise ValueError("database.url must not be empty")
    if settings.logging.level.upper() not in _LOG_LEVELS:
        raise ValueError(f"logging.level must be one of {_LOG_LEVELS}")
    if settings.ledger.lock_timeout_seconds <= 0:
        raise ValueError("ledger.lock_timeout_seconds must be > 0")
    if settings.alerts.default_low_stock_threshold < 0:
        raise ValueError("alerts.default_low_stock_threshold must be >= 0")
    if settings.purchasing.order_number_start < 0:
        raise ValueError("purchasing.order_number_start must be >= 0")
    if settings.purchasing.order_number_width < 1:
        raise ValueError("purchasing.order_number_width must be >= 1")
    if not 0.0 <= settings.dispatch_guide.simulated_success_rate <= 1.0:
        raise ValueError("dispatch_guide.simulated_success_rate must be within [0, 1]")


def parse_settings(data: Mapping[str, Any]) -> InventorySettings:
    """Parse a settings mapping (the YAML document) into InventorySettings."""
    unknown = set(data) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"unknown settings sections: {sorted(unknown)}")
    settings = InventorySettings(
        **{section: _parse_section(section, data.get(section)) for section in _SECTIONS}
    )
    validate_settings(settings)
    return settings


def apply_env_overrides(
    settings: InventorySettings,
    environ: Mapping[str, str],
) -> InventorySettings:
    """Apply STOCK_DATABASE_URL and STOCK_LOG_LEVEL when set and non-empty."""
    url = environ.get(ENV_DATABASE_URL)
    if url:
        settings = replace(settings, database=replace(settings.database, url=url))
    level = environ.get(ENV_LOG_LEVEL)
    if level:
        settings = replace(settings, logging=replace(settings.logging, level=level.upper()))
    validate_settings(settings)
    return settings


def compute_checksum(settings: InventorySettings) -> str:
    """Deterministic SHA-256 of the effective settings (checksum field excluded)."""
    payload = asdict(settings)
    payload.pop("checksum", None)
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def log_level_of(settings: InventorySettings) -> int:
    return logging.getLevelName(settings.logging.level.upper())
