"""
stock_config -- single public entrypoint for runtime settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads settings files or
    environment variables directly.

Architecture position:
    Configuration.  Sits beside ``stock_kernel``; the kernel MUST NEVER
    import from ``stock_config``.  The composition root in
    ``stock_services`` translates settings into constructor arguments.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``ValueError`` -- unknown keys, wrong types or out-of-range values.

Audit relevance:
    Every successful call emits a ``stock_config_loaded`` log entry with the
    source path and the checksum of the effective settings.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import replace
from pathlib import Path

from stock_config.loader import (
    apply_env_overrides,
    compute_checksum,
    load_yaml_file,
    parse_settings,
)
from stock_config.schema import InventorySettings

_logger = logging.getLogger("stock_kernel.config")

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> InventorySettings:
    """The ONLY public settings entrypoint.

    Args:
        path: YAML settings file.  Defaults to stock_config/sets/default.yaml.
        environ: Environment to read overrides from.  Defaults to os.environ.

    Returns:
        Frozen InventorySettings with ``checksum`` populated.
    """
    source = Path(path) if path is not None else DEFAULT_SETTINGS_PATH
    settings = parse_settings(load_yaml_file(source))
    settings = apply_env_overrides(settings, os.environ if environ is None else environ)
    settings = replace(settings, checksum=compute_checksum(settings))

    _logger.info(
        "stock_config_loaded",
        extra={"source": str(source), "checksum": settings.checksum},
    )
    return settings


__all__ = ["get_active_settings", "InventorySettings", "DEFAULT_SETTINGS_PATH"]
