"""
Settings Schema (``stock_config.schema``).

Frozen dataclasses describing the runtime settings.  Defaults here match
``sets/default.yaml``; a YAML file only needs the keys it changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite+pysqlite:///:memory:"
    echo: bool = False


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class LedgerSettings:
    # Upper bound on waiting for (product, warehouse) locks
    lock_timeout_seconds: float = 10.0


@dataclass(frozen=True)
class AlertSettings:
    default_low_stock_threshold: int = 10


@dataclass(frozen=True)
class PurchasingSettings:
    order_number_prefix: str = "OC-"
    order_number_start: int = 1
    order_number_width: int = 6


@dataclass(frozen=True)
class DispatchGuideSettings:
    enabled: bool = False
    # Share of simulated submissions accepted (0.0 - 1.0)
    simulated_success_rate: float = 0.95


@dataclass(frozen=True)
class InventorySettings:
    """Complete runtime settings."""
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    ledger: LedgerSettings = field(default_factory=LedgerSettings)
    alerts: AlertSettings = field(default_factory=AlertSettings)
    purchasing: PurchasingSettings = field(default_factory=PurchasingSettings)
    dispatch_guide: DispatchGuideSettings = field(default_factory=DispatchGuideSettings)
    checksum: str = ""
