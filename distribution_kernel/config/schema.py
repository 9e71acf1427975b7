"""
Runtime configuration schema.

YAML documents are parsed into these frozen dataclasses by the loader.
Nothing outside ``distribution_kernel.config`` reads YAML or environment
variables; services receive a ``KernelConfig`` (or one of its sections).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings handed to ``db.engine.init_engine_from_url``."""

    url: str = "sqlite+pysqlite:///:memory:"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10


@dataclass(frozen=True)
class PricingSettings:
    """Price rounding policy knobs.

    ``rounding_increments`` maps an ISO currency code to the increment a
    marked-up price is rounded to (half-up).  Currencies without an entry
    round to their minor unit.
    """

    rounding_increments: dict[str, Decimal] = field(
        default_factory=lambda: {
            "KRW": Decimal("100"),
            "VND": Decimal("1000"),
            "CNY": Decimal("0.01"),
        }
    )
    hq_currency: str = "KRW"


@dataclass(frozen=True)
class StockSettings:
    """Ledger behaviour under contention."""

    max_lock_retries: int = 3
    expiry_warning_days: int = 90


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class KernelConfig:
    """The complete runtime configuration."""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    pricing: PricingSettings = field(default_factory=PricingSettings)
    stock: StockSettings = field(default_factory=StockSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    source: str | None = None
