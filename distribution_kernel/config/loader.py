"""
Configuration Loader (``distribution_kernel.config.loader``).

Responsibility
--------------
Loads a YAML configuration document and parses it into the frozen
dataclasses of ``distribution_kernel.config.schema``.  Callers use
``distribution_kernel.config.get_active_config()``; this module is the
parsing half of that entrypoint.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Out-of-range values -> ``ValueError`` with a descriptive message.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from distribution_kernel.config.schema import (
    DatabaseSettings,
    KernelConfig,
    LoggingSettings,
    PricingSettings,
    StockSettings,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top-level document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration root must be a mapping: {path}")
    return data


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """Parse a Decimal from YAML (quoted string preferred, int/float accepted)."""
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"{field_name}: cannot parse decimal from {value!r}") from exc


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    defaults = DatabaseSettings()
    return DatabaseSettings(
        url=str(data.get("url", defaults.url)),
        echo=bool(data.get("echo", defaults.echo)),
        pool_size=int(data.get("pool_size", defaults.pool_size)),
        max_overflow=int(data.get("max_overflow", defaults.max_overflow)),
    )


def parse_pricing(data: dict[str, Any]) -> PricingSettings:
    """
    Parse pricing settings.

    Raises:
        ValueError: if a rounding increment is not strictly positive.
    """
    if "rounding_increments" in data:
        increments: dict[str, Decimal] = {}
        for code, raw in (data["rounding_increments"] or {}).items():
            increment = parse_decimal(raw, f"rounding_increments.{code}")
            if increment <= 0:
                raise ValueError(
                    f"rounding_increments.{code} must be positive, got {increment}"
                )
            increments[str(code).strip().upper()] = increment
    else:
        increments = PricingSettings().rounding_increments
    return PricingSettings(
        rounding_increments=increments,
        hq_currency=str(data.get("hq_currency", PricingSettings.hq_currency)).upper(),
    )


def parse_stock(data: dict[str, Any]) -> StockSettings:
    """
    Parse stock ledger settings.

    Raises:
        ValueError: if max_lock_retries < 1 or expiry_warning_days < 0.
    """
    defaults = StockSettings()
    retries = int(data.get("max_lock_retries", defaults.max_lock_retries))
    if retries < 1:
        raise ValueError(f"stock.max_lock_retries must be >= 1, got {retries}")
    warning_days = int(data.get("expiry_warning_days", defaults.expiry_warning_days))
    if warning_days < 0:
        raise ValueError(
            f"stock.expiry_warning_days must be >= 0, got {warning_days}"
        )
    return StockSettings(max_lock_retries=retries, expiry_warning_days=warning_days)


def parse_config(data: dict[str, Any], source: str | None = None) -> KernelConfig:
    """Parse a full configuration document; absent sections use defaults."""
    logging_data = data.get("logging") or {}
    return KernelConfig(
        database=parse_database(data.get("database") or {}),
        pricing=parse_pricing(data.get("pricing") or {}),
        stock=parse_stock(data.get("stock") or {}),
        logging=LoggingSettings(
            level=str(logging_data.get("level", LoggingSettings.level)).upper()
        ),
        source=source,
    )


def load_config(path: Path) -> KernelConfig:
    """Load and parse a configuration file."""
    return parse_config(load_yaml_file(path), source=str(path))
