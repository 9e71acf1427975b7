"""
distribution_kernel.config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the ONLY way to obtain configuration at
    runtime.  No other component reads configuration files or environment
    variables directly.

Resolution order:
    1. The ``path`` argument, when given.
    2. The file named by the ``DISTRIBUTION_KERNEL_CONFIG`` environment variable.
    3. The packaged ``defaults.yaml``.

Failure modes:
    - ``FileNotFoundError`` -- the selected file does not exist.
    - ``ValueError`` -- a value is out of range (see ``loader``).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from distribution_kernel.config.loader import load_config, parse_config
from distribution_kernel.config.schema import (
    DatabaseSettings,
    KernelConfig,
    LoggingSettings,
    PricingSettings,
    StockSettings,
)

__all__ = [
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_PATH",
    "DatabaseSettings",
    "KernelConfig",
    "LoggingSettings",
    "PricingSettings",
    "StockSettings",
    "get_active_config",
    "parse_config",
]

_logger = logging.getLogger("distribution_kernel.config")

CONFIG_ENV_VAR = "DISTRIBUTION_KERNEL_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> KernelConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Explicit configuration file.  Overrides the environment.

    Returns:
        A validated, frozen ``KernelConfig``.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH
    config = load_config(Path(path))

    _logger.info(
        "config_loaded",
        extra={
            "config_source": config.source,
            "rounding_currencies": sorted(config.pricing.rounding_increments),
            "max_lock_retries": config.stock.max_lock_retries,
        },
    )
    return config
