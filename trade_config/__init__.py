"""
trade_config -- single public entrypoint for pricing configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.  Returns a frozen ``PricingConfig``.

Architecture position:
    Configuration -- sits above ``trade_kernel`` and beside
    ``trade_engines``.  The kernel and engines MUST NEVER import from
    ``trade_config``; services receive the values they need as arguments.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration file is missing.
    - ``KeyError`` / ``ValueError`` -- schema validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``TRADE_CONFIG_TRACE`` log entry with the config_id, version and
    checksum that governed subsequent pricing.
"""

from __future__ import annotations

import logging
from pathlib import Path

from trade_config.loader import load_pricing_config
from trade_config.schema import PricingConfig

_logger = logging.getLogger("trade_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | None = None) -> PricingConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a configuration file.
            Defaults to trade_config/sets/default.yaml.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        KeyError: If a required key is missing.
        ValueError: If a value fails validation.
    """
    path = config_path or _DEFAULT_CONFIG_PATH
    if not path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    config = load_pricing_config(path)

    _logger.info(
        "TRADE_CONFIG_TRACE",
        extra={
            "trace_type": "TRADE_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "currency": config.currency,
            "override_epsilon": str(config.override_epsilon),
            "credential_count": len(config.override_credential_digests),
        },
    )
    return config


__all__ = ["PricingConfig", "get_active_config"]
