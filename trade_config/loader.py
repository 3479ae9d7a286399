"""
YAML loader for pricing configuration (``trade_config.loader``).

Responsibility:
    Parse a YAML configuration set into a frozen ``PricingConfig``.

Architecture position:
    Configuration -- build/test tooling.  Runtime callers use
    ``trade_config.get_active_config()`` instead of calling this module.

Failure modes:
    * Missing required key (``config_id``, ``version``) -> ``KeyError``.
    * Invalid value (bad currency, negative epsilon, zero workers)
      -> ``ValueError``.
    * Malformed YAML -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from trade_config.schema import PricingConfig
from trade_kernel.domain.currency import CurrencyRegistry


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, name: str) -> Decimal:
    """Parse a YAML scalar into a Decimal (floats go through ``str``)."""
    if isinstance(value, bool):
        raise ValueError(f"{name} must be numeric, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"{name} must be numeric, got {value!r}") from e


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_pricing_config(data: dict[str, Any]) -> PricingConfig:
    """Build a ``PricingConfig`` from a parsed YAML mapping."""
    pricing = data.get("pricing", {})
    preview = data.get("preview", {})
    stock = data.get("stock", {})
    override = data.get("override", {})

    currency = CurrencyRegistry.validate(str(pricing.get("currency", "OMR")).upper())

    epsilon = parse_decimal(override.get("epsilon", "0.001"), "override.epsilon")
    if epsilon < 0:
        raise ValueError(f"override.epsilon cannot be negative: {epsilon}")

    vat = parse_decimal(pricing.get("vat_rate_percent", "5"), "pricing.vat_rate_percent")
    if vat < 0 or vat > 100:
        raise ValueError(f"pricing.vat_rate_percent must be within [0, 100]: {vat}")

    workers = int(preview.get("max_workers", 4))
    if workers < 1:
        raise ValueError(f"preview.max_workers must be at least 1: {workers}")

    cache_size = int(preview.get("cache_size", 128))
    if cache_size < 0:
        raise ValueError(f"preview.cache_size cannot be negative: {cache_size}")

    ratio = parse_decimal(stock.get("critical_ratio", "0.5"), "stock.critical_ratio")
    if ratio < 0 or ratio > 1:
        raise ValueError(f"stock.critical_ratio must be within [0, 1]: {ratio}")

    digests = tuple(str(d).lower() for d in override.get("credential_digests", ()) or ())
    for digest in digests:
        if len(digest) != 64 or any(c not in "0123456789abcdef" for c in digest):
            raise ValueError(f"override.credential_digests entry is not a SHA-256 hex digest: {digest!r}")

    return PricingConfig(
        config_id=data["config_id"],
        version=int(data["version"]),
        currency=currency,
        override_epsilon=epsilon,
        vat_rate_percent=vat,
        preview_max_workers=workers,
        preview_cache_size=cache_size,
        critical_stock_ratio=ratio,
        override_credential_digests=digests,
        checksum=compute_checksum(data),
    )


def load_pricing_config(path: Path) -> PricingConfig:
    return parse_pricing_config(load_yaml_file(path))
