"""
Configuration schema (``trade_config.schema``).

Responsibility:
    Frozen dataclass describing the runtime pricing configuration.  Instances
    are produced only by ``trade_config.loader.parse_pricing_config`` and
    reach callers only through ``trade_config.get_active_config``.

Invariants enforced:
    - Immutable: every field is frozen; collections are tuples.
    - Numeric settings are Decimals or ints, never floats.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class PricingConfig:
    """Pricing, override and preview settings for one deployment."""

    config_id: str
    version: int
    currency: str = "OMR"
    override_epsilon: Decimal = Decimal("0.001")
    vat_rate_percent: Decimal = Decimal("5")
    preview_max_workers: int = 4
    preview_cache_size: int = 128
    critical_stock_ratio: Decimal = Decimal("0.5")
    # SHA-256 hex digests of accepted override credentials; no plaintext.
    override_credential_digests: tuple[str, ...] = field(default_factory=tuple)
    checksum: str = ""
