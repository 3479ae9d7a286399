"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (beyond the Clock interface itself)
- I/O

All domain objects are immutable and deterministic.
"""

from trade_kernel.domain.catalog import Material, MaterialCatalog
from trade_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from trade_kernel.domain.contract import (
    Contract,
    ContractStatus,
    DiscountPercentage,
    EffectiveValidity,
    FixedRate,
    MinimumPriceGuarantee,
    RateSpec,
    RateType,
    RateValidity,
    normalize_rate_spec,
)
from trade_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from trade_kernel.domain.inventory import Batch, StockLevel
from trade_kernel.domain.order import (
    LineIssue,
    OrderItemRequest,
    OrderLine,
    OverrideRecord,
)
from trade_kernel.domain.values import Currency, Money, as_decimal

__all__ = [
    # Value objects
    "Currency",
    "Money",
    "as_decimal",
    "CurrencyInfo",
    "CurrencyRegistry",
    # Clock
    "Clock",
    "SystemClock",
    "DeterministicClock",
    # Catalog
    "Material",
    "MaterialCatalog",
    # Contracts
    "Contract",
    "ContractStatus",
    "RateType",
    "RateValidity",
    "EffectiveValidity",
    "FixedRate",
    "DiscountPercentage",
    "MinimumPriceGuarantee",
    "RateSpec",
    "normalize_rate_spec",
    # Inventory
    "Batch",
    "StockLevel",
    # Orders
    "OrderItemRequest",
    "OrderLine",
    "OverrideRecord",
    "LineIssue",
]
