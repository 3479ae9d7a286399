"""
Inventory batches and stock levels (``trade_kernel.domain.inventory``).

Responsibility
--------------
Read-only snapshots of the stock ledger: purchase lots (``Batch``) and
aggregate on-hand figures (``StockLevel``).  The ledger owns this data;
allocation only reads it.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``quantity_available`` and ``unit_cost`` are non-negative Decimals.
* FIFO order is ascending ``purchase_date``; ``fifo_sort_key`` is the one
  place that order is defined (ties broken by batch number).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from trade_kernel.domain.values import as_decimal
from trade_kernel.logging_config import get_logger

logger = get_logger("domain.inventory")


@dataclass(frozen=True)
class Batch:
    """
    A purchase lot of a material with its remaining quantity and unit cost.

    Contract:
        Immutable.  Validated at construction: a negative quantity or cost
        is rejected.
    """

    material_id: str
    batch_number: str
    purchase_date: date
    quantity_available: Decimal
    unit_cost: Decimal
    branch_id: str | None = None

    def __post_init__(self) -> None:
        quantity = as_decimal(self.quantity_available, "quantity_available")
        cost = as_decimal(self.unit_cost, "unit_cost")
        if quantity < 0:
            logger.error(
                "batch_negative_quantity",
                extra={
                    "material_id": self.material_id,
                    "batch_number": self.batch_number,
                    "quantity_available": str(quantity),
                },
            )
            raise ValueError(
                f"Batch {self.batch_number} quantity cannot be negative: {quantity}"
            )
        if cost < 0:
            raise ValueError(f"Batch {self.batch_number} unit cost cannot be negative: {cost}")
        object.__setattr__(self, "quantity_available", quantity)
        object.__setattr__(self, "unit_cost", cost)

    @property
    def is_exhausted(self) -> bool:
        return self.quantity_available == 0

    def fifo_sort_key(self) -> tuple[date, str]:
        return (self.purchase_date, self.batch_number)


@dataclass(frozen=True)
class StockLevel:
    """Aggregate on-hand quantity of one material."""

    material_id: str
    current_stock: Decimal
    unit: str = ""
    reorder_level: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        object.__setattr__(self, "current_stock", as_decimal(self.current_stock, "current_stock"))
        object.__setattr__(self, "reorder_level", as_decimal(self.reorder_level, "reorder_level"))
