"""
FIFO Allocation Simulator - oldest-lot-first consumption of inventory batches.

Simulates, without mutating anything, which purchase lots would supply a
requested quantity of a material and what they would cost.  Pure functions
with no I/O - batches are provided as parameters.

Usage:
    from trade_engines.fifo_allocation import allocate_fifo
    from trade_kernel.domain.values import Currency

    result = allocate_fifo(
        material_id="DIESEL",
        requested_quantity=Decimal("150"),
        batches=batches,
        currency=Currency("OMR"),
    )
    result.cogs           # Money
    result.can_fulfill    # bool
    result.shortfall      # Decimal

Invariants:
    - Batches are consumed strictly in ascending purchase date.
    - A batch is partially consumed only when it holds more than remains.
    - No batch is consumed beyond its available quantity.
    - Sum of quantity_taken == min(requested, total_available).
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from decimal import Decimal

from trade_kernel.domain.inventory import Batch
from trade_kernel.domain.values import Currency, Money, as_decimal
from trade_kernel.logging_config import get_logger
from trade_engines.tracer import traced_engine

logger = get_logger("engines.fifo_allocation")

_ZERO = Decimal("0")


@dataclass(frozen=True)
class AllocationSlice:
    """Quantity taken from one batch."""

    batch: Batch
    quantity_taken: Decimal
    unit_cost: Decimal
    cost_contribution: Money

    @property
    def batch_number(self) -> str:
        return self.batch.batch_number

    @property
    def fully_consumed(self) -> bool:
        return self.quantity_taken == self.batch.quantity_available


@dataclass(frozen=True)
class AllocationResult:
    """Outcome of simulating FIFO consumption for one requested quantity."""

    material_id: str
    requested_quantity: Decimal
    slices: tuple[AllocationSlice, ...]
    can_fulfill: bool
    shortfall: Decimal
    total_available: Decimal
    cogs: Money

    @property
    def allocated_quantity(self) -> Decimal:
        return sum((s.quantity_taken for s in self.slices), _ZERO)

    @property
    def average_unit_cost(self) -> Decimal | None:
        """Weighted average cost of the allocated quantity, None if nothing allocated."""
        allocated = self.allocated_quantity
        if allocated == 0:
            return None
        return self.cogs.amount / allocated


def _validate_inputs(material_id: str, requested_quantity: Decimal, batches: Sequence[Batch]) -> Decimal:
    quantity = as_decimal(requested_quantity, "requested_quantity")
    if quantity <= 0:
        raise ValueError(f"Requested quantity must be positive: {quantity}")
    foreign = [b.batch_number for b in batches if b.material_id != material_id]
    if foreign:
        raise ValueError(f"Batches {foreign} do not belong to material {material_id}")
    return quantity


@traced_engine("fifo_allocation", "1.0", fingerprint_fields=("material_id", "requested_quantity"))
def allocate_fifo(
    *,
    material_id: str,
    requested_quantity: Decimal,
    batches: Iterable[Batch],
    currency: Currency,
) -> AllocationResult:
    """Walk ``batches`` oldest first, taking what is needed from each.

    Args:
        material_id: Material being allocated.
        requested_quantity: Quantity to supply (positive).
        batches: Open batches of the material, in any order.
        currency: Currency of the resulting COGS.

    Raises:
        ValueError: On a non-positive quantity or a batch of another material.
    """
    ordered = sorted(batches, key=Batch.fifo_sort_key)
    remaining = _validate_inputs(material_id, requested_quantity, ordered)
    requested = remaining

    slices: list[AllocationSlice] = []
    cogs = Money.zero(currency)
    for batch in ordered:
        if remaining <= 0:
            break
        if batch.quantity_available <= 0:
            continue

        taken = min(remaining, batch.quantity_available)
        contribution = Money(amount=taken * batch.unit_cost, currency=currency)
        slices.append(
            AllocationSlice(
                batch=batch,
                quantity_taken=taken,
                unit_cost=batch.unit_cost,
                cost_contribution=contribution,
            )
        )
        cogs = cogs + contribution
        remaining -= taken

    total_available = sum((b.quantity_available for b in ordered), _ZERO)
    can_fulfill = remaining <= 0
    shortfall = max(remaining, _ZERO)

    log = logger.info if can_fulfill else logger.warning
    log(
        "fifo_allocation_completed",
        extra={
            "material_id": material_id,
            "requested_quantity": requested,
            "total_available": total_available,
            "batches_used": len(slices),
            "cogs": cogs.amount,
            "can_fulfill": can_fulfill,
            "shortfall": shortfall,
        },
    )

    return AllocationResult(
        material_id=material_id,
        requested_quantity=requested,
        slices=tuple(slices),
        can_fulfill=can_fulfill,
        shortfall=shortfall,
        total_available=total_available,
        cogs=cogs,
    )


class FifoConsumptionTracker:
    """
    Carries simulated consumption across the lines of one preview.

    Two lines for the same material compete for the same batches: the
    second line is allocated against what the first one left.  Nothing is
    written back to the batches themselves.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._consumed: dict[tuple[str, str], Decimal] = {}

    def remaining_batches(self, batches: Iterable[Batch]) -> list[Batch]:
        with self._lock:
            adjusted = []
            for batch in batches:
                used = self._consumed.get((batch.material_id, batch.batch_number), _ZERO)
                if used:
                    batch = replace(batch, quantity_available=max(_ZERO, batch.quantity_available - used))
                adjusted.append(batch)
            return adjusted

    def allocate(
        self,
        *,
        material_id: str,
        requested_quantity: Decimal,
        batches: Sequence[Batch],
        currency: Currency,
    ) -> AllocationResult:
        result = allocate_fifo(
            material_id=material_id,
            requested_quantity=requested_quantity,
            batches=self.remaining_batches(batches),
            currency=currency,
        )
        with self._lock:
            for piece in result.slices:
                key = (piece.batch.material_id, piece.batch.batch_number)
                self._consumed[key] = self._consumed.get(key, _ZERO) + piece.quantity_taken
        return result

    def consumed(self, material_id: str) -> Decimal:
        with self._lock:
            return sum(
                (qty for (mid, _), qty in self._consumed.items() if mid == material_id),
                _ZERO,
            )
