"""
trade_engines.preview -- Allocation preview assembly and the confirmation gate.

Responsibility:
    Combine, per requested line, the resolved unit price and the simulated
    FIFO allocation into the preview shown before an order is confirmed:
    per-item revenue, COGS and gross margin, the order summary, the list of
    lines that cannot be supplied, and the ``can_fulfill_all`` flag.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Stock reads and
    parallelism live in ``trade_services.preview_service``.

Invariants enforced:
    - ``can_fulfill_all`` is the AND of every item's ``can_fulfill``.
    - ``gross_margin = revenue - cogs`` per item and for the summary.
    - ``gross_margin_percent`` is 0 when revenue is 0.
    - Confirmation is gated by ``require_confirmable``.

Failure modes:
    - OrderNotConfirmableError / InsufficientStockError from
      ``require_confirmable``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from trade_kernel.domain.catalog import Material
from trade_kernel.domain.order import LineIssue
from trade_kernel.domain.values import Currency, Money
from trade_kernel.exceptions import InsufficientStockError, OrderNotConfirmableError
from trade_kernel.logging_config import get_logger
from trade_engines.fifo_allocation import AllocationResult, AllocationSlice
from trade_engines.tracer import traced_engine

logger = get_logger("engines.preview")

_ZERO = Decimal("0")
_PERCENT_QUANTUM = Decimal("0.01")


@dataclass(frozen=True)
class PreviewEntry:
    """Input of the assembler for one requested line."""

    material_id: str
    requested_quantity: Decimal
    unit_price: Decimal
    material: Material | None = None
    allocation: AllocationResult | None = None
    issue: LineIssue | None = None


@dataclass(frozen=True)
class PreviewItem:
    material_id: str
    material_name: str
    requested_quantity: Decimal
    unit_price: Decimal
    can_fulfill: bool
    allocations: tuple[AllocationSlice, ...]
    revenue: Money
    cogs: Money
    gross_margin: Money
    shortfall: Decimal = _ZERO
    average_unit_cost: Decimal | None = None
    issue: LineIssue | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "materialId": self.material_id,
            "materialName": self.material_name,
            "requestedQuantity": str(self.requested_quantity),
            "unitPrice": str(self.unit_price),
            "canFulfill": self.can_fulfill,
            "allocations": [
                {
                    "batchNumber": s.batch.batch_number,
                    "purchaseDate": s.batch.purchase_date.isoformat(),
                    "quantityTaken": str(s.quantity_taken),
                    "unitCost": str(s.unit_cost),
                    "costContribution": str(s.cost_contribution.amount),
                }
                for s in self.allocations
            ],
            "revenue": str(self.revenue.amount),
            "cogs": str(self.cogs.amount),
            "grossMargin": str(self.gross_margin.amount),
            "shortfall": str(self.shortfall),
            "issue": (
                {"code": self.issue.code, "message": self.issue.message}
                if self.issue is not None
                else None
            ),
        }


@dataclass(frozen=True)
class InsufficientItem:
    material_id: str
    material_name: str
    requested: Decimal
    available: Decimal
    shortfall: Decimal


@dataclass(frozen=True)
class PreviewSummary:
    total_revenue: Money
    total_cogs: Money
    gross_margin: Money
    gross_margin_percent: Decimal


@dataclass(frozen=True)
class AllocationPreview:
    """Complete preview of an order.  A preview is never partial."""

    items: tuple[PreviewItem, ...]
    summary: PreviewSummary
    insufficient_items: tuple[InsufficientItem, ...]
    can_fulfill_all: bool

    @property
    def invalid_items(self) -> tuple[PreviewItem, ...]:
        return tuple(item for item in self.items if item.issue is not None)

    def to_dict(self) -> dict[str, Any]:
        """Wire shape consumed by the confirmation dialog."""
        return {
            "items": [item.to_dict() for item in self.items],
            "summary": {
                "totalRevenue": str(self.summary.total_revenue.amount),
                "totalCOGS": str(self.summary.total_cogs.amount),
                "grossMargin": str(self.summary.gross_margin.amount),
                "grossMarginPercent": str(self.summary.gross_margin_percent),
            },
            "insufficientItems": [
                {
                    "materialId": i.material_id,
                    "materialName": i.material_name,
                    "requested": str(i.requested),
                    "available": str(i.available),
                    "shortfall": str(i.shortfall),
                }
                for i in self.insufficient_items
            ],
            "canFulfillAll": self.can_fulfill_all,
        }


def margin_percent(margin: Money, revenue: Money) -> Decimal:
    if revenue.is_zero:
        return _ZERO.quantize(_PERCENT_QUANTUM)
    return (margin.amount / revenue.amount * 100).quantize(_PERCENT_QUANTUM, rounding=ROUND_HALF_UP)


def _build_item(entry: PreviewEntry, currency: Currency) -> PreviewItem:
    name = entry.material.name if entry.material is not None else entry.material_id
    revenue = Money(amount=entry.requested_quantity * entry.unit_price, currency=currency)

    if entry.issue is not None or entry.allocation is None:
        cogs = Money.zero(currency)
        return PreviewItem(
            material_id=entry.material_id,
            material_name=name,
            requested_quantity=entry.requested_quantity,
            unit_price=entry.unit_price,
            can_fulfill=False,
            allocations=(),
            revenue=revenue,
            cogs=cogs,
            gross_margin=revenue - cogs,
            issue=entry.issue or LineIssue("NOT_EVALUATED", "Line was not allocated"),
        )

    allocation = entry.allocation
    return PreviewItem(
        material_id=entry.material_id,
        material_name=name,
        requested_quantity=entry.requested_quantity,
        unit_price=entry.unit_price,
        can_fulfill=allocation.can_fulfill,
        allocations=allocation.slices,
        revenue=revenue,
        cogs=allocation.cogs,
        gross_margin=revenue - allocation.cogs,
        shortfall=allocation.shortfall,
        average_unit_cost=allocation.average_unit_cost,
    )


@traced_engine("preview_assembler", "1.0")
def assemble_preview(
    *,
    entries: Sequence[PreviewEntry],
    currency: Currency,
) -> AllocationPreview:
    """Build the order preview from per-line entries, preserving their order."""
    items = tuple(_build_item(entry, currency) for entry in entries)

    total_revenue = Money.zero(currency)
    total_cogs = Money.zero(currency)
    for item in items:
        total_revenue = total_revenue + item.revenue
        total_cogs = total_cogs + item.cogs
    margin = total_revenue - total_cogs

    insufficient = tuple(
        InsufficientItem(
            material_id=item.material_id,
            material_name=item.material_name,
            requested=item.requested_quantity,
            available=entry.allocation.total_available,
            shortfall=item.shortfall,
        )
        for item, entry in zip(items, entries)
        if item.issue is None and not item.can_fulfill
    )

    preview = AllocationPreview(
        items=items,
        summary=PreviewSummary(
            total_revenue=total_revenue,
            total_cogs=total_cogs,
            gross_margin=margin,
            gross_margin_percent=margin_percent(margin, total_revenue),
        ),
        insufficient_items=insufficient,
        can_fulfill_all=all(item.can_fulfill for item in items),
    )
    logger.info(
        "allocation_preview_assembled",
        extra={
            "item_count": len(items),
            "insufficient_count": len(insufficient),
            "invalid_count": len(preview.invalid_items),
            "total_revenue": total_revenue.amount,
            "total_cogs": total_cogs.amount,
            "can_fulfill_all": preview.can_fulfill_all,
        },
    )
    return preview


def require_confirmable(preview: AllocationPreview) -> None:
    """Confirmation gate: raise unless every line can be supplied.

    Raises:
        OrderNotConfirmableError: If any line is invalid (e.g. unknown material).
        InsufficientStockError: If any line has a shortfall.
    """
    invalid = preview.invalid_items
    if invalid:
        raise OrderNotConfirmableError([item.material_id for item in invalid])
    if not preview.can_fulfill_all:
        raise InsufficientStockError(
            [
                (i.material_id, str(i.requested), str(i.available), str(i.shortfall))
                for i in preview.insufficient_items
            ]
        )
