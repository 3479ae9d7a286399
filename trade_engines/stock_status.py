"""
Stock status indicators and live stock validation of an order draft.

Pure functions with no I/O - stock levels are provided as parameters.

Classification (``classify_stock``):
    current <= 0                              -> OUT_OF_STOCK
    no reorder level                          -> GOOD
    current <= critical_ratio x reorder level -> CRITICAL
    current <= reorder level                  -> LOW
    otherwise                                 -> GOOD

``check_stock`` aggregates the quantities of lines that share a material,
so two lines of 60 against 100 in stock are reported as insufficient.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from trade_kernel.domain.catalog import MaterialCatalog
from trade_kernel.domain.inventory import StockLevel
from trade_kernel.domain.order import OrderItemRequest
from trade_kernel.logging_config import get_logger
from trade_engines.tracer import traced_engine

logger = get_logger("engines.stock_status")

DEFAULT_CRITICAL_RATIO = Decimal("0.5")


class StockStatus(str, Enum):
    OUT_OF_STOCK = "out-of-stock"
    CRITICAL = "critical"
    LOW = "low"
    GOOD = "good"


def classify_stock(
    current_stock: Decimal,
    reorder_level: Decimal,
    critical_ratio: Decimal = DEFAULT_CRITICAL_RATIO,
) -> StockStatus:
    if current_stock <= 0:
        return StockStatus.OUT_OF_STOCK
    if reorder_level <= 0:
        return StockStatus.GOOD
    if current_stock <= reorder_level * critical_ratio:
        return StockStatus.CRITICAL
    if current_stock <= reorder_level:
        return StockStatus.LOW
    return StockStatus.GOOD


@dataclass(frozen=True)
class StockCheck:
    """Stock position of one material against the whole draft order."""

    material_id: str
    material_name: str
    requested: Decimal
    available: Decimal
    unit: str
    status: StockStatus

    @property
    def sufficient(self) -> bool:
        return self.requested <= self.available

    @property
    def remaining_after_order(self) -> Decimal:
        return self.available - self.requested


@dataclass(frozen=True)
class StockValidation:
    items: tuple[StockCheck, ...]
    errors: tuple[str, ...]
    warnings: tuple[str, ...]

    @property
    def is_valid(self) -> bool:
        return not self.errors


@traced_engine("stock_status", "1.0")
def check_stock(
    *,
    requests: Sequence[OrderItemRequest],
    stock_levels: Mapping[str, StockLevel],
    catalog: MaterialCatalog,
    critical_ratio: Decimal = DEFAULT_CRITICAL_RATIO,
) -> StockValidation:
    """Validate a draft order against current stock.

    Materials missing from ``stock_levels`` are treated as having no stock
    record and reported as out of stock; callers pass every material they
    requested, so a missing entry means the ledger has none.
    """
    requested: dict[str, Decimal] = {}
    for req in requests:
        requested[req.material_id] = requested.get(req.material_id, Decimal("0")) + req.quantity

    items: list[StockCheck] = []
    errors: list[str] = []
    warnings: list[str] = []
    for material_id, quantity in requested.items():
        material = catalog.find(material_id)
        name = material.name if material is not None else material_id
        level = stock_levels.get(material_id) or StockLevel(material_id, Decimal("0"))
        unit = level.unit or (material.unit if material is not None else "")
        status = classify_stock(level.current_stock, level.reorder_level, critical_ratio)
        check = StockCheck(
            material_id=material_id,
            material_name=name,
            requested=quantity,
            available=level.current_stock,
            unit=unit,
            status=status,
        )
        items.append(check)

        if status == StockStatus.OUT_OF_STOCK:
            errors.append(f"{name} is out of stock")
        elif not check.sufficient:
            errors.append(
                f"{name}: Insufficient stock: {level.current_stock} {unit} available, "
                f"{quantity} requested"
            )
        elif status in (StockStatus.LOW, StockStatus.CRITICAL):
            warnings.append(
                f"{name}: Low stock warning - only {level.current_stock} {unit} remaining"
            )
        elif level.reorder_level > 0 and check.remaining_after_order <= level.reorder_level:
            warnings.append(
                f"{name}: Stock will fall to {check.remaining_after_order} {unit}, "
                f"at or below reorder level {level.reorder_level}"
            )

    if errors:
        logger.warning(
            "stock_validation_failed",
            extra={"error_count": len(errors), "warning_count": len(warnings)},
        )
    return StockValidation(items=tuple(items), errors=tuple(errors), warnings=tuple(warnings))
