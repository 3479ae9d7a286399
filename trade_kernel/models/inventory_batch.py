"""
Module: trade_kernel.models.inventory_batch
Responsibility: ORM mapping of the inventory system's purchase lots and stock
    levels, read by the stock ledger selector.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - quantity_available >= 0 and unit_cost >= 0 (CHECK constraints).
    - (material_id, batch_number) is unique.

Audit relevance:
    These tables are owned by the inventory system.  This package reads them
    for allocation previews and never writes to them.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import CheckConstraint, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from trade_kernel.db.base import Base


class InventoryBatchModel(Base):
    """
    A purchase lot of a material.

    Contract:
        One row per received lot; ``quantity_available`` is decremented by the
        inventory system as lots are consumed.  Exhausted lots (zero quantity)
        stay in the table and are filtered by readers.
    """

    __tablename__ = "inventory_batches"

    __table_args__ = (
        UniqueConstraint("material_id", "batch_number", name="uq_batch_material_number"),
        CheckConstraint("quantity_available >= 0", name="ck_batch_quantity_non_negative"),
        CheckConstraint("unit_cost >= 0", name="ck_batch_cost_non_negative"),
        Index("idx_batch_material_date", "material_id", "purchase_date"),
    )

    material_id: Mapped[str] = mapped_column(String(64), nullable=False)

    batch_number: Mapped[str] = mapped_column(String(64), nullable=False)

    purchase_date: Mapped[date] = mapped_column(nullable=False)

    quantity_available: Mapped[Decimal] = mapped_column(nullable=False)

    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)

    branch_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<InventoryBatch {self.material_id}/{self.batch_number} "
            f"{self.quantity_available} @ {self.unit_cost}>"
        )


class MaterialStockLevelModel(Base):
    """Aggregate stock of a material, optionally per branch."""

    __tablename__ = "material_stock_levels"

    __table_args__ = (
        UniqueConstraint("material_id", "branch_id", name="uq_stock_material_branch"),
    )

    material_id: Mapped[str] = mapped_column(String(64), nullable=False)

    branch_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    current_stock: Mapped[Decimal] = mapped_column(nullable=False)

    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="")

    reorder_level: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    def __repr__(self) -> str:
        return f"<MaterialStockLevel {self.material_id}: {self.current_stock}>"
