"""
Module: trade_kernel.selectors.stock_selector
Responsibility: Read-only stock ledger queries backing allocation previews.
    Implements the ``StockLedger`` port (``get_batches`` and
    ``get_current_stock``) over the inventory tables.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Batches are returned oldest first: ORDER BY purchase_date, batch_number.
    - Exhausted batches (quantity_available = 0) are never returned.
    - Read-only: no writes, no commits.

Failure modes:
    - Any ``SQLAlchemyError`` is raised as ``UpstreamUnavailableError``.  A
      failed query is never reported as zero stock.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from trade_kernel.domain.inventory import Batch, StockLevel
from trade_kernel.exceptions import UpstreamUnavailableError
from trade_kernel.logging_config import get_logger
from trade_kernel.models.inventory_batch import InventoryBatchModel, MaterialStockLevelModel
from trade_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.stock")

_COLLABORATOR = "stock_ledger"


class StockLedgerSelector(BaseSelector[InventoryBatchModel]):
    """
    Stock ledger reads over SQLAlchemy.

    When a branch is given, only that branch's batches and stock row are
    considered; otherwise all branches are aggregated.  A material with no
    stock-level row reports the sum of its open batches, which is zero for a
    material the ledger has never seen; material existence is the catalog's
    concern.
    """

    def get_batches(self, material_id: str, branch_id: str | None = None) -> list[Batch]:
        stmt = (
            select(InventoryBatchModel)
            .where(InventoryBatchModel.material_id == material_id)
            .where(InventoryBatchModel.quantity_available > 0)
            .order_by(InventoryBatchModel.purchase_date, InventoryBatchModel.batch_number)
        )
        if branch_id is not None:
            stmt = stmt.where(InventoryBatchModel.branch_id == branch_id)

        try:
            rows = self.session.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            logger.error(
                "stock_ledger_query_failed",
                extra={"material_id": material_id, "branch_id": branch_id, "query": "get_batches"},
            )
            raise UpstreamUnavailableError(_COLLABORATOR, str(exc)) from exc

        batches = [self._to_batch(row) for row in rows]
        logger.debug(
            "stock_batches_loaded",
            extra={"material_id": material_id, "branch_id": branch_id, "batch_count": len(batches)},
        )
        return batches

    def get_current_stock(self, material_id: str, branch_id: str | None = None) -> StockLevel:
        stmt = select(MaterialStockLevelModel).where(
            MaterialStockLevelModel.material_id == material_id
        )
        if branch_id is not None:
            stmt = stmt.where(MaterialStockLevelModel.branch_id == branch_id)

        try:
            rows = self.session.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            logger.error(
                "stock_ledger_query_failed",
                extra={"material_id": material_id, "branch_id": branch_id, "query": "get_current_stock"},
            )
            raise UpstreamUnavailableError(_COLLABORATOR, str(exc)) from exc

        if not rows:
            total = sum(
                (b.quantity_available for b in self.get_batches(material_id, branch_id)),
                Decimal("0"),
            )
            return StockLevel(material_id=material_id, current_stock=total)

        return StockLevel(
            material_id=material_id,
            current_stock=sum((Decimal(r.current_stock) for r in rows), Decimal("0")),
            unit=rows[0].unit,
            reorder_level=sum((Decimal(r.reorder_level) for r in rows), Decimal("0")),
        )

    @staticmethod
    def _to_batch(row: InventoryBatchModel) -> Batch:
        return Batch(
            material_id=row.material_id,
            batch_number=row.batch_number,
            purchase_date=row.purchase_date,
            quantity_available=Decimal(row.quantity_available),
            unit_cost=Decimal(row.unit_cost),
            branch_id=row.branch_id,
        )
