"""
trade_services.stock_ledger -- Stock ledger port and in-memory implementation.

Responsibility:
    Define the read-only ``StockLedger`` interface consumed by previews and
    live stock checks, and provide ``InMemoryStockLedger`` for embedding and
    tests.  The SQLAlchemy implementation is
    ``trade_kernel.selectors.stock_selector.StockLedgerSelector``.

Invariants enforced:
    - ``get_batches`` returns open batches oldest first.
    - A ledger that cannot answer raises ``UpstreamUnavailableError``; it
      never answers with an empty list or zero stock.
"""

from __future__ import annotations

import threading
from collections import Counter
from collections.abc import Iterable
from decimal import Decimal
from typing import Protocol, runtime_checkable

from trade_kernel.domain.inventory import Batch, StockLevel
from trade_kernel.exceptions import UpstreamUnavailableError
from trade_kernel.logging_config import get_logger

logger = get_logger("services.stock_ledger")


@runtime_checkable
class StockLedger(Protocol):
    """Read-only view of the inventory system."""

    def get_batches(self, material_id: str, branch_id: str | None = None) -> list[Batch]:
        ...

    def get_current_stock(self, material_id: str, branch_id: str | None = None) -> StockLevel:
        ...


class InMemoryStockLedger:
    """
    Stock ledger held in memory.

    ``set_unavailable`` makes every subsequent query raise
    ``UpstreamUnavailableError`` (optionally only for some materials), which
    is how outages are exercised in tests.
    """

    def __init__(
        self,
        batches: Iterable[Batch] = (),
        stock_levels: Iterable[StockLevel] = (),
    ):
        self._lock = threading.Lock()
        self._batches: list[Batch] = list(batches)
        self._levels: dict[str, StockLevel] = {s.material_id: s for s in stock_levels}
        self._unavailable: bool = False
        self._unavailable_materials: frozenset[str] = frozenset()
        self.calls: Counter[str] = Counter()

    def add_batch(self, batch: Batch) -> None:
        with self._lock:
            self._batches.append(batch)

    def set_stock_level(self, level: StockLevel) -> None:
        with self._lock:
            self._levels[level.material_id] = level

    def set_unavailable(self, unavailable: bool = True, materials: Iterable[str] = ()) -> None:
        with self._lock:
            self._unavailable = unavailable
            self._unavailable_materials = frozenset(materials)

    def _check_available(self, material_id: str) -> None:
        if not self._unavailable:
            return
        if self._unavailable_materials and material_id not in self._unavailable_materials:
            return
        logger.warning("stock_ledger_unavailable", extra={"material_id": material_id})
        raise UpstreamUnavailableError("stock_ledger", f"no answer for {material_id}")

    def get_batches(self, material_id: str, branch_id: str | None = None) -> list[Batch]:
        with self._lock:
            self.calls["get_batches"] += 1
            self._check_available(material_id)
            selected = [
                b
                for b in self._batches
                if b.material_id == material_id
                and not b.is_exhausted
                and (branch_id is None or b.branch_id == branch_id)
            ]
        return sorted(selected, key=Batch.fifo_sort_key)

    def get_current_stock(self, material_id: str, branch_id: str | None = None) -> StockLevel:
        with self._lock:
            self.calls["get_current_stock"] += 1
            self._check_available(material_id)
            level = self._levels.get(material_id)
        if level is not None and branch_id is None:
            return level
        total = sum(
            (b.quantity_available for b in self.get_batches(material_id, branch_id)),
            Decimal("0"),
        )
        if level is not None:
            return StockLevel(material_id, total, level.unit, level.reorder_level)
        return StockLevel(material_id=material_id, current_stock=total)
