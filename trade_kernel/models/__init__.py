"""ORM models for the read-only stock ledger tables."""

from trade_kernel.models.inventory_batch import InventoryBatchModel, MaterialStockLevelModel

__all__ = ["InventoryBatchModel", "MaterialStockLevelModel"]
