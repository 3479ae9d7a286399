"""Read-only query selectors."""

from trade_kernel.selectors.base import BaseSelector
from trade_kernel.selectors.stock_selector import StockLedgerSelector

__all__ = ["BaseSelector", "StockLedgerSelector"]
