"""
Tests for StockLedgerSelector over SQLite.

Covers:
- FIFO ordering and exhausted-batch filtering
- Branch filtering
- Current stock from stock-level rows, with batch-sum fallback
- Database failures surfacing as UpstreamUnavailableError
"""

from datetime import date
from decimal import Decimal

import pytest

from trade_kernel.db import create_tables, drop_tables, init_engine_from_url, reset_engine, session_scope
from trade_kernel.exceptions import UpstreamUnavailableError
from trade_kernel.models import InventoryBatchModel, MaterialStockLevelModel
from trade_kernel.selectors import StockLedgerSelector
from trade_services.stock_ledger import StockLedger


def _batch_row(material_id, number, day, quantity, cost, branch_id=None):
    return InventoryBatchModel(
        material_id=material_id,
        batch_number=number,
        purchase_date=date(2024, 1, day),
        quantity_available=Decimal(str(quantity)),
        unit_cost=Decimal(str(cost)),
        branch_id=branch_id,
    )


@pytest.fixture
def db_session():
    init_engine_from_url("sqlite://")
    create_tables()
    with session_scope() as session:
        session.add_all([
            _batch_row("DIESEL", "D-003", 20, 50, "1.3", "south"),
            _batch_row("DIESEL", "D-002", 15, 100, "1.2", "north"),
            _batch_row("DIESEL", "D-001", 5, 100, "1.0", "north"),
            _batch_row("DIESEL", "D-000", 1, 0, "0.9", "north"),
            _batch_row("COPPER", "C-001", 3, 40, "2.0", "north"),
        ])
        session.add(
            MaterialStockLevelModel(
                material_id="COPPER",
                branch_id="north",
                current_stock=Decimal("40"),
                unit="KG",
                reorder_level=Decimal("100"),
            )
        )
    with session_scope() as session:
        yield session
    reset_engine()


class TestGetBatches:
    def test_fifo_order_and_exhausted_filtered(self, db_session):
        batches = StockLedgerSelector(db_session).get_batches("DIESEL")

        assert [b.batch_number for b in batches] == ["D-001", "D-002", "D-003"]
        assert batches[0].quantity_available == Decimal("100")
        assert batches[0].unit_cost == Decimal("1.0")
        assert batches[0].purchase_date == date(2024, 1, 5)

    def test_branch_filter(self, db_session):
        batches = StockLedgerSelector(db_session).get_batches("DIESEL", "south")

        assert [b.batch_number for b in batches] == ["D-003"]
        assert batches[0].branch_id == "south"

    def test_unknown_material(self, db_session):
        assert StockLedgerSelector(db_session).get_batches("GOLD") == []


class TestGetCurrentStock:
    def test_from_stock_level_rows(self, db_session):
        level = StockLedgerSelector(db_session).get_current_stock("COPPER")

        assert level.current_stock == Decimal("40")
        assert level.unit == "KG"
        assert level.reorder_level == Decimal("100")

    def test_falls_back_to_open_batches(self, db_session):
        level = StockLedgerSelector(db_session).get_current_stock("DIESEL")

        assert level.current_stock == Decimal("250")

    def test_branch_without_rows(self, db_session):
        level = StockLedgerSelector(db_session).get_current_stock("COPPER", "south")

        assert level.current_stock == Decimal("0")

    def test_unknown_material_reports_zero(self, db_session):
        level = StockLedgerSelector(db_session).get_current_stock("GOLD")

        assert level.material_id == "GOLD"
        assert level.current_stock == Decimal("0")


class TestFailures:
    def test_query_failure_is_upstream_unavailable(self, db_session, captured_logs):
        drop_tables()

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            StockLedgerSelector(db_session).get_batches("DIESEL")

        assert exc_info.value.collaborator == "stock_ledger"
        assert any(r["message"] == "stock_ledger_query_failed" for r in captured_logs())
        db_session.rollback()


def test_selector_satisfies_ledger_port(db_session):
    assert isinstance(StockLedgerSelector(db_session), StockLedger)
