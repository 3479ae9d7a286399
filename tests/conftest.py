"""
Pytest fixtures for the trade kernel test suite.

Provides:
- Structured logging configured once per session, LogContext cleared per test
- Deterministic clock pinned to 2024-06-01
- Sample catalog, contracts, stock ledger and credential verifier
- captured_logs for asserting on emitted JSON log records
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from trade_kernel.domain.catalog import Material, MaterialCatalog
from trade_kernel.domain.clock import DeterministicClock
from trade_kernel.domain.contract import (
    Contract,
    DiscountPercentage,
    FixedRate,
    MinimumPriceGuarantee,
    RateValidity,
)
from trade_kernel.domain.inventory import StockLevel
from trade_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from trade_services.authorization import HashedCredentialVerifier, hash_credential
from trade_services.contracts import InMemoryContractSource
from trade_services.stock_ledger import InMemoryStockLedger

from tests.factories import MANAGER_CREDENTIAL, make_batch, make_contract


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture trade_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "override_approved" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("trade_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def catalog() -> MaterialCatalog:
    return MaterialCatalog([
        Material("DIESEL", "Diesel", "L", Decimal("10.000"), "fuel"),
        Material("COPPER", "Copper Scrap", "KG", Decimal("3.500"), "scrap"),
        Material("ALU", "Aluminium Scrap", "KG", Decimal("1.200"), "scrap"),
        Material("LUBE", "Lubricant", "L", Decimal("8.000"), "oil"),
    ])


@pytest.fixture
def contract() -> Contract:
    """Active contract: fixed diesel, discounted copper, capped aluminium, expired lube."""
    return make_contract({
        "DIESEL": FixedRate(Decimal("9.250")),
        "COPPER": DiscountPercentage(Decimal("20")),
        "ALU": MinimumPriceGuarantee(Decimal("1.000")),
        "LUBE": FixedRate(
            Decimal("7.000"),
            validity=RateValidity(end_date=date(2024, 3, 31)),
        ),
    })


@pytest.fixture
def contract_source(contract) -> InMemoryContractSource:
    return InMemoryContractSource([contract], customers=["WALK-IN"])


@pytest.fixture
def ledger() -> InMemoryStockLedger:
    return InMemoryStockLedger(
        batches=[
            make_batch("DIESEL", "D-002", 15, 100, "1.2"),
            make_batch("DIESEL", "D-001", 5, 100, "1.0"),
            make_batch("COPPER", "C-001", 3, 40, "2.0"),
            make_batch("ALU", "A-001", 2, 500, "0.5"),
            make_batch("LUBE", "L-001", 1, 10, "6.0"),
        ],
        stock_levels=[
            StockLevel("DIESEL", Decimal("200"), "L", Decimal("50")),
            StockLevel("COPPER", Decimal("40"), "KG", Decimal("100")),
            StockLevel("ALU", Decimal("500"), "KG", Decimal("100")),
            StockLevel("LUBE", Decimal("10"), "L", Decimal("0")),
        ],
    )


@pytest.fixture
def verifier() -> HashedCredentialVerifier:
    return HashedCredentialVerifier([hash_credential(MANAGER_CREDENTIAL)])
