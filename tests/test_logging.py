"""Tests for structured logging (trade_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from trade_kernel.exceptions import InsufficientStockError
from trade_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Each test configures logging from scratch."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


def _configure() -> StringIO:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    configure_logging(level=logging.DEBUG, handler=handler)
    return stream


def _records(stream: StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().strip().split("\n") if line]


class TestStructuredFormatter:
    def test_envelope(self):
        stream = _configure()
        get_logger("orders").info("order_confirmed")

        record = _records(stream)[0]
        assert record["level"] == "INFO"
        assert record["message"] == "order_confirmed"
        assert record["logger"] == "trade_kernel.orders"
        assert "ts" in record

    def test_extra_fields_serialized(self):
        stream = _configure()
        record_id = uuid4()
        get_logger("orders").info(
            "override_approved",
            extra={"override_rate": Decimal("8.900"), "as_of": date(2024, 6, 1), "record_id": record_id},
        )

        record = _records(stream)[0]
        assert record["override_rate"] == "8.900"
        assert record["as_of"] == "2024-06-01"
        assert record["record_id"] == str(record_id)

    def test_context_fields(self):
        stream = _configure()
        with LogContext.bind(order_id="SO-1", request_id="req-1"):
            get_logger("orders").info("preview_started")

        record = _records(stream)[0]
        assert record["order_id"] == "SO-1"
        assert record["request_id"] == "req-1"
        assert "customer_id" not in record

    def test_exception_fields(self):
        stream = _configure()
        try:
            raise InsufficientStockError([("COPPER", "50", "40", "10")])
        except InsufficientStockError:
            get_logger("orders").error("confirmation_failed", exc_info=True)

        record = _records(stream)[0]
        assert record["exc_type"] == "InsufficientStockError"
        assert record["exc_code"] == "INSUFFICIENT_STOCK"
        assert record["exc_shortages"] == [["COPPER", "50", "40", "10"]]
        assert "traceback" in record

    def test_every_line_is_json(self):
        stream = _configure()
        logger = get_logger("orders")
        for i in range(5):
            logger.debug("tick", extra={"i": i})

        assert [r["i"] for r in _records(stream)] == [0, 1, 2, 3, 4]


class TestLogContext:
    def test_bind_restores_previous_values(self):
        LogContext.set(order_id="SO-1")
        with LogContext.bind(order_id="SO-2", actor_id="manager-1"):
            assert LogContext.get_all() == {"order_id": "SO-2", "actor_id": "manager-1"}

        assert LogContext.get_all() == {"order_id": "SO-1"}

    def test_bind_skips_none(self):
        with LogContext.bind(request_id=None, customer_id="CUST-1"):
            assert LogContext.get_all() == {"customer_id": "CUST-1"}

    def test_clear(self):
        LogContext.set(correlation_id="c", trace_id="t")
        LogContext.clear()

        assert LogContext.get_all() == {}


class TestConfigureLogging:
    def test_idempotent(self):
        _configure()
        _configure()

        assert len(logging.getLogger("trade_kernel").handlers) == 1

    def test_does_not_propagate(self):
        _configure()

        assert logging.getLogger("trade_kernel").propagate is False

    def test_formatter_installed(self):
        _configure()

        handler = logging.getLogger("trade_kernel").handlers[0]
        assert isinstance(handler.formatter, StructuredFormatter)

    def test_reset(self):
        _configure()
        reset_logging()

        logger = logging.getLogger("trade_kernel")
        assert logger.handlers == []
        assert logger.level == logging.WARNING
