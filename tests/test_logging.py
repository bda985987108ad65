"""
Tests for structured logging.

Validates:
- StructuredFormatter emits one JSON object per record
- LogContext fields are merged in and restored after bind()
- Kernel exceptions contribute their code and structured fields
- Movement operations emit started / success / rejected events
"""

import json
import logging
import sys
from uuid import uuid4

import pytest

from stock_kernel.domain.values import MovementType
from stock_kernel.exceptions import InsufficientStockError
from stock_kernel.logging_config import LogContext, StructuredFormatter, get_logger


def _format(record: logging.LogRecord) -> dict:
    return json.loads(StructuredFormatter().format(record))


def _record(msg: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("stock_kernel.test", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:

    def test_basic_fields(self):
        payload = _format(_record("hello"))
        assert payload["message"] == "hello"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "stock_kernel.test"
        assert "ts" in payload

    def test_extra_fields_are_serialized(self):
        product_id = uuid4()
        payload = _format(
            _record("stock_adjusted", product_id=product_id, movement_type=MovementType.EXIT)
        )
        assert payload["product_id"] == str(product_id)
        assert payload["movement_type"] == "exit"

    def test_context_fields_are_included(self):
        with LogContext.bind(actor="alice", operation="transfer_stock"):
            payload = _format(_record("inside"))
        assert payload["actor"] == "alice"
        assert payload["operation"] == "transfer_stock"

    def test_exception_fields(self):
        try:
            raise InsufficientStockError("p-1", "w-1", requested=20, available=5)
        except InsufficientStockError:
            record = logging.LogRecord(
                "stock_kernel.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )
        payload = _format(record)
        assert payload["exc_type"] == "InsufficientStockError"
        assert payload["exc_code"] == "INSUFFICIENT_STOCK"
        assert payload["exc_requested"] == 20
        assert payload["exc_available"] == 5
        assert "traceback" in payload


class TestLogContext:

    def test_bind_restores_previous_values(self):
        LogContext.set(actor="outer")
        with LogContext.bind(actor="inner"):
            assert LogContext.get_all()["actor"] == "inner"
        assert LogContext.get_all()["actor"] == "outer"

    def test_bind_skips_none(self):
        with LogContext.bind(actor="alice", transaction_id=None):
            assert "transaction_id" not in LogContext.get_all()

    def test_clear(self):
        LogContext.set(correlation_id="abc")
        LogContext.clear()
        assert LogContext.get_all() == {}


class TestOperationEvents:

    def test_get_logger_namespace(self):
        assert get_logger("services.x").name == "stock_kernel.services.x"

    def test_transfer_emits_events_with_context(
        self, app, warehouse_pair, make_product, seed_stock, captured_logs
    ):
        central, north = warehouse_pair
        product = make_product()
        seed_stock(product.id, central.id, 10)

        result = app.transfer_stock(product.id, central.id, north.id, 4, actor="alice")

        logs = captured_logs()
        messages = [r["message"] for r in logs]
        assert "transfer_stock_started" in messages
        transferred = next(r for r in logs if r["message"] == "stock_transferred")
        assert transferred["transaction_id"] == str(result.transaction_id)
        assert transferred["quantity"] == 4

        appended = [r for r in logs if r["message"] == "movement_appended"]
        assert appended[-1]["actor"] == "alice"
        assert appended[-1]["operation"] == "transfer_stock"
        assert appended[-1]["transaction_id"] == str(result.transaction_id)

    def test_rejection_is_logged_with_error_code(
        self, app, warehouse_pair, make_product, captured_logs
    ):
        central, north = warehouse_pair
        product = make_product()

        with pytest.raises(InsufficientStockError):
            app.transfer_stock(product.id, central.id, north.id, 1)

        rejected = [r for r in captured_logs() if r["message"] == "transfer_stock_rejected"]
        assert len(rejected) == 1
        assert rejected[0]["level"] == "WARNING"
        assert rejected[0]["error_code"] == "INSUFFICIENT_STOCK"

    def test_context_is_cleared_after_operation(self, app, warehouse_pair, make_product):
        central, _ = warehouse_pair
        product = make_product()
        app.adjust_stock(product.id, central.id, 3, MovementType.ENTRY, actor="bob")
        assert LogContext.get_all() == {}
