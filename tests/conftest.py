"""
Pytest fixtures for the stock ledger test suite.

Provides:
- A fresh in-memory database and fully wired InventoryApplication per test
- A DeterministicClock
- Structured log capture
- Small data builders (warehouses, products, seeded stock)
"""

import json
import logging
from io import StringIO
from itertools import count

import pytest

from stock_config.schema import InventorySettings
from stock_kernel.db.engine import IN_MEMORY_URL, Database
from stock_kernel.domain.clock import DeterministicClock
from stock_kernel.domain.values import MovementType
from stock_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from stock_modules._orm_registry import create_all_tables
from stock_services.application import InventoryApplication
from stock_services.dispatch_guide import SimulatedDispatchGuideGateway


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for ledger locks"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
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
    Capture stock_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, app):
            app.transfer_stock(...)
            logs = captured_logs()
            assert any(r["message"] == "stock_transferred" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("stock_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Infrastructure
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def database():
    """A fresh in-memory database with every table created."""
    db = Database.from_url(IN_MEMORY_URL)
    create_all_tables(db)
    yield db
    db.dispose()


@pytest.fixture
def settings():
    return InventorySettings()


@pytest.fixture
def gateway(deterministic_clock):
    """Simulated dispatch guide gateway that always accepts."""
    return SimulatedDispatchGuideGateway(success_rate=1.0, clock=deterministic_clock)


@pytest.fixture
def app(settings, deterministic_clock, gateway):
    """A fully wired application over its own in-memory database."""
    application = InventoryApplication(
        Database.from_url(IN_MEMORY_URL),
        settings=settings,
        clock=deterministic_clock,
        gateway=gateway,
    )
    yield application
    application.close()


@pytest.fixture
def engine(app):
    return app.engine


@pytest.fixture
def catalog(app):
    return app.catalog


@pytest.fixture
def purchase_orders(app):
    return app.purchase_orders


# =============================================================================
# Data builders
# =============================================================================


@pytest.fixture
def warehouse_pair(catalog):
    """Two warehouses: (central, north)."""
    central = catalog.create_warehouse("Central", "Av. Industrial 100, Lima")
    north = catalog.create_warehouse("North", "Jr. Comercio 20, Trujillo")
    return central, north


@pytest.fixture
def make_product(catalog):
    """Factory creating products with unique SKUs."""
    numbers = count(1)

    def _make(name: str | None = None, **kwargs):
        n = next(numbers)
        return catalog.create_product(
            sku=kwargs.pop("sku", f"SKU-{n:04d}"),
            name=name or f"Product {n}",
            **kwargs,
        )

    return _make


@pytest.fixture
def seed_stock(engine):
    """Put ``quantity`` units of a product into a warehouse with an ENTRY."""

    def _seed(product_id, warehouse_id, quantity: int):
        return engine.adjust_stock(
            product_id,
            warehouse_id,
            quantity,
            MovementType.ENTRY,
            "initial stock",
            actor="seed",
        )

    return _seed


@pytest.fixture
def supplier(catalog):
    return catalog.create_supplier(
        "Distribuidora Andina SAC",
        tax_id="20123456789",
        address="Av. Argentina 455, Callao",
        contact_person="Rosa Quispe",
        contact_email="ventas@andina.example",
        contact_phone="+51 1 555 0101",
    )


@pytest.fixture
def issuing_company(app):
    return app.issuing_companies.create_issuing_company(
        "Comercial Norte",
        [("RUC", "20100100100"), ("Address", "Av. Industrial 100, Lima")],
    )
