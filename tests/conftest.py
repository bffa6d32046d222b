"""
Pytest fixtures for TradeDesk tests.

Every test gets its own SQLite database file; services are built on a
session from that database and an audit trail writing to it.
"""
import os

os.environ.setdefault("DATABASE_URI", "sqlite:///./tradedesk-test.db")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("DEFAULT_TAX_RATE", "0")

from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from tradedesk.core.database import Base, build_engine
from tradedesk.models import Buyer, InventoryRecord, Sku, Warehouse
from tradedesk.schemas import OrderCreate
from tradedesk.services import (
    Actor, AuditTrail, CatalogService, FixedTaxRate, InventoryService, OrderService,
    PaymentService, ShipmentService,
)


class RecordingNotifier:
    """Keeps every notification instead of delivering it"""

    def __init__(self):
        self.emails = []
        self.events = []

    def send_email(self, to, subject, body):
        self.emails.append((to, subject, body))

    def publish(self, event, payload):
        self.events.append((event, payload))


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'tradedesk.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def audit(session_factory):
    return AuditTrail(session_factory)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def staff():
    return Actor(actor_id="staff-1", role="staff", ip_address="10.0.0.1", user_agent="pytest")


@pytest.fixture
def inventory(db, audit):
    return InventoryService(db, audit)


@pytest.fixture
def orders(db, audit, inventory):
    """Order service with the 18% order-level tax rate"""
    return OrderService(db, audit, tax_rates=FixedTaxRate("0.18"), inventory=inventory)


@pytest.fixture
def shipments(db, audit, notifier, inventory):
    return ShipmentService(db, audit, notifier=notifier, inventory=inventory)


@pytest.fixture
def payments(db, audit):
    return PaymentService(db, audit)


@pytest.fixture
def catalog(db, audit):
    return CatalogService(db, audit)


@pytest.fixture
def buyer(db):
    """Active buyer."""
    buyer = Buyer(
        name="Anna Keller",
        company_name="Keller Import GmbH",
        contact_email="anna@keller-import.de",
        country="DE",
        address="Hafenstrasse 1, Hamburg",
    )
    db.add(buyer)
    db.commit()
    return buyer


@pytest.fixture
def other_buyer(db):
    buyer = Buyer(
        name="Luis Ortega",
        company_name="Ortega Trading SA",
        contact_email="luis@ortega.es",
        country="ES",
    )
    db.add(buyer)
    db.commit()
    return buyer


@pytest.fixture
def warehouse(db):
    warehouse = Warehouse(code="WH-1", name="Main Warehouse", country="TH")
    db.add(warehouse)
    db.commit()
    return warehouse


@pytest.fixture
def sku(db):
    """SKU-001 priced at 10.00."""
    sku = Sku(
        code="SKU-001",
        description="Ceramic mug 350ml",
        hs_code="6912.00",
        unit_price=Decimal("10.00"),
        cost_price=Decimal("4.00"),
        reorder_level=20,
    )
    db.add(sku)
    db.commit()
    return sku


@pytest.fixture
def second_sku(db):
    sku = Sku(code="SKU-002", description="Teapot 1L", unit_price=Decimal("25.00"), reorder_level=5)
    db.add(sku)
    db.commit()
    return sku


@pytest.fixture
def stock(db, sku, warehouse):
    """SKU-001 has 100 available in WH-1."""
    record = InventoryRecord(sku_id=sku.id, warehouse_id=warehouse.id, qty_available=100)
    db.add(record)
    db.commit()
    return record


@pytest.fixture
def make_order(orders, buyer, sku):
    """Factory: order for ``buyer`` with the given items (default: 2 x SKU-001 at 10.00)."""
    def _make(items=None, **fields):
        if items is None:
            items = [{"sku_id": sku.id, "quantity": 2, "unit_price": "10.00"}]
        data = OrderCreate(buyer_id=fields.pop("buyer_id", buyer.id), items=items, **fields)
        return orders.create_order(data)
    return _make


@pytest.fixture
def client(engine, session_factory, notifier):
    """API client bound to the per-test database."""
    from fastapi.testclient import TestClient

    from main import app
    from tradedesk.api.deps import get_notifier
    from tradedesk.core.database import get_db, get_session_factory

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_notifier] = lambda: notifier

    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()
