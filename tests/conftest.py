from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from order_management.audit import AuditContext
from order_management.database import Base, get_db
from order_management.main import app
from order_management.messaging.producer import get_publisher
from order_management.schemas import (
    CreateOrderRequest,
    CustomerCreate,
    OrderItemRequest,
    ProductCreate,
)
from order_management.services import catalog, customers, orders

NOW = datetime(2026, 1, 15, 9, 30, tzinfo=timezone.utc)


class RecordingPublisher:
    """Collects published events instead of sending them to RabbitMQ."""

    def __init__(self):
        self.events = []

    def publish(self, routing_key, message):
        self.events.append((routing_key, message))

    def keys(self):
        return [key for key, _ in self.events]

    def close(self):
        pass


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def ctx():
    return AuditContext(user_id=7, now=NOW)


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def client(db, publisher):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_publisher] = lambda: publisher
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_customer(db, ctx):
    def _make(code="C001", name="Acme Trading", **fields):
        return customers.create_customer(db, CustomerCreate(customer_code=code, name=name, **fields), ctx)
    return _make


@pytest.fixture
def make_product(db, ctx):
    def _make(code="P001", name="Laptop", unit_price="5999.00", stock=100, min_stock=0, **fields):
        data = ProductCreate(
            product_code=code,
            name=name,
            unit_price=Decimal(unit_price),
            stock_quantity=stock,
            min_stock=min_stock,
            **fields,
        )
        return catalog.create_product(db, data, ctx)
    return _make


@pytest.fixture
def place_order(db, ctx):
    def _place(customer_id, lines, publisher=None, **fields):
        request = CreateOrderRequest(
            customer_id=customer_id,
            shipping_address=fields.pop("shipping_address", "1 Harbour Road"),
            items=[OrderItemRequest(**line) for line in lines],
            **fields,
        )
        return orders.create_order(db, request, ctx, publisher=publisher)
    return _place
