import json
from decimal import Decimal
from types import SimpleNamespace
from unittest import mock

import pytest

from order_management import consumers
from order_management.consumers import PaymentConsumer, handle_payment_event
from order_management.exceptions import ResourceNotFound
from order_management.models import OrderStatus, PaymentStatus


@pytest.fixture
def order(make_customer, make_product, place_order):
    customer = make_customer()
    product = make_product(stock=10)
    return place_order(customer.id, [
        {"product_id": product.id, "quantity": 1, "unit_price": Decimal("9.90")},
    ])


@pytest.mark.parametrize("routing_key,expected", [
    ("payment.succeeded", PaymentStatus.PAID),
    ("payment.partial", PaymentStatus.PARTIAL),
    ("payment.refunded", PaymentStatus.REFUNDED),
    ("payment.failed", PaymentStatus.UNPAID),
])
def test_payment_events_set_payment_status(db, order, routing_key, expected):
    updated = handle_payment_event(db, routing_key, {"order_id": order.id})

    assert updated.payment_status == expected
    assert updated.status == OrderStatus.PENDING


def test_order_id_may_arrive_as_string(db, order):
    assert handle_payment_event(db, "payment.succeeded", {"order_id": str(order.id)}).payment_status == PaymentStatus.PAID


def test_status_change_is_published(db, order, publisher):
    handle_payment_event(db, "payment.succeeded", {"order_id": order.id}, publisher=publisher)
    assert publisher.keys() == ["order.payment_status_changed"]


@pytest.mark.parametrize("routing_key,event", [
    ("payment.initiated", {"order_id": 1}),
    ("payment.succeeded", {"amount": "9.90"}),
])
def test_ignored_events(db, order, routing_key, event):
    assert handle_payment_event(db, routing_key, event) is None
    db.refresh(order)
    assert order.payment_status == PaymentStatus.UNPAID


def test_unknown_order(db):
    with pytest.raises(ResourceNotFound):
        handle_payment_event(db, "payment.succeeded", {"order_id": 999})


class TestCallback:
    def delivery(self, routing_key="payment.succeeded"):
        return SimpleNamespace(routing_key=routing_key, delivery_tag=11)

    def test_acks_processed_message(self, db, order, publisher, monkeypatch):
        monkeypatch.setattr(consumers, "SessionLocal", lambda: db)
        monkeypatch.setattr(consumers, "get_publisher", lambda: publisher)
        channel = mock.Mock()

        PaymentConsumer().callback(channel, self.delivery(), None, json.dumps({"order_id": order.id}))

        channel.basic_ack.assert_called_once_with(delivery_tag=11)
        assert publisher.keys() == ["order.payment_status_changed"]

    def test_acks_and_drops_malformed_message(self, db, publisher, monkeypatch):
        monkeypatch.setattr(consumers, "SessionLocal", lambda: db)
        monkeypatch.setattr(consumers, "get_publisher", lambda: publisher)
        channel = mock.Mock()

        PaymentConsumer().callback(channel, self.delivery(), None, b"not json")

        channel.basic_ack.assert_called_once_with(delivery_tag=11)
        assert publisher.events == []
