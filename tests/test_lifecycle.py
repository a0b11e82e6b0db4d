from decimal import Decimal
from itertools import product as pairs

import pytest

from order_management.exceptions import InvalidStatusTransition
from order_management.lifecycle import ALLOWED_TRANSITIONS, TERMINAL_STATUSES, can_transition, ensure_transition
from order_management.models import OrderStatus
from order_management.services import orders

ALLOWED = {
    (OrderStatus.PENDING, OrderStatus.CONFIRMED),
    (OrderStatus.PENDING, OrderStatus.CANCELLED),
    (OrderStatus.CONFIRMED, OrderStatus.PROCESSING),
    (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
    (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
    (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
    (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
}

# Shortest path from PENDING to each status.
PATHS = {
    OrderStatus.PENDING: [],
    OrderStatus.CONFIRMED: [OrderStatus.CONFIRMED],
    OrderStatus.PROCESSING: [OrderStatus.CONFIRMED, OrderStatus.PROCESSING],
    OrderStatus.SHIPPED: [OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED],
    OrderStatus.DELIVERED: [
        OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED,
    ],
    OrderStatus.CANCELLED: [OrderStatus.CANCELLED],
}


def test_table_matches_allowed_pairs():
    table = {(src, dst) for src, targets in ALLOWED_TRANSITIONS.items() for dst in targets}
    assert table == ALLOWED


def test_terminal_statuses():
    assert TERMINAL_STATUSES == {OrderStatus.DELIVERED, OrderStatus.CANCELLED}


@pytest.mark.parametrize("current,requested", list(pairs(OrderStatus, OrderStatus)))
def test_can_transition_for_every_pair(current, requested):
    assert can_transition(current, requested) == ((current, requested) in ALLOWED)


def test_ensure_transition_names_both_statuses():
    with pytest.raises(InvalidStatusTransition) as excinfo:
        ensure_transition(OrderStatus.DELIVERED, OrderStatus.PENDING)
    assert excinfo.value.current == "DELIVERED"
    assert excinfo.value.requested == "PENDING"


@pytest.mark.parametrize(
    "current,requested",
    [pair for pair in pairs(OrderStatus, OrderStatus) if pair not in ALLOWED],
)
def test_disallowed_transition_leaves_order_unchanged(db, ctx, make_customer, make_product, place_order,
                                                      current, requested):
    customer = make_customer()
    product = make_product(stock=10)
    order = place_order(customer.id, [
        {"product_id": product.id, "quantity": 2, "unit_price": Decimal("3.00")},
    ])
    for step in PATHS[current]:
        orders.change_status(db, order.id, step, ctx)
    db.refresh(product)
    stock_before = product.stock_quantity

    with pytest.raises(InvalidStatusTransition):
        orders.change_status(db, order.id, requested, ctx)

    db.refresh(order)
    db.refresh(product)
    assert order.status == current
    assert order.final_amount == Decimal("6.00")
    assert product.stock_quantity == stock_before
