"""
Order status state machine.

    PENDING    -> CONFIRMED | CANCELLED
    CONFIRMED  -> PROCESSING | CANCELLED
    PROCESSING -> SHIPPED | CANCELLED
    SHIPPED    -> DELIVERED

DELIVERED and CANCELLED are terminal.
"""

from .exceptions import InvalidStatusTransition
from .models import OrderStatus

ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if not targets)


def can_transition(current, requested):
    return OrderStatus(requested) in ALLOWED_TRANSITIONS[OrderStatus(current)]


def ensure_transition(current, requested):
    if not can_transition(current, requested):
        raise InvalidStatusTransition(current, requested)
