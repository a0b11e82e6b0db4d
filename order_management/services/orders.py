"""
Order workflow: creation, status changes, cancellation and deletion.

Every mutating operation runs inside one database transaction. Header,
lines, stock changes and ledger entries either all commit or none do.
Events are only published after the commit succeeded.
"""

import logging
import uuid
from collections import OrderedDict

from sqlalchemy.exc import IntegrityError

from .. import ledger
from ..config import DEFAULT_CURRENCY
from ..database import transaction
from ..exceptions import (
    BusinessRuleViolation,
    DuplicateResource,
    InsufficientStock,
    ResourceNotFound,
    ValidationFailure,
)
from ..lifecycle import ensure_transition
from ..models import (
    ZERO,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    Product,
    ReferenceType,
    money,
)
from . import catalog, customers

logger = logging.getLogger(__name__)


def generate_order_number(ctx):
    # ORD + yyyymmdd + 6 hex chars, 17 characters in total.
    return f"ORD{ctx.now:%Y%m%d}{uuid.uuid4().hex[:6].upper()}"


def order_number_exists(db, order_number):
    return db.query(Order.id).filter(Order.order_number == order_number).first() is not None


def get_order(db, order_id):
    logger.debug("Looking up order %s", order_id)
    order = db.get(Order, order_id)
    if order is None:
        raise ResourceNotFound("Order", "id", order_id)
    return order


def get_order_by_number(db, order_number):
    order = db.query(Order).filter(Order.order_number == order_number).first()
    if order is None:
        raise ResourceNotFound("Order", "order_number", order_number)
    return order


def list_orders(db, status=None):
    query = db.query(Order)
    if status is not None:
        query = query.filter(Order.status == status)
    return query.order_by(Order.id).all()


def list_orders_for_customer(db, customer_id):
    customers.get_customer(db, customer_id)
    return db.query(Order).filter(Order.customer_id == customer_id).order_by(Order.id).all()


def _requested_quantities(lines):
    """Total quantity per distinct product, in first-seen order."""
    totals = OrderedDict()
    for line in lines:
        totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
    return totals


def _resolve_products(db, product_ids):
    products = {p.id: p for p in db.query(Product).filter(Product.id.in_(product_ids)).all()}
    for product_id in product_ids:
        if product_id not in products:
            raise ResourceNotFound("Product", "id", product_id)
    return products


def create_order(db, request, ctx, publisher=None):
    """
    Creates a PENDING, UNPAID order with its lines and takes the stock.

    All checks run before anything is written. Stock is then decremented
    per distinct product with a conditional update, so a concurrent order
    that got there first still surfaces as InsufficientStock and rolls
    this one back.
    """
    logger.info("Creating order for customer %s", request.customer_id)

    if request.order_number and order_number_exists(db, request.order_number):
        raise DuplicateResource("Order", "order_number", request.order_number)

    customers.get_customer(db, request.customer_id)

    requested = _requested_quantities(request.items)
    products = _resolve_products(db, list(requested))
    for product_id, quantity in requested.items():
        product = products[product_id]
        if product.stock_quantity < quantity:
            logger.warning(
                "Order rejected: product %s has %s, %s requested",
                product.id, product.stock_quantity, quantity,
            )
            raise InsufficientStock(product.name, quantity, product.stock_quantity)

    order_number = request.order_number or generate_order_number(ctx)

    with transaction(db):
        order = Order(
            order_number=order_number,
            customer_id=request.customer_id,
            order_date=ctx.today,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.UNPAID,
            payment_method=request.payment_method,
            currency=DEFAULT_CURRENCY,
            shipping_address=request.shipping_address,
            notes=request.notes,
            total_amount=ZERO,
            discount_amount=ZERO,
            tax_amount=ZERO,
        )
        order.stamp_created(ctx)
        db.add(order)
        try:
            db.flush()
        except IntegrityError as exc:
            raise DuplicateResource("Order", "order_number", order_number) from exc

        for line in request.items:
            order.add_item(OrderItem(
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                discount_rate=line.discount_rate,
                notes=line.notes,
            ))

        for product_id, quantity in requested.items():
            ledger.stock_out(
                db, ctx, products[product_id], quantity, order.id,
                notes=f"Order {order_number}",
            )

        order.recalculate_final_amount()

    db.refresh(order)
    logger.info("Order created, id: %s, number: %s", order.id, order.order_number)

    if publisher is not None:
        publisher.publish("order.created", order_event(order))
        for product in products.values():
            catalog.notify_if_low(publisher, product)
    return order


def update_order(db, order_id, data, ctx):
    """
    Generic header update. Only fields present in ``data`` change and the
    final amount is recomputed on flush.
    """
    logger.info("Updating order %s", order_id)
    order = get_order(db, order_id)
    changes = data.model_dump(exclude_unset=True)

    for field in ("order_number", "discount_amount", "tax_amount"):
        if field in changes and changes[field] is None:
            raise ValidationFailure(f"{field} cannot be null")

    new_number = changes.get("order_number")
    if new_number and new_number != order.order_number and order_number_exists(db, new_number):
        raise DuplicateResource("Order", "order_number", new_number)

    discount = changes.get("discount_amount", order.discount_amount)
    tax = changes.get("tax_amount", order.tax_amount)
    if money(order.total_amount - discount + tax) < ZERO:
        raise ValidationFailure("Discount cannot exceed the order total plus tax")

    try:
        with transaction(db):
            for field, value in changes.items():
                setattr(order, field, value)
            order.stamp_updated(ctx)
    except IntegrityError as exc:
        if new_number and order_number_exists(db, new_number):
            raise DuplicateResource("Order", "order_number", new_number) from exc
        raise

    db.refresh(order)
    logger.info("Order %s updated, final amount: %s", order.id, order.final_amount)
    return order


def change_status(db, order_id, new_status, ctx, publisher=None):
    """
    Moves an order along the state machine. Cancelling goes through
    cancel_order so the stock taken by the order is returned.
    """
    new_status = OrderStatus(new_status)
    if new_status == OrderStatus.CANCELLED:
        return cancel_order(db, order_id, ctx, publisher=publisher)

    logger.info("Changing status of order %s to %s", order_id, new_status.value)
    order = get_order(db, order_id)
    previous = order.status
    ensure_transition(previous, new_status)

    with transaction(db):
        order.status = new_status
        order.stamp_updated(ctx)

    db.refresh(order)
    logger.info("Order %s status changed: %s -> %s", order.id, previous.value, new_status.value)

    if publisher is not None:
        publisher.publish("order.status_changed", {
            **order_event(order),
            "previous_status": previous.value,
        })
    return order


def confirm_order(db, order_id, ctx, publisher=None):
    return change_status(db, order_id, OrderStatus.CONFIRMED, ctx, publisher=publisher)


def start_processing(db, order_id, ctx, publisher=None):
    return change_status(db, order_id, OrderStatus.PROCESSING, ctx, publisher=publisher)


def ship_order(db, order_id, ctx, publisher=None):
    return change_status(db, order_id, OrderStatus.SHIPPED, ctx, publisher=publisher)


def deliver_order(db, order_id, ctx, publisher=None):
    return change_status(db, order_id, OrderStatus.DELIVERED, ctx, publisher=publisher)


def _restore_stock(db, ctx, order, notes):
    for product_id, quantity in _requested_quantities(order.items).items():
        product = db.get(Product, product_id)
        if product is None:
            raise ResourceNotFound("Product", "id", product_id)
        ledger.stock_in(
            db, ctx, product, quantity,
            reference_type=ReferenceType.ORDER, reference_id=order.id, notes=notes,
        )


def cancel_order(db, order_id, ctx, publisher=None):
    logger.info("Cancelling order %s", order_id)
    order = get_order(db, order_id)
    previous = order.status
    ensure_transition(previous, OrderStatus.CANCELLED)

    with transaction(db):
        _restore_stock(db, ctx, order, notes=f"Order {order.order_number} cancelled")
        order.status = OrderStatus.CANCELLED
        order.stamp_updated(ctx)

    db.refresh(order)
    logger.info("Order %s cancelled, stock restored", order.id)

    if publisher is not None:
        publisher.publish("order.cancelled", {
            **order_event(order),
            "previous_status": previous.value,
        })
    return order


def delete_order(db, order_id, ctx, publisher=None):
    """Deletes a PENDING order, returning its stock first."""
    logger.info("Deleting order %s", order_id)
    order = get_order(db, order_id)
    if order.status != OrderStatus.PENDING:
        logger.warning("Refusing to delete order %s in status %s", order.id, order.status.value)
        raise BusinessRuleViolation(
            f"Only PENDING orders can be deleted; order {order.order_number} is {order.status.value}"
        )

    payload = order_event(order)
    with transaction(db):
        _restore_stock(db, ctx, order, notes=f"Order {order.order_number} deleted")
        db.delete(order)

    logger.info("Order %s deleted", order_id)
    if publisher is not None:
        publisher.publish("order.deleted", payload)


def update_payment_status(db, order_id, payment_status, ctx, publisher=None):
    payment_status = PaymentStatus(payment_status)
    logger.info("Changing payment status of order %s to %s", order_id, payment_status.value)
    order = get_order(db, order_id)
    previous = order.payment_status

    with transaction(db):
        order.payment_status = payment_status
        order.stamp_updated(ctx)

    db.refresh(order)

    if publisher is not None and previous != payment_status:
        publisher.publish("order.payment_status_changed", {
            **order_event(order),
            "previous_payment_status": previous.value,
        })
    return order


def order_event(order):
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "customer_id": order.customer_id,
        "status": order.status.value,
        "payment_status": order.payment_status.value,
        "final_amount": str(order.final_amount),
        "currency": order.currency,
        "items": [
            {"product_id": item.product_id, "quantity": item.quantity}
            for item in order.items
        ],
    }
