"""
Inventory ledger: stock movements and their append-only audit trail.

Every change to Product.stock_quantity goes through ``move_stock`` which
applies the change as a single conditional UPDATE

    UPDATE products SET stock_quantity = stock_quantity - :qty
    WHERE id = :id AND stock_quantity >= :qty

(or ``stock_quantity <= :max - :qty`` when adding stock) and checks the
affected-row count, so two requests racing for the same product can never
push its stock below zero or past the column's range. The caller owns the
transaction; nothing here commits.
"""

import logging

from .exceptions import InsufficientStock, ValidationFailure
from .models import MAX_QUANTITY, InventoryTransaction, Product, ReferenceType, TransactionType

logger = logging.getLogger(__name__)


def move_stock(db, ctx, product, delta, transaction_type, reference_type=None, reference_id=None, notes=None):
    """
    Applies a signed stock delta to a product and records the movement.

    Raises InsufficientStock when the delta would take stock below zero and
    ValidationFailure when it would take it above MAX_QUANTITY.
    Returns the InventoryTransaction that was added to the session.
    """
    if delta == 0:
        raise ValidationFailure("Stock change must be non-zero")

    # Bounds are computed here so the WHERE clause never does arithmetic that can overflow.
    if delta > 0:
        within_range = Product.stock_quantity <= MAX_QUANTITY - delta
    else:
        within_range = Product.stock_quantity >= -delta

    updated = (
        db.query(Product)
        .filter(Product.id == product.id, within_range)
        .update(
            {Product.stock_quantity: Product.stock_quantity + delta},
            synchronize_session=False,
        )
    )
    # Re-read the row this transaction now holds so snapshots reflect the database.
    db.refresh(product, attribute_names=["stock_quantity"])

    if updated == 0:
        logger.warning(
            "Stock change rejected for product %s: delta=%s, available=%s",
            product.id, delta, product.stock_quantity,
        )
        if delta > 0:
            raise ValidationFailure(
                f"Stock for product {product.name} cannot exceed {MAX_QUANTITY}: "
                f"current={product.stock_quantity}, change={delta}"
            )
        raise InsufficientStock(product.name, abs(delta), product.stock_quantity)

    after = product.stock_quantity
    product.stamp_updated(ctx)

    entry = InventoryTransaction(
        product_id=product.id,
        transaction_type=transaction_type,
        quantity=abs(delta),
        before_quantity=after - delta,
        after_quantity=after,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes,
        created_at=ctx.now,
        created_by=ctx.user_id,
    )
    db.add(entry)
    logger.debug(
        "Recorded %s of %s for product %s (%s -> %s)",
        transaction_type.value, abs(delta), product.id, entry.before_quantity, after,
    )
    return entry


def stock_out(db, ctx, product, quantity, order_id, notes=None):
    return move_stock(
        db, ctx, product, -quantity, TransactionType.OUT,
        reference_type=ReferenceType.ORDER, reference_id=order_id, notes=notes,
    )


def stock_in(db, ctx, product, quantity, reference_type, reference_id=None, notes=None):
    return move_stock(
        db, ctx, product, quantity, TransactionType.IN,
        reference_type=reference_type, reference_id=reference_id, notes=notes,
    )


def adjust(db, ctx, product, delta, notes=None):
    return move_stock(
        db, ctx, product, delta, TransactionType.ADJUSTMENT,
        reference_type=ReferenceType.ADJUSTMENT, notes=notes,
    )


def transactions_for_product(db, product_id):
    return (
        db.query(InventoryTransaction)
        .filter(InventoryTransaction.product_id == product_id)
        .order_by(InventoryTransaction.id)
        .all()
    )


def transactions_for_order(db, order_id):
    return (
        db.query(InventoryTransaction)
        .filter(
            InventoryTransaction.reference_type == ReferenceType.ORDER,
            InventoryTransaction.reference_id == order_id,
        )
        .order_by(InventoryTransaction.id)
        .all()
    )


def replay_stock(db, product_id, initial_stock=0):
    """Stock level implied by replaying the product's ledger from ``initial_stock``."""
    return initial_stock + sum(t.signed_quantity for t in transactions_for_product(db, product_id))
