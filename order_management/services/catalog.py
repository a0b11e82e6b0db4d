import logging

from sqlalchemy.exc import IntegrityError

from .. import ledger
from ..database import transaction
from ..exceptions import BusinessRuleViolation, DuplicateResource, ResourceNotFound
from ..models import OrderItem, Product, ProductStatus, ReferenceType

logger = logging.getLogger(__name__)


def get_product(db, product_id):
    logger.debug("Looking up product %s", product_id)
    product = db.get(Product, product_id)
    if product is None:
        raise ResourceNotFound("Product", "id", product_id)
    return product


def get_product_by_code(db, product_code):
    product = db.query(Product).filter(Product.product_code == product_code).first()
    if product is None:
        raise ResourceNotFound("Product", "product_code", product_code)
    return product


def list_products(db, status=None):
    query = db.query(Product)
    if status is not None:
        query = query.filter(Product.status == status)
    return query.order_by(Product.id).all()


def list_products_needing_restock(db):
    """Active products whose stock is at or below their minimum."""
    return (
        db.query(Product)
        .filter(
            Product.status == ProductStatus.ACTIVE,
            Product.stock_quantity <= Product.min_stock,
        )
        .order_by(Product.id)
        .all()
    )


def _check_unique(db, product_code, name, exclude_id=None):
    query = db.query(Product)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.filter(Product.product_code == product_code).first():
        raise DuplicateResource("Product", "product_code", product_code)
    if query.filter(Product.name == name).first():
        raise DuplicateResource("Product", "name", name)


def create_product(db, data, ctx):
    """
    Creates a catalog product. Opening stock is not written to the row
    directly but booked as a PURCHASE so the ledger replays to the same level.
    """
    logger.info("Creating product %s", data.product_code)
    _check_unique(db, data.product_code, data.name)

    try:
        with transaction(db):
            fields = data.model_dump(exclude={"stock_quantity"})
            product = Product(**fields, stock_quantity=0, status=ProductStatus.ACTIVE)
            product.stamp_created(ctx)
            db.add(product)
            db.flush()

            if data.stock_quantity > 0:
                ledger.stock_in(
                    db, ctx, product, data.stock_quantity,
                    reference_type=ReferenceType.PURCHASE, notes="Opening stock",
                )
    except IntegrityError:
        # Another request took the code or name after the check above.
        _check_unique(db, data.product_code, data.name)
        raise

    db.refresh(product)
    logger.info("Product created, id: %s", product.id)
    return product


def update_product(db, product_id, data, ctx):
    logger.info("Updating product %s", product_id)
    product = get_product(db, product_id)
    _check_unique(db, data.product_code, data.name, exclude_id=product.id)

    try:
        with transaction(db):
            for field, value in data.model_dump().items():
                setattr(product, field, value)
            product.stamp_updated(ctx)
    except IntegrityError:
        _check_unique(db, data.product_code, data.name, exclude_id=product_id)
        raise

    db.refresh(product)
    return product


def delete_product(db, product_id):
    logger.info("Deleting product %s", product_id)
    product = get_product(db, product_id)

    in_use = db.query(OrderItem.id).filter(OrderItem.product_id == product.id).first()
    if in_use:
        raise BusinessRuleViolation(
            f"Product {product.product_code} is referenced by existing orders; "
            f"discontinue it instead"
        )
    if ledger.transactions_for_product(db, product.id):
        raise BusinessRuleViolation(
            f"Product {product.product_code} has inventory history; discontinue it instead"
        )

    with transaction(db):
        db.delete(product)


def adjust_stock(db, product_id, delta, ctx, notes=None, publisher=None):
    """
    Manual stock correction: applies a signed delta and records an
    ADJUSTMENT entry. Fails with InsufficientStock if stock would go negative.
    """
    logger.info("Adjusting stock for product %s by %s", product_id, delta)
    product = get_product(db, product_id)

    with transaction(db):
        entry = ledger.adjust(db, ctx, product, delta, notes=notes)

    db.refresh(product)
    logger.info("Stock for product %s is now %s", product.id, product.stock_quantity)

    if publisher is not None:
        publisher.publish("stock.adjusted", {
            "product_id": product.id,
            "product_code": product.product_code,
            "before_quantity": entry.before_quantity,
            "after_quantity": entry.after_quantity,
            "notes": notes,
        })
        notify_if_low(publisher, product)
    return product


def notify_if_low(publisher, product):
    if publisher is not None and product.needs_restock:
        publisher.publish("stock.low", {
            "product_id": product.id,
            "product_code": product.product_code,
            "stock_quantity": product.stock_quantity,
            "min_stock": product.min_stock,
        })


def stock_audit(db, product_id):
    """Compares current stock with the level obtained by replaying the ledger."""
    product = get_product(db, product_id)
    replayed = ledger.replay_stock(db, product.id)
    return {
        "product_id": product.id,
        "stock_quantity": product.stock_quantity,
        "ledger_quantity": replayed,
        "transactions": len(ledger.transactions_for_product(db, product.id)),
        "consistent": replayed == product.stock_quantity,
    }
