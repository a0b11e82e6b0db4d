import logging

from sqlalchemy.exc import IntegrityError

from ..database import transaction
from ..exceptions import BusinessRuleViolation, DuplicateResource, ResourceNotFound
from ..models import Customer, Order

logger = logging.getLogger(__name__)


def get_customer(db, customer_id):
    customer = db.get(Customer, customer_id)
    if customer is None:
        raise ResourceNotFound("Customer", "id", customer_id)
    return customer


def get_customer_by_code(db, customer_code):
    customer = db.query(Customer).filter(Customer.customer_code == customer_code).first()
    if customer is None:
        raise ResourceNotFound("Customer", "customer_code", customer_code)
    return customer


def list_customers(db, status=None):
    query = db.query(Customer)
    if status is not None:
        query = query.filter(Customer.status == status)
    return query.order_by(Customer.id).all()


def _check_unique(db, customer_code, email, exclude_id=None):
    query = db.query(Customer)
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    if query.filter(Customer.customer_code == customer_code).first():
        raise DuplicateResource("Customer", "customer_code", customer_code)
    if email and query.filter(Customer.email == email).first():
        raise DuplicateResource("Customer", "email", email)


def create_customer(db, data, ctx):
    logger.info("Creating customer %s", data.customer_code)
    _check_unique(db, data.customer_code, data.email)

    try:
        with transaction(db):
            customer = Customer(**data.model_dump())
            customer.stamp_created(ctx)
            db.add(customer)
    except IntegrityError:
        # Another request took the code or email after the check above.
        _check_unique(db, data.customer_code, data.email)
        raise

    db.refresh(customer)
    logger.info("Customer created, id: %s", customer.id)
    return customer


def update_customer(db, customer_id, data, ctx):
    logger.info("Updating customer %s", customer_id)
    customer = get_customer(db, customer_id)
    _check_unique(db, data.customer_code, data.email, exclude_id=customer.id)

    try:
        with transaction(db):
            for field, value in data.model_dump().items():
                setattr(customer, field, value)
            customer.stamp_updated(ctx)
    except IntegrityError:
        _check_unique(db, data.customer_code, data.email, exclude_id=customer_id)
        raise

    db.refresh(customer)
    return customer


def delete_customer(db, customer_id):
    logger.info("Deleting customer %s", customer_id)
    customer = get_customer(db, customer_id)
    if db.query(Order.id).filter(Order.customer_id == customer.id).first():
        raise BusinessRuleViolation(
            f"Customer {customer.customer_code} has orders; deactivate it instead"
        )

    with transaction(db):
        db.delete(customer)
