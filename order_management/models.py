import enum
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    event,
)
from sqlalchemy.orm import Session, relationship

from .database import Base  # Import the Base class from our database setup

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Largest value an Integer column holds on every supported database.
MAX_QUANTITY = 2**31 - 1


def money(value):
    """Rounds an amount half-up to two decimal places."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class ProductStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    DISCONTINUED = "DISCONTINUED"


class CustomerStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, enum.Enum):
    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    REFUNDED = "REFUNDED"


class TransactionType(str, enum.Enum):
    IN = "IN"
    OUT = "OUT"
    ADJUSTMENT = "ADJUSTMENT"


class ReferenceType(str, enum.Enum):
    ORDER = "ORDER"
    PURCHASE = "PURCHASE"
    ADJUSTMENT = "ADJUSTMENT"
    RETURN = "RETURN"


def _enum(enum_cls):
    # Stored as plain strings so the schema does not depend on native enum support.
    return Enum(enum_cls, native_enum=False, length=20, validate_strings=True)


class AuditMixin:
    """created/updated timestamps and actors, stamped explicitly by the services."""

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    created_by = Column(Integer, nullable=True)
    updated_by = Column(Integer, nullable=True)

    def stamp_created(self, ctx):
        self.created_at = ctx.now
        self.created_by = ctx.user_id
        self.stamp_updated(ctx)

    def stamp_updated(self, ctx):
        self.updated_at = ctx.now
        self.updated_by = ctx.user_id


# Defines the ORM model for a catalog product.
class Product(AuditMixin, Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    product_code = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text)
    category = Column(String(50), index=True)
    unit_price = Column(Numeric(10, 2), nullable=False)
    cost_price = Column(Numeric(10, 2))
    stock_quantity = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=0)
    unit = Column(String(20), default="pcs")
    status = Column(_enum(ProductStatus), nullable=False, default=ProductStatus.ACTIVE, index=True)

    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("min_stock >= 0", name="ck_products_min_stock_non_negative"),
        CheckConstraint("unit_price > 0", name="ck_products_unit_price_positive"),
    )

    @property
    def needs_restock(self):
        return self.stock_quantity <= self.min_stock

    def __repr__(self):
        return f"<Product {self.id} {self.product_code} stock={self.stock_quantity}>"


# Defines the ORM model for a customer.
class Customer(AuditMixin, Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    customer_code = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=False, index=True)
    email = Column(String(100), unique=True, index=True)
    phone = Column(String(20))
    address = Column(Text)
    contact_person = Column(String(50))
    contact_phone = Column(String(20))
    # Advisory only, never checked against order totals.
    credit_limit = Column(Numeric(15, 2), nullable=False, default=ZERO)
    status = Column(_enum(CustomerStatus), nullable=False, default=CustomerStatus.ACTIVE, index=True)

    def __repr__(self):
        return f"<Customer {self.id} {self.customer_code}>"


# Defines the ORM model for an order header.
class Order(AuditMixin, Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(20), unique=True, nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    order_date = Column(Date, nullable=False, index=True)
    delivery_date = Column(Date)
    status = Column(_enum(OrderStatus), nullable=False, default=OrderStatus.PENDING, index=True)
    total_amount = Column(Numeric(15, 2), nullable=False, default=ZERO)
    discount_amount = Column(Numeric(15, 2), nullable=False, default=ZERO)
    tax_amount = Column(Numeric(15, 2), nullable=False, default=ZERO)
    final_amount = Column(Numeric(15, 2), nullable=False, default=ZERO)
    currency = Column(String(3), nullable=False)
    payment_status = Column(_enum(PaymentStatus), nullable=False, default=PaymentStatus.UNPAID, index=True)
    payment_method = Column(String(50))
    shipping_address = Column(Text)
    notes = Column(Text)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_orders_total_non_negative"),
        CheckConstraint("final_amount >= 0", name="ck_orders_final_non_negative"),
    )

    def add_item(self, item):
        """Attaches a line and folds its subtotal into the order total."""
        item.reprice()
        self.items.append(item)
        self.total_amount = money((self.total_amount or ZERO) + item.subtotal)

    def recalculate_total_amount(self):
        self.total_amount = money(sum((item.subtotal for item in self.items), ZERO))

    def compute_final_amount(self):
        return money(
            (self.total_amount or ZERO)
            - (self.discount_amount or ZERO)
            + (self.tax_amount or ZERO)
        )

    def recalculate_final_amount(self):
        self.final_amount = self.compute_final_amount()

    def __repr__(self):
        return f"<Order {self.id} {self.order_number} {self.status}>"


# Defines the ORM model for one line of an order.
class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    # Plain foreign key: lines never navigate into the catalog.
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    discount_rate = Column(Numeric(5, 2), nullable=False, default=ZERO)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=ZERO)
    subtotal = Column(Numeric(15, 2), nullable=False)
    notes = Column(Text)

    order = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
        CheckConstraint(
            "discount_rate >= 0 AND discount_rate <= 100",
            name="ck_order_items_discount_rate_range",
        ),
    )

    @property
    def line_total(self):
        return Decimal(self.unit_price) * self.quantity

    def reprice(self):
        """The only place discount_amount and subtotal are derived."""
        rate = Decimal(self.discount_rate or ZERO)
        line_total = self.line_total
        self.discount_rate = rate
        self.discount_amount = money(line_total * rate / 100) if rate > 0 else ZERO
        self.subtotal = money(line_total - self.discount_amount)

    def __repr__(self):
        return f"<OrderItem {self.id} product={self.product_id} x{self.quantity}>"


# Append-only audit trail of stock movements.
class InventoryTransaction(Base):
    __tablename__ = "inventory_transactions"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    transaction_type = Column(_enum(TransactionType), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)  # Magnitude; direction comes from the type.
    before_quantity = Column(Integer, nullable=False)
    after_quantity = Column(Integer, nullable=False)
    reference_type = Column(_enum(ReferenceType), index=True)
    reference_id = Column(Integer, index=True)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_by = Column(Integer)

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_inventory_transactions_quantity_non_negative"),
    )

    @property
    def signed_quantity(self):
        if self.transaction_type == TransactionType.OUT:
            return -self.quantity
        if self.transaction_type == TransactionType.ADJUSTMENT and self.after_quantity < self.before_quantity:
            return -self.quantity
        return self.quantity

    def __repr__(self):
        return (
            f"<InventoryTransaction {self.id} {self.transaction_type} "
            f"{self.quantity} on product {self.product_id}>"
        )


# Amounts are recomputed on every flush so stored values can never drift.
@event.listens_for(Session, "before_flush")
def _rederive_amounts(session, flush_context, instances):
    touched = set()
    for obj in list(session.new) + list(session.dirty):
        if obj in session.deleted:
            continue
        if isinstance(obj, OrderItem):
            obj.reprice()
            if obj.order is not None:
                touched.add(obj.order)
        elif isinstance(obj, Order):
            touched.add(obj)

    for order in touched:
        if order not in session.deleted:
            order.recalculate_total_amount()
            order.recalculate_final_amount()
