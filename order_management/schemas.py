"""Request and response models for the HTTP API."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .models import (
    MAX_QUANTITY,
    CustomerStatus,
    OrderStatus,
    PaymentStatus,
    ProductStatus,
    ReferenceType,
    TransactionType,
)


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# --- Products ---

class ProductBase(BaseModel):
    product_code: str = Field(min_length=1, max_length=20)
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=50)
    unit_price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    cost_price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    min_stock: int = Field(default=0, ge=0, le=MAX_QUANTITY)
    unit: Optional[str] = Field(default="pcs", max_length=20)


class ProductCreate(ProductBase):
    """Opening stock is booked into the inventory ledger as a purchase."""
    stock_quantity: int = Field(default=0, ge=0, le=MAX_QUANTITY)


class ProductUpdate(ProductBase):
    """Stock is not writable here; use the stock adjustment endpoint."""
    status: ProductStatus = ProductStatus.ACTIVE


class ProductOut(ORMModel):
    id: int
    product_code: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    unit_price: Decimal
    cost_price: Optional[Decimal] = None
    stock_quantity: int
    min_stock: int
    unit: Optional[str] = None
    status: ProductStatus
    needs_restock: bool
    created_at: datetime
    updated_at: datetime


class StockAdjustment(BaseModel):
    quantity: int = Field(
        ge=-MAX_QUANTITY, le=MAX_QUANTITY, description="Signed change; negative values remove stock",
    )
    notes: Optional[str] = None


class InventoryTransactionOut(ORMModel):
    id: int
    product_id: int
    transaction_type: TransactionType
    quantity: int
    before_quantity: int
    after_quantity: int
    reference_type: Optional[ReferenceType] = None
    reference_id: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime
    created_by: Optional[int] = None


class StockAudit(BaseModel):
    product_id: int
    stock_quantity: int
    ledger_quantity: int
    transactions: int
    consistent: bool


# --- Customers ---

class CustomerBase(BaseModel):
    customer_code: str = Field(min_length=1, max_length=20)
    name: str = Field(min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=20)
    address: Optional[str] = None
    contact_person: Optional[str] = Field(default=None, max_length=50)
    contact_phone: Optional[str] = Field(default=None, max_length=20)
    credit_limit: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=15, decimal_places=2)


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(CustomerBase):
    status: CustomerStatus = CustomerStatus.ACTIVE


class CustomerOut(ORMModel):
    id: int
    customer_code: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    credit_limit: Decimal
    status: CustomerStatus
    created_at: datetime
    updated_at: datetime


# --- Orders ---

class OrderItemRequest(BaseModel):
    product_id: int
    quantity: int = Field(ge=1, le=MAX_QUANTITY)
    unit_price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    discount_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100, max_digits=5, decimal_places=2)
    notes: Optional[str] = None


class CreateOrderRequest(BaseModel):
    """Defines the data model for an incoming order request."""
    customer_id: int
    shipping_address: str = Field(min_length=1)
    notes: Optional[str] = None
    order_number: Optional[str] = Field(default=None, min_length=1, max_length=20)
    payment_method: Optional[str] = Field(default=None, max_length=50)
    items: List[OrderItemRequest] = Field(min_length=1)


class OrderUpdate(BaseModel):
    """Generic update; only the fields that are sent are changed."""
    order_number: Optional[str] = Field(default=None, min_length=1, max_length=20)
    delivery_date: Optional[date] = None
    discount_amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=15, decimal_places=2)
    tax_amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=15, decimal_places=2)
    payment_method: Optional[str] = Field(default=None, max_length=50)
    shipping_address: Optional[str] = None
    notes: Optional[str] = None


class StatusUpdate(BaseModel):
    status: OrderStatus


class PaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatus


class OrderItemOut(ORMModel):
    id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    discount_rate: Decimal
    discount_amount: Decimal
    subtotal: Decimal
    notes: Optional[str] = None


class OrderOut(ORMModel):
    id: int
    order_number: str
    customer_id: int
    order_date: date
    delivery_date: Optional[date] = None
    status: OrderStatus
    total_amount: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    final_amount: Decimal
    currency: str
    payment_status: PaymentStatus
    payment_method: Optional[str] = None
    shipping_address: Optional[str] = None
    notes: Optional[str] = None
    items: List[OrderItemOut] = []
    created_at: datetime
    updated_at: datetime
