from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_audit_context
from ..messaging.producer import get_publisher
from ..models import OrderStatus
from ..schemas import CreateOrderRequest, OrderOut, OrderUpdate, PaymentStatusUpdate, StatusUpdate
from ..services import orders

router = APIRouter(prefix="/api/v1/orders", tags=["orders"])


# Creates a new order, taking stock for every line in one transaction.
@router.post("", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
def create_order(req: CreateOrderRequest, db: Session = Depends(get_db),
                 ctx=Depends(get_audit_context), publisher=Depends(get_publisher)):
    return orders.create_order(db, req, ctx, publisher=publisher)


# Retrieves a list of all orders.
@router.get("", response_model=List[OrderOut])
def list_orders(status: Optional[OrderStatus] = None, db: Session = Depends(get_db)):
    return orders.list_orders(db, status=status)


@router.get("/number/{order_number}", response_model=OrderOut)
def get_order_by_number(order_number: str, db: Session = Depends(get_db)):
    return orders.get_order_by_number(db, order_number)


# Retrieves a single order by its ID.
@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: int, db: Session = Depends(get_db)):
    return orders.get_order(db, order_id)


@router.put("/{order_id}", response_model=OrderOut)
def update_order(order_id: int, data: OrderUpdate, db: Session = Depends(get_db),
                 ctx=Depends(get_audit_context)):
    return orders.update_order(db, order_id, data, ctx)


@router.patch("/{order_id}/status", response_model=OrderOut)
def update_order_status(order_id: int, req: StatusUpdate, db: Session = Depends(get_db),
                        ctx=Depends(get_audit_context), publisher=Depends(get_publisher)):
    return orders.change_status(db, order_id, req.status, ctx, publisher=publisher)


@router.patch("/{order_id}/payment-status", response_model=OrderOut)
def update_payment_status(order_id: int, req: PaymentStatusUpdate, db: Session = Depends(get_db),
                          ctx=Depends(get_audit_context), publisher=Depends(get_publisher)):
    return orders.update_payment_status(db, order_id, req.payment_status, ctx, publisher=publisher)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(order_id: int, db: Session = Depends(get_db),
                 ctx=Depends(get_audit_context), publisher=Depends(get_publisher)):
    """Cancels the order and returns its stock."""
    return orders.cancel_order(db, order_id, ctx, publisher=publisher)


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_order(order_id: int, db: Session = Depends(get_db),
                 ctx=Depends(get_audit_context), publisher=Depends(get_publisher)):
    orders.delete_order(db, order_id, ctx, publisher=publisher)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
