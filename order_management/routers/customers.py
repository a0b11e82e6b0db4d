from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_audit_context
from ..models import CustomerStatus
from ..schemas import CustomerCreate, CustomerOut, CustomerUpdate, OrderOut
from ..services import customers, orders

router = APIRouter(prefix="/api/v1/customers", tags=["customers"])


@router.post("", response_model=CustomerOut, status_code=status.HTTP_201_CREATED)
def create_customer(data: CustomerCreate, db: Session = Depends(get_db), ctx=Depends(get_audit_context)):
    return customers.create_customer(db, data, ctx)


@router.get("", response_model=List[CustomerOut])
def list_customers(status: Optional[CustomerStatus] = None, db: Session = Depends(get_db)):
    return customers.list_customers(db, status=status)


@router.get("/code/{customer_code}", response_model=CustomerOut)
def get_customer_by_code(customer_code: str, db: Session = Depends(get_db)):
    return customers.get_customer_by_code(db, customer_code)


@router.get("/{customer_id}", response_model=CustomerOut)
def get_customer(customer_id: int, db: Session = Depends(get_db)):
    return customers.get_customer(db, customer_id)


@router.put("/{customer_id}", response_model=CustomerOut)
def update_customer(customer_id: int, data: CustomerUpdate, db: Session = Depends(get_db),
                    ctx=Depends(get_audit_context)):
    return customers.update_customer(db, customer_id, data, ctx)


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_customer(customer_id: int, db: Session = Depends(get_db)):
    customers.delete_customer(db, customer_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{customer_id}/orders", response_model=List[OrderOut])
def list_customer_orders(customer_id: int, db: Session = Depends(get_db)):
    return orders.list_orders_for_customer(db, customer_id)
