from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import ledger
from ..database import get_db
from ..dependencies import get_audit_context
from ..messaging.producer import get_publisher
from ..models import ProductStatus
from ..schemas import (
    InventoryTransactionOut,
    ProductCreate,
    ProductOut,
    ProductUpdate,
    StockAdjustment,
    StockAudit,
)
from ..services import catalog

router = APIRouter(prefix="/api/v1/products", tags=["products"])


@router.post("", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(data: ProductCreate, db: Session = Depends(get_db), ctx=Depends(get_audit_context)):
    return catalog.create_product(db, data, ctx)


@router.get("", response_model=List[ProductOut])
def list_products(status: Optional[ProductStatus] = None, db: Session = Depends(get_db)):
    return catalog.list_products(db, status=status)


# Declared before /{product_id} so the literal path wins.
@router.get("/low-stock", response_model=List[ProductOut])
def list_low_stock(db: Session = Depends(get_db)):
    """Active products at or below their minimum stock."""
    return catalog.list_products_needing_restock(db)


@router.get("/code/{product_code}", response_model=ProductOut)
def get_product_by_code(product_code: str, db: Session = Depends(get_db)):
    return catalog.get_product_by_code(db, product_code)


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    return catalog.get_product(db, product_id)


@router.put("/{product_id}", response_model=ProductOut)
def update_product(product_id: int, data: ProductUpdate, db: Session = Depends(get_db),
                   ctx=Depends(get_audit_context)):
    return catalog.update_product(db, product_id, data, ctx)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(product_id: int, db: Session = Depends(get_db)):
    catalog.delete_product(db, product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{product_id}/stock", response_model=ProductOut)
def adjust_stock(product_id: int, req: StockAdjustment, db: Session = Depends(get_db),
                 ctx=Depends(get_audit_context), publisher=Depends(get_publisher)):
    """Applies a signed manual stock correction."""
    return catalog.adjust_stock(db, product_id, req.quantity, ctx, notes=req.notes, publisher=publisher)


@router.get("/{product_id}/inventory-transactions", response_model=List[InventoryTransactionOut])
def list_inventory_transactions(product_id: int, db: Session = Depends(get_db)):
    catalog.get_product(db, product_id)
    return ledger.transactions_for_product(db, product_id)


@router.get("/{product_id}/stock-audit", response_model=StockAudit)
def stock_audit(product_id: int, db: Session = Depends(get_db)):
    """Replays the ledger and compares it with the stored stock level."""
    return catalog.stock_audit(db, product_id)
