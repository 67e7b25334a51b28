from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from pim.db import get_db
from pim.models.product import ProductType
from pim.repositories.product_repo import ProductRepository
from pim.schemas.product_schema import ProductOut, ProductPage

router = APIRouter(tags=["catalogue"])


@router.get("", summary="List products", response_model=ProductPage)
def list_products(
    q: Optional[str] = Query(None, description="search term (name or sku)"),
    type: Optional[ProductType] = Query(None, description="only products of this type"),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
):
    repo = ProductRepository(db)
    items, total = repo.list(q=q, product_type=type, page=page, size=size)
    return ProductPage(items=[ProductOut.model_validate(p) for p in items], total=total)


@router.get("/{product_id}", summary="Get product by id", response_model=ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    p = ProductRepository(db).get(product_id)
    if not p:
        raise HTTPException(status_code=404, detail="Product not found")
    return ProductOut.model_validate(p)
