from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from pim.models.product import ProductType


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    sku: str
    name: str
    description: Optional[str] = None
    type: ProductType
    price: Optional[Decimal] = None
    stock_quantity: int
    is_in_stock: bool
    requires_shipping: bool
    parent_id: Optional[int] = None
    weight: Optional[Decimal] = None
    brand: Optional[str] = None
    manufacturer: Optional[str] = None


class ProductPage(BaseModel):
    items: List[ProductOut]
    total: int


class ConvertTypeIn(BaseModel):
    target_type: ProductType
