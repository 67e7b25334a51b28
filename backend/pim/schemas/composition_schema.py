from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from pim.models.product import ProductType


class BundleComponentIn(BaseModel):
    component_id: int
    quantity: int = 1
    position: int = 0
    special_price: Optional[Decimal] = None


class BundleComponentUpdate(BaseModel):
    quantity: Optional[int] = None
    position: Optional[int] = None
    special_price: Optional[Decimal] = None


class SetBundleComponentsIn(BaseModel):
    components: List[BundleComponentIn]


class BundleComponentOut(BaseModel):
    id: int
    component_id: int
    component_sku: str
    component_name: str
    quantity: int
    position: int
    special_price: Optional[Decimal] = None
    component_price: Optional[Decimal] = None
    component_stock: int


class GroupedItemIn(BaseModel):
    child_id: int
    default_quantity: int = 1
    min_quantity: int = 0
    max_quantity: Optional[int] = None
    position: int = 0


class GroupedItemUpdate(BaseModel):
    default_quantity: Optional[int] = None
    min_quantity: Optional[int] = None
    max_quantity: Optional[int] = None
    position: Optional[int] = None


class SetGroupedItemsIn(BaseModel):
    items: List[GroupedItemIn]


class GroupedItemOut(BaseModel):
    id: int
    child_id: int
    child_sku: str
    child_name: str
    default_quantity: int
    min_quantity: int
    max_quantity: Optional[int] = None
    position: int
    child_price: Optional[Decimal] = None
    child_stock: int


class ProductTypeInfo(BaseModel):
    product_id: int
    product_sku: str
    product_name: str
    type: ProductType
    can_convert_to: List[ProductType]
    bundle_components: Optional[List[BundleComponentOut]] = None
    grouped_items: Optional[List[GroupedItemOut]] = None
    variants_count: Optional[int] = None


class StockOperationIn(BaseModel):
    quantity: int = Field(ge=1)


class StockValidationResult(BaseModel):
    valid: bool
    message: Optional[str] = None
    # None with unlimited=False means "not tracked at this level" (GROUPED)
    available_quantity: Optional[int] = None
    unlimited: bool = False
    requested_quantity: int


class DecrementedProduct(BaseModel):
    product_id: int
    sku: str
    previous_stock: int
    new_stock: int
    decremented_amount: int


class StockDecrementResult(BaseModel):
    success: bool
    message: Optional[str] = None
    decrements: List[DecrementedProduct] = []


class BundlePriceOut(BaseModel):
    bundle_id: int
    total_price: Decimal


class ProductUsage(BaseModel):
    bundles: List[int]
    groups: List[int]
