from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class VariantAxisIn(BaseModel):
    code: str
    name: str
    description: Optional[str] = None
    attribute_id: Optional[int] = None
    position: int = 0
    is_active: bool = True


class VariantAxisUpdate(BaseModel):
    code: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    attribute_id: Optional[int] = None
    position: Optional[int] = None
    is_active: Optional[bool] = None


class VariantAxisOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    code: str
    name: str
    description: Optional[str] = None
    attribute_id: Optional[int] = None
    position: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ConfigureVariantsIn(BaseModel):
    axis_ids: List[int]
    sku_pattern: Optional[str] = None


class CreateVariantIn(BaseModel):
    sku: Optional[str] = None  # generated when omitted
    name: Optional[str] = None  # built from parent name + axis values when omitted
    axis_values: Dict[int, str]  # axis id -> value
    price: Optional[Decimal] = None
    stock_quantity: Optional[int] = None


class UpdateVariantIn(BaseModel):
    name: Optional[str] = None
    axis_values: Dict[int, str] = {}
    price: Optional[Decimal] = None
    stock_quantity: Optional[int] = None


class BulkCreateVariantsIn(BaseModel):
    combinations: List[Dict[int, str]]


class AxisValueOut(BaseModel):
    axis_id: int
    axis_code: str
    axis_name: str
    value: str
    label: Optional[str] = None
    color_code: Optional[str] = None
    image_url: Optional[str] = None


class VariantOut(BaseModel):
    id: int
    parent_id: int
    sku: str
    name: str
    price: Optional[Decimal] = None
    stock_quantity: int
    is_in_stock: bool
    axis_values: List[AxisValueOut]


class VariantConfigOut(BaseModel):
    product_id: int
    axes: List[VariantAxisOut]
    auto_generate_sku: bool
    sku_pattern: Optional[str] = None
    variants: List[VariantOut]


class MatrixEntry(BaseModel):
    combination: Dict[str, str]  # axis code -> value
    exists: bool
    variant_id: Optional[int] = None
    sku: Optional[str] = None
