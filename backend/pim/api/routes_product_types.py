from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pim.api.http_errors import to_http
from pim.db import get_db
from pim.schemas.composition_schema import (
    BundleComponentIn,
    BundleComponentOut,
    BundleComponentUpdate,
    BundlePriceOut,
    GroupedItemIn,
    GroupedItemOut,
    GroupedItemUpdate,
    ProductTypeInfo,
    ProductUsage,
    SetBundleComponentsIn,
    SetGroupedItemsIn,
    StockDecrementResult,
    StockOperationIn,
    StockValidationResult,
)
from pim.schemas.product_schema import ConvertTypeIn, ProductOut
from pim.services.composition_service import CompositionService
from pim.services.errors import CatalogException
from pim.services.type_conversion_service import TypeConversionService

router = APIRouter(prefix="/api/products", tags=["product-types"])


# --- type ---------------------------------------------------------------


@router.get("/{product_id}/type-info", response_model=ProductTypeInfo)
def type_info(product_id: int, db: Session = Depends(get_db)):
    try:
        return TypeConversionService(db).type_info(product_id)
    except CatalogException as e:
        raise to_http(e)


@router.post("/{product_id}/convert-type", response_model=ProductOut)
def convert_type(product_id: int, payload: ConvertTypeIn, db: Session = Depends(get_db)):
    """
    payload: { "target_type": "BUNDLE" }
    Cleans up the previous type's data (bundle lines, grouped items, variant links).
    """
    try:
        product = TypeConversionService(db).convert(product_id, payload.target_type)
        return ProductOut.model_validate(product)
    except CatalogException as e:
        raise to_http(e)


# --- bundle components --------------------------------------------------


@router.get("/{product_id}/bundle-components", response_model=List[BundleComponentOut])
def list_bundle_components(product_id: int, db: Session = Depends(get_db)):
    return CompositionService(db).list_components(product_id)


@router.post("/{product_id}/bundle-components", response_model=BundleComponentOut, status_code=201)
def add_bundle_component(product_id: int, payload: BundleComponentIn, db: Session = Depends(get_db)):
    try:
        return CompositionService(db).add_component(
            product_id,
            payload.component_id,
            quantity=payload.quantity,
            position=payload.position,
            special_price=payload.special_price,
        )
    except CatalogException as e:
        raise to_http(e)


@router.put("/{product_id}/bundle-components", response_model=List[BundleComponentOut])
def set_bundle_components(product_id: int, payload: SetBundleComponentsIn, db: Session = Depends(get_db)):
    try:
        return CompositionService(db).set_components(product_id, payload.components)
    except CatalogException as e:
        raise to_http(e)


@router.put("/bundle-components/{row_id}", response_model=BundleComponentOut)
def update_bundle_component(row_id: int, payload: BundleComponentUpdate, db: Session = Depends(get_db)):
    try:
        return CompositionService(db).update_component(row_id, payload)
    except CatalogException as e:
        raise to_http(e)


@router.delete("/bundle-components/{row_id}", status_code=204)
def remove_bundle_component(row_id: int, db: Session = Depends(get_db)):
    try:
        CompositionService(db).remove_component(row_id)
    except CatalogException as e:
        raise to_http(e)


# --- grouped items ------------------------------------------------------


@router.get("/{product_id}/grouped-items", response_model=List[GroupedItemOut])
def list_grouped_items(product_id: int, db: Session = Depends(get_db)):
    return CompositionService(db).list_grouped_items(product_id)


@router.post("/{product_id}/grouped-items", response_model=GroupedItemOut, status_code=201)
def add_grouped_item(product_id: int, payload: GroupedItemIn, db: Session = Depends(get_db)):
    try:
        return CompositionService(db).add_grouped_item(product_id, payload)
    except CatalogException as e:
        raise to_http(e)


@router.put("/{product_id}/grouped-items", response_model=List[GroupedItemOut])
def set_grouped_items(product_id: int, payload: SetGroupedItemsIn, db: Session = Depends(get_db)):
    try:
        return CompositionService(db).set_grouped_items(product_id, payload.items)
    except CatalogException as e:
        raise to_http(e)


@router.put("/grouped-items/{row_id}", response_model=GroupedItemOut)
def update_grouped_item(row_id: int, payload: GroupedItemUpdate, db: Session = Depends(get_db)):
    try:
        return CompositionService(db).update_grouped_item(row_id, payload)
    except CatalogException as e:
        raise to_http(e)


@router.delete("/grouped-items/{row_id}", status_code=204)
def remove_grouped_item(row_id: int, db: Session = Depends(get_db)):
    try:
        CompositionService(db).remove_grouped_item(row_id)
    except CatalogException as e:
        raise to_http(e)


# --- stock / price / usage ----------------------------------------------


@router.get("/{product_id}/stock/validate", response_model=StockValidationResult)
def validate_stock(product_id: int, quantity: int = Query(1, ge=1), db: Session = Depends(get_db)):
    try:
        return CompositionService(db).validate_stock(product_id, quantity)
    except CatalogException as e:
        raise to_http(e)


@router.post("/{product_id}/stock/decrement", response_model=StockDecrementResult)
def decrement_stock(product_id: int, payload: StockOperationIn, db: Session = Depends(get_db)):
    """
    payload: { "quantity": 2 }
    A failed decrement is reported with success=false and changes nothing.
    """
    try:
        return CompositionService(db).decrement_stock(product_id, payload.quantity)
    except CatalogException as e:
        raise to_http(e)


@router.get("/{product_id}/bundle-price", response_model=BundlePriceOut)
def bundle_price(product_id: int, db: Session = Depends(get_db)):
    try:
        total = CompositionService(db).bundle_price(product_id)
        return BundlePriceOut(bundle_id=product_id, total_price=total)
    except CatalogException as e:
        raise to_http(e)


@router.get("/{product_id}/usage", response_model=ProductUsage)
def usage(product_id: int, db: Session = Depends(get_db)):
    try:
        return CompositionService(db).find_usages(product_id)
    except CatalogException as e:
        raise to_http(e)
