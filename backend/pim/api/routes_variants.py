from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pim.api.http_errors import to_http
from pim.db import get_db
from pim.schemas.variant_schema import (
    BulkCreateVariantsIn,
    ConfigureVariantsIn,
    CreateVariantIn,
    MatrixEntry,
    UpdateVariantIn,
    VariantAxisIn,
    VariantAxisOut,
    VariantAxisUpdate,
    VariantConfigOut,
    VariantOut,
)
from pim.services.errors import CatalogException
from pim.services.variant_service import VariantService

router = APIRouter(prefix="/api/variants", tags=["variants"])


# --- axes ---------------------------------------------------------------


@router.get("/axes", response_model=List[VariantAxisOut])
def list_axes(db: Session = Depends(get_db)):
    return VariantService(db).list_axes()


@router.get("/axes/active", response_model=List[VariantAxisOut])
def list_active_axes(db: Session = Depends(get_db)):
    return VariantService(db).list_axes(active_only=True)


@router.post("/axes", response_model=VariantAxisOut, status_code=201)
def create_axis(payload: VariantAxisIn, db: Session = Depends(get_db)):
    try:
        return VariantAxisOut.model_validate(VariantService(db).create_axis(payload))
    except CatalogException as e:
        raise to_http(e)


@router.get("/axes/{axis_id}", response_model=VariantAxisOut)
def get_axis(axis_id: int, db: Session = Depends(get_db)):
    try:
        return VariantAxisOut.model_validate(VariantService(db).get_axis(axis_id))
    except CatalogException as e:
        raise to_http(e)


@router.put("/axes/{axis_id}", response_model=VariantAxisOut)
def update_axis(axis_id: int, payload: VariantAxisUpdate, db: Session = Depends(get_db)):
    try:
        return VariantAxisOut.model_validate(VariantService(db).update_axis(axis_id, payload))
    except CatalogException as e:
        raise to_http(e)


@router.delete("/axes/{axis_id}", status_code=204)
def delete_axis(axis_id: int, db: Session = Depends(get_db)):
    try:
        VariantService(db).delete_axis(axis_id)
    except CatalogException as e:
        raise to_http(e)


# --- configurable products ----------------------------------------------


@router.get("/product/{product_id}", response_model=VariantConfigOut)
def get_config(product_id: int, db: Session = Depends(get_db)):
    try:
        return VariantService(db).get_config(product_id)
    except CatalogException as e:
        raise to_http(e)


@router.post("/product/{product_id}/configure", response_model=VariantConfigOut)
def configure(product_id: int, payload: ConfigureVariantsIn, db: Session = Depends(get_db)):
    """
    payload: { "axis_ids": [1, 2], "sku_pattern": "{parent_sku}-{color}-{size}" }
    Converts the product to CONFIGURABLE when needed.
    """
    svc = VariantService(db)
    try:
        svc.configure_variants(product_id, payload.axis_ids, payload.sku_pattern)
        return svc.get_config(product_id)
    except CatalogException as e:
        raise to_http(e)


@router.get("/product/{product_id}/variants", response_model=List[VariantOut])
def list_variants(product_id: int, db: Session = Depends(get_db)):
    svc = VariantService(db)
    try:
        return [svc.variant_out(v) for v in svc.list_variants(product_id)]
    except CatalogException as e:
        raise to_http(e)


@router.post("/product/{product_id}/variants", response_model=VariantOut, status_code=201)
def create_variant(product_id: int, payload: CreateVariantIn, db: Session = Depends(get_db)):
    svc = VariantService(db)
    try:
        variant = svc.create_variant(
            product_id,
            payload.axis_values,
            sku=payload.sku,
            name=payload.name,
            price=payload.price,
            stock_quantity=payload.stock_quantity,
        )
        return svc.variant_out(variant)
    except CatalogException as e:
        raise to_http(e)


@router.put("/variant/{variant_id}", response_model=VariantOut)
def update_variant(variant_id: int, payload: UpdateVariantIn, db: Session = Depends(get_db)):
    svc = VariantService(db)
    try:
        variant = svc.update_variant(
            variant_id,
            name=payload.name,
            axis_values=payload.axis_values,
            price=payload.price,
            stock_quantity=payload.stock_quantity,
        )
        return svc.variant_out(variant)
    except CatalogException as e:
        raise to_http(e)


@router.delete("/variant/{variant_id}", status_code=204)
def delete_variant(variant_id: int, db: Session = Depends(get_db)):
    try:
        VariantService(db).delete_variant(variant_id)
    except CatalogException as e:
        raise to_http(e)


@router.get("/product/{product_id}/matrix", response_model=List[MatrixEntry])
def matrix(product_id: int, db: Session = Depends(get_db)):
    try:
        return VariantService(db).matrix(product_id)
    except CatalogException as e:
        raise to_http(e)


@router.post("/product/{product_id}/bulk-create", response_model=List[VariantOut], status_code=201)
def bulk_create(product_id: int, payload: BulkCreateVariantsIn, db: Session = Depends(get_db)):
    """Combinations that cannot be created (duplicate sku, missing axis value) are skipped."""
    svc = VariantService(db)
    try:
        return [svc.variant_out(v) for v in svc.bulk_create(product_id, payload.combinations)]
    except CatalogException as e:
        raise to_http(e)
