from typing import Dict, Iterable, List, Optional

from pim.models.product import Product
from pim.models.variant import (
    ProductVariantConfig,
    ProductVariantConfigAxis,
    VariantAttributeValue,
    VariantAxis,
)
from sqlalchemy import delete, func
from sqlalchemy.orm import Session


class VariantRepository:
    """Axes, per-product variant configuration and per-variant axis values."""

    def __init__(self, db: Session):
        self.db = db

    # --- axes -----------------------------------------------------------

    def list_axes(self, active_only: bool = False) -> List[VariantAxis]:
        qry = self.db.query(VariantAxis)
        if active_only:
            qry = qry.filter(VariantAxis.is_active.is_(True))
        return qry.order_by(VariantAxis.position, VariantAxis.id).all()

    def get_axis(self, axis_id: int) -> Optional[VariantAxis]:
        return self.db.get(VariantAxis, axis_id)

    def get_axes(self, axis_ids: Iterable[int]) -> Dict[int, VariantAxis]:
        ids = list(set(axis_ids))
        if not ids:
            return {}
        rows = self.db.query(VariantAxis).filter(VariantAxis.id.in_(ids)).all()
        return {a.id: a for a in rows}

    def exists_axis_code(self, code: str) -> bool:
        return self.db.query(
            self.db.query(VariantAxis.id).filter(VariantAxis.code == code).exists()
        ).scalar()

    def save_axis(self, axis: VariantAxis) -> VariantAxis:
        self.db.add(axis)
        self.db.flush()
        return axis

    def delete_axis(self, axis: VariantAxis) -> None:
        self.db.delete(axis)
        self.db.flush()

    # --- config ---------------------------------------------------------

    def get_config(self, product_id: int) -> Optional[ProductVariantConfig]:
        return (
            self.db.query(ProductVariantConfig)
            .filter(ProductVariantConfig.product_id == product_id)
            .first()
        )

    def upsert_config(
        self, product_id: int, axis_ids: List[int], sku_pattern: Optional[str] = None
    ) -> ProductVariantConfig:
        config = self.get_config(product_id)
        if config is None:
            config = ProductVariantConfig(product_id=product_id)
            self.db.add(config)

        # reuse link rows for axes that stay so the (config, axis) key is never re-inserted
        existing = {link.axis_id: link for link in config.axes}
        links = []
        for position, axis_id in enumerate(axis_ids):
            link = existing.get(axis_id) or ProductVariantConfigAxis(axis_id=axis_id)
            link.position = position
            links.append(link)
        config.axes = links
        config.sku_pattern = sku_pattern
        self.db.flush()
        return config

    # --- axis values ----------------------------------------------------

    def list_values_by_variant(self, variant_id: int) -> List[VariantAttributeValue]:
        return (
            self.db.query(VariantAttributeValue)
            .filter(VariantAttributeValue.variant_id == variant_id)
            .order_by(VariantAttributeValue.position, VariantAttributeValue.id)
            .all()
        )

    def list_values_by_parent(self, parent_id: int) -> List[VariantAttributeValue]:
        return (
            self.db.query(VariantAttributeValue)
            .join(Product, Product.id == VariantAttributeValue.variant_id)
            .filter(Product.parent_id == parent_id)
            .order_by(VariantAttributeValue.variant_id, VariantAttributeValue.axis_id)
            .all()
        )

    def get_value(self, variant_id: int, axis_id: int) -> Optional[VariantAttributeValue]:
        return (
            self.db.query(VariantAttributeValue)
            .filter(
                VariantAttributeValue.variant_id == variant_id,
                VariantAttributeValue.axis_id == axis_id,
            )
            .first()
        )

    def save_value(self, value: VariantAttributeValue) -> VariantAttributeValue:
        self.db.add(value)
        self.db.flush()
        return value

    def list_distinct_values_by_parent_and_axis(self, parent_id: int, axis_id: int) -> List[str]:
        # sorted so repeated matrix builds enumerate combinations in the same order
        rows = (
            self.db.query(VariantAttributeValue.value)
            .join(Product, Product.id == VariantAttributeValue.variant_id)
            .filter(
                Product.parent_id == parent_id,
                VariantAttributeValue.axis_id == axis_id,
            )
            .distinct()
            .order_by(VariantAttributeValue.value)
            .all()
        )
        return [r[0] for r in rows]

    def delete_values_by_variant(self, variant_id: int) -> int:
        result = self.db.execute(
            delete(VariantAttributeValue)
            .where(VariantAttributeValue.variant_id == variant_id)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount

    def count_values_by_axis(self, axis_id: int) -> int:
        return (
            self.db.query(func.count(VariantAttributeValue.id))
            .filter(VariantAttributeValue.axis_id == axis_id)
            .scalar()
            or 0
        )
