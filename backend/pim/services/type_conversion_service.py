from typing import Set

from sqlalchemy.orm import Session

from pim.models.product import Product, ProductType
from pim.repositories.composition_repo import (
    BundleComponentRepository,
    GroupedItemRepository,
)
from pim.repositories.product_repo import ProductRepository
from pim.schemas.composition_schema import ProductTypeInfo
from pim.services.composition_service import CompositionService
from pim.services.errors import InvalidOperation, product_not_found
from pim.services.shapes import Bundle, Configurable, Grouped, ShapeLoader
from pim.utils.logging import get_logger
from pim.utils.transactions import smart_transaction

logger = get_logger(__name__)


class TypeConversionService:
    def __init__(self, db: Session):
        self.db = db
        self.products = ProductRepository(db)
        self.bundles = BundleComponentRepository(db)
        self.groups = GroupedItemRepository(db)
        self.shapes = ShapeLoader(db)

    def convertible_types(self, product: Product) -> Set[ProductType]:
        if product.parent_id is not None:
            return set()
        if product.type == ProductType.CONFIGURABLE and self.products.count_variants(product.id) > 0:
            return set()
        return {t for t in ProductType if t != product.type}

    def _validate(self, product: Product, target_type: ProductType) -> None:
        if product.parent_id is not None:
            raise InvalidOperation(
                "Cannot convert variant products. Convert the parent product instead.",
                {"product_id": product.id, "parent_id": product.parent_id},
            )
        if product.type == target_type:
            raise InvalidOperation(
                f"Product is already of type {target_type.value}",
                {"product_id": product.id, "type": target_type.value},
            )
        if product.type == ProductType.CONFIGURABLE:
            count = self.products.count_variants(product.id)
            if count > 0:
                raise InvalidOperation(
                    f"Cannot convert CONFIGURABLE product with {count} variants. Remove variants first.",
                    {"product_id": product.id, "variants_count": count},
                )

    def convert(self, product_id: int, target_type: ProductType) -> Product:
        """
        Change a product's type.

        The previous type's data is cleaned up (bundle lines / grouped items
        deleted, variants detached) and the new type's defaults applied in the
        same transaction as the type change itself.
        """
        with smart_transaction(self.db):
            product = self.products.get_for_update(product_id)
            if not product:
                raise product_not_found(product_id)
            self._validate(product, target_type)

            previous = product.type
            shape = self.shapes.load(product)
            if isinstance(shape, Bundle):
                removed = self.bundles.delete_by_owner(product.id)
                logger.info("type.bundle_components_removed", product_id=product.id, count=removed)
            elif isinstance(shape, Grouped):
                removed = self.groups.delete_by_owner(product.id)
                logger.info("type.grouped_items_removed", product_id=product.id, count=removed)
            elif isinstance(shape, Configurable):
                # variant config is kept; variants become standalone simple products
                for variant in shape.variants:
                    variant.parent_id = None
                    variant.type = ProductType.SIMPLE
                logger.info("type.variants_detached", product_id=product.id, count=len(shape.variants))

            if target_type == ProductType.VIRTUAL:
                product.requires_shipping = False
                product.stock_quantity = 0
                product.is_in_stock = True
            elif target_type == ProductType.SIMPLE:
                product.requires_shipping = True

            product.type = target_type
            self.products.save(product)

        logger.info("type.converted", product_id=product_id, previous=previous.value, target=target_type.value)
        return product

    def type_info(self, product_id: int) -> ProductTypeInfo:
        product = self.products.get(product_id)
        if not product:
            raise product_not_found(product_id)

        composition = CompositionService(self.db)
        allowed = self.convertible_types(product)
        shape = self.shapes.load(product)
        info = ProductTypeInfo(
            product_id=product.id,
            product_sku=product.sku,
            product_name=product.name,
            type=product.type,
            can_convert_to=[t for t in ProductType if t in allowed],
        )
        if isinstance(shape, Bundle):
            info.bundle_components = [composition.component_out(line.row, line.product) for line in shape.components]
        elif isinstance(shape, Grouped):
            info.grouped_items = [composition.grouped_out(line.row, line.product) for line in shape.items]
        elif isinstance(shape, Configurable):
            info.variants_count = len(shape.variants)
        return info
