"""
Typed views of a product by type.

The `products.type` column is a plain enum; every service that needs the
type-specific data loads the product into one of the shapes below and
dispatches on the shape class. A BUNDLE therefore always comes with its
component lines, a CONFIGURABLE with its config and variants, and code that
handles a Simple never sees composite-only fields.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union

from pim.models.bundle_component import BundleComponent
from pim.models.grouped_item import GroupedProductItem
from pim.models.product import Product, ProductType
from pim.models.variant import ProductVariantConfig
from pim.repositories.composition_repo import (
    BundleComponentRepository,
    GroupedItemRepository,
)
from pim.repositories.product_repo import ProductRepository
from pim.repositories.variant_repo import VariantRepository
from sqlalchemy.orm import Session


@dataclass(frozen=True)
class ComponentLine:
    row: BundleComponent
    product: Optional[Product]  # None when the component row outlived its product


@dataclass(frozen=True)
class GroupedLine:
    row: GroupedProductItem
    product: Optional[Product]


@dataclass(frozen=True)
class Simple:
    product: Product  # includes variants (parent_id set)


@dataclass(frozen=True)
class Virtual:
    product: Product


@dataclass(frozen=True)
class Bundle:
    product: Product
    components: List[ComponentLine] = field(default_factory=list)


@dataclass(frozen=True)
class Grouped:
    product: Product
    items: List[GroupedLine] = field(default_factory=list)


@dataclass(frozen=True)
class Configurable:
    product: Product
    config: Optional[ProductVariantConfig]
    variants: List[Product] = field(default_factory=list)


ProductShape = Union[Simple, Virtual, Bundle, Grouped, Configurable]


class ShapeLoader:
    def __init__(self, db: Session):
        self.products = ProductRepository(db)
        self.bundles = BundleComponentRepository(db)
        self.groups = GroupedItemRepository(db)
        self.variants = VariantRepository(db)

    def load(self, product: Product) -> ProductShape:
        if product.type == ProductType.VIRTUAL:
            return Virtual(product)
        if product.type == ProductType.BUNDLE:
            rows = self.bundles.list_by_bundle(product.id)
            found = self.products.get_many(r.component_id for r in rows)
            return Bundle(product, [ComponentLine(r, found.get(r.component_id)) for r in rows])
        if product.type == ProductType.GROUPED:
            rows = self.groups.list_by_parent(product.id)
            found = self.products.get_many(r.child_id for r in rows)
            return Grouped(product, [GroupedLine(r, found.get(r.child_id)) for r in rows])
        if product.type == ProductType.CONFIGURABLE:
            return Configurable(
                product,
                self.variants.get_config(product.id),
                self.products.list_variants(product.id),
            )
        return Simple(product)
