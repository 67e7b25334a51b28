from decimal import Decimal
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from pim.models.product import Product, ProductType
from pim.models.variant import ProductVariantConfig, VariantAttributeValue, VariantAxis
from pim.repositories.product_repo import ProductRepository
from pim.repositories.variant_repo import VariantRepository
from pim.schemas.variant_schema import (
    AxisValueOut,
    MatrixEntry,
    VariantAxisIn,
    VariantAxisOut,
    VariantAxisUpdate,
    VariantConfigOut,
    VariantOut,
)
from pim.services.errors import (
    AlreadyExists,
    CatalogException,
    InvalidOperation,
    NotFound,
    product_not_found,
)
from pim.services.shapes import Configurable, ShapeLoader
from pim.services.type_conversion_service import TypeConversionService
from pim.utils.logging import get_logger
from pim.utils.transactions import smart_transaction

logger = get_logger(__name__)

SKU_TOKEN_LENGTH = 10


def sku_token(value: str) -> str:
    """Axis value as it appears inside a generated SKU."""
    return value.upper().replace(" ", "_")[:SKU_TOKEN_LENGTH]


def iter_combinations(domains: Sequence[Tuple[str, Sequence[str]]]) -> Iterator[Dict[str, str]]:
    """
    Yield every combination of axis values, one dict per combination.

    `domains` is an ordered list of (axis_code, values). The first axis varies
    slowest, so the output order only depends on the input order. Nothing is
    materialized beyond the current path.
    """
    if not domains:
        return

    current: Dict[str, str] = {}

    def walk(index: int) -> Iterator[Dict[str, str]]:
        if index == len(domains):
            yield dict(current)
            return
        code, values = domains[index]
        for value in values:
            current[code] = value
            yield from walk(index + 1)
        current.pop(code, None)

    yield from walk(0)


class VariantService:
    def __init__(self, db: Session):
        self.db = db
        self.products = ProductRepository(db)
        self.variants = VariantRepository(db)

    # ==================== AXES ====================

    def list_axes(self, active_only: bool = False) -> List[VariantAxis]:
        return self.variants.list_axes(active_only=active_only)

    def get_axis(self, axis_id: int) -> VariantAxis:
        axis = self.variants.get_axis(axis_id)
        if not axis:
            raise NotFound(f"Variant axis {axis_id} not found", {"axis_id": axis_id})
        return axis

    @staticmethod
    def _check_code(code: str) -> None:
        # codes are SKU pattern placeholders
        if not code or not code.strip():
            raise InvalidOperation("Axis code must not be blank", {"axis_code": code})

    def create_axis(self, dto: VariantAxisIn) -> VariantAxis:
        self._check_code(dto.code)
        with smart_transaction(self.db):
            if self.variants.exists_axis_code(dto.code):
                raise AlreadyExists(f"Axis with code '{dto.code}' already exists", {"axis_code": dto.code})
            axis = self.variants.save_axis(VariantAxis(**dto.model_dump()))
            axis_id = axis.id
        logger.info("variant.axis_created", axis_id=axis_id, code=dto.code)
        return axis

    def update_axis(self, axis_id: int, dto: VariantAxisUpdate) -> VariantAxis:
        with smart_transaction(self.db):
            axis = self.get_axis(axis_id)
            changes = dto.model_dump(exclude_unset=True)
            new_code = changes.get("code")
            if new_code is not None:
                self._check_code(new_code)
                if new_code != axis.code and self.variants.exists_axis_code(new_code):
                    raise AlreadyExists(f"Axis with code '{new_code}' already exists", {"axis_code": new_code})
            for key, value in changes.items():
                if key in ("code", "name", "position", "is_active") and value is None:
                    continue
                setattr(axis, key, value)
            self.variants.save_axis(axis)
        return axis

    def delete_axis(self, axis_id: int) -> None:
        with smart_transaction(self.db):
            axis = self.get_axis(axis_id)
            in_use = self.variants.count_values_by_axis(axis_id)
            if in_use:
                raise InvalidOperation(
                    f"Axis '{axis.code}' is used by {in_use} variants and cannot be deleted",
                    {"axis_id": axis_id, "axis_code": axis.code, "variants": in_use},
                )
            self.variants.delete_axis(axis)
        logger.info("variant.axis_deleted", axis_id=axis_id)

    def axis_out(self, axis: VariantAxis) -> VariantAxisOut:
        return VariantAxisOut.model_validate(axis)

    # ==================== CONFIG ====================

    def _ordered_axes(self, config: ProductVariantConfig) -> List[VariantAxis]:
        found = self.variants.get_axes(config.axis_ids)
        return [found[aid] for aid in config.axis_ids if aid in found]

    def get_config(self, product_id: int) -> VariantConfigOut:
        product = self.products.get(product_id)
        if not product:
            raise product_not_found(product_id)
        shape = ShapeLoader(self.db).load(product)
        if not isinstance(shape, Configurable):
            raise NotFound(
                f"Product {product_id} is not configurable", {"product_id": product_id, "type": product.type.value}
            )
        config = shape.config
        axes = self._ordered_axes(config) if config else []
        return VariantConfigOut(
            product_id=product_id,
            axes=[self.axis_out(a) for a in axes],
            auto_generate_sku=config.auto_generate_sku if config else True,
            sku_pattern=config.sku_pattern if config else None,
            variants=[self.variant_out(v) for v in shape.variants],
        )

    def configure_variants(
        self, product_id: int, axis_ids: List[int], sku_pattern: Optional[str] = None
    ) -> ProductVariantConfig:
        """Make a product CONFIGURABLE along the given axes (unknown axis ids are dropped)."""
        with smart_transaction(self.db):
            product = self.products.get(product_id)
            if not product:
                raise product_not_found(product_id)
            if product.parent_id is not None:
                raise InvalidOperation(
                    "Variants cannot have variants of their own",
                    {"product_id": product_id, "parent_id": product.parent_id},
                )

            found = self.variants.get_axes(axis_ids)
            valid_ids = []
            for aid in axis_ids:
                if aid in found and aid not in valid_ids:
                    valid_ids.append(aid)
            if not valid_ids:
                raise InvalidOperation(
                    "At least one valid variant axis is required", {"product_id": product_id, "axis_ids": axis_ids}
                )

            if product.type != ProductType.CONFIGURABLE:
                TypeConversionService(self.db).convert(product_id, ProductType.CONFIGURABLE)

            config = self.variants.upsert_config(product_id, valid_ids, sku_pattern)

        logger.info("variant.configured", product_id=product_id, axis_ids=valid_ids, sku_pattern=sku_pattern)
        return config

    # ==================== NAMING ====================

    @staticmethod
    def generate_sku(
        parent: Product, config: ProductVariantConfig, axes: List[VariantAxis], axis_values: Dict[int, str]
    ) -> str:
        if config.sku_pattern:
            sku = config.sku_pattern.replace("{parent_sku}", parent.sku)
            for axis in axes:
                sku = sku.replace("{" + axis.code + "}", sku_token(axis_values[axis.id]))
            return sku
        tokens = [sku_token(axis_values[axis.id]) for axis in axes]
        return "-".join([parent.sku] + tokens)

    @staticmethod
    def build_name(parent: Product, axes: List[VariantAxis], axis_values: Dict[int, str]) -> str:
        labels = ", ".join(f"{axis.name}: {axis_values[axis.id]}" for axis in axes)
        return f"{parent.name} - {labels}"

    # ==================== VARIANTS ====================

    def _get_variant(self, variant_id: int) -> Product:
        variant = self.products.get(variant_id)
        if not variant:
            raise NotFound(f"Variant {variant_id} not found", {"variant_id": variant_id})
        if variant.parent_id is None:
            raise InvalidOperation(f"Product {variant_id} is not a variant", {"product_id": variant_id})
        return variant

    def _create_variant(
        self,
        parent_id: int,
        axis_values: Dict[int, str],
        sku: Optional[str] = None,
        name: Optional[str] = None,
        price: Optional[Decimal] = None,
        stock_quantity: Optional[int] = None,
    ) -> Product:
        parent = self.products.get(parent_id)
        if not parent:
            raise product_not_found(parent_id)
        if parent.type != ProductType.CONFIGURABLE:
            raise InvalidOperation(
                f"Product {parent_id} is not CONFIGURABLE", {"product_id": parent_id, "type": parent.type.value}
            )
        config = self.variants.get_config(parent_id)
        if config is None:
            raise NotFound(f"Product {parent_id} has no variant configuration", {"product_id": parent_id})

        axes = self._ordered_axes(config)
        for axis in axes:
            value = axis_values.get(axis.id)
            if value is None or not str(value).strip():
                raise InvalidOperation(
                    f"Value for axis '{axis.name}' is required",
                    {"axis_id": axis.id, "axis_code": axis.code, "axis_name": axis.name},
                )

        sku = sku or self.generate_sku(parent, config, axes, axis_values)
        if self.products.exists_by_sku(sku):
            raise AlreadyExists(f"SKU '{sku}' already exists", {"sku": sku})

        stock = stock_quantity if stock_quantity is not None else 0
        if stock < 0:
            raise InvalidOperation("Stock quantity cannot be negative", {"stock_quantity": stock})

        variant = self.products.save(
            Product(
                sku=sku,
                name=name or self.build_name(parent, axes, axis_values),
                description=parent.description,
                type=ProductType.SIMPLE,
                price=price if price is not None else parent.price,
                stock_quantity=stock,
                is_in_stock=stock > 0,
                requires_shipping=parent.requires_shipping,
                parent_id=parent.id,
                weight=parent.weight,
                brand=parent.brand,
                manufacturer=parent.manufacturer,
            )
        )
        self.products.set_category_ids(variant.id, self.products.category_ids(parent.id))

        for position, axis in enumerate(axes):
            value = axis_values[axis.id]
            self.variants.save_value(
                VariantAttributeValue(
                    variant_id=variant.id,
                    axis_id=axis.id,
                    value=value,
                    label=f"{axis.name}: {value}",
                    position=position,
                )
            )
        return variant

    def create_variant(
        self,
        parent_id: int,
        axis_values: Dict[int, str],
        sku: Optional[str] = None,
        name: Optional[str] = None,
        price: Optional[Decimal] = None,
        stock_quantity: Optional[int] = None,
    ) -> Product:
        with smart_transaction(self.db):
            variant = self._create_variant(parent_id, axis_values, sku, name, price, stock_quantity)
            variant_id, variant_sku = variant.id, variant.sku
        logger.info("variant.created", parent_id=parent_id, variant_id=variant_id, sku=variant_sku)
        return variant

    def update_variant(
        self,
        variant_id: int,
        name: Optional[str] = None,
        axis_values: Optional[Dict[int, str]] = None,
        price: Optional[Decimal] = None,
        stock_quantity: Optional[int] = None,
    ) -> Product:
        with smart_transaction(self.db):
            variant = self._get_variant(variant_id)
            if name is not None:
                variant.name = name
            if price is not None:
                variant.price = price
            if stock_quantity is not None:
                if stock_quantity < 0:
                    raise InvalidOperation("Stock quantity cannot be negative", {"stock_quantity": stock_quantity})
                variant.stock_quantity = stock_quantity
                variant.is_in_stock = stock_quantity > 0

            for axis_id, value in (axis_values or {}).items():
                axis = self.get_axis(axis_id)
                existing = self.variants.get_value(variant_id, axis_id)
                if existing is not None:
                    existing.value = value
                    existing.label = f"{axis.name}: {value}"
                else:
                    self.variants.save_value(
                        VariantAttributeValue(
                            variant_id=variant_id, axis_id=axis_id, value=value, label=f"{axis.name}: {value}"
                        )
                    )
            self.products.save(variant)
        return variant

    def delete_variant(self, variant_id: int) -> None:
        with smart_transaction(self.db):
            variant = self._get_variant(variant_id)
            parent_id = variant.parent_id
            self.variants.delete_values_by_variant(variant_id)
            self.products.delete(variant)
        logger.info("variant.deleted", parent_id=parent_id, variant_id=variant_id)

    def list_variants(self, parent_id: int) -> List[Product]:
        if not self.products.get(parent_id):
            raise product_not_found(parent_id)
        return self.products.list_variants(parent_id)

    def variant_out(self, variant: Product) -> VariantOut:
        values = self.variants.list_values_by_variant(variant.id)
        axes = self.variants.get_axes(v.axis_id for v in values)
        return VariantOut(
            id=variant.id,
            parent_id=variant.parent_id,
            sku=variant.sku,
            name=variant.name,
            price=variant.price,
            stock_quantity=variant.stock_quantity,
            is_in_stock=variant.is_in_stock,
            axis_values=[
                AxisValueOut(
                    axis_id=v.axis_id,
                    axis_code=axes[v.axis_id].code if v.axis_id in axes else "",
                    axis_name=axes[v.axis_id].name if v.axis_id in axes else "",
                    value=v.value,
                    label=v.label,
                    color_code=v.color_code,
                    image_url=v.image_url,
                )
                for v in values
            ],
        )

    # ==================== MATRIX ====================

    def _variant_signatures(self, parent_id: int) -> Dict[frozenset, Product]:
        """Existing variants keyed by their full {axis_code: value} set."""
        values = self.variants.list_values_by_parent(parent_id)
        axes = self.variants.get_axes(v.axis_id for v in values)
        by_variant: Dict[int, Dict[str, str]] = {}
        for v in values:
            code = axes[v.axis_id].code if v.axis_id in axes else ""
            by_variant.setdefault(v.variant_id, {})[code] = v.value

        variants = {p.id: p for p in self.products.list_variants(parent_id)}
        signatures = {}
        for variant_id, combination in by_variant.items():
            if variant_id in variants:
                signatures.setdefault(frozenset(combination.items()), variants[variant_id])
        return signatures

    def matrix(self, parent_id: int) -> List[MatrixEntry]:
        """
        Every combination of the axis values already used by this product's
        variants, flagged with whether a variant with exactly that combination
        exists. Values come from existing variants only; the matrix has
        prod(len(values per axis)) entries.
        """
        if not self.products.get(parent_id):
            raise product_not_found(parent_id)
        config = self.variants.get_config(parent_id)
        if config is None:
            return []
        axes = self._ordered_axes(config)
        if not axes:
            return []

        domains = [
            (axis.code, self.variants.list_distinct_values_by_parent_and_axis(parent_id, axis.id))
            for axis in axes
        ]
        existing = self._variant_signatures(parent_id)

        entries = []
        for combination in iter_combinations(domains):
            variant = existing.get(frozenset(combination.items()))
            entries.append(
                MatrixEntry(
                    combination=combination,
                    exists=variant is not None,
                    variant_id=variant.id if variant is not None else None,
                    sku=variant.sku if variant is not None else None,
                )
            )
        return entries

    def bulk_create(self, parent_id: int, combinations: List[Dict[int, str]]) -> List[Product]:
        """Create one variant per combination; combinations that fail are skipped."""
        created = []
        with smart_transaction(self.db):
            for axis_values in combinations:
                try:
                    with self.db.begin_nested():
                        created.append(self._create_variant(parent_id, axis_values))
                except CatalogException as e:
                    logger.debug("variant.bulk_skip", parent_id=parent_id, reason=e.message)
            created_ids = [v.id for v in created]
        logger.info("variant.bulk_created", parent_id=parent_id, requested=len(combinations), created=created_ids)
        return created
