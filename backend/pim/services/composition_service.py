from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from pim.models.bundle_component import BundleComponent
from pim.models.grouped_item import GroupedProductItem
from pim.models.product import Product, ProductType
from pim.repositories.composition_repo import (
    BundleComponentRepository,
    GroupedItemRepository,
)
from pim.repositories.product_repo import ProductRepository
from pim.schemas.composition_schema import (
    BundleComponentIn,
    BundleComponentOut,
    BundleComponentUpdate,
    DecrementedProduct,
    GroupedItemIn,
    GroupedItemOut,
    GroupedItemUpdate,
    ProductUsage,
    StockDecrementResult,
    StockValidationResult,
)
from pim.services.errors import (
    AlreadyExists,
    InvalidOperation,
    NotFound,
    StockLockTimeout,
    product_not_found,
)
from pim.services.shapes import (
    Bundle,
    Grouped,
    ProductShape,
    ShapeLoader,
    Virtual,
)
from pim.utils.locks import LockTimeout, product_stock_locks
from pim.utils.logging import get_logger
from pim.utils.transactions import smart_transaction

logger = get_logger(__name__)

_MISSING_SKU = "DELETED"
_MISSING_NAME = "Removed product"


class _StockChanged(Exception):
    """A conditional decrement matched no row: stock moved under us."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class CompositionService:
    """
    Bundle components, grouped items and stock for composite products.

    Stock rules by type:
      - VIRTUAL: unlimited, never decremented
      - BUNDLE: derived from components; selling n bundles takes
        component.quantity * n of every component
      - GROUPED: not tracked on the parent, each child is sold on its own
      - SIMPLE / variants / CONFIGURABLE: the product's own stock_quantity
    """

    def __init__(self, db: Session):
        self.db = db
        self.products = ProductRepository(db)
        self.bundles = BundleComponentRepository(db)
        self.groups = GroupedItemRepository(db)
        self.shapes = ShapeLoader(db)

    def _get_product(self, product_id: int) -> Product:
        product = self.products.get(product_id)
        if not product:
            raise product_not_found(product_id)
        return product

    # ==================== BUNDLE COMPONENTS ====================

    def component_out(self, row: BundleComponent, product: Optional[Product]) -> BundleComponentOut:
        return BundleComponentOut(
            id=row.id,
            component_id=row.component_id,
            component_sku=product.sku if product else _MISSING_SKU,
            component_name=product.name if product else _MISSING_NAME,
            quantity=row.quantity,
            position=row.position,
            special_price=row.special_price,
            component_price=product.price if product else None,
            component_stock=product.stock_quantity if product else 0,
        )

    def list_components(self, bundle_id: int) -> List[BundleComponentOut]:
        rows = self.bundles.list_by_bundle(bundle_id)
        found = self.products.get_many(r.component_id for r in rows)
        return [self.component_out(r, found.get(r.component_id)) for r in rows]

    def _add_component_row(self, bundle_id: int, dto: BundleComponentIn) -> BundleComponentOut:
        if dto.component_id == bundle_id:
            raise InvalidOperation(
                "Cannot add a bundle to itself", {"bundle_id": bundle_id, "component_id": dto.component_id}
            )
        bundle = self._get_product(bundle_id)
        if bundle.type != ProductType.BUNDLE:
            raise InvalidOperation(
                f"Product {bundle_id} is not a BUNDLE", {"bundle_id": bundle_id, "type": bundle.type.value}
            )
        component = self._get_product(dto.component_id)
        if component.type == ProductType.BUNDLE:
            raise InvalidOperation(
                "Cannot add another BUNDLE as a component",
                {"bundle_id": bundle_id, "component_id": component.id},
            )
        if component.parent_id is not None:
            raise InvalidOperation(
                "Cannot add variant products as bundle components",
                {"bundle_id": bundle_id, "component_id": component.id},
            )
        if self.bundles.exists_pair(bundle_id, component.id):
            raise AlreadyExists(
                f"Component {component.id} is already in bundle {bundle_id}",
                {"bundle_id": bundle_id, "component_id": component.id},
            )

        row = self.bundles.add(
            BundleComponent(
                bundle_id=bundle_id,
                component_id=component.id,
                quantity=max(1, dto.quantity),
                position=dto.position,
                special_price=dto.special_price,
            )
        )
        return self.component_out(row, component)

    def add_component(
        self,
        bundle_id: int,
        component_id: int,
        quantity: int = 1,
        position: int = 0,
        special_price: Optional[Decimal] = None,
    ) -> BundleComponentOut:
        dto = BundleComponentIn(
            component_id=component_id, quantity=quantity, position=position, special_price=special_price
        )
        with smart_transaction(self.db):
            out = self._add_component_row(bundle_id, dto)
        logger.info("bundle.component_added", bundle_id=bundle_id, component_id=component_id, quantity=out.quantity)
        return out

    def update_component(self, row_id: int, dto: BundleComponentUpdate) -> BundleComponentOut:
        with smart_transaction(self.db):
            row = self.bundles.get(row_id)
            if not row:
                raise NotFound(f"Bundle component {row_id} not found", {"bundle_component_id": row_id})
            if dto.quantity is not None:
                row.quantity = max(1, dto.quantity)
            if dto.position is not None:
                row.position = dto.position
            if "special_price" in dto.model_fields_set:
                row.special_price = dto.special_price
            self.db.flush()
            out = self.component_out(row, self.products.get(row.component_id))
        return out

    def remove_component(self, row_id: int) -> None:
        with smart_transaction(self.db):
            row = self.bundles.get(row_id)
            if not row:
                raise NotFound(f"Bundle component {row_id} not found", {"bundle_component_id": row_id})
            bundle_id = row.bundle_id
            self.bundles.delete(row)
        logger.info("bundle.component_removed", bundle_id=bundle_id, bundle_component_id=row_id)

    def set_components(self, bundle_id: int, components: List[BundleComponentIn]) -> List[BundleComponentOut]:
        """Replace every component of a bundle; nothing changes if any line is rejected."""
        with smart_transaction(self.db):
            bundle = self._get_product(bundle_id)
            if bundle.type != ProductType.BUNDLE:
                raise InvalidOperation(f"Product {bundle_id} is not a BUNDLE", {"bundle_id": bundle_id})
            self.bundles.delete_by_owner(bundle_id)
            result = [
                self._add_component_row(
                    bundle_id, dto.model_copy(update={"position": dto.position if dto.position > 0 else index})
                )
                for index, dto in enumerate(components)
            ]
        logger.info("bundle.components_replaced", bundle_id=bundle_id, count=len(result))
        return result

    # ==================== GROUPED ITEMS ====================

    def grouped_out(self, row: GroupedProductItem, product: Optional[Product]) -> GroupedItemOut:
        return GroupedItemOut(
            id=row.id,
            child_id=row.child_id,
            child_sku=product.sku if product else _MISSING_SKU,
            child_name=product.name if product else _MISSING_NAME,
            default_quantity=row.default_quantity,
            min_quantity=row.min_quantity,
            max_quantity=row.max_quantity,
            position=row.position,
            child_price=product.price if product else None,
            child_stock=product.stock_quantity if product else 0,
        )

    @staticmethod
    def _check_quantity_bounds(min_quantity: int, max_quantity: Optional[int], parent_id: int, child_id: int):
        if max_quantity is not None and max_quantity < min_quantity:
            raise InvalidOperation(
                f"max_quantity ({max_quantity}) must be >= min_quantity ({min_quantity})",
                {"parent_id": parent_id, "child_id": child_id, "max_quantity": max_quantity},
            )

    def list_grouped_items(self, parent_id: int) -> List[GroupedItemOut]:
        rows = self.groups.list_by_parent(parent_id)
        found = self.products.get_many(r.child_id for r in rows)
        return [self.grouped_out(r, found.get(r.child_id)) for r in rows]

    def _add_grouped_row(self, parent_id: int, dto: GroupedItemIn) -> GroupedItemOut:
        if dto.child_id == parent_id:
            raise InvalidOperation(
                "Cannot add a product to itself", {"parent_id": parent_id, "child_id": dto.child_id}
            )
        parent = self._get_product(parent_id)
        if parent.type != ProductType.GROUPED:
            raise InvalidOperation(
                f"Product {parent_id} is not a GROUPED product", {"parent_id": parent_id, "type": parent.type.value}
            )
        child = self._get_product(dto.child_id)
        if child.type == ProductType.GROUPED:
            raise InvalidOperation(
                "Cannot add another GROUPED product as a child", {"parent_id": parent_id, "child_id": child.id}
            )
        if child.parent_id is not None:
            raise InvalidOperation(
                "Cannot add variant products to grouped products", {"parent_id": parent_id, "child_id": child.id}
            )
        if self.groups.exists_pair(parent_id, child.id):
            raise AlreadyExists(
                f"Product {child.id} is already in grouped product {parent_id}",
                {"parent_id": parent_id, "child_id": child.id},
            )

        min_quantity = max(0, dto.min_quantity)
        self._check_quantity_bounds(min_quantity, dto.max_quantity, parent_id, child.id)
        row = self.groups.add(
            GroupedProductItem(
                parent_id=parent_id,
                child_id=child.id,
                default_quantity=max(1, dto.default_quantity),
                min_quantity=min_quantity,
                max_quantity=dto.max_quantity,
                position=dto.position,
            )
        )
        return self.grouped_out(row, child)

    def add_grouped_item(self, parent_id: int, dto: GroupedItemIn) -> GroupedItemOut:
        with smart_transaction(self.db):
            out = self._add_grouped_row(parent_id, dto)
        logger.info("grouped.item_added", parent_id=parent_id, child_id=dto.child_id)
        return out

    def update_grouped_item(self, row_id: int, dto: GroupedItemUpdate) -> GroupedItemOut:
        with smart_transaction(self.db):
            row = self.groups.get(row_id)
            if not row:
                raise NotFound(f"Grouped item {row_id} not found", {"grouped_item_id": row_id})
            if dto.default_quantity is not None:
                row.default_quantity = max(1, dto.default_quantity)
            if dto.min_quantity is not None:
                row.min_quantity = max(0, dto.min_quantity)
            if "max_quantity" in dto.model_fields_set:
                row.max_quantity = dto.max_quantity
            if dto.position is not None:
                row.position = dto.position
            self._check_quantity_bounds(row.min_quantity, row.max_quantity, row.parent_id, row.child_id)
            self.db.flush()
            out = self.grouped_out(row, self.products.get(row.child_id))
        return out

    def remove_grouped_item(self, row_id: int) -> None:
        with smart_transaction(self.db):
            row = self.groups.get(row_id)
            if not row:
                raise NotFound(f"Grouped item {row_id} not found", {"grouped_item_id": row_id})
            parent_id = row.parent_id
            self.groups.delete(row)
        logger.info("grouped.item_removed", parent_id=parent_id, grouped_item_id=row_id)

    def set_grouped_items(self, parent_id: int, items: List[GroupedItemIn]) -> List[GroupedItemOut]:
        with smart_transaction(self.db):
            parent = self._get_product(parent_id)
            if parent.type != ProductType.GROUPED:
                raise InvalidOperation(f"Product {parent_id} is not a GROUPED product", {"parent_id": parent_id})
            self.groups.delete_by_owner(parent_id)
            result = [
                self._add_grouped_row(
                    parent_id, dto.model_copy(update={"position": dto.position if dto.position > 0 else index})
                )
                for index, dto in enumerate(items)
            ]
        logger.info("grouped.items_replaced", parent_id=parent_id, count=len(result))
        return result

    # ==================== STOCK ====================

    @staticmethod
    def _check_requested(quantity: int):
        if quantity < 1:
            raise InvalidOperation("Quantity must be positive", {"quantity": quantity})

    def _validate_shape(self, shape: ProductShape, quantity: int) -> StockValidationResult:
        if isinstance(shape, Virtual):
            return StockValidationResult(
                valid=True,
                message="Virtual products have unlimited stock",
                unlimited=True,
                requested_quantity=quantity,
            )

        if isinstance(shape, Bundle):
            if not shape.components:
                return StockValidationResult(
                    valid=False,
                    message="Bundle has no components",
                    available_quantity=0,
                    requested_quantity=quantity,
                )
            insufficient = []
            max_bundles = None
            for line in shape.components:
                if line.product is None:
                    return StockValidationResult(
                        valid=False,
                        message=f"Component {line.row.component_id} not found",
                        available_quantity=0,
                        requested_quantity=quantity,
                    )
                required = line.row.quantity * quantity
                have = line.product.stock_quantity
                if have < required:
                    insufficient.append(f"{line.product.sku}: needs {required}, has {have}")
                possible = have // line.row.quantity
                max_bundles = possible if max_bundles is None else min(max_bundles, possible)
            return StockValidationResult(
                valid=not insufficient,
                message=f"Insufficient stock: {'; '.join(insufficient)}" if insufficient else None,
                available_quantity=max_bundles,
                requested_quantity=quantity,
            )

        if isinstance(shape, Grouped):
            return StockValidationResult(
                valid=True,
                message="Grouped products: check individual item stock",
                available_quantity=None,
                requested_quantity=quantity,
            )

        # SIMPLE, variants, and a CONFIGURABLE parent's own counter
        available = shape.product.stock_quantity
        if available >= quantity:
            return StockValidationResult(valid=True, available_quantity=available, requested_quantity=quantity)
        return StockValidationResult(
            valid=False,
            message=f"Insufficient stock: needs {quantity}, has {available}",
            available_quantity=available,
            requested_quantity=quantity,
        )

    def validate_stock(self, product_id: int, quantity: int) -> StockValidationResult:
        """Advisory check; decrement_stock re-validates under lock."""
        self._check_requested(quantity)
        shape = self.shapes.load(self._get_product(product_id))
        return self._validate_shape(shape, quantity)

    @staticmethod
    def _stock_targets(shape: ProductShape, quantity: int) -> List[Tuple[Product, int]]:
        if isinstance(shape, (Virtual, Grouped)):
            return []
        if isinstance(shape, Bundle):
            return [
                (line.product, line.row.quantity * quantity)
                for line in shape.components
                if line.product is not None
            ]
        return [(shape.product, quantity)]

    def decrement_stock(self, product_id: int, quantity: int) -> StockDecrementResult:
        """
        Take stock for `quantity` units of a product (bundles decrement their components).

        Every touched product is file-locked, row-locked and decremented with a
        conditional UPDATE; if any row comes up short the whole decrement is
        rolled back and reported as failed.
        """
        self._check_requested(quantity)
        with smart_transaction(self.db):
            shape = self.shapes.load(self._get_product(product_id))
            lock_ids = [p.id for p, _ in self._stock_targets(shape, quantity)]

        try:
            with product_stock_locks(lock_ids):
                return self._decrement_locked(product_id, quantity, lock_ids)
        except LockTimeout as e:
            raise StockLockTimeout(str(e), {"product_id": product_id})

    def _decrement_locked(self, product_id: int, quantity: int, lock_ids: List[int]) -> StockDecrementResult:
        try:
            with smart_transaction(self.db):
                # row-lock and reload every counter before re-validating
                for pid in sorted(lock_ids):
                    self.products.get_for_update(pid)
                shape = self.shapes.load(self._get_product(product_id))
                validation = self._validate_shape(shape, quantity)
                if not validation.valid:
                    return StockDecrementResult(success=False, message=validation.message)

                decrements = []
                for product, amount in self._stock_targets(shape, quantity):
                    if not self.products.decrement_if_available(product.id, amount):
                        self.db.refresh(product)
                        raise _StockChanged(
                            f"Insufficient stock: {product.sku}: needs {amount}, has {product.stock_quantity}"
                        )
                    self.db.refresh(product)
                    decrements.append(
                        DecrementedProduct(
                            product_id=product.id,
                            sku=product.sku,
                            previous_stock=product.stock_quantity + amount,
                            new_stock=product.stock_quantity,
                            decremented_amount=amount,
                        )
                    )
        except _StockChanged as e:
            logger.warning("stock.decrement_conflict", product_id=product_id, quantity=quantity, reason=e.message)
            return StockDecrementResult(success=False, message=e.message)

        logger.info(
            "stock.decremented",
            product_id=product_id,
            quantity=quantity,
            touched=[d.product_id for d in decrements],
        )
        return StockDecrementResult(success=True, message="Stock decremented successfully", decrements=decrements)

    # ==================== PRICE / USAGE ====================

    def bundle_price(self, bundle_id: int) -> Decimal:
        self._get_product(bundle_id)
        rows = self.bundles.list_by_bundle(bundle_id)
        found = self.products.get_many(r.component_id for r in rows)
        total = Decimal("0")
        for row in rows:
            product = found.get(row.component_id)
            price = row.special_price
            if price is None:
                price = product.price if product is not None and product.price is not None else Decimal("0")
            total += Decimal(price) * row.quantity
        return total

    def find_usages(self, product_id: int) -> ProductUsage:
        """Every bundle / grouped product that would be affected if this product went away."""
        self._get_product(product_id)
        return ProductUsage(
            bundles=self.bundles.find_owners_containing(product_id),
            groups=self.groups.find_owners_containing(product_id),
        )
