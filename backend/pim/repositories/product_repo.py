from typing import Dict, Iterable, List, Optional, Tuple

from pim.models.product import Product, ProductCategory, ProductType
from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session


class ProductRepository:
    """Catalog store: products keyed by id, SKU unique."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, product_id: int) -> Optional[Product]:
        return self.db.get(Product, product_id)

    def get_for_update(self, product_id: int) -> Optional[Product]:
        # FOR UPDATE is dropped by dialects without row locks (sqlite)
        return (
            self.db.query(Product)
            .filter(Product.id == product_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def get_many(self, ids: Iterable[int]) -> Dict[int, Product]:
        ids = list(set(ids))
        if not ids:
            return {}
        rows = self.db.query(Product).filter(Product.id.in_(ids)).all()
        return {p.id: p for p in rows}

    def get_by_sku(self, sku: str) -> Optional[Product]:
        return self.db.query(Product).filter(Product.sku == sku).first()

    def exists_by_sku(self, sku: str) -> bool:
        return self.db.query(
            self.db.query(Product.id).filter(Product.sku == sku).exists()
        ).scalar()

    def list(
        self,
        q: Optional[str] = None,
        product_type: Optional[ProductType] = None,
        page: int = 1,
        size: int = 20,
    ) -> Tuple[List[Product], int]:
        query = self.db.query(Product)
        if q:
            like = f"%{q}%"
            query = query.filter((Product.name.ilike(like)) | (Product.sku.ilike(like)))
        if product_type is not None:
            query = query.filter(Product.type == product_type)
        total = query.with_entities(func.count()).scalar() or 0
        items = query.order_by(Product.name).offset((page - 1) * size).limit(size).all()
        return items, total

    def save(self, product: Product) -> Product:
        self.db.add(product)
        self.db.flush()
        return product

    def delete(self, product: Product) -> None:
        # composition rows, variants and axis values go with it (ON DELETE CASCADE)
        self.db.delete(product)
        self.db.flush()

    # --- variants -------------------------------------------------------

    def list_variants(self, parent_id: int) -> List[Product]:
        return (
            self.db.query(Product)
            .filter(Product.parent_id == parent_id)
            .order_by(Product.id)
            .all()
        )

    def count_variants(self, parent_id: int) -> int:
        return (
            self.db.query(func.count(Product.id))
            .filter(Product.parent_id == parent_id)
            .scalar()
            or 0
        )

    # --- categories -----------------------------------------------------

    def category_ids(self, product_id: int) -> List[int]:
        rows = self.db.execute(
            select(ProductCategory.category_id)
            .where(ProductCategory.product_id == product_id)
            .order_by(ProductCategory.category_id)
        )
        return [r[0] for r in rows]

    def set_category_ids(self, product_id: int, category_ids: Iterable[int]) -> None:
        self.db.execute(delete(ProductCategory).where(ProductCategory.product_id == product_id))
        for cid in sorted(set(category_ids)):
            self.db.add(ProductCategory(product_id=product_id, category_id=cid))
        self.db.flush()

    # --- stock ----------------------------------------------------------

    def decrement_if_available(self, product_id: int, qty: int) -> bool:
        """
        Atomically take `qty` units from a product.

        stock = stock - qty only WHERE stock >= qty, so concurrent writers can
        never drive the counter negative. Returns False when the row no longer
        has enough stock.
        """
        result = self.db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock_quantity >= qty)
            .values(
                stock_quantity=Product.stock_quantity - qty,
                is_in_stock=(Product.stock_quantity - qty) > 0,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
