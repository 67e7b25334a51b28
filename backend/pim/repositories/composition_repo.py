from typing import List, Optional

from pim.models.bundle_component import BundleComponent
from pim.models.grouped_item import GroupedProductItem
from sqlalchemy import delete
from sqlalchemy.orm import Session


class BundleComponentRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, row_id: int) -> Optional[BundleComponent]:
        return self.db.get(BundleComponent, row_id)

    def list_by_bundle(self, bundle_id: int) -> List[BundleComponent]:
        return (
            self.db.query(BundleComponent)
            .filter(BundleComponent.bundle_id == bundle_id)
            .order_by(BundleComponent.position, BundleComponent.id)
            .all()
        )

    def exists_pair(self, bundle_id: int, component_id: int) -> bool:
        return self.db.query(
            self.db.query(BundleComponent.id)
            .filter(
                BundleComponent.bundle_id == bundle_id,
                BundleComponent.component_id == component_id,
            )
            .exists()
        ).scalar()

    def add(self, row: BundleComponent) -> BundleComponent:
        self.db.add(row)
        self.db.flush()
        return row

    def delete(self, row: BundleComponent) -> None:
        self.db.delete(row)
        self.db.flush()

    def delete_by_owner(self, bundle_id: int) -> int:
        result = self.db.execute(
            delete(BundleComponent)
            .where(BundleComponent.bundle_id == bundle_id)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount

    def find_owners_containing(self, component_id: int) -> List[int]:
        rows = (
            self.db.query(BundleComponent.bundle_id)
            .filter(BundleComponent.component_id == component_id)
            .distinct()
            .order_by(BundleComponent.bundle_id)
            .all()
        )
        return [r[0] for r in rows]


class GroupedItemRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, row_id: int) -> Optional[GroupedProductItem]:
        return self.db.get(GroupedProductItem, row_id)

    def list_by_parent(self, parent_id: int) -> List[GroupedProductItem]:
        return (
            self.db.query(GroupedProductItem)
            .filter(GroupedProductItem.parent_id == parent_id)
            .order_by(GroupedProductItem.position, GroupedProductItem.id)
            .all()
        )

    def exists_pair(self, parent_id: int, child_id: int) -> bool:
        return self.db.query(
            self.db.query(GroupedProductItem.id)
            .filter(
                GroupedProductItem.parent_id == parent_id,
                GroupedProductItem.child_id == child_id,
            )
            .exists()
        ).scalar()

    def add(self, row: GroupedProductItem) -> GroupedProductItem:
        self.db.add(row)
        self.db.flush()
        return row

    def delete(self, row: GroupedProductItem) -> None:
        self.db.delete(row)
        self.db.flush()

    def delete_by_owner(self, parent_id: int) -> int:
        result = self.db.execute(
            delete(GroupedProductItem)
            .where(GroupedProductItem.parent_id == parent_id)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount

    def find_owners_containing(self, child_id: int) -> List[int]:
        rows = (
            self.db.query(GroupedProductItem.parent_id)
            .filter(GroupedProductItem.child_id == child_id)
            .distinct()
            .order_by(GroupedProductItem.parent_id)
            .all()
        )
        return [r[0] for r in rows]
