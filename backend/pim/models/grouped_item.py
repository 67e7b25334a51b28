from datetime import datetime, timezone

from pim.db import Base
from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    UniqueConstraint,
)


class GroupedProductItem(Base):
    __tablename__ = "grouped_product_items"
    __table_args__ = (
        UniqueConstraint("parent_id", "child_id", name="uq_grouped_item"),
        CheckConstraint("default_quantity > 0", name="ck_grouped_default_qty"),
        CheckConstraint("min_quantity >= 0", name="ck_grouped_min_qty"),
        CheckConstraint(
            "max_quantity IS NULL OR max_quantity >= min_quantity",
            name="ck_grouped_max_qty",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    parent_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    child_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    default_quantity = Column(Integer, nullable=False, default=1)
    min_quantity = Column(Integer, nullable=False, default=0)
    max_quantity = Column(Integer, nullable=True)  # None = unlimited
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
