from datetime import datetime, timezone

from pim.db import Base
from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    UniqueConstraint,
)


class BundleComponent(Base):
    """One component line of a BUNDLE: selling one bundle consumes `quantity` of the component."""

    __tablename__ = "bundle_components"
    __table_args__ = (
        UniqueConstraint("bundle_id", "component_id", name="uq_bundle_component"),
        CheckConstraint("quantity > 0", name="ck_bundle_component_quantity"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    bundle_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    component_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    quantity = Column(Integer, nullable=False, default=1)
    position = Column(Integer, nullable=False, default=0)
    special_price = Column(Numeric(19, 4), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<BundleComponent bundle={self.bundle_id} component={self.component_id} qty={self.quantity}>"
