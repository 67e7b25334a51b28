import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from pim.db import Base


class ProductType(str, enum.Enum):
    SIMPLE = "SIMPLE"
    VIRTUAL = "VIRTUAL"
    BUNDLE = "BUNDLE"
    GROUPED = "GROUPED"
    CONFIGURABLE = "CONFIGURABLE"


def _now():
    return datetime.now(timezone.utc)


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(64), unique=True, index=True, nullable=False)
    name = Column(String(256), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(
        Enum(ProductType, name="product_type"),
        nullable=False,
        default=ProductType.SIMPLE,
    )
    price = Column(Numeric(19, 4), nullable=True)
    stock_quantity = Column(Integer, default=0, nullable=False)
    is_in_stock = Column(Boolean, default=False, nullable=False)
    requires_shipping = Column(Boolean, default=True, nullable=False)
    # set only on variants; the configurable parent owns them
    parent_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=True, index=True
    )
    weight = Column(Numeric(10, 3), nullable=True)
    brand = Column(String(128), nullable=True)
    manufacturer = Column(String(128), nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    def __repr__(self):
        return f"<Product sku={self.sku} type={self.type}>"


class ProductCategory(Base):
    """Category ids attached to a product; categories themselves live elsewhere."""

    __tablename__ = "product_categories"

    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True
    )
    category_id = Column(Integer, primary_key=True)
