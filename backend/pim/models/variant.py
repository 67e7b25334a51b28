from datetime import datetime, timezone

from pim.db import Base
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship


def _now():
    return datetime.now(timezone.utc)


class VariantAxis(Base):
    """A dimension a configurable product varies along (Color, Size, Voltage...)."""

    __tablename__ = "variant_axes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(64), unique=True, index=True, nullable=False)
    name = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    attribute_id = Column(Integer, nullable=True)
    position = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    def __repr__(self):
        return f"<VariantAxis code={self.code}>"


class ProductVariantConfig(Base):
    __tablename__ = "product_variant_configs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(
        Integer,
        ForeignKey("products.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    auto_generate_sku = Column(Boolean, nullable=False, default=True)
    sku_pattern = Column(String(256), nullable=True)  # e.g. {parent_sku}-{color}-{size}
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    axes = relationship(
        "ProductVariantConfigAxis",
        order_by="ProductVariantConfigAxis.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def axis_ids(self):
        return [a.axis_id for a in self.axes]


class ProductVariantConfigAxis(Base):
    __tablename__ = "product_variant_config_axes"

    config_id = Column(
        Integer,
        ForeignKey("product_variant_configs.id", ondelete="CASCADE"),
        primary_key=True,
    )
    axis_id = Column(
        Integer, ForeignKey("variant_axes.id", ondelete="CASCADE"), primary_key=True
    )
    position = Column(Integer, nullable=False, default=0)


class VariantAttributeValue(Base):
    __tablename__ = "variant_attribute_values"
    __table_args__ = (
        UniqueConstraint("variant_id", "axis_id", name="uq_variant_axis_value"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    variant_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    axis_id = Column(Integer, ForeignKey("variant_axes.id"), nullable=False, index=True)
    value = Column(String(128), nullable=False)
    label = Column(String(256), nullable=True)
    color_code = Column(String(16), nullable=True)
    image_url = Column(String(512), nullable=True)
    position = Column(Integer, nullable=False, default=0)
