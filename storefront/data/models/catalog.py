# storefront/data/models/catalog.py
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from storefront.data.database import Base

ATTRIBUTE_TYPES = ("TEXT", "COLOR_HEX", "NUMBER")

#atrybuty, po ktorych produkt moze miec warianty
product_attributes = Table(
    "product_attributes",
    Base.metadata,
    Column("product_id", Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    Column("attribute_id", Integer, ForeignKey("attributes.id"), primary_key=True),
)

variant_attribute_values = Table(
    "variant_attribute_values",
    Base.metadata,
    Column("variant_id", Integer, ForeignKey("variants.id", ondelete="CASCADE"), primary_key=True),
    Column("attribute_value_id", Integer, ForeignKey("attribute_values.id"), primary_key=True),
)


class AttributeModel(Base):
    __tablename__ = "attributes"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False, unique=True)
    display_name = Column(String(100), nullable=False)
    type = Column(String(20), nullable=False, default="TEXT")
    sort_order = Column(Integer, nullable=False, default=0)

    values = relationship(
        "AttributeValueModel",
        back_populates="attribute",
        cascade="all, delete-orphan",
        order_by="AttributeValueModel.sort_order",
    )


class AttributeValueModel(Base):
    __tablename__ = "attribute_values"

    id = Column(Integer, primary_key=True)
    attribute_id = Column(Integer, ForeignKey("attributes.id", ondelete="CASCADE"), nullable=False, index=True)
    value = Column(String(100), nullable=False)
    display_value = Column(String(100), nullable=True)
    color_hex = Column(String(7), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)

    attribute = relationship("AttributeModel", back_populates="values")

    @property
    def label(self) -> str:
        return self.display_value or self.value


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    sku = Column(String(64), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(200), nullable=False, unique=True)

    base_cost = Column(Numeric(10, 2), nullable=False, default=0)
    base_price = Column(Numeric(10, 2), nullable=False)
    discount_percent = Column(Numeric(5, 2), nullable=False, default=0)

    track_stock = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_featured = Column(Boolean, nullable=False, default=False)

    attributes = relationship("AttributeModel", secondary=product_attributes)
    variants = relationship(
        "VariantModel",
        back_populates="product",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("discount_percent >= 0 AND discount_percent <= 100", name="ck_product_discount"),
    )


class VariantModel(Base):
    __tablename__ = "variants"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    variant_sku = Column(String(64), nullable=True)

    # None = cena produktu po rabacie
    price = Column(Numeric(10, 2), nullable=True)
    stock = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    # posortowane id wartosci atrybutow, np. "3-7-12"
    value_key = Column(String(255), nullable=False)

    product = relationship("ProductModel", back_populates="variants")
    attribute_values = relationship("AttributeValueModel", secondary=variant_attribute_values)

    __table_args__ = (
        UniqueConstraint("product_id", "value_key", name="u_variant_values"),
        CheckConstraint("stock >= 0", name="ck_variant_stock"),
    )


def make_value_key(value_ids) -> str:
    return "-".join(str(v) for v in sorted(set(value_ids)))
