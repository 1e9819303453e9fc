# storefront/data/models/cart_item.py
from sqlalchemy import Column, Integer, ForeignKey, Numeric, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("variants.id", ondelete="CASCADE"), nullable=False)

    quantity = Column(Integer, nullable=False)
    # snapshot ceny z momentu dodania / zmiany ilosci
    unit_price = Column(Numeric(10, 2), nullable=False)

    cart = relationship("CartModel", back_populates="items")
    variant = relationship("VariantModel")

    __table_args__ = (
        UniqueConstraint("cart_id", "variant_id", name="u_cart_variant"),
        CheckConstraint("quantity >= 1", name="ck_cart_item_quantity"),
    )
