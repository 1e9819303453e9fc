# storefront/data/models/order_item.py
from sqlalchemy import Column, Integer, ForeignKey, String, Numeric
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    # tylko do zwrotu na magazyn, reszta to snapshot
    variant_id = Column(Integer, ForeignKey("variants.id", ondelete="SET NULL"), nullable=True)

    product_name = Column(String(200), nullable=False)
    variant_name = Column(String(200), nullable=False)
    product_sku = Column(String(64), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)

    order = relationship("OrderModel", back_populates="items")
