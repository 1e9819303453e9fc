# storefront/data/models/store_settings.py
from sqlalchemy import Column, Integer, String, Numeric

from storefront.data.database import Base


class StoreSettingsModel(Base):
    __tablename__ = "store_settings"

    id = Column(Integer, primary_key=True, default=1)
    store_name = Column(String, nullable=False, default="Storefront")
    store_address = Column(String, nullable=True)

    delivery_fee = Column(Numeric(10, 2), nullable=False, default=0)
    free_delivery_threshold = Column(Numeric(10, 2), nullable=True)
