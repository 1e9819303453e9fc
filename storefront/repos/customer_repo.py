# storefront/repos/customer_repo.py
from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.data.models.customer import AddressModel, CustomerModel
from storefront.data.models.store_settings import StoreSettingsModel


class CustomerRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_customer(self, customer_id: int) -> CustomerModel | None:
        return self.db.get(CustomerModel, customer_id)

    def get_address(self, address_id: int, customer_id: int) -> AddressModel | None:
        stmt = select(AddressModel).where(
            AddressModel.id == address_id,
            AddressModel.customer_id == customer_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()


class SettingsRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_settings(self) -> StoreSettingsModel | None:
        return self.db.execute(
            select(StoreSettingsModel).order_by(StoreSettingsModel.id)
        ).scalars().first()
