# storefront/repos/catalog_repo.py
from sqlalchemy import select, update, func
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.util import identity_key

from storefront.data.models.catalog import (
    AttributeModel,
    AttributeValueModel,
    ProductModel,
    VariantModel,
    product_attributes,
    variant_attribute_values,
)


class CatalogRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def get_variant(self, variant_id: int) -> VariantModel | None:
        return self.db.get(VariantModel, variant_id)

    def get_variants(self, variant_ids) -> list[VariantModel]:
        stmt = (
            select(VariantModel)
            .where(VariantModel.id.in_(list(variant_ids)))
            .options(
                selectinload(VariantModel.product),
                selectinload(VariantModel.attribute_values).selectinload(AttributeValueModel.attribute),
            )
            .order_by(VariantModel.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_variant_by_key(self, product_id: int, value_key: str) -> VariantModel | None:
        stmt = select(VariantModel).where(
            VariantModel.product_id == product_id,
            VariantModel.value_key == value_key,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_attribute_values(self, value_ids) -> list[AttributeValueModel]:
        stmt = select(AttributeValueModel).where(AttributeValueModel.id.in_(list(value_ids)))
        return list(self.db.execute(stmt).scalars().all())

    def get_attribute(self, attribute_id: int) -> AttributeModel | None:
        return self.db.get(AttributeModel, attribute_id)

    def get_attribute_value(self, value_id: int) -> AttributeValueModel | None:
        return self.db.get(AttributeValueModel, value_id)

    def current_stock(self, variant_id: int) -> int:
        # swiezy odczyt z bazy, z pominieciem identity map
        stmt = select(VariantModel.stock).where(VariantModel.id == variant_id)
        return self.db.execute(stmt).scalar_one_or_none() or 0

    def decrement_stock(self, variant_id: int, quantity: int) -> bool:
        # UPDATE variants SET stock = stock - :q WHERE id = :id AND stock >= :q
        result = self.db.execute(
            update(VariantModel)
            .where(VariantModel.id == variant_id, VariantModel.stock >= quantity)
            .values(stock=VariantModel.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        self._expire_stock(variant_id)
        return result.rowcount == 1

    def restock(self, variant_id: int, quantity: int) -> bool:
        result = self.db.execute(
            update(VariantModel)
            .where(VariantModel.id == variant_id)
            .values(stock=VariantModel.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        self._expire_stock(variant_id)
        return result.rowcount == 1

    def _expire_stock(self, variant_id: int):
        variant = self.db.identity_map.get(identity_key(VariantModel, variant_id))
        if variant is not None:
            self.db.expire(variant, ["stock"])

    def count_products_using_attribute(self, attribute_id: int) -> int:
        stmt = select(func.count()).select_from(product_attributes).where(
            product_attributes.c.attribute_id == attribute_id
        )
        return self.db.execute(stmt).scalar_one()

    def count_variants_using_values(self, value_ids) -> int:
        stmt = select(func.count()).select_from(variant_attribute_values).where(
            variant_attribute_values.c.attribute_value_id.in_(list(value_ids))
        )
        return self.db.execute(stmt).scalar_one()

    def add(self, obj):
        self.db.add(obj)
        self.db.flush()
        return obj

    def delete(self, obj):
        self.db.delete(obj)
        self.db.flush()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
