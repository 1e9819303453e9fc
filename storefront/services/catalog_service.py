# storefront/services/catalog_service.py
from decimal import Decimal
from typing import Iterable

from sqlalchemy.orm import Session

from storefront.data.models.catalog import (
    AttributeValueModel,
    ProductModel,
    VariantModel,
    make_value_key,
)
from storefront.domain.errors import (
    AttributeInUse,
    DuplicateVariant,
    InvalidAttributeSelection,
    NoMatchingVariant,
    NotFound,
)
from storefront.domain.pricing import PricedLine, discounted_price, money
from storefront.repos.catalog_repo import CatalogRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CatalogService:
    """
    Odczyt katalogu dla koszyka i zamowien:
    - rozwiazywanie wariantu po zestawie wartosci atrybutow
    - cena jednostkowa i dostepnosc
    - atomowe zdejmowanie / zwrot stanu (bez commita, commit robi wywolujacy)
    """

    def __init__(self, db: Session):
        self.repo = CatalogRepo(db)

    #query
    def get_variant(self, variant_id: int) -> VariantModel:
        variant = self.repo.get_variant(variant_id)
        if not variant:
            raise NotFound("Variant", variant_id)
        return variant

    def get_purchasable_variant(self, variant_id: int) -> VariantModel:
        variant = self.get_variant(variant_id)
        if not variant.is_active or not variant.product.is_active:
            raise NoMatchingVariant(f"Variant {variant_id} is not available for sale")
        return variant

    def resolve_variant(self, product_id: int, attribute_value_ids: Iterable[int]) -> VariantModel:
        product = self.repo.get_product(product_id)
        if not product:
            raise NotFound("Product", product_id)

        value_key = self._validated_value_key(product, attribute_value_ids)

        variant = self.repo.find_variant_by_key(product.id, value_key)
        if not variant or not variant.is_active or not product.is_active:
            raise NoMatchingVariant(
                f"No active variant of product {product_id} for values [{value_key}]"
            )
        return variant

    def unit_price(self, variant: VariantModel) -> Decimal:
        if variant.price is not None:
            return money(variant.price)
        product = variant.product
        return discounted_price(product.base_price, product.discount_percent)

    def is_available(self, variant: VariantModel, quantity: int) -> bool:
        if not variant.product.track_stock:
            return True
        return variant.stock >= quantity

    def available_stock(self, variant_id: int) -> int:
        return self.repo.current_stock(variant_id)

    def variant_name(self, variant: VariantModel) -> str:
        values = sorted(
            variant.attribute_values,
            key=lambda v: (v.attribute.sort_order, v.attribute.name, v.sort_order),
        )
        return " - ".join(v.label for v in values)

    def variant_sku(self, variant: VariantModel) -> str:
        return variant.variant_sku or variant.product.sku

    def priced_line(self, variant: VariantModel, quantity: int, unit_price: Decimal) -> PricedLine:
        return PricedLine(
            variant_id=variant.id,
            product_name=variant.product.name,
            variant_name=self.variant_name(variant),
            product_sku=self.variant_sku(variant),
            quantity=quantity,
            unit_price=money(unit_price),
        )

    def load_variants(self, variant_ids) -> dict[int, VariantModel]:
        return {v.id: v for v in self.repo.get_variants(variant_ids)}

    #commands - bez commita
    def decrement_stock(self, variant_id: int, quantity: int) -> bool:
        return self.repo.decrement_stock(variant_id, quantity)

    def restock(self, variant_id: int, quantity: int) -> None:
        variant = self.repo.get_variant(variant_id)
        if variant is None:
            # wariant usuniety po zlozeniu zamowienia, nie ma gdzie oddac
            logger.warning(f"Restock skipped, variant {variant_id} no longer exists")
            return
        #checkout nie zdejmowal stanu, wiec nie ma czego oddawac
        if not variant.product.track_stock:
            return
        self.repo.restock(variant_id, quantity)

    #admin - pilnuje unikalnosci zestawu wartosci przy zapisie
    def create_variant(
        self,
        product_id: int,
        attribute_value_ids: Iterable[int],
        price: Decimal | None = None,
        stock: int = 0,
        variant_sku: str | None = None,
    ) -> VariantModel:
        if stock < 0:
            raise ValueError("Stock cannot be negative")

        product = self.repo.get_product(product_id)
        if not product:
            raise NotFound("Product", product_id)

        value_ids = list(attribute_value_ids)
        value_key = self._validated_value_key(product, value_ids)

        if self.repo.find_variant_by_key(product.id, value_key):
            raise DuplicateVariant(
                f"Product {product_id} already has a variant for values [{value_key}]"
            )

        variant = VariantModel(
            product_id=product.id,
            variant_sku=variant_sku,
            price=money(price) if price is not None else None,
            stock=stock,
            is_active=True,
            value_key=value_key,
            attribute_values=self.repo.get_attribute_values(value_ids),
        )
        self.repo.add(variant)
        self.repo.commit()

        logger.info(f"Created variant {variant.id} of product {product_id} [{value_key}]")
        return variant

    def delete_attribute(self, attribute_id: int) -> None:
        attribute = self.repo.get_attribute(attribute_id)
        if not attribute:
            raise NotFound("Attribute", attribute_id)

        if self.repo.count_products_using_attribute(attribute_id):
            raise AttributeInUse(f"Attribute {attribute.name} is used by products")
        value_ids = [v.id for v in attribute.values]
        if value_ids and self.repo.count_variants_using_values(value_ids):
            raise AttributeInUse(f"Attribute {attribute.name} has values used by variants")

        self.repo.delete(attribute)
        self.repo.commit()
        logger.info(f"Deleted attribute {attribute_id}")

    def delete_attribute_value(self, value_id: int) -> None:
        value = self.repo.get_attribute_value(value_id)
        if not value:
            raise NotFound("AttributeValue", value_id)

        if self.repo.count_variants_using_values([value_id]):
            raise AttributeInUse(f"Attribute value {value.value} is used by variants")

        self.repo.delete(value)
        self.repo.commit()
        logger.info(f"Deleted attribute value {value_id}")

    def _validated_value_key(self, product: ProductModel, attribute_value_ids) -> str:
        value_ids = list(attribute_value_ids)
        if len(set(value_ids)) != len(value_ids):
            raise InvalidAttributeSelection("The same attribute value was given twice")

        values: list[AttributeValueModel] = self.repo.get_attribute_values(value_ids)
        if len(values) != len(value_ids):
            found = {v.id for v in values}
            missing = [v for v in value_ids if v not in found]
            raise InvalidAttributeSelection(f"Unknown attribute values: {missing}")

        variable = {a.id for a in product.attributes}
        selected: dict[int, int] = {}
        for value in values:
            if value.attribute_id not in variable:
                raise InvalidAttributeSelection(
                    f"Attribute {value.attribute_id} is not variable for product {product.id}"
                )
            if value.attribute_id in selected:
                raise InvalidAttributeSelection(
                    f"More than one value given for attribute {value.attribute_id}"
                )
            selected[value.attribute_id] = value.id

        missing_attrs = variable - selected.keys()
        if missing_attrs:
            raise InvalidAttributeSelection(
                f"No value selected for attributes {sorted(missing_attrs)}"
            )

        return make_value_key(value_ids)
