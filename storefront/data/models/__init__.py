#import wszystkich modeli zeby SQLAlchemy je zarejestrowal w base metadata

from storefront.data.models.catalog import (
    AttributeModel,
    AttributeValueModel,
    ProductModel,
    VariantModel,
)
from storefront.data.models.customer import CustomerModel, AddressModel
from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.order import OrderModel
from storefront.data.models.order_item import OrderItemModel
from storefront.data.models.store_settings import StoreSettingsModel

__all__ = [
    "AttributeModel",
    "AttributeValueModel",
    "ProductModel",
    "VariantModel",
    "CustomerModel",
    "AddressModel",
    "CartModel",
    "CartItemModel",
    "OrderModel",
    "OrderItemModel",
    "StoreSettingsModel",
]
