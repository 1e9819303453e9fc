# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import List, Literal
from decimal import Decimal
from datetime import datetime

DeliveryType = Literal["HOME_DELIVERY", "STORE_PICKUP"]
PaymentMethod = Literal["CASH_ON_DELIVERY", "STORE_PAYMENT"]
OrderStatus = Literal[
    "PENDING",
    "CONFIRMED",
    "PREPARING",
    "READY_FOR_PICKUP",
    "OUT_FOR_DELIVERY",
    "DELIVERED",
    "CANCELLED",
]


class ItemIn(BaseModel):
    """Dodanie do koszyka: po id wariantu albo po produkcie i wartosciach atrybutow."""

    variant_id: int | None = Field(None, gt=0)
    product_id: int | None = Field(None, gt=0)
    attribute_value_ids: List[int] | None = None
    quantity: int = Field(..., ge=1, description="Ilosc (co najmniej 1)")

    @model_validator(mode="after")
    def check_target(self):
        if self.variant_id is None and self.product_id is None:
            raise ValueError("variant_id or product_id is required")
        if self.variant_id is not None and self.product_id is not None:
            raise ValueError("Give either variant_id or product_id, not both")
        return self


class ItemUpdate(BaseModel):
    quantity: int = Field(..., ge=1, description="Ilosc (co najmniej 1), usuwanie przez DELETE")


class MergeCartIn(BaseModel):
    session_id: str = Field(..., min_length=1)
    customer_id: int = Field(..., gt=0)


class LineOut(BaseModel):
    variant_id: int
    product_name: str
    variant_name: str
    product_sku: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


class CartItemOut(LineOut):
    id: int


class CartOut(BaseModel):
    id: int
    customer_id: int | None = None
    session_id: str | None = None
    items: List[CartItemOut]
    subtotal: Decimal
    item_count: int
    expires_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class PreviewOut(BaseModel):
    delivery_type: DeliveryType
    items: List[LineOut]
    subtotal: Decimal
    delivery_fee: Decimal
    discount: Decimal
    total: Decimal


class CheckoutIn(BaseModel):
    """Schema dla checkoutu."""

    customer_id: int = Field(..., gt=0)
    address_id: int | None = Field(None, gt=0)
    delivery_type: DeliveryType
    payment_method: PaymentMethod
    customer_notes: str | None = Field(None, max_length=500)

    @model_validator(mode="after")
    def address_for_home_delivery(self):
        if self.delivery_type == "HOME_DELIVERY" and self.address_id is None:
            raise ValueError("Address is required for home delivery")
        return self


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    admin_notes: str | None = None
    expected_version: int | None = Field(None, ge=1)


class ShippingAddressOut(BaseModel):
    street: str
    city: str
    state: str
    zip_code: str
    country: str
    phone: str


class OrderItemOut(BaseModel):
    id: int
    variant_id: int | None = None
    product_name: str
    variant_name: str
    product_sku: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


class OrderOut(BaseModel):
    """Schema dla zamowienia (response)."""

    id: int
    order_number: str
    customer_id: int
    status: OrderStatus
    payment_status: Literal["PENDING", "PAID"]
    delivery_type: DeliveryType
    payment_method: PaymentMethod
    subtotal: Decimal
    delivery_fee: Decimal
    discount: Decimal
    total: Decimal
    shipping_address: ShippingAddressOut
    customer_notes: str | None = None
    admin_notes: str | None = None
    version: int
    created_at: datetime
    delivered_at: datetime | None = None
    items: List[OrderItemOut]

    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class OrderListOut(BaseModel):
    orders: List[OrderOut]
    pagination: Pagination


class VariantOut(BaseModel):
    id: int
    product_id: int
    variant_sku: str | None = None
    variant_name: str
    unit_price: Decimal
    stock: int
    in_stock: bool
