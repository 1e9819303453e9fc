# storefront/domain/pricing.py
"""
Silnik cen: czyste funkcje, bez bazy danych.

Jedna regula zaokraglania dla calego systemu: ROUND_HALF_UP do 0.01.
Ustawienia sklepu (oplata za dostawe, prog darmowej dostawy) sa
przekazywane jawnie jako PricingSettings, nigdy czytane globalnie.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from storefront.domain.errors import PricingConfigError

HOME_DELIVERY = "HOME_DELIVERY"
STORE_PICKUP = "STORE_PICKUP"
DELIVERY_TYPES = (HOME_DELIVERY, STORE_PICKUP)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value) -> Decimal:
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def discounted_price(base_price, discount_percent) -> Decimal:
    """finalPrice = basePrice * (1 - discountPercent/100), rounded once."""
    base = Decimal(str(base_price))
    percent = Decimal(str(discount_percent or 0))
    if percent < 0 or percent > 100:
        raise ValueError(f"discount_percent out of range: {percent}")
    return money(base * (Decimal(100) - percent) / Decimal(100))


@dataclass(frozen=True)
class PricedLine:
    """
    Pozycja z ustalona cena jednostkowa.
    Ten sam obiekt przechodzi przez koszyk, podglad i zamowienie.
    """

    variant_id: int
    product_name: str
    variant_name: str
    product_sku: str
    quantity: int
    unit_price: Decimal

    @property
    def total_price(self) -> Decimal:
        return money(self.unit_price * self.quantity)

    def as_dict(self) -> dict:
        return {
            "variant_id": self.variant_id,
            "product_name": self.product_name,
            "variant_name": self.variant_name,
            "product_sku": self.product_sku,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "total_price": self.total_price,
        }


@dataclass(frozen=True)
class PricingSettings:
    delivery_fee: Decimal
    free_delivery_threshold: Decimal | None = None

    def __post_init__(self):
        if self.delivery_fee is None or Decimal(self.delivery_fee) < 0:
            raise PricingConfigError("delivery_fee", self.delivery_fee)
        if self.free_delivery_threshold is not None and Decimal(self.free_delivery_threshold) < 0:
            raise PricingConfigError("free_delivery_threshold", self.free_delivery_threshold)


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    delivery_fee: Decimal
    discount: Decimal
    total: Decimal

    def as_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "delivery_fee": self.delivery_fee,
            "discount": self.discount,
            "total": self.total,
        }


def subtotal_of(lines: Iterable[PricedLine]) -> Decimal:
    return sum((line.total_price for line in lines), ZERO)


def delivery_fee_for(subtotal: Decimal, delivery_type: str, settings: PricingSettings) -> Decimal:
    if delivery_type not in DELIVERY_TYPES:
        raise ValueError(f"Unknown delivery type: {delivery_type}")

    #odbior osobisty zawsze za darmo, niezaleznie od progu
    if delivery_type == STORE_PICKUP:
        return ZERO

    threshold = settings.free_delivery_threshold
    if threshold is not None and subtotal >= money(threshold):
        return ZERO
    return money(settings.delivery_fee)


def compute_totals(
    lines: Iterable[PricedLine],
    delivery_type: str,
    settings: PricingSettings,
) -> Totals:
    lines = list(lines)
    subtotal = subtotal_of(lines)
    delivery_fee = delivery_fee_for(subtotal, delivery_type, settings)
    # order-level promotions would go here, product discounts are already in unit_price
    discount = ZERO
    total = max(subtotal - discount + delivery_fee, ZERO)
    return Totals(
        subtotal=subtotal,
        delivery_fee=delivery_fee,
        discount=discount,
        total=total,
    )
