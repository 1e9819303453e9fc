# storefront/data/seed.py
from decimal import Decimal

from storefront.data.database import SessionLocal
from storefront.data.models import (
    AddressModel,
    AttributeModel,
    AttributeValueModel,
    CustomerModel,
    ProductModel,
    StoreSettingsModel,
)
from storefront.services.catalog_service import CatalogService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def seed(db):
    # not forcing: only seed if empty
    if db.query(StoreSettingsModel).first():
        return

    db.add(
        StoreSettingsModel(
            id=1,
            store_name="Storefront",
            store_address="Calle 10 #20-30",
            delivery_fee=Decimal("5.00"),
            free_delivery_threshold=Decimal("100.00"),
        )
    )

    size = AttributeModel(name="size", display_name="Talla", type="TEXT", sort_order=1)
    size.values = [
        AttributeValueModel(value="S", sort_order=1),
        AttributeValueModel(value="M", sort_order=2),
        AttributeValueModel(value="L", sort_order=3),
    ]
    color = AttributeModel(name="color", display_name="Color", type="COLOR_HEX", sort_order=2)
    color.values = [
        AttributeValueModel(value="black", display_value="Negro", color_hex="#000000", sort_order=1),
        AttributeValueModel(value="white", display_value="Blanco", color_hex="#FFFFFF", sort_order=2),
    ]

    shirt = ProductModel(
        sku="TSHIRT-001",
        name="Basic T-Shirt",
        slug="basic-t-shirt",
        base_cost=Decimal("12.00"),
        base_price=Decimal("40.00"),
        discount_percent=Decimal("0"),
        track_stock=True,
        attributes=[size, color],
    )
    customer = CustomerModel(name="Demo Customer", email="demo@example.com", phone="3000000000")
    customer.addresses = [
        AddressModel(street="Carrera 7 #45-10", city="Bogota", state="Cundinamarca", zip_code="110111", country="Colombia")
    ]
    db.add_all([size, color, shirt, customer])
    db.commit()

    catalog = CatalogService(db)
    for s in size.values:
        for c in color.values:
            catalog.create_variant(shirt.id, [s.id, c.id], stock=10)

    logger.info("Seed data created")


if __name__ == "__main__":
    from storefront.main import init_db

    init_db()
    session = SessionLocal()
    try:
        seed(session)
    finally:
        session.close()
