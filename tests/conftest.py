"""
Shared pytest fixtures.

Every test gets a fresh in-memory SQLite database with a small seeded catalog,
an in-process stand-in for the Redis checkout lock and a mocked notifier.
"""

import os
import uuid
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

# Ensure test environment before any storefront import reads settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.data.database import Base
from storefront.data.models import (
    AddressModel,
    AttributeModel,
    AttributeValueModel,
    CustomerModel,
    ProductModel,
    StoreSettingsModel,
)
from storefront.services.cart_service import CartOwner, CartService
from storefront.services.catalog_service import CatalogService
from storefront.services.order_service import OrderService


class FakeLockService:
    """Same contract as LockService, kept in a dict."""

    def __init__(self):
        self.locks = {}

    def new_token(self) -> str:
        return uuid.uuid4().hex

    def acquire_checkout_lock(self, cart_id, token, ttl=30) -> bool:
        if cart_id in self.locks:
            return False
        self.locks[cart_id] = token
        return True

    def release_checkout_lock(self, cart_id, token) -> bool:
        if self.locks.get(cart_id) == token:
            del self.locks[cart_id]
            return True
        return False


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def file_sessions(tmp_path):
    """Sesje na pliku SQLite - kazdy watek ma wlasne polaczenie i transakcje."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'store.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine)()
    try:
        yield session
    finally:
        session.close()


# ============================================================================
# CATALOG FIXTURES
# ============================================================================


def build_store(db) -> SimpleNamespace:
    """
    size (S, M) x color (black, white) shirt:
      S/black  stock 3, no override -> 50.00 - 20% = 40.00
      M/black  stock 5, override 45.00
    mug without variable attributes, stock not tracked, 10.00
    """
    db.add(
        StoreSettingsModel(
            id=1,
            store_name="Test Store",
            store_address="Store Street 1",
            delivery_fee=Decimal("5.00"),
            free_delivery_threshold=Decimal("100.00"),
        )
    )

    size = AttributeModel(name="size", display_name="Size", type="TEXT", sort_order=1)
    small = AttributeValueModel(value="S", sort_order=1)
    medium = AttributeValueModel(value="M", sort_order=2)
    size.values = [small, medium]

    color = AttributeModel(name="color", display_name="Color", type="COLOR_HEX", sort_order=2)
    black = AttributeValueModel(value="black", display_value="Black", color_hex="#000000", sort_order=1)
    white = AttributeValueModel(value="white", display_value="White", color_hex="#FFFFFF", sort_order=2)
    color.values = [black, white]

    material = AttributeModel(name="material", display_name="Material", type="TEXT", sort_order=3)
    cotton = AttributeValueModel(value="cotton", sort_order=1)
    material.values = [cotton]

    shirt = ProductModel(
        sku="SHIRT",
        name="Shirt",
        slug="shirt",
        base_cost=Decimal("20.00"),
        base_price=Decimal("50.00"),
        discount_percent=Decimal("20"),
        track_stock=True,
        attributes=[size, color],
    )
    mug = ProductModel(
        sku="MUG",
        name="Mug",
        slug="mug",
        base_cost=Decimal("3.00"),
        base_price=Decimal("10.00"),
        discount_percent=Decimal("0"),
        track_stock=False,
    )

    alice = CustomerModel(name="Alice", email="alice@example.com", phone="555-0001")
    alice_home = AddressModel(
        street="Main St 1", city="Springfield", state="IL", zip_code="62701", country="US"
    )
    alice.addresses = [alice_home]
    bob = CustomerModel(name="Bob", email="bob@example.com", phone=None)
    bob_home = AddressModel(street="Elm St 2", city="Shelbyville", state="IL", zip_code="62565", country="US")
    bob.addresses = [bob_home]

    db.add_all([size, color, material, shirt, mug, alice, bob])
    db.commit()

    catalog = CatalogService(db)
    s_black = catalog.create_variant(shirt.id, [small.id, black.id], stock=3)
    m_black = catalog.create_variant(shirt.id, [medium.id, black.id], price=Decimal("45.00"), stock=5)
    mug_default = catalog.create_variant(mug.id, [], stock=0)

    return SimpleNamespace(
        size=size,
        color=color,
        material=material,
        small=small,
        medium=medium,
        black=black,
        white=white,
        cotton=cotton,
        shirt=shirt,
        mug=mug,
        s_black=s_black,
        m_black=m_black,
        mug_default=mug_default,
        alice=alice,
        alice_home=alice_home,
        bob=bob,
        bob_home=bob_home,
    )


@pytest.fixture
def store(db):
    return build_store(db)


@pytest.fixture
def file_store(file_sessions):
    session = file_sessions()
    try:
        yield build_store(session)
    finally:
        session.close()


# ============================================================================
# SERVICE FIXTURES
# ============================================================================


@pytest.fixture
def lock_service():
    return FakeLockService()


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def catalog_service(db):
    return CatalogService(db)


@pytest.fixture
def cart_service(db):
    return CartService(db)


@pytest.fixture
def order_service(db, lock_service, notifier):
    return OrderService(db, lock_service=lock_service, notification_service=notifier)


@pytest.fixture
def alice(store):
    return CartOwner(customer_id=store.alice.id)


@pytest.fixture
def bob(store):
    return CartOwner(customer_id=store.bob.id)
