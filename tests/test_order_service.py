import re
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from storefront.data.models import CartModel, OrderModel, StoreSettingsModel
from storefront.domain.errors import (
    CheckoutInProgress,
    ConcurrentModification,
    EmptyCart,
    InsufficientStock,
    InvalidTransition,
    NotFound,
    PricingConfigError,
    StoreUnavailable,
)
from storefront.services.cart_service import CartOwner
from storefront.utils.settings import ORDER_NUMBER_RETRIES

pytestmark = pytest.mark.unit


def home_checkout(order_service, customer, address):
    return order_service.checkout(
        customer_id=customer.id,
        delivery_type="HOME_DELIVERY",
        payment_method="CASH_ON_DELIVERY",
        address_id=address.id,
    )


def pickup_checkout(order_service, customer):
    return order_service.checkout(
        customer_id=customer.id,
        delivery_type="STORE_PICKUP",
        payment_method="STORE_PAYMENT",
    )


def stock_of(catalog_service, variant):
    return catalog_service.available_stock(variant.id)


# ============================================================================
# CHECKOUT
# ============================================================================


class TestCheckout:
    def test_home_delivery_below_threshold(
        self, store, cart_service, order_service, catalog_service, alice, notifier, lock_service
    ):
        cart_service.add_item(alice, store.s_black.id, 2)

        order = home_checkout(order_service, store.alice, store.alice_home)

        assert order["subtotal"] == Decimal("80.00")
        assert order["delivery_fee"] == Decimal("5.00")
        assert order["discount"] == Decimal("0.00")
        assert order["total"] == Decimal("85.00")
        assert order["status"] == "PENDING"
        assert order["payment_status"] == "PENDING"
        assert order["version"] == 1
        assert re.match(r"^BLD-\d{4}-\d{6}$", order["order_number"])

        [item] = order["items"]
        assert item["variant_id"] == store.s_black.id
        assert item["product_name"] == "Shirt"
        assert item["variant_name"] == "S - Black"
        assert item["product_sku"] == "SHIRT"
        assert item["unit_price"] == Decimal("40.00")
        assert item["total_price"] == Decimal("80.00")

        assert order["shipping_address"]["street"] == "Main St 1"
        assert order["shipping_address"]["phone"] == "555-0001"

        assert stock_of(catalog_service, store.s_black) == 1
        assert cart_service.get_cart(alice)["items"] == []
        assert lock_service.locks == {}

        notifier.send_order_notification.assert_called_once()
        args = notifier.send_order_notification.call_args[0]
        assert args[0] == store.alice.id
        assert args[1] == order["order_number"]

    def test_free_delivery_over_threshold(self, db, store, cart_service, order_service, alice):
        db.get(StoreSettingsModel, 1).free_delivery_threshold = Decimal("50.00")
        db.commit()
        cart_service.add_item(alice, store.s_black.id, 2)

        order = home_checkout(order_service, store.alice, store.alice_home)

        assert order["delivery_fee"] == Decimal("0.00")
        assert order["total"] == Decimal("80.00")

    def test_pickup_is_free(self, store, cart_service, order_service, catalog_service, alice):
        cart_service.add_item(alice, store.mug_default.id, 1)

        order = pickup_checkout(order_service, store.alice)

        assert order["subtotal"] == Decimal("10.00")
        assert order["delivery_fee"] == Decimal("0.00")
        assert order["total"] == Decimal("10.00")
        assert order["shipping_address"]["street"] == "Store Street 1"
        # stan niesledzony, nic nie zdjete
        assert stock_of(catalog_service, store.mug_default) == 0

    def test_preview_matches_order(self, store, cart_service, order_service, alice):
        cart_service.add_item(alice, store.s_black.id, 1)
        cart_service.add_item(alice, store.m_black.id, 1)

        preview = order_service.preview(alice, "HOME_DELIVERY")
        order = home_checkout(order_service, store.alice, store.alice_home)

        for key in ("subtotal", "delivery_fee", "discount", "total"):
            assert preview[key] == order[key]
        assert preview["total"] == Decimal("90.00")

    def test_preview_without_cart_creates_nothing(self, db, store, order_service, alice):
        preview = order_service.preview(alice, "HOME_DELIVERY")

        assert preview["items"] == []
        assert preview["subtotal"] == Decimal("0.00")
        assert preview["total"] == Decimal("5.00")
        assert db.query(CartModel).count() == 0

    def test_preview_of_unknown_session(self, db, store, order_service):
        with pytest.raises(NotFound):
            order_service.preview(CartOwner(session_id="expired-session"), "STORE_PICKUP")
        assert db.query(CartModel).count() == 0

    def test_checkout_charges_cart_price(self, db, store, cart_service, order_service, alice):
        cart_service.add_item(alice, store.s_black.id, 1)
        store.shirt.base_price = Decimal("80.00")
        db.commit()

        order = home_checkout(order_service, store.alice, store.alice_home)
        assert order["items"][0]["unit_price"] == Decimal("40.00")

    def test_empty_cart(self, store, cart_service, order_service, alice):
        with pytest.raises(EmptyCart):
            home_checkout(order_service, store.alice, store.alice_home)

        cart_service.get_cart(alice)
        with pytest.raises(EmptyCart):
            home_checkout(order_service, store.alice, store.alice_home)

    def test_home_delivery_needs_address(self, store, cart_service, order_service, alice):
        cart_service.add_item(alice, store.s_black.id, 1)
        with pytest.raises(ValueError):
            order_service.checkout(store.alice.id, "HOME_DELIVERY", "CASH_ON_DELIVERY")

    def test_address_of_other_customer(self, store, cart_service, order_service, alice):
        cart_service.add_item(alice, store.s_black.id, 1)
        with pytest.raises(NotFound):
            home_checkout(order_service, store.alice, store.bob_home)

    def test_unknown_payment_method(self, store, cart_service, order_service, alice):
        cart_service.add_item(alice, store.s_black.id, 1)
        with pytest.raises(ValueError):
            order_service.checkout(store.alice.id, "STORE_PICKUP", "BITCOIN")

    def test_missing_store_settings(self, db, store, cart_service, order_service, alice):
        cart_service.add_item(alice, store.s_black.id, 1)
        db.delete(db.get(StoreSettingsModel, 1))
        db.commit()

        with pytest.raises(PricingConfigError):
            pickup_checkout(order_service, store.alice)

    def test_insufficient_stock_changes_nothing(
        self, db, store, cart_service, order_service, catalog_service, alice, lock_service, notifier
    ):
        cart_service.add_item(alice, store.s_black.id, 2)
        cart_service.add_item(alice, store.m_black.id, 2)
        version = cart_service.load_cart(alice).version

        # zmiana stanu po dodaniu do koszyka
        store.m_black.stock = 1
        db.commit()

        with pytest.raises(InsufficientStock) as exc:
            home_checkout(order_service, store.alice, store.alice_home)
        assert exc.value.variant_id == store.m_black.id
        assert exc.value.available == 1
        assert exc.value.requested == 2

        # S/black zdjety pierwszy, ale wycofany razem z reszta
        assert stock_of(catalog_service, store.s_black) == 3
        assert stock_of(catalog_service, store.m_black) == 1
        assert len(cart_service.get_cart(alice)["items"]) == 2
        assert cart_service.load_cart(alice).version == version
        assert db.query(OrderModel).count() == 0
        assert lock_service.locks == {}
        notifier.send_order_notification.assert_not_called()

    def test_last_units_go_to_first_checkout(
        self, db, store, cart_service, order_service, catalog_service, alice, bob
    ):
        cart_service.add_item(alice, store.s_black.id, 2)
        cart_service.add_item(bob, store.s_black.id, 2)

        home_checkout(order_service, store.alice, store.alice_home)
        with pytest.raises(InsufficientStock) as exc:
            home_checkout(order_service, store.bob, store.bob_home)

        assert exc.value.available == 1
        assert exc.value.requested == 2
        assert stock_of(catalog_service, store.s_black) == 1
        assert db.query(OrderModel).count() == 1

    def test_checkout_already_running(
        self, store, cart_service, order_service, catalog_service, alice, lock_service
    ):
        cart_service.add_item(alice, store.s_black.id, 1)
        cart_id = cart_service.load_cart(alice).id
        lock_service.locks[cart_id] = "other-request"

        with pytest.raises(CheckoutInProgress):
            home_checkout(order_service, store.alice, store.alice_home)

        assert lock_service.locks == {cart_id: "other-request"}
        assert stock_of(catalog_service, store.s_black) == 3

    def test_order_numbers_are_unique(self, store, cart_service, order_service, alice, bob):
        cart_service.add_item(alice, store.s_black.id, 1)
        cart_service.add_item(bob, store.s_black.id, 1)

        first = home_checkout(order_service, store.alice, store.alice_home)
        second = home_checkout(order_service, store.bob, store.bob_home)

        assert first["order_number"] != second["order_number"]
        assert first["order_number"].endswith("000001")
        assert second["order_number"].endswith("000002")

    def test_order_number_skips_taken_numbers(self, db, store, cart_service, order_service, alice):
        year = datetime.now(timezone.utc).year
        db.add(
            OrderModel(
                order_number=f"BLD-{year}-000001",
                customer_id=store.bob.id,
                shipping_address={},
                delivery_type="STORE_PICKUP",
                delivery_fee=Decimal("0.00"),
                payment_method="STORE_PAYMENT",
                subtotal=Decimal("0.00"),
                total=Decimal("0.00"),
                # z poprzedniego roku, nie liczy sie do licznika
                created_at=datetime(year - 1, 6, 1, tzinfo=timezone.utc),
            )
        )
        db.commit()
        cart_service.add_item(alice, store.s_black.id, 1)

        order = home_checkout(order_service, store.alice, store.alice_home)
        assert order["order_number"] == f"BLD-{year}-000002"

    def test_order_number_collision_retries_whole_checkout(
        self, store, cart_service, order_service, catalog_service, alice, bob
    ):
        cart_service.add_item(alice, store.s_black.id, 1)
        taken = home_checkout(order_service, store.alice, store.alice_home)["order_number"]

        cart_service.add_item(bob, store.s_black.id, 1)
        order_service._next_order_number = MagicMock(side_effect=[taken, "BLD-2099-000042"])

        order = home_checkout(order_service, store.bob, store.bob_home)

        assert order["order_number"] == "BLD-2099-000042"
        assert order_service._next_order_number.call_count == 2
        # pierwsza proba wycofana, stan zdjety tylko raz
        assert stock_of(catalog_service, store.s_black) == 1

    def test_order_number_retries_exhausted_is_retryable(
        self, db, store, cart_service, order_service, catalog_service, alice, bob, lock_service
    ):
        cart_service.add_item(alice, store.s_black.id, 1)
        taken = home_checkout(order_service, store.alice, store.alice_home)["order_number"]

        cart_service.add_item(bob, store.s_black.id, 1)
        order_service._next_order_number = MagicMock(return_value=taken)

        with pytest.raises(StoreUnavailable):
            home_checkout(order_service, store.bob, store.bob_home)

        assert order_service._next_order_number.call_count == ORDER_NUMBER_RETRIES
        assert stock_of(catalog_service, store.s_black) == 2
        assert len(cart_service.get_cart(bob)["items"]) == 1
        assert db.query(OrderModel).count() == 1
        assert lock_service.locks == {}


# ============================================================================
# ORDER SNAPSHOT
# ============================================================================


class TestOrderSnapshot:
    def test_catalog_changes_do_not_touch_order(
        self, db, store, cart_service, order_service, alice
    ):
        cart_service.add_item(alice, store.s_black.id, 2)
        placed = home_checkout(order_service, store.alice, store.alice_home)

        store.shirt.name = "Renamed shirt"
        store.shirt.base_price = Decimal("99.00")
        store.s_black.price = Decimal("1.00")
        store.black.display_value = "Jet black"
        db.delete(store.alice_home)
        db.commit()

        order = order_service.get_order(placed["id"], store.alice.id)
        assert order["items"] == placed["items"]
        assert order["shipping_address"] == placed["shipping_address"]
        assert order["total"] == placed["total"]

    def test_deleted_variant_keeps_order_line(
        self, db, store, cart_service, order_service, alice
    ):
        cart_service.add_item(alice, store.s_black.id, 1)
        placed = home_checkout(order_service, store.alice, store.alice_home)

        db.delete(store.s_black)
        db.commit()
        db.expire_all()

        order = order_service.get_order(placed["id"])
        [item] = order["items"]
        assert item["variant_id"] is None
        assert item["product_name"] == "Shirt"
        assert item["unit_price"] == Decimal("40.00")

        cancelled = order_service.update_status(placed["id"], "CANCELLED")
        assert cancelled["status"] == "CANCELLED"


# ============================================================================
# LIFECYCLE
# ============================================================================


@pytest.fixture
def placed_order(store, cart_service, order_service, alice):
    cart_service.add_item(alice, store.s_black.id, 2)
    return home_checkout(order_service, store.alice, store.alice_home)


class TestLifecycle:
    def test_full_home_delivery(self, placed_order, order_service, notifier):
        order_id = placed_order["id"]
        for status in ("CONFIRMED", "PREPARING", "OUT_FOR_DELIVERY"):
            order = order_service.update_status(order_id, status)
            assert order["status"] == status

        order = order_service.update_status(order_id, "DELIVERED", admin_notes="left at door")
        assert order["status"] == "DELIVERED"
        assert order["delivered_at"] is not None
        assert order["admin_notes"] == "left at door"
        assert order["version"] == 5
        assert notifier.send_status_notification.call_count == 4

    def test_delivered_is_final(self, placed_order, order_service):
        order_id = placed_order["id"]
        for status in ("CONFIRMED", "PREPARING", "OUT_FOR_DELIVERY", "DELIVERED"):
            order_service.update_status(order_id, status)

        with pytest.raises(InvalidTransition):
            order_service.update_status(order_id, "CONFIRMED")
        assert order_service.get_order(order_id)["status"] == "DELIVERED"

    def test_pickup_branch_not_for_home_delivery(self, placed_order, order_service):
        order_id = placed_order["id"]
        order_service.update_status(order_id, "CONFIRMED")
        order_service.update_status(order_id, "PREPARING")

        with pytest.raises(InvalidTransition):
            order_service.update_status(order_id, "READY_FOR_PICKUP")

    def test_cancel_from_pending_restocks(
        self, store, placed_order, order_service, catalog_service
    ):
        assert stock_of(catalog_service, store.s_black) == 1

        order = order_service.cancel_order(placed_order["id"], store.alice.id)

        assert order["status"] == "CANCELLED"
        assert stock_of(catalog_service, store.s_black) == 3

    def test_cancel_from_confirmed_restocks(
        self, store, placed_order, order_service, catalog_service
    ):
        order_service.update_status(placed_order["id"], "CONFIRMED")
        order_service.update_status(placed_order["id"], "CANCELLED")
        assert stock_of(catalog_service, store.s_black) == 3

    def test_cancel_after_preparing_keeps_stock(
        self, store, placed_order, order_service, catalog_service
    ):
        order_id = placed_order["id"]
        order_service.update_status(order_id, "CONFIRMED")
        order_service.update_status(order_id, "PREPARING")
        order_service.update_status(order_id, "CANCELLED")

        assert stock_of(catalog_service, store.s_black) == 1

    def test_cancel_twice_restocks_once(
        self, store, placed_order, order_service, catalog_service
    ):
        order_service.update_status(placed_order["id"], "CANCELLED")
        with pytest.raises(InvalidTransition):
            order_service.update_status(placed_order["id"], "CANCELLED")
        assert stock_of(catalog_service, store.s_black) == 3

    def test_customer_cannot_cancel_once_preparing(self, store, placed_order, order_service):
        order_service.update_status(placed_order["id"], "CONFIRMED")
        order_service.update_status(placed_order["id"], "PREPARING")

        with pytest.raises(InvalidTransition):
            order_service.cancel_order(placed_order["id"], store.alice.id)

    def test_customer_cannot_touch_other_orders(self, store, placed_order, order_service):
        with pytest.raises(PermissionError):
            order_service.cancel_order(placed_order["id"], store.bob.id)
        with pytest.raises(PermissionError):
            order_service.get_order(placed_order["id"], store.bob.id)

    def test_stale_expected_version(self, placed_order, order_service):
        with pytest.raises(ConcurrentModification):
            order_service.update_status(placed_order["id"], "CONFIRMED", expected_version=7)

    def test_lost_update_is_rejected(
        self, store, placed_order, order_service, catalog_service, monkeypatch
    ):
        monkeypatch.setattr(order_service.repo, "update_order_version", lambda *args: 0)

        with pytest.raises(ConcurrentModification):
            order_service.update_status(placed_order["id"], "CANCELLED")

        monkeypatch.undo()
        assert order_service.get_order(placed_order["id"])["status"] == "PENDING"
        # zwrot na magazyn wycofany razem ze zmiana statusu
        assert stock_of(catalog_service, store.s_black) == 1

    def test_unknown_order(self, store, order_service):
        with pytest.raises(NotFound):
            order_service.update_status(9999, "CONFIRMED")

    def test_mark_paid(self, placed_order, order_service):
        order = order_service.mark_paid(placed_order["id"])
        assert order["payment_status"] == "PAID"
        assert order["version"] == 2

        with pytest.raises(InvalidTransition):
            order_service.mark_paid(placed_order["id"])

    def test_cancelled_order_cannot_be_paid(self, placed_order, order_service):
        order_service.update_status(placed_order["id"], "CANCELLED")
        with pytest.raises(InvalidTransition):
            order_service.mark_paid(placed_order["id"])


# ============================================================================
# QUERIES
# ============================================================================


class TestQueries:
    def test_customer_orders_are_paginated(self, store, cart_service, order_service, alice, bob):
        for _ in range(3):
            cart_service.add_item(alice, store.mug_default.id, 1)
            pickup_checkout(order_service, store.alice)
        cart_service.add_item(bob, store.mug_default.id, 1)
        pickup_checkout(order_service, store.bob)

        page = order_service.list_customer_orders(store.alice.id, page=2, limit=2)

        assert page["pagination"] == {"page": 2, "limit": 2, "total": 3, "total_pages": 2}
        assert len(page["orders"]) == 1
        assert all(o["customer_id"] == store.alice.id for o in page["orders"])

    def test_admin_filters_by_status(self, store, cart_service, order_service, alice, bob):
        cart_service.add_item(alice, store.mug_default.id, 1)
        first = pickup_checkout(order_service, store.alice)
        cart_service.add_item(bob, store.mug_default.id, 1)
        pickup_checkout(order_service, store.bob)
        order_service.update_status(first["id"], "CONFIRMED")

        confirmed = order_service.list_orders(status="CONFIRMED")
        assert [o["id"] for o in confirmed["orders"]] == [first["id"]]
        assert order_service.list_orders()["pagination"]["total"] == 2
