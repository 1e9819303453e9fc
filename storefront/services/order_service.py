# storefront/services/order_service.py
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.order import OrderModel
from storefront.data.models.order_item import OrderItemModel
from storefront.domain import order_status
from storefront.domain.errors import (
    CheckoutInProgress,
    ConcurrentModification,
    EmptyCart,
    InsufficientStock,
    InvalidTransition,
    NoMatchingVariant,
    NotFound,
    OrderNumberCollision,
    StoreUnavailable,
)
from storefront.domain.pricing import (
    DELIVERY_TYPES,
    HOME_DELIVERY,
    PricedLine,
    PricingSettings,
    compute_totals,
)
from storefront.repos.customer_repo import CustomerRepo
from storefront.repos.order_repo import OrderRepo
from storefront.services.cart_service import CartOwner, CartService
from storefront.services.catalog_service import CatalogService
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService
from storefront.services.settings_service import SettingsService
from storefront.utils.retry import order_number_retrying
from storefront.utils.settings import ORDER_NUMBER_PREFIX
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

PAYMENT_METHODS = ("CASH_ON_DELIVERY", "STORE_PAYMENT")
PAYMENT_PENDING = "PENDING"
PAYMENT_PAID = "PAID"


class OrderService:
    """
    Serwis odpowiedzialny za domene zamowien.
    - checkout: koszyk -> zamowienie, stan magazynu zdejmowany w jednej transakcji
    - cykl zycia zamowienia (maszyna stanow) z optimistic locking na version
    """

    def __init__(
        self,
        db: Session,
        lock_service: LockService | None = None,
        notification_service: NotificationService | None = None,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.customers = CustomerRepo(db)
        self.catalog = CatalogService(db)
        self.carts = CartService(db, self.catalog)
        self.settings = SettingsService(db)
        self.lock_service = lock_service or LockService()
        self.notification_service = notification_service or NotificationService()

    # =====================================================
    # QUERY
    # =====================================================
    def preview(self, owner: CartOwner, delivery_type: str) -> Dict[str, Any]:
        """
        Podglad sum przed checkoutem, te same ceny co w zamowieniu.
        Tylko odczyt: klient bez koszyka dostaje puste sumy, nieznana sesja -> NotFound.
        """
        if owner.customer_id is not None:
            cart = self.carts.repo.get_cart_by_customer(owner.customer_id)
        else:
            cart = self.carts.load_cart(owner)
        lines = self.carts.priced_lines(cart) if cart else []
        totals = compute_totals(lines, delivery_type, self.settings.get_pricing_settings())
        return {
            "delivery_type": delivery_type,
            "items": [line.as_dict() for line in lines],
            **totals.as_dict(),
        }

    def get_order(self, order_id: int, customer_id: int | None = None) -> Dict[str, Any]:
        order = self._get_order(order_id)

        if customer_id is not None and order.customer_id != customer_id:
            raise PermissionError("Order does not belong to this customer")

        return self._order_view(order)

    def list_customer_orders(self, customer_id: int, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        return self._paginated(customer_id=customer_id, page=page, limit=limit)

    def list_orders(self, status: str | None = None, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        return self._paginated(status=status, page=page, limit=limit)

    # =====================================================
    # COMMANDS
    # =====================================================
    def checkout(
        self,
        customer_id: int,
        delivery_type: str,
        payment_method: str,
        address_id: int | None = None,
        customer_notes: str | None = None,
    ) -> Dict[str, Any]:
        """
        Use Case: zamowienie z koszyka klienta.

        1. pusty koszyk -> EmptyCart
        2. snapshot adresu (dostawa) albo adresu sklepu (odbior)
        3. lock redis na koszyk, drugi rownolegly checkout tego koszyka odpada
        4. jedna transakcja: zdjecie stanu (warunkowy UPDATE), zamowienie, czyszczenie koszyka
        5. kolizja numeru zamowienia -> cala transakcja jeszcze raz
        6. powiadomienie po commicie
        """
        if delivery_type not in DELIVERY_TYPES:
            raise ValueError(f"Unknown delivery type: {delivery_type}")
        if payment_method not in PAYMENT_METHODS:
            raise ValueError(f"Unknown payment method: {payment_method}")

        cart = self.carts.repo.get_cart_by_customer(customer_id)
        if not cart or not self.carts.repo.get_cart_items(cart.id):
            raise EmptyCart()

        pricing = self.settings.get_pricing_settings()
        shipping_address = self._shipping_address(customer_id, delivery_type, address_id)

        token = self.lock_service.new_token()
        if not self.lock_service.acquire_checkout_lock(cart.id, token):
            raise CheckoutInProgress(f"Checkout of cart {cart.id} is already running")

        try:
            for attempt in order_number_retrying():
                with attempt:
                    order = self._place_order(
                        cart=cart,
                        customer_id=customer_id,
                        delivery_type=delivery_type,
                        payment_method=payment_method,
                        customer_notes=customer_notes,
                        shipping_address=shipping_address,
                        pricing=pricing,
                    )
        except OrderNumberCollision as e:
            # limit prob wyczerpany, klient dostaje blad do ponowienia a nie 500
            logger.error(f"Checkout of cart {cart.id} gave up after order number collisions")
            raise StoreUnavailable("Could not allocate an order number, retry later") from e
        finally:
            self.lock_service.release_checkout_lock(cart.id, token)

        logger.info(
            f"Order {order.order_number} created from cart {cart.id}, total {order.total}"
        )

        # Wyslij powiadomienie asynchronicznie
        self.notification_service.send_order_notification(
            customer_id, order.order_number, str(order.total)
        )

        return self._order_view(order)

    def update_status(
        self,
        order_id: int,
        status: str,
        admin_notes: str | None = None,
        expected_version: int | None = None,
    ) -> Dict[str, Any]:
        """
        Use Case: zmiana statusu przez obsluge sklepu.
        Anulowanie z PENDING/CONFIRMED oddaje towar na magazyn w tej samej transakcji.
        """
        order = self._get_order(order_id)
        current = order.status

        order_status.check_transition(current, status, order.delivery_type)

        version = order.version
        if expected_version is not None and expected_version != version:
            raise ConcurrentModification(
                f"Order {order_id} changed since it was read (version {version})"
            )

        restock = [
            (item.variant_id, item.quantity)
            for item in order.items
            if item.variant_id is not None
        ]

        new_data = {"status": status, "version": version + 1}
        if admin_notes is not None:
            new_data["admin_notes"] = admin_notes
        if status == order_status.DELIVERED:
            new_data["delivered_at"] = datetime.now(timezone.utc)

        try:
            if status == order_status.CANCELLED and current in order_status.RESTOCK_ON_CANCEL:
                for variant_id, quantity in sorted(restock):
                    self.catalog.restock(variant_id, quantity)

            rowcount = self.repo.update_order_version(order.id, version, new_data)
            if rowcount == 0:
                raise ConcurrentModification(
                    f"Order {order_id} was modified by another request"
                )
            self.repo.commit()
        except OperationalError as e:
            self.repo.rollback()
            raise StoreUnavailable(f"Order {order_id} update timed out, retry later") from e
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Order {order.order_number}: {current} -> {status}")

        self.notification_service.send_status_notification(
            order.customer_id, order.order_number, status
        )

        return self._order_view(order)

    def cancel_order(self, order_id: int, customer_id: int) -> Dict[str, Any]:
        """
        Use Case: anulowanie przez klienta - tylko zanim sklep zacznie przygotowanie.
        """
        order = self._get_order(order_id)

        if order.customer_id != customer_id:
            raise PermissionError("Order does not belong to this customer")

        if order.status not in order_status.RESTOCK_ON_CANCEL:
            raise InvalidTransition(order.status, order_status.CANCELLED)

        return self.update_status(order_id, order_status.CANCELLED, expected_version=order.version)

    def mark_paid(self, order_id: int) -> Dict[str, Any]:
        order = self._get_order(order_id)

        if order.payment_status == PAYMENT_PAID or order.status == order_status.CANCELLED:
            raise InvalidTransition(f"{order.status}/{order.payment_status}", PAYMENT_PAID)

        rowcount = self.repo.update_order_version(
            order.id,
            order.version,
            {"payment_status": PAYMENT_PAID, "version": order.version + 1},
        )
        if rowcount == 0:
            self.repo.rollback()
            raise ConcurrentModification(f"Order {order_id} was modified by another request")

        self.repo.commit()
        logger.info(f"Order {order.order_number} marked as paid")
        return self._order_view(order)

    # =====================================================
    # HELPERS
    # =====================================================
    def _place_order(
        self,
        cart: CartModel,
        customer_id: int,
        delivery_type: str,
        payment_method: str,
        customer_notes: str | None,
        shipping_address: dict,
        pricing: PricingSettings,
    ) -> OrderModel:
        order_number = None
        try:
            self.db.refresh(cart)
            cart_version = cart.version
            items = self.carts.repo.get_cart_items(cart.id)
            if not items:
                raise EmptyCart()

            # autorytatywny odczyt wariantow, nie z cache koszyka
            variants = self.catalog.load_variants(i.variant_id for i in items)

            # rosnaco po id wariantu - staly porzadek blokad wierszy miedzy transakcjami
            for item in sorted(items, key=lambda i: i.variant_id):
                variant = variants.get(item.variant_id)
                if variant is None:
                    raise NotFound("Variant", item.variant_id)
                if not variant.is_active or not variant.product.is_active:
                    raise NoMatchingVariant(f"Variant {variant.id} is no longer sold")
                if not variant.product.track_stock:
                    continue

                if not self.catalog.decrement_stock(variant.id, item.quantity):
                    available = self.catalog.available_stock(variant.id)
                    logger.warning(
                        f"Checkout of cart {cart.id} rejected: variant {variant.id} "
                        f"available={available} requested={item.quantity}"
                    )
                    raise InsufficientStock(variant.id, available, item.quantity)

            # cena z koszyka, checkout nie przelicza cen po cichu
            lines: list[PricedLine] = [
                self.catalog.priced_line(variants[i.variant_id], i.quantity, i.unit_price)
                for i in items
            ]
            totals = compute_totals(lines, delivery_type, pricing)

            order_number = self._next_order_number()
            order = OrderModel(
                order_number=order_number,
                customer_id=customer_id,
                shipping_address=shipping_address,
                delivery_type=delivery_type,
                delivery_fee=totals.delivery_fee,
                payment_method=payment_method,
                payment_status=PAYMENT_PENDING,
                subtotal=totals.subtotal,
                discount=totals.discount,
                total=totals.total,
                status=order_status.PENDING,
                version=1,
                customer_notes=customer_notes,
                items=[
                    OrderItemModel(
                        variant_id=line.variant_id,
                        product_name=line.product_name,
                        variant_name=line.variant_name,
                        product_sku=line.product_sku,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        total_price=line.total_price,
                    )
                    for line in lines
                ],
            )
            self.repo.add_order(order)
            self.carts.clear_in_transaction(cart, cart_version)

            self.repo.commit()
            return order

        except IntegrityError as e:
            self.repo.rollback()
            if order_number and "order_number" in str(e.orig):
                logger.warning(f"Order number {order_number} taken concurrently, retrying")
                raise OrderNumberCollision(order_number) from e
            raise
        except OperationalError as e:
            self.repo.rollback()
            logger.error(f"Checkout of cart {cart.id} timed out: {e}")
            raise StoreUnavailable("Checkout timed out, retry later") from e
        except Exception:
            # nic nie zostaje zapisane: ani stan, ani zamowienie, koszyk nietkniety
            self.repo.rollback()
            raise

    def _next_order_number(self) -> str:
        now = datetime.now(timezone.utc)
        start_of_year = datetime(now.year, 1, 1, tzinfo=timezone.utc)
        n = self.repo.count_orders_since(start_of_year) + 1

        candidate = f"{ORDER_NUMBER_PREFIX}-{now.year}-{n:06d}"
        while self.repo.order_number_exists(candidate):
            n += 1
            candidate = f"{ORDER_NUMBER_PREFIX}-{now.year}-{n:06d}"
        return candidate

    def _shipping_address(self, customer_id: int, delivery_type: str, address_id: int | None) -> dict:
        customer = self.customers.get_customer(customer_id)
        if not customer:
            raise NotFound("Customer", customer_id)
        phone = customer.phone or ""

        if delivery_type == HOME_DELIVERY:
            if address_id is None:
                raise ValueError("Address is required for home delivery")
            address = self.customers.get_address(address_id, customer_id)
            if not address:
                raise NotFound("Address", address_id)
            return {
                "street": address.street,
                "city": address.city,
                "state": address.state,
                "zip_code": address.zip_code,
                "country": address.country,
                "phone": phone,
            }

        # odbior w sklepie - adres sklepu
        return {
            "street": self.settings.get_store_address() or "Store pickup",
            "city": "",
            "state": "",
            "zip_code": "",
            "country": "",
            "phone": phone,
        }

    def _get_order(self, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFound("Order", order_id)
        return order

    def _paginated(self, customer_id=None, status=None, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        page = max(page, 1)
        orders, total = self.repo.list_orders(
            customer_id=customer_id,
            status=status,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return {
            "orders": [self._order_view(o) for o in orders],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": (total + limit - 1) // limit,
            },
        }

    @staticmethod
    def _order_view(order: OrderModel) -> Dict[str, Any]:
        return {
            "id": order.id,
            "order_number": order.order_number,
            "customer_id": order.customer_id,
            "status": order.status,
            "payment_status": order.payment_status,
            "delivery_type": order.delivery_type,
            "payment_method": order.payment_method,
            "subtotal": order.subtotal,
            "delivery_fee": order.delivery_fee,
            "discount": order.discount,
            "total": order.total,
            "shipping_address": order.shipping_address,
            "customer_notes": order.customer_notes,
            "admin_notes": order.admin_notes,
            "version": order.version,
            "created_at": order.created_at,
            "delivered_at": order.delivered_at,
            "items": [
                {
                    "id": i.id,
                    "variant_id": i.variant_id,
                    "product_name": i.product_name,
                    "variant_name": i.variant_name,
                    "product_sku": i.product_sku,
                    "quantity": i.quantity,
                    "unit_price": i.unit_price,
                    "total_price": i.total_price,
                }
                for i in order.items
            ],
        }
