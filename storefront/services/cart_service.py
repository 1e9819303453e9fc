import uuid
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from typing import Dict, Any, Iterable

from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.catalog import VariantModel
from storefront.domain.errors import ConcurrentModification, NotFound, OutOfStock
from storefront.domain.pricing import PricedLine, subtotal_of
from storefront.repos.cart_repo import CartRepo
from storefront.services.catalog_service import CatalogService
from storefront.utils.settings import CART_TTL_DAYS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CartOwner:
    """Klient zalogowany (customer_id) albo anonimowa sesja (session_id)."""

    customer_id: int | None = None
    session_id: str | None = None

    def __str__(self):
        if self.customer_id is not None:
            return f"customer {self.customer_id}"
        return f"session {self.session_id}"


class CartService:
    """
    Prosta implementacja cqrs dla domeny cart
    commands (add, update, remove, clear, merge) modyfikuja stan
    query (get) tylko odczyt

    Cena jednostkowa jest snapshotem z chwili dodania / zmiany ilosci,
    subtotal i item_count zawsze liczone od nowa z pozycji.
    """

    def __init__(self, db: Session, catalog: CatalogService | None = None):
        self.repo = CartRepo(db)
        self.catalog = catalog or CatalogService(db)

    #query - odczyt
    def get_cart(self, owner: CartOwner) -> Dict[str, Any]:
        cart = self.load_cart(owner, create=True)
        return self._cart_view(cart)

    def load_cart(self, owner: CartOwner, create: bool = False) -> CartModel:
        if owner.customer_id is not None:
            cart = self.repo.get_cart_by_customer(owner.customer_id)
            if cart:
                return cart
            if not create:
                raise NotFound("Cart", f"customer:{owner.customer_id}")
            cart = self.repo.create_cart(CartModel(customer_id=owner.customer_id, version=1))
            logger.info(f"Utworzono koszyk {cart.id} dla klienta {owner.customer_id}")
            return cart

        if owner.session_id:
            # nieznana / wygasla sesja: klient musi porzucic session_id, bez cichej podmiany koszyka
            cart = self.repo.get_cart_by_session(owner.session_id)
            if not cart:
                raise NotFound("Cart", f"session:{owner.session_id}")
            return cart
        if not create:
            raise ValueError("customer_id or session_id is required")

        #nowy koszyk anonimowy, zawsze ze swiezym session_id
        cart = self.repo.create_cart(
            CartModel(
                session_id=uuid.uuid4().hex,
                version=1,
                expires_at=self._new_expiry(),
            )
        )
        logger.info(f"Utworzono anonimowy koszyk {cart.id} (sesja {cart.session_id})")
        return cart

    def priced_lines(self, cart: CartModel) -> list[PricedLine]:
        items = self.repo.get_cart_items(cart.id)
        variants = self.catalog.load_variants(i.variant_id for i in items)
        return [
            self.catalog.priced_line(variants[i.variant_id], i.quantity, i.unit_price)
            for i in items
        ]

    #commands
    def add_item(self, owner: CartOwner, variant_id: int, quantity: int) -> Dict[str, Any]:
        if quantity < 1:
            raise ValueError("Quantity must be at least 1")

        cart = self.load_cart(owner, create=True)
        variant = self.catalog.get_purchasable_variant(variant_id)
        price = self.catalog.unit_price(variant)

        existing_item = self.repo.get_cart_item_by_variant(cart.id, variant_id)
        new_quantity = quantity + (existing_item.quantity if existing_item else 0)
        self._check_stock(variant, new_quantity)

        if existing_item:
            logger.info(
                f"Wariant {variant_id} juz jest w koszyku {cart.id}, zwiekszam ilosc "
                f"z {existing_item.quantity} do {new_quantity}"
            )
            existing_item.quantity = new_quantity
            existing_item.unit_price = price  # nowy snapshot ceny
            self.repo.add_cart_item(existing_item)
        else:
            logger.info(f"Dodaje wariant {variant_id} do koszyka {cart.id}")
            self.repo.add_cart_item(
                CartItemModel(
                    cart_id=cart.id,
                    variant_id=variant_id,
                    quantity=quantity,
                    unit_price=price,
                )
            )

        self._bump_version(cart)
        return self._cart_view(cart)

    def add_item_by_selection(
        self,
        owner: CartOwner,
        product_id: int,
        attribute_value_ids: Iterable[int],
        quantity: int,
    ) -> Dict[str, Any]:
        variant = self.catalog.resolve_variant(product_id, attribute_value_ids)
        return self.add_item(owner, variant.id, quantity)

    def update_item(self, owner: CartOwner, item_id: int, quantity: int) -> Dict[str, Any]:
        if quantity < 1:
            raise ValueError("Quantity must be at least 1, use remove_item to delete")

        cart = self.load_cart(owner)
        item = self.repo.get_cart_item(cart.id, item_id)
        if not item:
            raise NotFound("CartItem", item_id)

        variant = self.catalog.get_purchasable_variant(item.variant_id)
        self._check_stock(variant, quantity)

        #odswiez cene, stary koszyk nie moze trzymac nieaktualnej ceny
        item.quantity = quantity
        item.unit_price = self.catalog.unit_price(variant)
        self.repo.add_cart_item(item)

        self._bump_version(cart)
        logger.info(f"Pozycja {item_id} w koszyku {cart.id}: ilosc {quantity}")
        return self._cart_view(cart)

    def remove_item(self, owner: CartOwner, item_id: int) -> Dict[str, Any]:
        cart = self.load_cart(owner)
        item = self.repo.get_cart_item(cart.id, item_id)
        if not item:
            raise NotFound("CartItem", item_id)

        logger.info(f"Usuwanie pozycji {item_id} z koszyka {cart.id}")
        self.repo.delete_cart_item(item)

        self._bump_version(cart)
        return self._cart_view(cart)

    def clear(self, owner: CartOwner) -> Dict[str, Any]:
        cart = self.load_cart(owner)
        removed = self.repo.clear_cart_items(cart.id)
        self._bump_version(cart)
        logger.info(f"Koszyk {cart.id} wyczyszczony ({removed} pozycji)")
        return self._cart_view(cart)

    def clear_in_transaction(self, cart: CartModel, expected_version: int) -> None:
        """Czysci koszyk bez commita - uzywane przez checkout."""
        self.repo.clear_cart_items(cart.id)
        rowcount = self.repo.update_cart_version(
            cart_id=cart.id,
            old_version=expected_version,
            new_data={"version": expected_version + 1},
        )
        if rowcount == 0:
            raise ConcurrentModification(f"Cart {cart.id} was modified during checkout")

    def merge_carts(self, session_id: str, customer_id: int) -> Dict[str, Any]:
        """
        Po zalogowaniu: pozycje koszyka anonimowego trafiaja do koszyka klienta.
        Ilosci sie sumuja, kazda scalona pozycja dostaje aktualna cene z katalogu.
        Za malo towaru na sume ilosci -> OutOfStock, nic nie zostaje scalone.
        Warianty wycofane ze sprzedazy sa pomijane.
        """
        owner = CartOwner(customer_id=customer_id)
        anon = self.repo.get_cart_by_session(session_id)
        if not anon or anon.customer_id is not None:
            return self.get_cart(owner)

        customer_cart = self.load_cart(owner, create=True)
        anon_items = self.repo.get_cart_items(anon.id)

        try:
            for item in anon_items:
                variant = self.catalog.get_variant(item.variant_id)
                if not variant.is_active or not variant.product.is_active:
                    logger.warning(f"Pomijam wariant {variant.id} przy scalaniu, nie jest w sprzedazy")
                    continue

                price = self.catalog.unit_price(variant)
                existing = self.repo.get_cart_item_by_variant(customer_cart.id, item.variant_id)
                if existing:
                    new_quantity = existing.quantity + item.quantity
                    self._check_stock(variant, new_quantity)
                    existing.quantity = new_quantity
                    existing.unit_price = price
                    self.repo.add_cart_item(existing)
                else:
                    self._check_stock(variant, item.quantity)
                    self.repo.add_cart_item(
                        CartItemModel(
                            cart_id=customer_cart.id,
                            variant_id=item.variant_id,
                            quantity=item.quantity,
                            unit_price=price,
                        )
                    )

            self.repo.delete_cart(anon)
        except Exception:
            self.repo.rollback()
            raise

        self._bump_version(customer_cart)

        logger.info(
            f"Scalono koszyk sesji {session_id} ({len(anon_items)} pozycji) "
            f"z koszykiem klienta {customer_id}"
        )
        return self._cart_view(customer_cart)

    # helpers
    def _check_stock(self, variant: VariantModel, quantity: int):
        # tylko doradczo, decyduje transakcja przy checkoucie
        if not self.catalog.is_available(variant, quantity):
            raise OutOfStock(variant.id, variant.stock, quantity)

    def _bump_version(self, cart: CartModel):
        old_version = cart.version
        new_data = {"version": old_version + 1}
        if cart.customer_id is None:
            # user jest aktywny, przedluz waznosc koszyka anonimowego
            new_data["expires_at"] = self._new_expiry()

        # Optimistic locking
        # np w bazie update set version 2 where id 1 and version 1
        rowcount = self.repo.update_cart_version(
            cart_id=cart.id,
            old_version=old_version,
            new_data=new_data,
        )

        if rowcount == 0:
            self.repo.rollback()
            raise ConcurrentModification(
                f"Cart {cart.id} was modified by another request"
            )

        self.repo.commit()

    @staticmethod
    def _new_expiry() -> datetime:
        return datetime.now(timezone.utc) + timedelta(days=CART_TTL_DAYS)

    def _cart_view(self, cart: CartModel) -> Dict[str, Any]:
        items = self.repo.get_cart_items(cart.id)
        variants = self.catalog.load_variants(i.variant_id for i in items)

        lines = []
        view_items = []
        for item in items:
            line = self.catalog.priced_line(variants[item.variant_id], item.quantity, item.unit_price)
            lines.append(line)
            view_items.append({"id": item.id, **line.as_dict()})

        #dict przeksztalcany w jsona
        return {
            "id": cart.id,
            "customer_id": cart.customer_id,
            "session_id": cart.session_id,
            "items": view_items,
            "subtotal": subtotal_of(lines),
            "item_count": sum(line.quantity for line in lines),
            "expires_at": cart.expires_at,
        }
