# storefront/repos/cart_repo.py
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.util import identity_key

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart(self, cart_id: int) -> CartModel | None:
        return self.db.get(CartModel, cart_id)

    def get_cart_by_customer(self, customer_id: int) -> CartModel | None:
        stmt = select(CartModel).where(CartModel.customer_id == customer_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_cart_by_session(self, session_id: str) -> CartModel | None:
        stmt = select(CartModel).where(CartModel.session_id == session_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def create_cart(self, cart: CartModel) -> CartModel:
        self.db.add(cart)
        self.db.commit()
        self.db.refresh(cart)
        return cart

    def get_cart_items(self, cart_id: int) -> list[CartItemModel]:
        stmt = (
            select(CartItemModel)
            .where(CartItemModel.cart_id == cart_id)
            .order_by(CartItemModel.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_cart_item(self, cart_id: int, item_id: int) -> CartItemModel | None:
        stmt = select(CartItemModel).where(
            CartItemModel.cart_id == cart_id,
            CartItemModel.id == item_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_cart_item_by_variant(self, cart_id: int, variant_id: int) -> CartItemModel | None:
        stmt = select(CartItemModel).where(
            CartItemModel.cart_id == cart_id,
            CartItemModel.variant_id == variant_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def add_cart_item(self, item: CartItemModel) -> CartItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def delete_cart_item(self, item: CartItemModel):
        self.db.delete(item)
        self.db.flush()

    def clear_cart_items(self, cart_id: int) -> int:
        items = self.get_cart_items(cart_id)
        for item in items:
            self.db.delete(item)
        self.db.flush()
        return len(items)

    def delete_cart(self, cart: CartModel):
        self.db.delete(cart)
        self.db.flush()

    def expired_anonymous_carts(self, now: datetime) -> list[CartModel]:
        stmt = select(CartModel).where(
            CartModel.customer_id.is_(None),
            CartModel.expires_at < now,
        )
        return list(self.db.execute(stmt).scalars().all())

    def update_cart_version(self, cart_id: int, old_version: int, new_data: dict) -> int:
        # UPDATE carts SET version = :new ... WHERE id = :id AND version = :old
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        cart = self.db.identity_map.get(identity_key(CartModel, cart_id))
        if cart is not None:
            self.db.expire(cart)
        return result.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
