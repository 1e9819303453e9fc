# storefront/api/deps.py
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.services.cart_service import CartService
from storefront.services.catalog_service import CatalogService
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService


@lru_cache
def get_lock_service() -> LockService:
    # jeden pool polaczen redis na proces
    return LockService()


def get_notification_service() -> NotificationService:
    return NotificationService()


def get_cart_service(db: Session = Depends(get_db)) -> CartService:
    return CartService(db)


def get_catalog_service(db: Session = Depends(get_db)) -> CatalogService:
    return CatalogService(db)


def get_order_service(
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
    notification_service: NotificationService = Depends(get_notification_service),
) -> OrderService:
    return OrderService(
        db=db,
        lock_service=lock_service,
        notification_service=notification_service,
    )
