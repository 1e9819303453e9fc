# storefront/tasks/expire.py
from datetime import datetime, timezone

from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal
from storefront.repos.cart_repo import CartRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def expire_anonymous_carts(db, now: datetime | None = None) -> int:
    """Usuwa porzucone koszyki anonimowe. Koszyki klientow nie wygasaja."""
    repo = CartRepo(db)
    now = now or datetime.now(timezone.utc)

    carts = repo.expired_anonymous_carts(now)
    logger.info(f"Found {len(carts)} anonymous carts to expire")

    for cart in carts:
        repo.delete_cart(cart)
    repo.commit()
    return len(carts)


@celery_app.task(name="storefront.tasks.expire.expire_carts_task")
def expire_carts_task():
    logger.info("Expire carts task started")

    db = SessionLocal()
    try:
        return expire_anonymous_carts(db)
    finally:
        db.close()
