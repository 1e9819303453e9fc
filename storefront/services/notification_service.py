# storefront/services/notification_service.py
from storefront.celery_worker import celery_app
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Powiadomienia klienta o zamowieniu.
    Wysylka przez Celery, poza transakcja zamowienia.
    """

    @staticmethod
    def send_order_notification(customer_id: int, order_number: str, total: str):
        send_order_notification_task.delay(customer_id, order_number, total)

    @staticmethod
    def send_status_notification(customer_id: int, order_number: str, status: str):
        send_status_notification_task.delay(customer_id, order_number, status)


@celery_app.task(name="storefront.services.notification_service.send_order_notification_task")
def send_order_notification_task(customer_id: int, order_number: str, total: str):
    # w produkcji tu bylby klient e-mail (SendGrid, SES)
    logger.info(f"[NOTIFICATION] Customer {customer_id}: order {order_number} placed, total {total}")
    return {"customer_id": customer_id, "order_number": order_number, "status": "sent"}


@celery_app.task(name="storefront.services.notification_service.send_status_notification_task")
def send_status_notification_task(customer_id: int, order_number: str, status: str):
    logger.info(f"[NOTIFICATION] Customer {customer_id}: order {order_number} is now {status}")
    return {"customer_id": customer_id, "order_number": order_number, "status": "sent"}
