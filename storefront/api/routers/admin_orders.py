# storefront/api/routers/admin_orders.py
from fastapi import APIRouter, Depends, Query

from storefront.api.deps import get_order_service
from storefront.api.errors import service_errors
from storefront.domain.schemas import OrderListOut, OrderOut, OrderStatus, OrderStatusUpdate
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/admin/orders", tags=["admin"])


@router.get("", response_model=OrderListOut)
def list_orders(
    status: OrderStatus | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    svc: OrderService = Depends(get_order_service),
):
    with service_errors():
        return svc.list_orders(status, page, limit)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: int, svc: OrderService = Depends(get_order_service)):
    with service_errors():
        return svc.get_order(order_id)


@router.patch("/{order_id}/status", response_model=OrderOut)
def update_status(
    order_id: int,
    payload: OrderStatusUpdate,
    svc: OrderService = Depends(get_order_service),
):
    """
    Zmiana statusu zamowienia przez obsluge.
    """
    with service_errors():
        return svc.update_status(
            order_id,
            payload.status,
            admin_notes=payload.admin_notes,
            expected_version=payload.expected_version,
        )


@router.post("/{order_id}/mark-paid", response_model=OrderOut)
def mark_paid(order_id: int, svc: OrderService = Depends(get_order_service)):
    with service_errors():
        return svc.mark_paid(order_id)
