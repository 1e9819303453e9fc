# storefront/api/routers/orders.py
from fastapi import APIRouter, Depends, Query

from storefront.api.deps import get_order_service
from storefront.api.errors import service_errors
from storefront.api.routers.carts import get_owner
from storefront.domain.schemas import (
    CheckoutIn,
    DeliveryType,
    OrderListOut,
    OrderOut,
    PreviewOut,
)
from storefront.services.cart_service import CartOwner
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("/preview", response_model=PreviewOut)
def preview(
    delivery_type: DeliveryType = Query(...),
    owner: CartOwner = Depends(get_owner),
    svc: OrderService = Depends(get_order_service),
):
    """
    Podglad sum koszyka dla wybranego sposobu dostawy.
    """
    with service_errors():
        return svc.preview(owner, delivery_type)


@router.post("", response_model=OrderOut, status_code=201)
def checkout(
    payload: CheckoutIn,
    svc: OrderService = Depends(get_order_service),
):
    """
    Tworzy zamowienie z koszyka klienta.
    Wysyla powiadomienie asynchronicznie.
    """
    with service_errors():
        return svc.checkout(
            customer_id=payload.customer_id,
            delivery_type=payload.delivery_type,
            payment_method=payload.payment_method,
            address_id=payload.address_id,
            customer_notes=payload.customer_notes,
        )


@router.get("", response_model=OrderListOut)
def list_orders(
    customer_id: int = Query(..., gt=0),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    svc: OrderService = Depends(get_order_service),
):
    with service_errors():
        return svc.list_customer_orders(customer_id, page, limit)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    customer_id: int = Query(..., gt=0),
    svc: OrderService = Depends(get_order_service),
):
    """
    Pobiera szczegoly zamowienia.
    """
    with service_errors():
        return svc.get_order(order_id, customer_id)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    customer_id: int = Query(..., gt=0),
    svc: OrderService = Depends(get_order_service),
):
    with service_errors():
        return svc.cancel_order(order_id, customer_id)
