# storefront/api/routers/carts.py
from fastapi import APIRouter, Depends, Query

from storefront.api.deps import get_cart_service
from storefront.api.errors import service_errors
from storefront.domain.schemas import CartOut, ItemIn, ItemUpdate, MergeCartIn
from storefront.services.cart_service import CartOwner, CartService

router = APIRouter(prefix="/cart", tags=["cart"])


def get_owner(
    customer_id: int | None = Query(None, gt=0),
    session_id: str | None = Query(None),
) -> CartOwner:
    return CartOwner(customer_id=customer_id, session_id=session_id)


@router.get("", response_model=CartOut)
def get_cart(
    owner: CartOwner = Depends(get_owner),
    svc: CartService = Depends(get_cart_service),
):
    with service_errors():
        return svc.get_cart(owner)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: ItemIn,
    owner: CartOwner = Depends(get_owner),
    svc: CartService = Depends(get_cart_service),
):
    with service_errors():
        if payload.variant_id is not None:
            return svc.add_item(owner, payload.variant_id, payload.quantity)
        return svc.add_item_by_selection(
            owner,
            payload.product_id,
            payload.attribute_value_ids or [],
            payload.quantity,
        )


@router.patch("/items/{item_id}", response_model=CartOut)
def update_item(
    item_id: int,
    payload: ItemUpdate,
    owner: CartOwner = Depends(get_owner),
    svc: CartService = Depends(get_cart_service),
):
    with service_errors():
        return svc.update_item(owner, item_id, payload.quantity)


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(
    item_id: int,
    owner: CartOwner = Depends(get_owner),
    svc: CartService = Depends(get_cart_service),
):
    with service_errors():
        return svc.remove_item(owner, item_id)


@router.delete("", response_model=CartOut)
def clear_cart(
    owner: CartOwner = Depends(get_owner),
    svc: CartService = Depends(get_cart_service),
):
    with service_errors():
        return svc.clear(owner)


@router.post("/merge", response_model=CartOut)
def merge_carts(
    payload: MergeCartIn,
    svc: CartService = Depends(get_cart_service),
):
    """
    Po zalogowaniu laczy koszyk anonimowy z koszykiem klienta.
    """
    with service_errors():
        return svc.merge_carts(payload.session_id, payload.customer_id)
