# storefront/domain/order_status.py
from storefront.domain.errors import InvalidTransition
from storefront.domain.pricing import HOME_DELIVERY, STORE_PICKUP

PENDING = "PENDING"
CONFIRMED = "CONFIRMED"
PREPARING = "PREPARING"
READY_FOR_PICKUP = "READY_FOR_PICKUP"
OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
DELIVERED = "DELIVERED"
CANCELLED = "CANCELLED"

ORDER_STATUSES = (
    PENDING,
    CONFIRMED,
    PREPARING,
    READY_FOR_PICKUP,
    OUT_FOR_DELIVERY,
    DELIVERED,
    CANCELLED,
)

TERMINAL = frozenset({DELIVERED, CANCELLED})

# cancelling from these gives the reserved stock back
RESTOCK_ON_CANCEL = frozenset({PENDING, CONFIRMED})

_TRANSITIONS = {
    PENDING: {CONFIRMED, CANCELLED},
    CONFIRMED: {PREPARING, CANCELLED},
    PREPARING: {READY_FOR_PICKUP, OUT_FOR_DELIVERY, CANCELLED},
    READY_FOR_PICKUP: {DELIVERED, CANCELLED},
    OUT_FOR_DELIVERY: {DELIVERED, CANCELLED},
    DELIVERED: set(),
    CANCELLED: set(),
}

#galaz po PREPARING zalezy od sposobu dostawy
_DELIVERY_ONLY = {
    READY_FOR_PICKUP: STORE_PICKUP,
    OUT_FOR_DELIVERY: HOME_DELIVERY,
}


def allowed_targets(current: str, delivery_type: str) -> set[str]:
    targets = set(_TRANSITIONS.get(current, set()))
    return {
        t for t in targets
        if _DELIVERY_ONLY.get(t) in (None, delivery_type)
    }


def check_transition(current: str, target: str, delivery_type: str) -> None:
    if target not in ORDER_STATUSES:
        raise InvalidTransition(current, target)
    if current in TERMINAL or target not in allowed_targets(current, delivery_type):
        raise InvalidTransition(current, target)
