# storefront/domain/errors.py
from decimal import Decimal


class StoreError(Exception):
    """
    Bazowy blad domeny sklepu.
    status_code i code sa tlumaczone na HTTPException w routerach.
    """

    status_code = 400
    code = "store_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(StoreError):
    status_code = 404
    code = "not_found"

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class EmptyCart(StoreError):
    code = "empty_cart"

    def __init__(self):
        super().__init__("Cart is empty")


class InvalidAttributeSelection(StoreError):
    status_code = 422
    code = "invalid_attribute_selection"


class NoMatchingVariant(StoreError):
    status_code = 404
    code = "no_matching_variant"


class DuplicateVariant(StoreError):
    status_code = 409
    code = "duplicate_variant"


class AttributeInUse(StoreError):
    status_code = 409
    code = "attribute_in_use"


class OutOfStock(StoreError):
    """Advisory, raised at cart time only."""

    status_code = 409
    code = "out_of_stock"

    def __init__(self, variant_id: int, available: int, requested: int):
        super().__init__(
            f"Variant {variant_id} has {available} units available, {requested} requested"
        )
        self.variant_id = variant_id
        self.available = available
        self.requested = requested


class InsufficientStock(StoreError):
    """Authoritative, raised by the checkout transaction."""

    status_code = 409
    code = "insufficient_stock"

    def __init__(self, variant_id: int, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for variant {variant_id}: "
            f"available={available}, requested={requested}"
        )
        self.variant_id = variant_id
        self.available = available
        self.requested = requested


class InvalidTransition(StoreError):
    status_code = 409
    code = "invalid_transition"

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move order from {current} to {target}")
        self.current = current
        self.target = target


class ConcurrentModification(StoreError):
    status_code = 409
    code = "concurrent_modification"


class CheckoutInProgress(StoreError):
    status_code = 409
    code = "checkout_in_progress"


class OrderNumberCollision(StoreError):
    """Retried internally, never reaches the client."""

    status_code = 500
    code = "order_number_collision"

    def __init__(self, order_number: str):
        super().__init__(f"Order number {order_number} already taken")
        self.order_number = order_number


class StoreUnavailable(StoreError):
    """Database timeout or lock wait; the caller may retry."""

    status_code = 503
    code = "store_unavailable"
    retryable = True


class PricingConfigError(Exception):
    """Malformed store settings. Fatal, not a user error."""

    def __init__(self, field: str, value: Decimal | None):
        super().__init__(f"Invalid pricing setting {field}={value}")
        self.field = field
        self.value = value
