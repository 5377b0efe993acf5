"""Store domain errors.

Raised from the service layer and rendered by FastAPI as
``{"detail": {"kind": ..., "message": ..., ...}}``.
"""

from typing import Any, Optional

from fastapi import HTTPException


class StoreError(HTTPException):
    """Base exception for store business errors."""

    kind = "store_error"
    status_code = 400

    def __init__(self, message: str, **extra: Any):
        self.message = message
        self.extra = extra
        super().__init__(
            status_code=self.status_code,
            detail={"kind": self.kind, "message": message, **extra},
        )


class CheckoutValidationError(StoreError):
    kind = "validation_error"
    status_code = 422

    def __init__(self, errors: list[dict], message: str = "Invalid checkout request"):
        self.errors = errors
        super().__init__(message, errors=errors)

    @property
    def fields(self) -> list[str]:
        return [error["field"] for error in self.errors]


class EmptyCartError(StoreError):
    kind = "empty_cart"
    status_code = 422

    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class InsufficientStockError(StoreError):
    kind = "insufficient_stock"
    status_code = 422

    def __init__(self, message: str, violations: Optional[list[dict]] = None):
        self.violations = violations or []
        super().__init__(message, violations=self.violations)


class InsufficientStockAtCommitError(StoreError):
    kind = "insufficient_stock_at_commit"
    status_code = 409

    def __init__(self, product_id, quantity: int):
        self.product_id = product_id
        self.quantity = quantity
        super().__init__(
            "Stock changed while your order was being placed. Please review your cart.",
            product_id=str(product_id),
            requested_quantity=quantity,
        )


class AddressNotFoundError(StoreError):
    kind = "address_not_found"
    status_code = 404

    def __init__(self, address_id):
        self.address_id = address_id
        super().__init__(f"Address {address_id} not found", address_id=str(address_id))


class AddressForbiddenError(StoreError):
    kind = "address_forbidden"
    status_code = 403

    def __init__(self, address_id):
        self.address_id = address_id
        super().__init__(
            "Address does not belong to the current user",
            address_id=str(address_id),
        )


class AddressInUseError(StoreError):
    kind = "address_in_use"
    status_code = 409

    def __init__(self, address_id):
        self.address_id = address_id
        super().__init__(
            "Address is referenced by an order and cannot be deleted",
            address_id=str(address_id),
        )


class PaymentFailedError(StoreError):
    kind = "payment_failed"
    status_code = 402

    def __init__(self, order_number: str, reason: Optional[str] = None):
        self.order_number = order_number
        self.reason = reason
        super().__init__(
            f"Payment failed: {reason or 'unknown error'}",
            order_number=order_number,
        )


class InvalidStatusTransitionError(StoreError):
    kind = "invalid_status_transition"
    status_code = 409

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot change order status from '{current}' to '{requested}'",
            current_status=current,
            requested_status=requested,
        )


class NotFoundError(StoreError):
    kind = "not_found"
    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)
