"""Checkout workflow: cart -> stock check -> order -> payment -> finalize."""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.logging import get_logger
from pydantic import ValidationError as PydanticValidationError
from pydantic import TypeAdapter
from pydantic.networks import EmailStr
from services.store_service.errors import (
    CheckoutValidationError,
    EmptyCartError,
    InsufficientStockAtCommitError,
    InsufficientStockError,
    PaymentFailedError,
)
from services.store_service.models import Order, PaymentMethod
from services.store_service.schemas import CheckoutRequest
from services.store_service.services.cart_ops import CartIdentity, find_cart
from services.store_service.services.order_ops import (
    create_order_from_cart,
    finalize_order_payment,
)
from services.store_service.services.payments import (
    PaymentGateway,
    PaymentResult,
    get_payment_gateway,
)
from services.store_service.services.stock import validate_cart_stock
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

SHIPPING_METHOD_NAME_MAX_LENGTH = 100
NOTES_MAX_LENGTH = 1000
GUEST_EMAIL_MAX_LENGTH = 255

_email_adapter = TypeAdapter(EmailStr)


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


@dataclass
class CheckoutResult:
    order: Order
    payment: PaymentResult


def validate_checkout_request(
    request: CheckoutRequest, user: Optional[AuthUser]
) -> list[FieldError]:
    """Check a checkout request and return every field problem found.

    Pure: no database access. ``guest_email`` is only checked for guests.
    """
    errors: list[FieldError] = []

    if request.shipping_address_id is None:
        errors.append(
            FieldError("shipping_address_id", "The shipping address is required.")
        )

    if not request.payment_method:
        errors.append(FieldError("payment_method", "The payment method is required."))
    elif request.payment_method not in {method.value for method in PaymentMethod}:
        errors.append(
            FieldError("payment_method", "The selected payment method is invalid.")
        )

    if request.shipping_cost is not None:
        try:
            cost = Decimal(request.shipping_cost)
            if not cost.is_finite():
                raise InvalidOperation
        except (InvalidOperation, TypeError, ValueError):
            errors.append(FieldError("shipping_cost", "Shipping cost must be a number."))
        else:
            max_cost = get_settings().MAX_SHIPPING_COST
            if cost < 0 or cost > max_cost:
                errors.append(
                    FieldError(
                        "shipping_cost",
                        f"Shipping cost must be between 0 and {max_cost}.",
                    )
                )
            elif cost.as_tuple().exponent < -2:
                errors.append(
                    FieldError(
                        "shipping_cost",
                        "Shipping cost may have at most 2 decimal places.",
                    )
                )

    if (
        request.shipping_method_name
        and len(request.shipping_method_name) > SHIPPING_METHOD_NAME_MAX_LENGTH
    ):
        errors.append(
            FieldError(
                "shipping_method_name",
                f"Shipping method name may not exceed "
                f"{SHIPPING_METHOD_NAME_MAX_LENGTH} characters.",
            )
        )

    if request.notes and len(request.notes) > NOTES_MAX_LENGTH:
        errors.append(
            FieldError(
                "notes", f"Notes may not exceed {NOTES_MAX_LENGTH} characters."
            )
        )

    if user is None:
        if not request.guest_email:
            errors.append(
                FieldError("guest_email", "Email is required for guest checkout.")
            )
        elif len(request.guest_email) > GUEST_EMAIL_MAX_LENGTH:
            errors.append(
                FieldError(
                    "guest_email",
                    f"Email may not exceed {GUEST_EMAIL_MAX_LENGTH} characters.",
                )
            )
        else:
            try:
                _email_adapter.validate_python(request.guest_email)
            except PydanticValidationError:
                errors.append(
                    FieldError("guest_email", "Email must be a valid email address.")
                )

    return errors


async def checkout(
    db: AsyncSession,
    request: CheckoutRequest,
    *,
    user: Optional[AuthUser],
    session_id: Optional[str],
    gateway: Optional[PaymentGateway] = None,
) -> CheckoutResult:
    """Turn the caller's cart into an order and pay for it.

    Commits on success and on a declined payment (the order is kept as
    cancelled and PaymentFailedError is raised). Rolls everything back when
    stock ran out between the pre-check and the decrement.
    """
    errors = validate_checkout_request(request, user)
    if errors:
        raise CheckoutValidationError([error.to_dict() for error in errors])

    if user is not None:
        identity = CartIdentity(user_id=user.user_id)
    elif session_id:
        identity = CartIdentity(session_id=session_id)
    else:
        raise EmptyCartError()

    cart = await find_cart(db, identity)
    if not cart or not cart.items:
        raise EmptyCartError()

    violations = await validate_cart_stock(db, cart)
    if violations:
        raise InsufficientStockError(
            "Some items in your cart are no longer available in the requested quantity",
            violations=[violation.to_dict() for violation in violations],
        )

    gateway = gateway or get_payment_gateway(request.payment_method)

    order = await create_order_from_cart(
        db,
        cart,
        user_id=user.user_id if user else None,
        shipping_address_id=request.shipping_address_id,
        billing_address_id=request.billing_address_id,
        shipping_cost=(
            Decimal(request.shipping_cost)
            if request.shipping_cost is not None
            else Decimal("0.00")
        ),
        shipping_method_name=request.shipping_method_name,
        notes=request.notes,
        guest_email=request.guest_email if user is None else None,
        payment_gateway=gateway.name,
    )

    result = await gateway.attempt(order)

    if not result.success:
        order = await finalize_order_payment(db, order, result, cart)
        await db.commit()
        raise PaymentFailedError(order.order_number, result.error)

    try:
        order = await finalize_order_payment(db, order, result, cart)
    except InsufficientStockAtCommitError:
        cart_id = cart.id
        await db.rollback()
        logger.warning(
            "Checkout rolled back for cart %s: stock ran out before commit", cart_id
        )
        raise

    await db.commit()
    logger.info(
        "Checkout complete: order %s total=%s", order.order_number, order.total_amount
    )
    return CheckoutResult(order=order, payment=result)
