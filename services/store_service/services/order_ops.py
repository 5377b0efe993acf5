"""Order operations: assemble from cart, apply payment result, status changes."""

import uuid
from decimal import Decimal
from typing import Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.store_service.errors import (
    AddressForbiddenError,
    AddressNotFoundError,
    CheckoutValidationError,
    EmptyCartError,
    InvalidStatusTransitionError,
)
from services.store_service.models import (
    Address,
    Cart,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
)
from services.store_service.models.enums import (
    CANCELLABLE_ORDER_STATUSES,
    ORDER_STATUS_TRANSITIONS,
)
from services.store_service.services.cart_ops import clear_cart, load_cart
from services.store_service.services.payments import PaymentResult
from services.store_service.services.stock import decrement_stock, restore_stock
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)

CENT = Decimal("0.01")


def _append_note(order: Order, note: str) -> None:
    order.notes = f"{order.notes}\n\n{note}" if order.notes else note


async def load_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    """Re-read an order with its items and addresses."""
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .options(
            selectinload(Order.items),
            selectinload(Order.shipping_address),
            selectinload(Order.billing_address),
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


async def _get_order_address(
    db: AsyncSession, address_id: uuid.UUID, user_id: Optional[str]
) -> Address:
    address = await db.get(Address, address_id)
    if not address:
        raise AddressNotFoundError(address_id)
    # Members may only use their own addresses, guests only guest addresses
    if address.user_id != user_id:
        raise AddressForbiddenError(address_id)
    return address


async def _generate_unique_order_number(db: AsyncSession) -> str:
    settings = get_settings()
    for _ in range(settings.ORDER_NUMBER_MAX_ATTEMPTS):
        candidate = Order.generate_order_number(settings.ORDER_NUMBER_PREFIX)
        result = await db.execute(
            select(func.count())
            .select_from(Order)
            .where(Order.order_number == candidate)
        )
        if not result.scalar():
            return candidate
        logger.warning("Order number collision on %s, retrying", candidate)
    raise RuntimeError(
        f"Could not generate a unique order number after "
        f"{settings.ORDER_NUMBER_MAX_ATTEMPTS} attempts"
    )


async def create_order_from_cart(
    db: AsyncSession,
    cart: Cart,
    *,
    shipping_address_id: uuid.UUID,
    user_id: Optional[str] = None,
    billing_address_id: Optional[uuid.UUID] = None,
    shipping_cost: Decimal = Decimal("0"),
    shipping_method_name: Optional[str] = None,
    notes: Optional[str] = None,
    guest_email: Optional[str] = None,
    payment_gateway: Optional[str] = None,
) -> Order:
    """Snapshot a cart into a pending order.

    The order and its items are flushed inside one savepoint. The subtotal is
    derived from the line quantities and unit prices, not from the cart's
    cached totals.
    """
    cart = await load_cart(db, cart.id)
    if not cart.items:
        raise EmptyCartError()

    if user_id is None and not guest_email:
        raise CheckoutValidationError(
            [
                {
                    "field": "guest_email",
                    "message": "Guest email is required for guest checkout",
                }
            ]
        )
    if user_id is not None and guest_email:
        raise CheckoutValidationError(
            [
                {
                    "field": "guest_email",
                    "message": "Guest email is only accepted for guest checkout",
                }
            ]
        )

    await _get_order_address(db, shipping_address_id, user_id)
    if billing_address_id and billing_address_id != shipping_address_id:
        await _get_order_address(db, billing_address_id, user_id)

    order_number = await _generate_unique_order_number(db)

    shipping_cost = Decimal(shipping_cost).quantize(CENT)
    lines = [
        (item, (item.unit_price * item.quantity).quantize(CENT)) for item in cart.items
    ]
    subtotal = sum((line_total for _, line_total in lines), start=Decimal("0"))

    order = Order(
        order_number=order_number,
        user_id=user_id,
        guest_email=guest_email if user_id is None else None,
        shipping_address_id=shipping_address_id,
        billing_address_id=billing_address_id or shipping_address_id,
        subtotal_amount=subtotal,
        shipping_cost=shipping_cost,
        total_amount=subtotal + shipping_cost,
        shipping_method_name=shipping_method_name,
        notes=notes,
        payment_gateway=payment_gateway,
        status=OrderStatus.PENDING_PAYMENT,
        payment_status=PaymentStatus.PENDING,
    )

    async with db.begin_nested():
        db.add(order)
        await db.flush()
        for item, line_total in lines:
            db.add(
                OrderItem(
                    order_id=order.id,
                    product_id=item.product_id,
                    product_name=item.product.name,
                    quantity=item.quantity,
                    price_per_unit=item.unit_price,
                    total_price=line_total,
                )
            )
        await db.flush()

    logger.info(
        "Created order %s from cart %s (items=%d subtotal=%s total=%s)",
        order.order_number,
        cart.id,
        len(lines),
        order.subtotal_amount,
        order.total_amount,
    )
    return await load_order(db, order.id)


# ---------------------------------------------------------------------------
# Status changes
# ---------------------------------------------------------------------------


def transition_order_status(order: Order, new_status: OrderStatus) -> Order:
    """Move an order along the status state machine.

    pending_payment -> processing -> shipped -> delivered, with cancellation
    allowed from pending_payment and processing.
    """
    current = OrderStatus(order.status)
    new_status = OrderStatus(new_status)
    if new_status not in ORDER_STATUS_TRANSITIONS[current]:
        raise InvalidStatusTransitionError(current.value, new_status.value)

    order.status = new_status
    now = utc_now()
    if new_status == OrderStatus.SHIPPED:
        order.shipped_at = now
    elif new_status == OrderStatus.DELIVERED:
        order.delivered_at = now
    elif new_status == OrderStatus.CANCELLED:
        order.cancelled_at = now
    return order


async def finalize_order_payment(
    db: AsyncSession,
    order: Order,
    result: PaymentResult,
    cart: Cart,
) -> Order:
    """Apply a payment result to a pending order.

    Success takes the ordered quantities out of stock (raising
    InsufficientStockAtCommitError if any product ran short), marks the order
    paid and clears the cart. Failure cancels the order and records the
    reason; stock and cart are left alone.
    """
    if OrderStatus(order.status) != OrderStatus.PENDING_PAYMENT:
        raise InvalidStatusTransitionError(
            OrderStatus(order.status).value,
            (OrderStatus.PROCESSING if result.success else OrderStatus.CANCELLED).value,
        )

    if result.success:
        await decrement_stock(
            db,
            [
                (item.product_id, item.quantity)
                for item in order.items
                if item.product_id is not None
            ],
        )
        transition_order_status(order, OrderStatus.PROCESSING)
        order.payment_status = PaymentStatus.PAID
        order.payment_id = result.payment_id
        order.payment_gateway = result.gateway
        order.paid_at = utc_now()
        await db.flush()
        await clear_cart(db, cart)
        logger.info(
            "Order %s paid via %s (payment_id=%s)",
            order.order_number,
            result.gateway,
            result.payment_id,
        )
    else:
        transition_order_status(order, OrderStatus.CANCELLED)
        order.payment_status = PaymentStatus.FAILED
        order.payment_id = result.payment_id
        order.payment_gateway = result.gateway
        _append_note(order, f"Payment failed: {result.error or 'unknown error'}")
        await db.flush()
        logger.warning(
            "Payment failed for order %s: %s", order.order_number, result.error
        )

    return await load_order(db, order.id)


async def cancel_order(db: AsyncSession, order: Order, reason: str) -> Order:
    """Cancel an order, putting stock back if it had been paid."""
    if OrderStatus(order.status) not in CANCELLABLE_ORDER_STATUSES:
        raise InvalidStatusTransitionError(
            OrderStatus(order.status).value, OrderStatus.CANCELLED.value
        )

    order = await load_order(db, order.id)
    if order.payment_status == PaymentStatus.PAID:
        await restore_stock(
            db,
            [
                (item.product_id, item.quantity)
                for item in order.items
                if item.product_id is not None
            ],
        )
        order.payment_status = PaymentStatus.REFUNDED

    transition_order_status(order, OrderStatus.CANCELLED)
    _append_note(order, f"Cancellation reason: {reason}")
    await db.flush()

    logger.info("Cancelled order %s: %s", order.order_number, reason)
    return await load_order(db, order.id)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def get_user_order_stats(db: AsyncSession, user_id: str) -> dict:
    """Order counts per status and total spent on paid orders."""
    result = await db.execute(
        select(Order.status, func.count())
        .where(Order.user_id == user_id)
        .group_by(Order.status)
    )
    by_status = {status.value: 0 for status in OrderStatus}
    for status, count in result:
        by_status[OrderStatus(status).value] = count

    spent_result = await db.execute(
        select(func.coalesce(func.sum(Order.total_amount), 0)).where(
            Order.user_id == user_id,
            Order.payment_status == PaymentStatus.PAID,
        )
    )
    total_spent = Decimal(str(spent_result.scalar() or 0)).quantize(CENT)

    return {
        "total_orders": sum(by_status.values()),
        "by_status": by_status,
        "total_spent": total_spent,
    }
