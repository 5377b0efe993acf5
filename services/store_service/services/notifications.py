"""Order notification emails."""

from typing import Optional

from libs.common.emails.store import send_store_order_confirmation_email
from libs.common.logging import get_logger
from services.store_service.models import Order

logger = get_logger(__name__)


def order_confirmation_payload(order: Order, to_email: str) -> dict:
    """Plain-data snapshot of an order for the confirmation email.

    Built while the session is open so the email can be sent after the
    response without touching the database.
    """
    shipping_address = order.shipping_address
    return {
        "to_email": to_email,
        "customer_name": shipping_address.full_name if shipping_address else None,
        "order_number": order.order_number,
        "items": [
            {
                "name": item.product_name,
                "quantity": item.quantity,
                "price": item.total_price,
            }
            for item in order.items
        ],
        "subtotal": order.subtotal_amount,
        "shipping_cost": order.shipping_cost,
        "total": order.total_amount,
        "shipping_address": (
            shipping_address.full_address if shipping_address else None
        ),
        "shipping_method_name": order.shipping_method_name,
    }


async def send_order_confirmation_email(payload: Optional[dict]) -> bool:
    """Send the confirmation email. Never raises."""
    if not payload or not payload.get("to_email"):
        return False
    try:
        sent = await send_store_order_confirmation_email(**payload)
    except Exception as e:
        logger.error(
            "Failed to send confirmation email for order %s: %s",
            payload.get("order_number"),
            e,
        )
        return False

    if sent:
        logger.info("Sent confirmation email for order %s", payload["order_number"])
    return sent
