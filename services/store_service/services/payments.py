"""
Payment gateway seam for checkout.

Only a simulated PayPal gateway ships today. It never talks to PayPal:
it reports success (or a declined payment when PAYMENT_SIMULATE_OUTCOME is
"failure") and assigns a SIMULATED_ payment id.
"""

import secrets
from dataclasses import dataclass
from typing import Optional

from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.store_service.models import Order, PaymentMethod

logger = get_logger(__name__)


@dataclass
class PaymentResult:
    """Outcome of a payment attempt."""

    success: bool
    gateway: str
    payment_id: Optional[str] = None
    error: Optional[str] = None
    simulated: bool = False

    @property
    def status(self) -> str:
        return "success" if self.success else "failed"


class PaymentGateway:
    """Base class for payment gateways used by checkout."""

    name = "base"

    async def attempt(self, order: Order) -> PaymentResult:
        raise NotImplementedError


class SimulatedPayPalGateway(PaymentGateway):
    name = PaymentMethod.PAYPAL.value

    def __init__(self, outcome: Optional[str] = None):
        self.outcome = outcome or get_settings().PAYMENT_SIMULATE_OUTCOME

    async def attempt(self, order: Order) -> PaymentResult:
        payment_id = f"SIMULATED_{secrets.token_hex(8).upper()}"
        currency = get_settings().PAYMENT_CURRENCY

        if self.outcome == "failure":
            logger.warning(
                "Simulated payment declined for order %s (%s %s)",
                order.order_number,
                order.total_amount,
                currency,
            )
            return PaymentResult(
                success=False,
                gateway=self.name,
                payment_id=payment_id,
                error="Payment declined - simulated failure",
                simulated=True,
            )

        logger.info(
            "Simulated payment %s captured for order %s (%s %s)",
            payment_id,
            order.order_number,
            order.total_amount,
            currency,
        )
        return PaymentResult(
            success=True,
            gateway=self.name,
            payment_id=payment_id,
            simulated=True,
        )


_GATEWAYS = {
    PaymentMethod.PAYPAL: SimulatedPayPalGateway,
}


def get_payment_gateway(method: PaymentMethod | str) -> PaymentGateway:
    """Return the gateway for an allow-listed payment method.

    Raises ValueError for methods outside the allow-list.
    """
    return _GATEWAYS[PaymentMethod(method)]()


def payment_gateway_factory():
    """FastAPI dependency returning the gateway lookup used by checkout.

    Override it in tests to substitute a gateway.
    """
    return get_payment_gateway
