"""Unit tests for the checkout workflow and its request validation."""

from decimal import Decimal

import pytest
from services.store_service.errors import (
    CheckoutValidationError,
    EmptyCartError,
    InsufficientStockAtCommitError,
    InsufficientStockError,
    PaymentFailedError,
)
from services.store_service.models import (
    Order,
    OrderStatus,
    PaymentStatus,
    Product,
)
from services.store_service.schemas import CheckoutRequest
from services.store_service.services.cart_ops import CartIdentity, find_cart
from services.store_service.services.checkout import (
    checkout,
    validate_checkout_request,
)
from services.store_service.services.payments import (
    PaymentGateway,
    PaymentResult,
    SimulatedPayPalGateway,
)
from sqlalchemy import func, select, update

from tests.conftest import make_member_user
from tests.factories import (
    AddressFactory,
    CartFactory,
    CartItemFactory,
    ProductFactory,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _seed(db, *objects):
    db.add_all(objects)
    await db.commit()


async def _order_count(db) -> int:
    result = await db.execute(select(func.count()).select_from(Order))
    return result.scalar()


async def _stock(db, product_id) -> int:
    result = await db.execute(
        select(Product.stock_quantity).where(Product.id == product_id)
    )
    return result.scalar_one()


async def _member_cart(db, user_id, product, quantity):
    address = AddressFactory.create(user_id=user_id)
    cart = CartFactory.create(user_id=user_id)
    await _seed(db, product, address, cart)
    await _seed(db, CartItemFactory.create(cart, product, quantity=quantity))
    return address


def _fields(errors) -> set[str]:
    return {error.field for error in errors}


class _StockThiefGateway(PaymentGateway):
    """Approves payment after another buyer has emptied the product's stock."""

    name = "paypal"

    def __init__(self, db, product_id):
        self.db = db
        self.product_id = product_id

    async def attempt(self, order):
        await self.db.execute(
            update(Product)
            .where(Product.id == self.product_id)
            .values(stock_quantity=0)
            .execution_options(synchronize_session=False)
        )
        return PaymentResult(
            success=True, gateway=self.name, payment_id="SIMULATED_LATE"
        )


# ---------------------------------------------------------------------------
# validate_checkout_request
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_missing_fields_are_all_reported():
    errors = validate_checkout_request(CheckoutRequest(), make_member_user())

    assert _fields(errors) == {"shipping_address_id", "payment_method"}


@pytest.mark.unit
def test_unknown_payment_method_is_rejected():
    request = CheckoutRequest(
        shipping_address_id="7b0e5a52-56c4-4f11-9a8c-4c2f0c4b1a11",
        payment_method="bitcoin",
    )

    errors = validate_checkout_request(request, make_member_user())

    assert _fields(errors) == {"payment_method"}


@pytest.mark.unit
@pytest.mark.parametrize("cost", ["-1", "10000.00", "12.345"])
def test_shipping_cost_bounds_and_precision(cost):
    request = CheckoutRequest(
        shipping_address_id="7b0e5a52-56c4-4f11-9a8c-4c2f0c4b1a11",
        payment_method="paypal",
        shipping_cost=Decimal(cost),
    )

    errors = validate_checkout_request(request, make_member_user())

    assert _fields(errors) == {"shipping_cost"}


@pytest.mark.unit
def test_long_text_fields_are_rejected():
    request = CheckoutRequest(
        shipping_address_id="7b0e5a52-56c4-4f11-9a8c-4c2f0c4b1a11",
        payment_method="paypal",
        shipping_method_name="x" * 101,
        notes="n" * 1001,
    )

    errors = validate_checkout_request(request, make_member_user())

    assert _fields(errors) == {"shipping_method_name", "notes"}


@pytest.mark.unit
@pytest.mark.parametrize("email", [None, "", "not-an-email", "a" * 250 + "@x.com"])
def test_guest_email_is_required_and_valid(email):
    request = CheckoutRequest(
        shipping_address_id="7b0e5a52-56c4-4f11-9a8c-4c2f0c4b1a11",
        payment_method="paypal",
        guest_email=email,
    )

    errors = validate_checkout_request(request, None)

    assert _fields(errors) == {"guest_email"}


@pytest.mark.unit
def test_guest_email_is_ignored_for_members():
    request = CheckoutRequest(
        shipping_address_id="7b0e5a52-56c4-4f11-9a8c-4c2f0c4b1a11",
        payment_method="paypal",
    )

    assert validate_checkout_request(request, make_member_user()) == []


# ---------------------------------------------------------------------------
# checkout
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_member_checkout_pays_and_clears_cart(db_session):
    user = make_member_user(user_id="user-checkout")
    product = ProductFactory.create(price=Decimal("100.00"), stock_quantity=5)
    address = await _member_cart(db_session, user.user_id, product, 2)

    result = await checkout(
        db_session,
        CheckoutRequest(
            shipping_address_id=address.id,
            payment_method="paypal",
            shipping_cost=Decimal("15.00"),
        ),
        user=user,
        session_id=None,
        gateway=SimulatedPayPalGateway(outcome="success"),
    )

    order = result.order
    assert result.payment.success
    assert result.payment.payment_id.startswith("SIMULATED_")
    assert order.user_id == user.user_id
    assert order.guest_email is None
    assert order.total_amount == Decimal("215.00")
    assert order.status == OrderStatus.PROCESSING
    assert order.payment_status == PaymentStatus.PAID
    assert await _stock(db_session, product.id) == 3

    cart = await find_cart(db_session, CartIdentity(user_id=user.user_id))
    assert cart.items == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_guest_checkout_records_email_without_user(db_session):
    product = ProductFactory.create(stock_quantity=5)
    address = AddressFactory.create(user_id=None)
    cart = CartFactory.create(user_id=None, session_id="session-guest-checkout")
    await _seed(db_session, product, address, cart)
    await _seed(db_session, CartItemFactory.create(cart, product, quantity=1))

    result = await checkout(
        db_session,
        CheckoutRequest(
            shipping_address_id=address.id,
            payment_method="paypal",
            guest_email="guest@example.com",
        ),
        user=None,
        session_id="session-guest-checkout",
        gateway=SimulatedPayPalGateway(outcome="success"),
    )

    assert result.order.user_id is None
    assert result.order.guest_email == "guest@example.com"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_guest_checkout_without_email_fails_validation(db_session):
    with pytest.raises(CheckoutValidationError) as exc_info:
        await checkout(
            db_session,
            CheckoutRequest(
                shipping_address_id="7b0e5a52-56c4-4f11-9a8c-4c2f0c4b1a11",
                payment_method="paypal",
            ),
            user=None,
            session_id="session-no-email",
        )

    assert exc_info.value.status_code == 422
    assert "guest_email" in exc_info.value.fields


@pytest.mark.asyncio
@pytest.mark.unit
async def test_checkout_with_empty_cart(db_session):
    user = make_member_user(user_id="user-no-cart")
    address = AddressFactory.create(user_id=user.user_id)
    await _seed(db_session, address)

    with pytest.raises(EmptyCartError):
        await checkout(
            db_session,
            CheckoutRequest(shipping_address_id=address.id, payment_method="paypal"),
            user=user,
            session_id=None,
        )

    assert await _order_count(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_checkout_stops_before_order_when_stock_is_short(db_session):
    user = make_member_user(user_id="user-short")
    product = ProductFactory.create(stock_quantity=1)
    address = await _member_cart(db_session, user.user_id, product, 3)

    with pytest.raises(InsufficientStockError) as exc_info:
        await checkout(
            db_session,
            CheckoutRequest(shipping_address_id=address.id, payment_method="paypal"),
            user=user,
            session_id=None,
        )

    assert exc_info.value.violations[0]["available_stock"] == 1
    assert await _order_count(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_declined_payment_keeps_cancelled_order(db_session):
    user = make_member_user(user_id="user-declined-checkout")
    product = ProductFactory.create(stock_quantity=5)
    address = await _member_cart(db_session, user.user_id, product, 2)

    with pytest.raises(PaymentFailedError) as exc_info:
        await checkout(
            db_session,
            CheckoutRequest(shipping_address_id=address.id, payment_method="paypal"),
            user=user,
            session_id=None,
            gateway=SimulatedPayPalGateway(outcome="failure"),
        )

    assert exc_info.value.status_code == 402
    result = await db_session.execute(
        select(Order).where(Order.order_number == exc_info.value.order_number)
    )
    order = result.scalar_one()
    assert order.status == OrderStatus.CANCELLED
    assert order.payment_status == PaymentStatus.FAILED
    assert await _stock(db_session, product.id) == 5

    cart = await find_cart(db_session, CartIdentity(user_id=user.user_id))
    assert [item.quantity for item in cart.items] == [2]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_stock_lost_after_payment_rolls_back_order(db_session):
    user = make_member_user(user_id="user-late")
    product = ProductFactory.create(stock_quantity=2)
    address = await _member_cart(db_session, user.user_id, product, 2)

    with pytest.raises(InsufficientStockAtCommitError):
        await checkout(
            db_session,
            CheckoutRequest(shipping_address_id=address.id, payment_method="paypal"),
            user=user,
            session_id=None,
            gateway=_StockThiefGateway(db_session, product.id),
        )

    assert await _order_count(db_session) == 0
    cart = await find_cart(db_session, CartIdentity(user_id=user.user_id))
    assert [item.quantity for item in cart.items] == [2]
