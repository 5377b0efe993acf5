"""Integration tests for checkout and order history endpoints."""

from decimal import Decimal

import pytest
from services.store_service.services.payments import (
    SimulatedPayPalGateway,
    payment_gateway_factory,
)

from tests.conftest import make_member_user, override_auth
from tests.factories import AddressFactory, ProductFactory

GUEST = {"X-Session-ID": "session-checkout"}


async def _seed(db_session, *objects):
    db_session.add_all(objects)
    await db_session.commit()


async def _fill_cart(client, product, quantity, headers=None):
    response = await client.post(
        "/store/cart/items",
        json={"product_id": str(product.id), "quantity": quantity},
        headers=headers,
    )
    assert response.status_code == 200, response.text


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_member_checkout_creates_paid_order(store_client, db_session):
    from services.store_service.app.main import app

    user = make_member_user(user_id="user-http-checkout")
    product = ProductFactory.create(price=Decimal("100.00"), stock_quantity=5)
    address = AddressFactory.create(user_id=user.user_id)
    await _seed(db_session, product, address)

    with override_auth(app, user):
        await _fill_cart(store_client, product, 2)
        response = await store_client.post(
            "/store/checkout",
            json={
                "shipping_address_id": str(address.id),
                "payment_method": "paypal",
                "shipping_cost": "15.00",
                "shipping_method_name": "Express",
            },
        )
        assert response.status_code == 201, response.text
        data = response.json()

        cart = (await store_client.get("/store/cart")).json()

    order = data["order"]
    assert order["status"] == "processing"
    assert order["payment_status"] == "paid"
    assert Decimal(order["subtotal_amount"]) == Decimal("200.00")
    assert Decimal(order["total_amount"]) == Decimal("215.00")
    assert order["user_id"] == user.user_id
    assert data["payment"]["status"] == "success"
    assert data["payment"]["simulated"] is True
    assert data["payment"]["payment_id"].startswith("SIMULATED_")
    assert cart["items"] == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_guest_checkout_with_guest_address(store_client, db_session):
    product = ProductFactory.create(stock_quantity=3)
    await _seed(db_session, product)
    await _fill_cart(store_client, product, 1, headers=GUEST)

    address = await store_client.post(
        "/store/addresses",
        json={
            "type": "shipping",
            "first_name": "Guest",
            "last_name": "Buyer",
            "address_line_1": "5 Main St",
            "city": "Monterrey",
            "state": "NL",
            "postal_code": "64000",
            "country": "Mexico",
        },
    )
    assert address.status_code == 201, address.text
    assert address.json()["user_id"] is None

    response = await store_client.post(
        "/store/checkout",
        json={
            "shipping_address_id": address.json()["id"],
            "payment_method": "paypal",
            "guest_email": "guest@example.com",
        },
        headers=GUEST,
    )

    assert response.status_code == 201, response.text
    order = response.json()["order"]
    assert order["user_id"] is None
    assert order["guest_email"] == "guest@example.com"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_validation_errors_are_field_keyed(store_client, db_session):
    response = await store_client.post(
        "/store/checkout",
        json={"payment_method": "bitcoin", "shipping_cost": "-5"},
        headers=GUEST,
    )

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["kind"] == "validation_error"
    fields = {error["field"] for error in detail["errors"]}
    assert fields == {
        "shipping_address_id",
        "payment_method",
        "shipping_cost",
        "guest_email",
    }


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_with_empty_cart(store_client, db_session):
    from services.store_service.app.main import app

    user = make_member_user(user_id="user-empty-http")
    address = AddressFactory.create(user_id=user.user_id)
    await _seed(db_session, address)

    with override_auth(app, user):
        response = await store_client.post(
            "/store/checkout",
            json={"shipping_address_id": str(address.id), "payment_method": "paypal"},
        )

    assert response.status_code == 422
    assert response.json()["detail"]["kind"] == "empty_cart"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_with_foreign_address(store_client, db_session):
    from services.store_service.app.main import app

    user = make_member_user(user_id="user-foreign-http")
    product = ProductFactory.create()
    address = AddressFactory.create(user_id="another-user")
    await _seed(db_session, product, address)

    with override_auth(app, user):
        await _fill_cart(store_client, product, 1)
        response = await store_client.post(
            "/store/checkout",
            json={"shipping_address_id": str(address.id), "payment_method": "paypal"},
        )

    assert response.status_code == 403
    assert response.json()["detail"]["kind"] == "address_forbidden"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_declined_payment_returns_402(store_client, db_session):
    from services.store_service.app.main import app

    user = make_member_user(user_id="user-declined-http")
    product = ProductFactory.create(stock_quantity=4)
    address = AddressFactory.create(user_id=user.user_id)
    await _seed(db_session, product, address)

    app.dependency_overrides[payment_gateway_factory] = lambda: (
        lambda method: SimulatedPayPalGateway(outcome="failure")
    )
    try:
        with override_auth(app, user):
            await _fill_cart(store_client, product, 2)
            response = await store_client.post(
                "/store/checkout",
                json={
                    "shipping_address_id": str(address.id),
                    "payment_method": "paypal",
                },
            )
            assert response.status_code == 402, response.text
            order_number = response.json()["detail"]["order_number"]

            order = await store_client.get(f"/store/orders/{order_number}")
            cart = (await store_client.get("/store/cart")).json()
    finally:
        app.dependency_overrides.pop(payment_gateway_factory, None)

    assert order.status_code == 200
    assert order.json()["status"] == "cancelled"
    assert order.json()["payment_status"] == "failed"
    assert cart["total_items"] == 2


# ---------------------------------------------------------------------------
# Order history
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_order_history_stats_and_cancel(store_client, db_session):
    from services.store_service.app.main import app

    user = make_member_user(user_id="user-history")
    product = ProductFactory.create(price=Decimal("50.00"), stock_quantity=5)
    address = AddressFactory.create(user_id=user.user_id)
    await _seed(db_session, product, address)

    with override_auth(app, user):
        await _fill_cart(store_client, product, 2)
        checkout = await store_client.post(
            "/store/checkout",
            json={"shipping_address_id": str(address.id), "payment_method": "paypal"},
        )
        order_number = checkout.json()["order"]["order_number"]

        listing = (await store_client.get("/store/orders")).json()
        stats = (await store_client.get("/store/orders/stats")).json()
        detail = (await store_client.get(f"/store/orders/{order_number}")).json()
        cancelled = await store_client.post(
            f"/store/orders/{order_number}/cancel", json={"reason": "Wrong size"}
        )

    assert listing["total"] == 1
    assert listing["items"][0]["order_number"] == order_number
    assert stats["total_orders"] == 1
    assert stats["by_status"]["processing"] == 1
    assert Decimal(stats["total_spent"]) == Decimal("100.00")
    assert detail["shipping_address"]["id"] == str(address.id)

    assert cancelled.status_code == 200, cancelled.text
    assert cancelled.json()["status"] == "cancelled"
    assert cancelled.json()["payment_status"] == "refunded"
    await db_session.refresh(product)
    assert product.stock_quantity == 5


@pytest.mark.asyncio
@pytest.mark.integration
async def test_other_users_order_is_forbidden(store_client, db_session):
    from services.store_service.app.main import app

    owner = make_member_user(user_id="user-owner-http")
    product = ProductFactory.create()
    address = AddressFactory.create(user_id=owner.user_id)
    await _seed(db_session, product, address)

    with override_auth(app, owner):
        await _fill_cart(store_client, product, 1)
        checkout = await store_client.post(
            "/store/checkout",
            json={"shipping_address_id": str(address.id), "payment_method": "paypal"},
        )
    order_number = checkout.json()["order"]["order_number"]

    with override_auth(app, make_member_user(user_id="user-snoop")):
        response = await store_client.get(f"/store/orders/{order_number}")
        missing = await store_client.get("/store/orders/CM-2026-NOPE0000")

    assert response.status_code == 403
    assert missing.status_code == 404
