"""Integration tests for admin order management endpoints."""

from decimal import Decimal

import pytest
from services.store_service.models import OrderStatus, PaymentStatus, StoreAuditLog
from sqlalchemy import select

from tests.conftest import make_admin_user, make_member_user, override_auth
from tests.factories import (
    AddressFactory,
    OrderFactory,
    OrderItemFactory,
    ProductFactory,
)


async def _paid_order(db_session, stock=3, quantity=2, **overrides):
    product = ProductFactory.create(stock_quantity=stock)
    address = AddressFactory.create(user_id="user-admin-orders")
    db_session.add_all([product, address])
    await db_session.commit()

    defaults = {
        "status": OrderStatus.PROCESSING,
        "payment_status": PaymentStatus.PAID,
    }
    defaults.update(overrides)
    order = OrderFactory.create(address, **defaults)
    db_session.add(order)
    await db_session.commit()
    db_session.add(OrderItemFactory.create(order, product, quantity=quantity))
    await db_session.commit()
    return order, product


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_order_endpoints_require_admin(store_client, db_session):
    from services.store_service.app.main import app

    with override_auth(app, make_member_user()):
        response = await store_client.get("/admin/store/orders")

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_search_by_status(store_client, db_session):
    from services.store_service.app.main import app

    paid, _ = await _paid_order(db_session)
    address = AddressFactory.create(user_id=None)
    db_session.add(address)
    await db_session.commit()
    db_session.add(
        OrderFactory.create(
            address,
            guest_email="walkin@example.com",
            status=OrderStatus.CANCELLED,
            payment_status=PaymentStatus.FAILED,
            total_amount=Decimal("10.00"),
        )
    )
    await db_session.commit()

    with override_auth(app, make_admin_user()):
        processing = await store_client.get(
            "/admin/store/orders", params={"status": "processing"}
        )
        by_email = await store_client.get(
            "/admin/store/orders", params={"guest_email": "walkin"}
        )

    assert processing.status_code == 200
    assert [o["order_number"] for o in processing.json()["items"]] == [
        paid.order_number
    ]
    assert by_email.json()["total"] == 1
    assert by_email.json()["items"][0]["status"] == "cancelled"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_moves_order_through_fulfilment(store_client, db_session):
    from services.store_service.app.main import app

    order, _ = await _paid_order(db_session)

    with override_auth(app, make_admin_user(user_id="admin-ship")):
        shipped = await store_client.patch(
            f"/admin/store/orders/{order.id}/status",
            json={"status": "shipped", "notes": "Tracking 1Z999"},
        )
        delivered = await store_client.patch(
            f"/admin/store/orders/{order.id}/status", json={"status": "delivered"}
        )
        backwards = await store_client.patch(
            f"/admin/store/orders/{order.id}/status", json={"status": "shipped"}
        )

    assert shipped.status_code == 200, shipped.text
    assert shipped.json()["shipped_at"] is not None
    assert "Tracking 1Z999" in shipped.json()["notes"]
    assert delivered.json()["status"] == "delivered"
    assert backwards.status_code == 409
    assert backwards.json()["detail"]["kind"] == "invalid_status_transition"

    result = await db_session.execute(
        select(StoreAuditLog.action).where(StoreAuditLog.entity_id == order.id)
    )
    assert sorted(result.scalars().all()) == ["status_changed", "status_changed"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_status_endpoint_refuses_cancellation(store_client, db_session):
    from services.store_service.app.main import app

    order, _ = await _paid_order(db_session)

    with override_auth(app, make_admin_user()):
        response = await store_client.patch(
            f"/admin/store/orders/{order.id}/status", json={"status": "cancelled"}
        )

    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_status_endpoint_refuses_processing_for_unpaid_order(
    store_client, db_session
):
    from services.store_service.app.main import app

    order, product = await _paid_order(
        db_session,
        stock=3,
        status=OrderStatus.PENDING_PAYMENT,
        payment_status=PaymentStatus.PENDING,
    )

    with override_auth(app, make_admin_user()):
        response = await store_client.patch(
            f"/admin/store/orders/{order.id}/status", json={"status": "processing"}
        )
        detail = await store_client.get(f"/admin/store/orders/{order.id}")

    assert response.status_code == 400
    assert detail.json()["status"] == "pending_payment"
    assert detail.json()["payment_status"] == "pending"
    await db_session.refresh(product)
    assert product.stock_quantity == 3


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_cancel_restores_stock(store_client, db_session):
    from services.store_service.app.main import app

    order, product = await _paid_order(db_session, stock=3, quantity=2)

    with override_auth(app, make_admin_user()):
        response = await store_client.post(
            f"/admin/store/orders/{order.id}/cancel", json={"reason": "Fraud check"}
        )
        detail = await store_client.get(f"/admin/store/orders/{order.id}")

    assert response.status_code == 200, response.text
    assert response.json()["payment_status"] == "refunded"
    assert detail.json()["status"] == "cancelled"
    assert "Cancellation reason: Fraud check" in detail.json()["notes"]
    await db_session.refresh(product)
    assert product.stock_quantity == 5


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_unknown_order_is_not_found(store_client, db_session):
    from services.store_service.app.main import app

    with override_auth(app, make_admin_user()):
        response = await store_client.get(
            "/admin/store/orders/7b0e5a52-56c4-4f11-9a8c-4c2f0c4b1a11"
        )

    assert response.status_code == 404
