"""Unit tests for address_ops and the one-default-per-type rule."""

import pytest
from services.store_service.errors import AddressForbiddenError, AddressInUseError
from services.store_service.models import Address, AddressType
from services.store_service.schemas import AddressCreate, AddressUpdate
from services.store_service.services.address_ops import (
    create_address,
    delete_address,
    list_addresses,
    set_default_address,
    update_address,
)
from sqlalchemy import func, select

from tests.factories import AddressFactory, OrderFactory

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _address_in(**overrides) -> AddressCreate:
    data = {
        "type": AddressType.SHIPPING,
        "first_name": "Grace",
        "last_name": "Hopper",
        "address_line_1": "1 Harbor Way",
        "city": "Arlington",
        "state": "VA",
        "postal_code": "22201",
        "country": "USA",
    }
    data.update(overrides)
    return AddressCreate(**data)


async def _default_ids(db, user_id, address_type) -> list:
    result = await db.execute(
        select(Address.id).where(
            Address.user_id == user_id,
            Address.type == address_type,
            Address.is_default.is_(True),
        )
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Default invariant
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_new_default_replaces_previous_default(db_session):
    first = await create_address(db_session, _address_in(is_default=True), "user-a")
    second = await create_address(db_session, _address_in(is_default=True), "user-a")

    assert await _default_ids(db_session, "user-a", AddressType.SHIPPING) == [
        second.id
    ]
    await db_session.refresh(first)
    assert first.is_default is False


@pytest.mark.asyncio
@pytest.mark.unit
async def test_defaults_are_tracked_per_type_and_user(db_session):
    await create_address(db_session, _address_in(is_default=True), "user-b")
    await create_address(
        db_session, _address_in(type=AddressType.BILLING, is_default=True), "user-b"
    )
    await create_address(db_session, _address_in(is_default=True), "user-c")

    assert len(await _default_ids(db_session, "user-b", AddressType.SHIPPING)) == 1
    assert len(await _default_ids(db_session, "user-b", AddressType.BILLING)) == 1
    assert len(await _default_ids(db_session, "user-c", AddressType.SHIPPING)) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_set_default_switches_default(db_session):
    first = await create_address(db_session, _address_in(is_default=True), "user-d")
    second = await create_address(db_session, _address_in(), "user-d")

    await set_default_address(db_session, second.id, "user-d")

    assert await _default_ids(db_session, "user-d", AddressType.SHIPPING) == [
        second.id
    ]
    addresses = await list_addresses(db_session, "user-d")
    assert [a.id for a in addresses][0] == second.id
    assert first.id in [a.id for a in addresses]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_update_to_default_clears_other_default(db_session):
    first = await create_address(db_session, _address_in(is_default=True), "user-e")
    second = await create_address(db_session, _address_in(), "user-e")

    updated = await update_address(
        db_session, second.id, AddressUpdate(is_default=True, city="Boston"), "user-e"
    )

    assert updated.city == "Boston"
    assert await _default_ids(db_session, "user-e", AddressType.SHIPPING) == [
        second.id
    ]
    await db_session.refresh(first)
    assert first.is_default is False


@pytest.mark.asyncio
@pytest.mark.unit
async def test_guest_address_is_never_default(db_session):
    address = await create_address(db_session, _address_in(is_default=True), None)

    assert address.user_id is None
    assert address.is_default is False


# ---------------------------------------------------------------------------
# Ownership and deletion
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_foreign_address_is_forbidden(db_session):
    address = await create_address(db_session, _address_in(), "user-owner")

    with pytest.raises(AddressForbiddenError):
        await set_default_address(db_session, address.id, "user-intruder")
    with pytest.raises(AddressForbiddenError):
        await delete_address(db_session, address.id, "user-intruder")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_address_used_by_order_cannot_be_deleted(db_session):
    address = AddressFactory.create(user_id="user-orders")
    db_session.add(address)
    await db_session.commit()
    db_session.add(OrderFactory.create(address))
    await db_session.commit()

    with pytest.raises(AddressInUseError) as exc_info:
        await delete_address(db_session, address.id, "user-orders")

    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
@pytest.mark.unit
async def test_delete_unused_address(db_session):
    address = await create_address(db_session, _address_in(), "user-delete")

    await delete_address(db_session, address.id, "user-delete")

    result = await db_session.execute(
        select(func.count()).select_from(Address).where(Address.user_id == "user-delete")
    )
    assert result.scalar() == 0
