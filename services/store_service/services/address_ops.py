"""Address book operations with one default address per (user, type)."""

import uuid
from typing import Optional

from libs.common.logging import get_logger
from services.store_service.errors import (
    AddressForbiddenError,
    AddressInUseError,
    AddressNotFoundError,
)
from services.store_service.models import Address, AddressType, Order
from services.store_service.schemas import AddressCreate, AddressUpdate
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def _clear_default(
    db: AsyncSession,
    user_id: str,
    address_type: AddressType,
    keep_id: Optional[uuid.UUID] = None,
) -> None:
    """Unset the current default for (user, type) with a single UPDATE."""
    query = update(Address).where(
        Address.user_id == user_id,
        Address.type == address_type,
        Address.is_default.is_(True),
    )
    if keep_id is not None:
        query = query.where(Address.id != keep_id)
    await db.execute(
        query.values(is_default=False).execution_options(
            synchronize_session="fetch"
        )
    )


async def list_addresses(
    db: AsyncSession, user_id: str, address_type: Optional[AddressType] = None
) -> list[Address]:
    """Addresses for a user, defaults first, newest next."""
    query = select(Address).where(Address.user_id == user_id)
    if address_type is not None:
        query = query.where(Address.type == address_type)
    query = query.order_by(Address.is_default.desc(), Address.created_at.desc())
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_address(
    db: AsyncSession, address_id: uuid.UUID, user_id: str
) -> Address:
    address = await db.get(Address, address_id)
    if not address:
        raise AddressNotFoundError(address_id)
    if address.user_id != user_id:
        raise AddressForbiddenError(address_id)
    return address


async def create_address(
    db: AsyncSession, data: AddressCreate, user_id: Optional[str]
) -> Address:
    """Create an address. ``user_id`` is None for one-off guest addresses."""
    if data.is_default and user_id is not None:
        await _clear_default(db, user_id, data.type)

    address = Address(
        user_id=user_id,
        **data.model_dump(exclude={"is_default"}),
        is_default=data.is_default and user_id is not None,
    )
    db.add(address)
    await db.flush()
    await db.refresh(address)

    logger.info(
        "Created %s address %s for user %s", address.type.value, address.id, user_id
    )
    return address


async def update_address(
    db: AsyncSession, address_id: uuid.UUID, data: AddressUpdate, user_id: str
) -> Address:
    address = await get_address(db, address_id, user_id)
    update_data = data.model_dump(exclude_unset=True)

    new_type = update_data.get("type", address.type)
    becomes_default = update_data.get("is_default", address.is_default)
    if becomes_default:
        await _clear_default(db, user_id, new_type, keep_id=address.id)

    for field, value in update_data.items():
        setattr(address, field, value)

    await db.flush()
    await db.refresh(address)
    return address


async def delete_address(
    db: AsyncSession, address_id: uuid.UUID, user_id: str
) -> None:
    address = await get_address(db, address_id, user_id)

    in_use = await db.execute(
        select(func.count())
        .select_from(Order)
        .where(
            or_(
                Order.shipping_address_id == address_id,
                Order.billing_address_id == address_id,
            )
        )
    )
    if in_use.scalar():
        raise AddressInUseError(address_id)

    await db.delete(address)
    await db.flush()
    logger.info("Deleted address %s for user %s", address_id, user_id)


async def set_default_address(
    db: AsyncSession, address_id: uuid.UUID, user_id: str
) -> Address:
    """Make an address the default for its type, clearing the previous one."""
    address = await get_address(db, address_id, user_id)
    await _clear_default(db, user_id, address.type, keep_id=address.id)
    address.is_default = True
    await db.flush()
    await db.refresh(address)

    logger.info(
        "Address %s is now the default %s address for user %s",
        address.id,
        address.type.value,
        user_id,
    )
    return address
