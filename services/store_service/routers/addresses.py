"""Store address book router."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import get_current_user, get_optional_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.models import AddressType
from services.store_service.schemas import (
    AddressCreate,
    AddressResponse,
    AddressUpdate,
)
from services.store_service.services import address_ops
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])


@router.get("/addresses", response_model=list[AddressResponse])
async def list_addresses(
    type: Optional[AddressType] = None,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """List the user's addresses, defaults first."""
    return await address_ops.list_addresses(db, current_user.user_id, type)


@router.post(
    "/addresses", response_model=AddressResponse, status_code=status.HTTP_201_CREATED
)
async def create_address(
    address_in: AddressCreate,
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Create an address.

    Guests may create one-off addresses for checkout; those are never
    defaults and do not show up in any address book.
    """
    address = await address_ops.create_address(
        db, address_in, current_user.user_id if current_user else None
    )
    await db.commit()
    return address


@router.get("/addresses/{address_id}", response_model=AddressResponse)
async def get_address(
    address_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await address_ops.get_address(db, address_id, current_user.user_id)


@router.patch("/addresses/{address_id}", response_model=AddressResponse)
async def update_address(
    address_id: uuid.UUID,
    address_in: AddressUpdate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    address = await address_ops.update_address(
        db, address_id, address_in, current_user.user_id
    )
    await db.commit()
    return address


@router.delete("/addresses/{address_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_address(
    address_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    await address_ops.delete_address(db, address_id, current_user.user_id)
    await db.commit()
    return None


@router.post("/addresses/{address_id}/default", response_model=AddressResponse)
async def set_default_address(
    address_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Make this address the default for its type."""
    address = await address_ops.set_default_address(
        db, address_id, current_user.user_id
    )
    await db.commit()
    return address
