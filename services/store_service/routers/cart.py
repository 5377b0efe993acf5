"""Store cart router: cart lines, guest merge and stock validation."""

import uuid

from fastapi import APIRouter, Depends
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.models import Cart
from services.store_service.routers._helpers import get_cart_identity
from services.store_service.schemas import (
    CartItemCreate,
    CartItemResponse,
    CartItemUpdate,
    CartMergeRequest,
    CartResponse,
    CartValidationResponse,
    StockViolationResponse,
)
from services.store_service.services import cart_ops
from services.store_service.services.cart_ops import CartIdentity
from services.store_service.services.stock import validate_cart_stock
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])


def cart_to_response(cart: Cart) -> CartResponse:
    """Build the cart response with line details from the loaded products."""
    items = []
    for item in cart.items:
        product = item.product
        items.append(
            CartItemResponse(
                id=item.id,
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item.total_price,
                product_name=product.name if product else None,
                product_slug=product.slug if product else None,
                sku=product.sku if product else None,
                image_path=product.image_path if product else None,
                stock_quantity=product.stock_quantity if product else None,
            )
        )

    return CartResponse(
        id=cart.id,
        user_id=cart.user_id,
        session_id=cart.session_id,
        total_amount=cart.total_amount,
        total_items=cart.total_items,
        expires_at=cart.expires_at,
        created_at=cart.created_at,
        updated_at=cart.updated_at,
        items=items,
    )


# ============================================================================
# CART ENDPOINTS
# ============================================================================


@router.get("/cart", response_model=CartResponse)
async def get_cart(
    identity: CartIdentity = Depends(get_cart_identity),
    db: AsyncSession = Depends(get_async_db),
):
    """Get current cart, creating it on first access."""
    cart = await cart_ops.get_or_create_cart(db, identity)
    await db.commit()
    return cart_to_response(cart)


@router.post("/cart/items", response_model=CartResponse)
async def add_to_cart(
    item_in: CartItemCreate,
    identity: CartIdentity = Depends(get_cart_identity),
    db: AsyncSession = Depends(get_async_db),
):
    """Add item to cart."""
    cart = await cart_ops.get_or_create_cart(db, identity)
    cart = await cart_ops.add_item(db, cart, item_in.product_id, item_in.quantity)
    await db.commit()
    return cart_to_response(cart)


@router.patch("/cart/items/{item_id}", response_model=CartResponse)
async def update_cart_item(
    item_id: uuid.UUID,
    item_in: CartItemUpdate,
    identity: CartIdentity = Depends(get_cart_identity),
    db: AsyncSession = Depends(get_async_db),
):
    """Update cart item quantity. A quantity of 0 removes the item."""
    cart = await cart_ops.get_or_create_cart(db, identity)
    cart = await cart_ops.update_item(db, cart, item_id, item_in.quantity)
    await db.commit()
    return cart_to_response(cart)


@router.delete("/cart/items/{item_id}", response_model=CartResponse)
async def remove_cart_item(
    item_id: uuid.UUID,
    identity: CartIdentity = Depends(get_cart_identity),
    db: AsyncSession = Depends(get_async_db),
):
    """Remove item from cart."""
    cart = await cart_ops.get_or_create_cart(db, identity)
    cart = await cart_ops.remove_item(db, cart, item_id)
    await db.commit()
    return cart_to_response(cart)


@router.delete("/cart", response_model=CartResponse)
async def clear_cart(
    identity: CartIdentity = Depends(get_cart_identity),
    db: AsyncSession = Depends(get_async_db),
):
    """Remove every item from the cart."""
    cart = await cart_ops.get_or_create_cart(db, identity)
    cart = await cart_ops.clear_cart(db, cart)
    await db.commit()
    return cart_to_response(cart)


@router.post("/cart/merge", response_model=CartResponse)
async def merge_cart(
    merge_in: CartMergeRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Merge a guest cart into the logged-in user's cart."""
    cart = await cart_ops.merge_guest_cart(
        db, session_id=merge_in.session_id, user_id=current_user.user_id
    )
    await db.commit()
    return cart_to_response(cart)


@router.get("/cart/validate", response_model=CartValidationResponse)
async def validate_cart(
    identity: CartIdentity = Depends(get_cart_identity),
    db: AsyncSession = Depends(get_async_db),
):
    """Check every cart line against current stock."""
    cart = await cart_ops.find_cart(db, identity)
    if not cart:
        return CartValidationResponse(valid=True, violations=[])

    violations = await validate_cart_stock(db, cart)
    return CartValidationResponse(
        valid=not violations,
        violations=[
            StockViolationResponse(**violation.to_dict()) for violation in violations
        ],
    )
