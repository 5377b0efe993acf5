"""Cart operations: identity-scoped carts, line mutations and guest merge.

Every mutation flushes and recomputes ``total_amount``/``total_items`` from
the current line set. Committing is left to the caller.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_in, utc_now
from libs.common.logging import get_logger
from services.store_service.errors import InsufficientStockError, NotFoundError
from services.store_service.models import Cart, CartItem, Product
from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)


@dataclass(frozen=True)
class CartIdentity:
    """Who a cart belongs to. Exactly one of the two fields is set."""

    user_id: Optional[str] = None
    session_id: Optional[str] = None

    def __post_init__(self):
        if (self.user_id is None) == (self.session_id is None):
            raise ValueError("CartIdentity needs exactly one of user_id or session_id")

    @property
    def is_guest(self) -> bool:
        return self.user_id is None


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


async def load_cart(db: AsyncSession, cart_id: uuid.UUID) -> Cart:
    """Re-read a cart with its lines and their products."""
    result = await db.execute(
        select(Cart)
        .where(Cart.id == cart_id)
        .options(selectinload(Cart.items).selectinload(CartItem.product))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def find_cart(db: AsyncSession, identity: CartIdentity) -> Optional[Cart]:
    """Return the live cart for an identity, or None.

    Expired guest carts are never returned.
    """
    query = select(Cart).options(
        selectinload(Cart.items).selectinload(CartItem.product)
    )
    if identity.user_id is not None:
        query = query.where(Cart.user_id == identity.user_id)
    else:
        query = (
            query.where(
                Cart.session_id == identity.session_id,
                Cart.user_id.is_(None),
                or_(Cart.expires_at.is_(None), Cart.expires_at > utc_now()),
            )
            .order_by(Cart.created_at.desc())
            .limit(1)
        )
    result = await db.execute(query.execution_options(populate_existing=True))
    return result.scalars().first()


async def get_or_create_cart(db: AsyncSession, identity: CartIdentity) -> Cart:
    """Get the cart for an identity, creating an empty one on first access.

    Expired carts left behind by the same guest session are deleted before
    the replacement is created.
    """
    cart = await find_cart(db, identity)
    if cart:
        return cart

    if identity.is_guest:
        await _purge_expired_guest_carts(db, identity.session_id)

    cart = Cart(
        user_id=identity.user_id,
        session_id=identity.session_id,
        total_amount=Decimal("0"),
        total_items=0,
    )
    if identity.is_guest:
        cart.expires_at = _guest_expiry()
    db.add(cart)
    await db.flush()

    logger.info(
        "Created %s cart %s",
        "guest" if identity.is_guest else "user",
        cart.id,
    )
    return await load_cart(db, cart.id)


def _guest_expiry():
    return utc_in(days=get_settings().CART_GUEST_TTL_DAYS)


async def _purge_expired_guest_carts(db: AsyncSession, session_id: str) -> None:
    result = await db.execute(
        delete(Cart)
        .where(
            Cart.session_id == session_id,
            Cart.user_id.is_(None),
            Cart.expires_at <= utc_now(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        logger.info(
            "Deleted %d expired guest cart(s) for session %s",
            result.rowcount,
            session_id,
        )


async def recalculate_totals(db: AsyncSession, cart: Cart) -> Cart:
    """Flush pending line changes and derive cart totals from the stored lines."""
    await db.flush()
    cart = await load_cart(db, cart.id)

    cart.total_amount = sum(
        (item.total_price for item in cart.items), start=Decimal("0")
    )
    cart.total_items = sum(item.quantity for item in cart.items)
    if cart.is_guest:
        cart.expires_at = _guest_expiry()
    await db.flush()
    return cart


# ---------------------------------------------------------------------------
# Line mutations
# ---------------------------------------------------------------------------


async def _get_product(
    db: AsyncSession, product_id: uuid.UUID, active_only: bool = True
) -> Product:
    query = select(Product).where(Product.id == product_id)
    if active_only:
        query = query.where(Product.is_active.is_(True))
    result = await db.execute(query.execution_options(populate_existing=True))
    product = result.scalar_one_or_none()
    if not product:
        raise NotFoundError("Product not found")
    return product


def _check_stock(product: Product, quantity: int, item_id=None) -> None:
    if quantity <= product.stock_quantity:
        return
    raise InsufficientStockError(
        f"Only {product.stock_quantity} available for {product.name}",
        violations=[
            {
                "item_id": str(item_id) if item_id else None,
                "product_id": str(product.id),
                "product_name": product.name,
                "requested_quantity": quantity,
                "available_stock": product.stock_quantity,
                "shortfall": quantity - product.stock_quantity,
            }
        ],
    )


async def _get_line(db: AsyncSession, cart: Cart, item_id: uuid.UUID) -> CartItem:
    # Lines of other carts are reported as missing
    result = await db.execute(
        select(CartItem)
        .where(CartItem.id == item_id, CartItem.cart_id == cart.id)
        .options(selectinload(CartItem.product))
    )
    item = result.scalar_one_or_none()
    if not item:
        raise NotFoundError("Cart item not found")
    return item


async def add_item(
    db: AsyncSession,
    cart: Cart,
    product_id: uuid.UUID,
    quantity: int = 1,
) -> Cart:
    """Add a product to the cart, merging with an existing line for it."""
    if quantity < 1:
        raise ValueError("quantity must be at least 1")

    product = await _get_product(db, product_id)

    result = await db.execute(
        select(CartItem).where(
            CartItem.cart_id == cart.id,
            CartItem.product_id == product_id,
        )
    )
    existing = result.scalar_one_or_none()

    if existing:
        new_quantity = existing.quantity + quantity
        _check_stock(product, new_quantity, existing.id)
        existing.set_quantity(new_quantity)
    else:
        _check_stock(product, quantity)
        db.add(
            CartItem(
                cart_id=cart.id,
                product_id=product.id,
                quantity=quantity,
                unit_price=product.price,
                total_price=product.price * quantity,
            )
        )

    return await recalculate_totals(db, cart)


async def update_item(
    db: AsyncSession,
    cart: Cart,
    item_id: uuid.UUID,
    quantity: int,
) -> Cart:
    """Set a line's quantity. Zero removes the line."""
    if quantity < 0:
        raise ValueError("quantity must not be negative")

    item = await _get_line(db, cart, item_id)
    if quantity == 0:
        await db.delete(item)
        return await recalculate_totals(db, cart)

    # Lines for since-deactivated products can still be reduced, not raised
    product = await _get_product(db, item.product_id, active_only=False)
    if not product.is_active and quantity > item.quantity:
        raise NotFoundError("Product not found")
    _check_stock(product, quantity, item.id)
    item.set_quantity(quantity)
    return await recalculate_totals(db, cart)


async def remove_item(db: AsyncSession, cart: Cart, item_id: uuid.UUID) -> Cart:
    item = await _get_line(db, cart, item_id)
    await db.delete(item)
    return await recalculate_totals(db, cart)


async def clear_cart(db: AsyncSession, cart: Cart) -> Cart:
    """Delete every line and zero the totals."""
    await db.execute(
        delete(CartItem)
        .where(CartItem.cart_id == cart.id)
        .execution_options(synchronize_session=False)
    )
    return await recalculate_totals(db, cart)


# ---------------------------------------------------------------------------
# Guest merge
# ---------------------------------------------------------------------------


async def merge_guest_cart(db: AsyncSession, session_id: str, user_id: str) -> Cart:
    """Move a guest cart's lines into the user's cart.

    Quantities are summed for products present in both carts. A line whose
    merged quantity exceeds current stock, or whose product is no longer
    active, is dropped. The guest cart is deleted afterwards.
    """
    user_cart = await get_or_create_cart(db, CartIdentity(user_id=user_id))
    guest_cart = await find_cart(db, CartIdentity(session_id=session_id))
    if not guest_cart:
        return user_cart

    user_lines = {item.product_id: item for item in user_cart.items}
    merged, skipped = 0, 0

    for guest_item in guest_cart.items:
        product = guest_item.product
        existing = user_lines.get(guest_item.product_id)
        quantity = guest_item.quantity + (existing.quantity if existing else 0)

        if not product.is_active or quantity > product.stock_quantity:
            skipped += 1
            logger.warning(
                "Skipped merging product %s into cart %s: requested=%d available=%d",
                guest_item.product_id,
                user_cart.id,
                quantity,
                product.stock_quantity,
            )
            continue

        if existing:
            existing.set_quantity(quantity)
        else:
            db.add(
                CartItem(
                    cart_id=user_cart.id,
                    product_id=guest_item.product_id,
                    quantity=guest_item.quantity,
                    unit_price=guest_item.unit_price,
                    total_price=guest_item.unit_price * guest_item.quantity,
                )
            )
        merged += 1

    await db.delete(guest_cart)
    cart = await recalculate_totals(db, user_cart)

    logger.info(
        "Merged guest cart %s into cart %s (merged=%d skipped=%d)",
        guest_cart.id,
        cart.id,
        merged,
        skipped,
    )
    return cart


# ---------------------------------------------------------------------------
# Catalog changes
# ---------------------------------------------------------------------------


async def remove_product_from_carts(
    db: AsyncSession, product_id: uuid.UUID
) -> list[uuid.UUID]:
    """Delete every cart line for a product and recompute the affected carts.

    Returns the ids of the carts that held the product.
    """
    result = await db.execute(
        select(CartItem.cart_id).where(CartItem.product_id == product_id).distinct()
    )
    cart_ids = list(result.scalars().all())
    if not cart_ids:
        return []

    await db.execute(
        delete(CartItem)
        .where(CartItem.product_id == product_id)
        .execution_options(synchronize_session=False)
    )
    for cart_id in cart_ids:
        await recalculate_totals(db, await load_cart(db, cart_id))

    logger.info("Removed product %s from %d cart(s)", product_id, len(cart_ids))
    return cart_ids
