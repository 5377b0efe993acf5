"""Stock checks and atomic stock movements for products."""

import uuid
from dataclasses import asdict, dataclass
from typing import Iterable

from libs.common.logging import get_logger
from services.store_service.errors import InsufficientStockAtCommitError
from services.store_service.models import Cart, Product
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass(frozen=True)
class StockViolation:
    item_id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    requested_quantity: int
    available_stock: int

    @property
    def shortfall(self) -> int:
        return self.requested_quantity - self.available_stock

    def to_dict(self) -> dict:
        data = asdict(self)
        data["item_id"] = str(self.item_id)
        data["product_id"] = str(self.product_id)
        data["shortfall"] = self.shortfall
        return data


async def validate_cart_stock(db: AsyncSession, cart: Cart) -> list[StockViolation]:
    """Compare every cart line with the product's current stock.

    Read-only. Inactive or deleted products count as having no stock.
    """
    if not cart.items:
        return []

    product_ids = {item.product_id for item in cart.items}
    result = await db.execute(
        select(Product.id, Product.name, Product.stock_quantity, Product.is_active)
        .where(Product.id.in_(product_ids))
    )
    current = {row.id: row for row in result}

    violations = []
    for item in cart.items:
        row = current.get(item.product_id)
        available = row.stock_quantity if row and row.is_active else 0
        if item.quantity > available:
            violations.append(
                StockViolation(
                    item_id=item.id,
                    product_id=item.product_id,
                    product_name=row.name if row else "Unavailable product",
                    requested_quantity=item.quantity,
                    available_stock=available,
                )
            )

    if violations:
        logger.warning(
            "Cart %s has %d under-stocked line(s)", cart.id, len(violations)
        )
    return violations


async def decrement_stock(
    db: AsyncSession, lines: Iterable[tuple[uuid.UUID, int]]
) -> None:
    """Take ordered quantities out of stock, all or nothing.

    Each product is decremented only while ``stock_quantity >= quantity``.
    If any row is not updated the savepoint is rolled back, undoing the
    decrements already applied, and InsufficientStockAtCommitError is raised.
    """
    async with db.begin_nested():
        for product_id, quantity in lines:
            result = await db.execute(
                update(Product)
                .where(Product.id == product_id, Product.stock_quantity >= quantity)
                .values(stock_quantity=Product.stock_quantity - quantity)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.warning(
                    "Stock for product %s dropped below %d before commit",
                    product_id,
                    quantity,
                )
                raise InsufficientStockAtCommitError(product_id, quantity)
            logger.info("Decremented stock of product %s by %d", product_id, quantity)


async def restore_stock(
    db: AsyncSession, lines: Iterable[tuple[uuid.UUID, int]]
) -> None:
    """Put quantities back into stock (order cancellation)."""
    for product_id, quantity in lines:
        await db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock_quantity=Product.stock_quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        logger.info("Restored %d units to product %s", quantity, product_id)
