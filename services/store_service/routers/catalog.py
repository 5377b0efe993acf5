"""Store catalog router: categories and products."""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from libs.db.session import get_async_db
from services.store_service.models import Category, Product
from services.store_service.routers._helpers import total_pages
from services.store_service.schemas import (
    CategoryResponse,
    ProductDetail,
    ProductListResponse,
    ProductResponse,
)
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

router = APIRouter(tags=["store"])

SORT_COLUMNS = {
    "name": Product.name,
    "price": Product.price,
    "created_at": Product.created_at,
}


# ============================================================================
# CATALOG - CATEGORIES
# ============================================================================


@router.get("/categories", response_model=list[CategoryResponse])
async def list_categories(
    db: AsyncSession = Depends(get_async_db),
):
    """List all active categories."""
    query = (
        select(Category)
        .where(Category.is_active.is_(True))
        .order_by(Category.sort_order, Category.name)
    )
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/categories/{slug}", response_model=CategoryResponse)
async def get_category(
    slug: str,
    db: AsyncSession = Depends(get_async_db),
):
    """Get category by slug."""
    query = select(Category).where(Category.slug == slug, Category.is_active.is_(True))
    result = await db.execute(query)
    category = result.scalar_one_or_none()
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


# ============================================================================
# CATALOG - PRODUCTS
# ============================================================================


@router.get("/products", response_model=ProductListResponse)
async def list_products(
    category: Optional[str] = Query(None, description="Category slug"),
    search: Optional[str] = Query(None, min_length=2, max_length=100),
    sort_by: Literal["name", "price", "created_at"] = "created_at",
    sort_direction: Literal["asc", "desc"] = "desc",
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    db: AsyncSession = Depends(get_async_db),
):
    """Browse active products with filtering, sorting and pagination."""
    query = select(Product).where(Product.is_active.is_(True))

    # Category filter
    if category:
        query = query.join(Category).where(
            Category.slug == category, Category.is_active.is_(True)
        )

    # Search filter
    if search:
        search_term = f"%{search}%"
        query = query.where(
            or_(
                Product.name.ilike(search_term),
                Product.description.ilike(search_term),
                Product.sku.ilike(search_term),
            )
        )

    # Count total
    count_query = select(func.count()).select_from(query.subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    # Sorting and pagination
    column = SORT_COLUMNS[sort_by]
    query = query.order_by(
        column.asc() if sort_direction == "asc" else column.desc(), Product.id
    )
    query = query.offset((page - 1) * per_page).limit(per_page)

    result = await db.execute(query)
    products = result.scalars().all()

    return ProductListResponse(
        items=[ProductResponse.model_validate(p) for p in products],
        total=total,
        page=page,
        per_page=per_page,
        total_pages=total_pages(total, per_page),
    )


@router.get("/products/{slug}", response_model=ProductDetail)
async def get_product(
    slug: str,
    db: AsyncSession = Depends(get_async_db),
):
    """Get product detail with its category."""
    query = (
        select(Product)
        .where(Product.slug == slug, Product.is_active.is_(True))
        .options(selectinload(Product.category))
    )
    result = await db.execute(query)
    product = result.scalar_one_or_none()

    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product
