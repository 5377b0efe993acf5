"""Admin store catalog router: categories and products."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.models import AuditEntityType, Category, Product
from services.store_service.routers._helpers import log_audit, total_pages
from services.store_service.schemas import (
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    ProductCreate,
    ProductDetail,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
)
from services.store_service.services import cart_ops
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

router = APIRouter(tags=["admin-store"])


async def _ensure_unique(
    db: AsyncSession, column, value: str, label: str, exclude_id=None
) -> None:
    query = select(func.count()).where(column == value)
    if exclude_id is not None:
        query = query.where(column.class_.id != exclude_id)
    result = await db.execute(query)
    if result.scalar():
        raise HTTPException(status_code=400, detail=f"{label} already exists")


async def _ensure_category_exists(db: AsyncSession, category_id) -> None:
    if category_id is None:
        return
    if not await db.get(Category, category_id):
        raise HTTPException(status_code=400, detail="Category does not exist")


# ============================================================================
# CATEGORIES
# ============================================================================


@router.get("/categories", response_model=list[CategoryResponse])
async def list_all_categories(
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """List all categories (including inactive)."""
    query = select(Category).order_by(Category.sort_order, Category.name)
    result = await db.execute(query)
    return result.scalars().all()


@router.post(
    "/categories", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED
)
async def create_category(
    category_in: CategoryCreate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Create a new category."""
    await _ensure_unique(
        db, Category.slug, category_in.slug, "Category with this slug"
    )

    category = Category(**category_in.model_dump())
    db.add(category)
    await db.flush()

    await log_audit(
        db,
        AuditEntityType.CATEGORY,
        category.id,
        "created",
        current_user.user_id,
        new_value=category_in.model_dump(mode="json"),
    )
    await db.commit()
    await db.refresh(category)

    return category


@router.patch("/categories/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: uuid.UUID,
    category_in: CategoryUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Update a category."""
    category = await db.get(Category, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")

    update_data = category_in.model_dump(exclude_unset=True)
    if "slug" in update_data:
        await _ensure_unique(
            db,
            Category.slug,
            update_data["slug"],
            "Category with this slug",
            exclude_id=category.id,
        )

    old_values = {
        "name": category.name,
        "slug": category.slug,
        "is_active": category.is_active,
    }
    for field, value in update_data.items():
        setattr(category, field, value)

    await log_audit(
        db,
        AuditEntityType.CATEGORY,
        category.id,
        "updated",
        current_user.user_id,
        old_value=old_values,
        new_value=category_in.model_dump(mode="json", exclude_unset=True),
    )

    await db.commit()
    await db.refresh(category)
    return category


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete a category. Its products are kept without a category."""
    category = await db.get(Category, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")

    await log_audit(
        db,
        AuditEntityType.CATEGORY,
        category.id,
        "deleted",
        current_user.user_id,
        old_value={"name": category.name, "slug": category.slug},
    )
    await db.delete(category)
    await db.commit()
    return None


# ============================================================================
# PRODUCTS
# ============================================================================


@router.get("/products", response_model=ProductListResponse)
async def list_all_products(
    is_active: Optional[bool] = None,
    search: Optional[str] = Query(None, min_length=2, max_length=100),
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """List all products (including inactive)."""
    query = select(Product)

    if is_active is not None:
        query = query.where(Product.is_active.is_(is_active))

    if search:
        search_term = f"%{search}%"
        query = query.where(
            or_(Product.name.ilike(search_term), Product.sku.ilike(search_term))
        )

    # Count total
    count_query = select(func.count()).select_from(query.subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    # Paginate
    query = query.order_by(Product.created_at.desc(), Product.id)
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


@router.post(
    "/products", response_model=ProductResponse, status_code=status.HTTP_201_CREATED
)
async def create_product(
    product_in: ProductCreate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Create a new product."""
    await _ensure_unique(db, Product.slug, product_in.slug, "Product with this slug")
    await _ensure_unique(db, Product.sku, product_in.sku, "Product with this SKU")
    await _ensure_category_exists(db, product_in.category_id)

    product = Product(**product_in.model_dump())
    db.add(product)
    await db.flush()

    await log_audit(
        db,
        AuditEntityType.PRODUCT,
        product.id,
        "created",
        current_user.user_id,
        new_value={"name": product.name, "slug": product.slug, "sku": product.sku},
    )
    await db.commit()
    await db.refresh(product)

    return product


@router.get("/products/{product_id}", response_model=ProductDetail)
async def get_product_admin(
    product_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Get product detail (admin view, includes inactive)."""
    query = (
        select(Product)
        .where(Product.id == product_id)
        .options(selectinload(Product.category))
    )
    result = await db.execute(query)
    product = result.scalar_one_or_none()

    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    return product


@router.patch("/products/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: uuid.UUID,
    product_in: ProductUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Update a product."""
    product = await db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    update_data = product_in.model_dump(exclude_unset=True)
    if "slug" in update_data:
        await _ensure_unique(
            db,
            Product.slug,
            update_data["slug"],
            "Product with this slug",
            exclude_id=product.id,
        )
    if "sku" in update_data:
        await _ensure_unique(
            db,
            Product.sku,
            update_data["sku"],
            "Product with this SKU",
            exclude_id=product.id,
        )
    if "category_id" in update_data:
        await _ensure_category_exists(db, update_data["category_id"])

    old_price = str(product.price)
    old_stock = product.stock_quantity

    for field, value in update_data.items():
        setattr(product, field, value)

    # Log price and stock changes specifically
    if "price" in update_data:
        await log_audit(
            db,
            AuditEntityType.PRODUCT,
            product.id,
            "price_changed",
            current_user.user_id,
            old_value={"price": old_price},
            new_value={"price": str(update_data["price"])},
        )
    if "stock_quantity" in update_data:
        await log_audit(
            db,
            AuditEntityType.PRODUCT,
            product.id,
            "stock_changed",
            current_user.user_id,
            old_value={"stock_quantity": old_stock},
            new_value={"stock_quantity": update_data["stock_quantity"]},
        )
    if not {"price", "stock_quantity"} & update_data.keys():
        await log_audit(
            db,
            AuditEntityType.PRODUCT,
            product.id,
            "updated",
            current_user.user_id,
            new_value=product_in.model_dump(mode="json", exclude_unset=True),
        )

    await db.commit()
    await db.refresh(product)
    return product


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete a product.

    Cart lines holding it are removed and those carts re-totalled. Past order
    items keep their snapshot.
    """
    product = await db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    await log_audit(
        db,
        AuditEntityType.PRODUCT,
        product.id,
        "deleted",
        current_user.user_id,
        old_value={"name": product.name, "sku": product.sku},
    )
    await cart_ops.remove_product_from_carts(db, product.id)
    await db.delete(product)
    await db.commit()
    return None
