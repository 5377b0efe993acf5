"""Admin store orders router: search, status transitions, cancellation."""

import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.emails.store import send_store_order_shipped_email
from libs.db.session import get_async_db
from services.store_service.models import (
    AuditEntityType,
    Order,
    OrderStatus,
    PaymentStatus,
)
from services.store_service.routers._helpers import log_audit, total_pages
from services.store_service.schemas import (
    OrderCancelRequest,
    OrderDetail,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
)
from services.store_service.services import order_ops
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

router = APIRouter(tags=["admin-store"])


async def _get_order_or_404(db: AsyncSession, order_id: uuid.UUID) -> Order:
    exists = await db.execute(select(Order.id).where(Order.id == order_id))
    if exists.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return await order_ops.load_order(db, order_id)


@router.get("/orders", response_model=OrderListResponse)
async def search_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    payment_status: Optional[PaymentStatus] = None,
    order_number: Optional[str] = Query(None, max_length=20),
    guest_email: Optional[str] = Query(None, max_length=255),
    user_id: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Search all orders."""
    query = select(Order)

    if status_filter:
        query = query.where(Order.status == status_filter)
    if payment_status:
        query = query.where(Order.payment_status == payment_status)
    if order_number:
        query = query.where(Order.order_number.ilike(f"%{order_number}%"))
    if guest_email:
        query = query.where(Order.guest_email.ilike(f"%{guest_email}%"))
    if user_id:
        query = query.where(Order.user_id == user_id)
    if date_from:
        query = query.where(
            Order.created_at >= datetime.combine(date_from, time.min, timezone.utc)
        )
    if date_to:
        query = query.where(
            Order.created_at
            < datetime.combine(date_to + timedelta(days=1), time.min, timezone.utc)
        )

    # Count total
    count_query = select(func.count()).select_from(query.subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    query = (
        query.options(selectinload(Order.items))
        .order_by(Order.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    result = await db.execute(query)

    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in result.scalars().all()],
        total=total,
        page=page,
        per_page=per_page,
        total_pages=total_pages(total, per_page),
    )


@router.get("/orders/{order_id}", response_model=OrderDetail)
async def get_order_admin(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Get order detail (admin view)."""
    return await _get_order_or_404(db, order_id)


@router.patch("/orders/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: uuid.UUID,
    status_in: OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Move an order to its next status.

    Cancelling goes through the cancel endpoint so paid stock is restored.
    Only a successful payment moves an order to processing.
    """
    if status_in.status == OrderStatus.CANCELLED:
        raise HTTPException(
            status_code=400,
            detail="Use the cancel endpoint to cancel an order",
        )
    if status_in.status == OrderStatus.PROCESSING:
        raise HTTPException(
            status_code=400,
            detail="Orders move to processing only when payment succeeds",
        )

    order = await _get_order_or_404(db, order_id)
    old_status = OrderStatus(order.status).value

    order_ops.transition_order_status(order, status_in.status)
    if status_in.notes:
        order.notes = (
            f"{order.notes}\n\n{status_in.notes}" if order.notes else status_in.notes
        )

    await log_audit(
        db,
        AuditEntityType.ORDER,
        order.id,
        "status_changed",
        current_user.user_id,
        old_value={"status": old_status},
        new_value={"status": status_in.status.value},
        notes=status_in.notes,
    )
    await db.commit()

    if status_in.status == OrderStatus.SHIPPED and order.guest_email:
        background_tasks.add_task(
            send_store_order_shipped_email,
            order.guest_email,
            order.shipping_address.full_name if order.shipping_address else None,
            order.order_number,
        )

    return await order_ops.load_order(db, order.id)


@router.post("/orders/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order_admin(
    order_id: uuid.UUID,
    cancel_in: OrderCancelRequest,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Cancel an order, restoring stock if it was paid."""
    order = await _get_order_or_404(db, order_id)
    old_status = OrderStatus(order.status).value

    order = await order_ops.cancel_order(db, order, cancel_in.reason)

    await log_audit(
        db,
        AuditEntityType.ORDER,
        order.id,
        "cancelled",
        current_user.user_id,
        old_value={"status": old_status},
        new_value={"status": OrderStatus.CANCELLED.value},
        notes=cancel_in.reason,
    )
    await db.commit()
    return order
