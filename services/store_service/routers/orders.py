"""Store orders router: checkout and order history."""

from typing import Callable, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from libs.auth.dependencies import get_current_user, get_optional_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.models import Order, PaymentMethod
from services.store_service.routers._helpers import get_session_id, total_pages
from services.store_service.schemas import (
    CheckoutRequest,
    CheckoutResponse,
    OrderCancelRequest,
    OrderDetail,
    OrderListResponse,
    OrderResponse,
    OrderStatsResponse,
    PaymentResultResponse,
)
from services.store_service.services import order_ops
from services.store_service.services.checkout import checkout
from services.store_service.services.notifications import (
    order_confirmation_payload,
    send_order_confirmation_email,
)
from services.store_service.services.payments import (
    PaymentGateway,
    payment_gateway_factory,
)
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

router = APIRouter(tags=["store"])


# ============================================================================
# CHECKOUT
# ============================================================================


@router.post(
    "/checkout", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED
)
async def create_checkout(
    request: CheckoutRequest,
    background_tasks: BackgroundTasks,
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    session_id: Optional[str] = Depends(get_session_id),
    gateway_for: Callable[[str], PaymentGateway] = Depends(payment_gateway_factory),
    db: AsyncSession = Depends(get_async_db),
):
    """Place an order from the current cart and pay for it."""
    # Unknown methods are reported by checkout validation
    gateway = None
    if request.payment_method in {method.value for method in PaymentMethod}:
        gateway = gateway_for(request.payment_method)

    result = await checkout(
        db,
        request,
        user=current_user,
        session_id=session_id,
        gateway=gateway,
    )
    order = result.order

    # Confirmation email goes out once, after the response
    to_email = current_user.email if current_user else order.guest_email
    if to_email:
        background_tasks.add_task(
            send_order_confirmation_email,
            order_confirmation_payload(order, str(to_email)),
        )

    return CheckoutResponse(
        order=OrderResponse.model_validate(order),
        payment=PaymentResultResponse(
            status=result.payment.status,
            payment_id=result.payment.payment_id,
            gateway=result.payment.gateway,
            simulated=result.payment.simulated,
        ),
    )


# ============================================================================
# ORDERS
# ============================================================================


@router.get("/orders", response_model=OrderListResponse)
async def list_my_orders(
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """List the user's orders, newest first."""
    base = select(Order).where(Order.user_id == current_user.user_id)

    total_result = await db.execute(
        select(func.count()).select_from(base.subquery())
    )
    total = total_result.scalar() or 0

    query = (
        base.options(selectinload(Order.items))
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


@router.get("/orders/stats", response_model=OrderStatsResponse)
async def get_my_order_stats(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Order counts per status and total spent."""
    return await order_ops.get_user_order_stats(db, current_user.user_id)


async def _get_own_order(
    db: AsyncSession, order_number: str, current_user: AuthUser
) -> Order:
    result = await db.execute(
        select(Order.id, Order.user_id).where(Order.order_number == order_number)
    )
    row = result.first()
    if not row:
        raise HTTPException(status_code=404, detail="Order not found")
    if row.user_id != current_user.user_id:
        raise HTTPException(status_code=403, detail="Access denied to this order")
    return await order_ops.load_order(db, row.id)


@router.get("/orders/{order_number}", response_model=OrderDetail)
async def get_order(
    order_number: str,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Get order by order number."""
    return await _get_own_order(db, order_number, current_user)


@router.post("/orders/{order_number}/cancel", response_model=OrderResponse)
async def cancel_my_order(
    order_number: str,
    cancel_in: Optional[OrderCancelRequest] = None,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Cancel one of the user's orders while it is still pending or processing."""
    order = await _get_own_order(db, order_number, current_user)
    reason = cancel_in.reason if cancel_in else OrderCancelRequest().reason
    order = await order_ops.cancel_order(db, order, reason)
    await db.commit()
    return order
