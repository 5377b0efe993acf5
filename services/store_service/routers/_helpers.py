"""Shared helpers for store routers."""

import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException, Query
from libs.auth.dependencies import get_optional_user
from libs.auth.models import AuthUser
from services.store_service.models import AuditEntityType, StoreAuditLog
from services.store_service.services.cart_ops import CartIdentity
from sqlalchemy.ext.asyncio import AsyncSession


def get_session_id(
    session_id: Optional[str] = Query(None, max_length=255),
    x_session_id: Optional[str] = Header(None, max_length=255),
) -> Optional[str]:
    """Guest session token from the X-Session-ID header or session_id query."""
    return x_session_id or session_id


def get_cart_identity(
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    session_id: Optional[str] = Depends(get_session_id),
) -> CartIdentity:
    """Resolve whose cart a request is about. Users win over guest sessions."""
    if current_user:
        return CartIdentity(user_id=current_user.user_id)
    if session_id:
        return CartIdentity(session_id=session_id)
    raise HTTPException(status_code=400, detail="Session ID required for guest cart")


def total_pages(total: int, per_page: int) -> int:
    return (total + per_page - 1) // per_page


async def log_audit(
    db: AsyncSession,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID,
    action: str,
    performed_by: str,
    old_value: Optional[dict] = None,
    new_value: Optional[dict] = None,
    notes: Optional[str] = None,
):
    """Log an audit event."""
    audit_log = StoreAuditLog(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        old_value=old_value,
        new_value=new_value,
        performed_by=performed_by,
        notes=notes,
    )
    db.add(audit_log)
