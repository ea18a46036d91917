"""Notification inbox and page subscription API.

Both act on the caller's own records only.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from ..core.auth import AuthContext, require_auth
from ..database import get_db
from ..schemas.notification import (
    NotificationResponse,
    SubscriptionCreate,
    SubscriptionResponse,
    UnreadCountResponse,
)
from ..services import NotificationService

router = APIRouter(prefix="/api/notifications", tags=["notifications"])
subscriptions_router = APIRouter(prefix="/api/subscriptions", tags=["notifications"])


@router.get("", response_model=List[NotificationResponse])
def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Newest first."""
    return NotificationService(db).list_for_user(auth.user_id, unread_only=unread_only, limit=limit)


@router.get("/unread-count", response_model=UnreadCountResponse)
def unread_count(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return UnreadCountResponse(unread=NotificationService(db).unread_count(auth.user_id))


@router.post("/read-all")
def mark_all_read(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return {"updated": NotificationService(db).mark_all_read(auth.user_id)}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return NotificationService(db).mark_read(notification_id, auth.user_id)


# -- Subscriptions --------------------------------------------------------

@subscriptions_router.post("", response_model=SubscriptionResponse, status_code=201)
def subscribe(
    data: SubscriptionCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Subscribe to a page; re-subscribing replaces the type filter."""
    return NotificationService(db).subscribe(auth.user_id, data.page_id, data.notification_types)


@subscriptions_router.get("", response_model=List[SubscriptionResponse])
def list_subscriptions(
    page_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """The caller's subscriptions, or only the one for ``page_id``."""
    service = NotificationService(db)
    if page_id is None:
        return service.list_subscriptions(auth.user_id)
    sub = service.get_subscription(auth.user_id, page_id)
    return [sub] if sub is not None else []


@subscriptions_router.delete("", status_code=204)
def unsubscribe(
    page_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    NotificationService(db).unsubscribe(auth.user_id, page_id)
