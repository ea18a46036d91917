"""Notification and subscription schemas."""

from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional


class NotificationResponse(BaseModel):
    id: int
    user_id: str
    type: str
    page_id: Optional[str] = None
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    title: str
    message: str
    data: Optional[dict] = None
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class UnreadCountResponse(BaseModel):
    unread: int


class SubscriptionCreate(BaseModel):
    page_id: str
    notification_types: Optional[List[str]] = None  # defaults apply when omitted


class SubscriptionResponse(BaseModel):
    id: int
    user_id: str
    page_id: str
    notification_types: List[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
