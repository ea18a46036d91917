"""Notification and subscription models."""

from sqlalchemy import (
    Boolean, Column, DateTime, Index, Integer, JSON, String, Text, UniqueConstraint,
)
from ..database import Base
from .common import utcnow

NOTIFICATION_TYPES = (
    "page_edited",
    "comment_added",
    "comment_replied",
    "suggested_edit_submitted",
    "suggested_edit_reviewed",
    "edit_conflict",
    "page_published",
    "page_review_requested",
)

DEFAULT_SUBSCRIPTION_TYPES = ("page_edited", "comment_added", "suggested_edit_submitted")


class Notification(Base):
    """One delivered notification. Unread counts are always computed by query."""

    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "is_read"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(100), nullable=False)
    type = Column(String(50), nullable=False)

    page_id = Column(String(500), nullable=True)
    actor_id = Column(String(100), nullable=True)
    actor_name = Column(String(255), nullable=True)

    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False, default="")
    data = Column(JSON, nullable=True)

    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Subscription(Base):
    """A user's interest in a page, filtered by notification type."""

    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint("user_id", "page_id", name="uq_subscriptions_user_page"),
        Index("ix_subscriptions_page_id", "page_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(100), nullable=False)
    page_id = Column(String(500), nullable=False)
    notification_types = Column(JSON, nullable=False, default=lambda: list(DEFAULT_SUBSCRIPTION_TYPES))

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
