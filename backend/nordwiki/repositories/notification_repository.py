"""Notification and subscription queries."""

from typing import List, Optional

from ..models import Notification, Subscription
from ..exceptions import NotificationNotFoundError
from .base import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    model_class = Notification
    not_found_error = NotificationNotFoundError

    def list_for_user(self, user_id: str, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        """Newest first."""
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()

    def unread_count(self, user_id: str) -> int:
        return (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .count()
        )

    def mark_all_read(self, user_id: str) -> int:
        updated = (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .update({Notification.is_read: True}, synchronize_session="fetch")
        )
        self.db.flush()
        return updated


class SubscriptionRepository(BaseRepository[Subscription]):
    model_class = Subscription
    not_found_error = NotificationNotFoundError

    def get(self, user_id: str, page_id: str) -> Optional[Subscription]:
        return (
            self.db.query(Subscription)
            .filter(Subscription.user_id == user_id, Subscription.page_id == page_id)
            .first()
        )

    def for_page(self, page_id: str) -> List[Subscription]:
        return self.db.query(Subscription).filter(Subscription.page_id == page_id).all()

    def for_user(self, user_id: str) -> List[Subscription]:
        return (
            self.db.query(Subscription)
            .filter(Subscription.user_id == user_id)
            .order_by(Subscription.page_id)
            .all()
        )
