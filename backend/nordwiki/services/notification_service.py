"""Notification hub -- fan-out of wiki events to subscribed users.

Every other service publishes here after its own change has been committed.
Delivery is best-effort: a failure is logged and rolled back, and never
reaches the caller, so the change that triggered it stays in place.

Unread counts are always computed from the notifications table rather than
kept as a counter.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

import sqlalchemy.exc
from sqlalchemy.orm import Session

from ..models import Notification, Subscription
from ..models.notification import DEFAULT_SUBSCRIPTION_TYPES, NOTIFICATION_TYPES
from ..repositories import NotificationRepository, SubscriptionRepository
from ..storage.blob_store import normalize_key
from ..exceptions import PermissionDeniedError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WikiEvent:
    """A domain event other components hand to the hub."""

    type: str
    title: str
    message: str = ""
    page_id: Optional[str] = None
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    data: Optional[dict] = None

    def to_notification(self, user_id: str) -> Notification:
        return Notification(
            user_id=user_id,
            type=self.type,
            page_id=self.page_id,
            actor_id=self.actor_id,
            actor_name=self.actor_name,
            title=self.title,
            message=self.message,
            data=self.data,
        )


def validate_types(types: Iterable[str]) -> list[str]:
    unknown = [t for t in types if t not in NOTIFICATION_TYPES]
    if unknown:
        raise ValidationError(
            f"Unknown notification types: {', '.join(unknown)}", field="notification_types"
        )
    return list(dict.fromkeys(types))


class NotificationService:
    """Deep module for notifications and page subscriptions."""

    def __init__(self, db: Session):
        self.db = db
        self.notification_repo = NotificationRepository(db)
        self.subscription_repo = SubscriptionRepository(db)

    # -- delivery ------------------------------------------------------------

    def publish(self, event: WikiEvent) -> int:
        """Notify every subscriber of the event's page whose filter includes its type.

        The actor is never notified of their own action. Returns the number of
        notifications created (0 on failure).
        """
        if event.page_id is None:
            return 0
        try:
            created = 0
            for sub in self.subscription_repo.for_page(event.page_id):
                if sub.user_id == event.actor_id:
                    continue
                if event.type not in (sub.notification_types or []):
                    continue
                self.db.add(event.to_notification(sub.user_id))
                created += 1
            self.db.commit()
        except sqlalchemy.exc.SQLAlchemyError as e:
            logger.warning(
                "Failed to publish notification: %s", e,
                extra={"event_type": event.type, "page_id": event.page_id},
            )
            self.db.rollback()
            return 0

        if created:
            logger.info(
                "Notifications published",
                extra={"event_type": event.type, "page_id": event.page_id, "recipients": created},
            )
        return created

    def notify_user(self, user_id: str, event: WikiEvent) -> Optional[Notification]:
        """Deliver directly to one user, regardless of subscriptions."""
        if user_id == event.actor_id:
            return None
        try:
            notification = event.to_notification(user_id)
            self.db.add(notification)
            self.db.commit()
        except sqlalchemy.exc.SQLAlchemyError as e:
            logger.warning(
                "Failed to deliver notification: %s", e,
                extra={"event_type": event.type, "user_id": user_id},
            )
            self.db.rollback()
            return None
        return notification

    # -- read ledger ---------------------------------------------------------

    def list_for_user(self, user_id: str, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        return self.notification_repo.list_for_user(user_id, unread_only=unread_only, limit=limit)

    def unread_count(self, user_id: str) -> int:
        return self.notification_repo.unread_count(user_id)

    def mark_read(self, notification_id: int, user_id: str) -> Notification:
        notification = self.notification_repo.get_by_id(notification_id)
        if notification.user_id != user_id:
            raise PermissionDeniedError("Notification belongs to another user", action="mark_read")
        if not notification.is_read:
            notification.is_read = True
            self.db.commit()
        return notification

    def mark_all_read(self, user_id: str) -> int:
        updated = self.notification_repo.mark_all_read(user_id)
        self.db.commit()
        return updated

    # -- subscriptions -------------------------------------------------------

    def subscribe(self, user_id: str, page_id: str, types: Optional[Iterable[str]] = None) -> Subscription:
        """Create or replace the user's subscription to a page."""
        page_id = normalize_key(page_id)
        wanted = validate_types(types) if types else list(DEFAULT_SUBSCRIPTION_TYPES)
        sub = self.subscription_repo.get(user_id, page_id)
        if sub is None:
            sub = self.subscription_repo.add(
                Subscription(user_id=user_id, page_id=page_id, notification_types=wanted)
            )
        else:
            sub.notification_types = wanted
        self.db.commit()
        self.db.refresh(sub)
        logger.info(
            "Subscribed to page",
            extra={"user_id": user_id, "page_id": page_id, "types": wanted},
        )
        return sub

    def unsubscribe(self, user_id: str, page_id: str) -> bool:
        """Remove the subscription. Returns False when there was none."""
        page_id = normalize_key(page_id)
        sub = self.subscription_repo.get(user_id, page_id)
        if sub is None:
            return False
        self.subscription_repo.delete(sub)
        self.db.commit()
        return True

    def get_subscription(self, user_id: str, page_id: str) -> Optional[Subscription]:
        return self.subscription_repo.get(user_id, normalize_key(page_id))

    def list_subscriptions(self, user_id: str) -> List[Subscription]:
        return self.subscription_repo.for_user(user_id)
