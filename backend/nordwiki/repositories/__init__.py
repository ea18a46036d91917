"""Data access repositories."""

from .base import BaseRepository
from .page_repository import PageRepository, RevisionRepository
from .edit_session_repository import EditSessionRepository
from .suggested_edit_repository import SuggestedEditRepository
from .comment_repository import CommentRepository
from .notification_repository import NotificationRepository, SubscriptionRepository

__all__ = [
    "BaseRepository",
    "PageRepository",
    "RevisionRepository",
    "EditSessionRepository",
    "SuggestedEditRepository",
    "CommentRepository",
    "NotificationRepository",
    "SubscriptionRepository",
]
