"""Business logic services."""

from .page_service import PageService
from .edit_session_service import EditSessionService
from .suggested_edit_service import SuggestedEditService
from .comment_service import CommentService
from .notification_service import NotificationService

__all__ = [
    "PageService",
    "EditSessionService",
    "SuggestedEditService",
    "CommentService",
    "NotificationService",
]
