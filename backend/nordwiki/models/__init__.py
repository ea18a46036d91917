"""Database models."""

from .page import Page, Revision
from .edit_session import EditSession
from .suggested_edit import SuggestedEdit
from .comment import Comment
from .notification import Notification, Subscription

__all__ = [
    "Page", "Revision",
    "EditSession",
    "SuggestedEdit",
    "Comment",
    "Notification", "Subscription",
]
