"""API routes."""

from .tree import router as tree_router
from .pages import router as pages_router
from .revisions import router as revisions_router
from .sessions import router as sessions_router, conflicts_router
from .suggestions import router as suggestions_router
from .comments import router as comments_router
from .notifications import router as notifications_router, subscriptions_router

__all__ = [
    "tree_router",
    "pages_router",
    "revisions_router",
    "sessions_router",
    "conflicts_router",
    "suggestions_router",
    "comments_router",
    "notifications_router",
    "subscriptions_router",
]
