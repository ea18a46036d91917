"""Pydantic schemas for API validation."""

from .tree import TreeNode, CategoryResponse, PageStubResponse
from .page import PageSave, PageResponse, PageSaveResponse
from .revision import RevisionSummary, RevisionResponse
from .session import SessionStart, EditSessionResponse, ConflictResponse
from .suggestion import SuggestionCreate, SuggestionReview, SuggestionResponse
from .comment import CommentCreate, CommentUpdate, CommentFlag, CommentResponse, CommentThreadResponse
from .notification import (
    NotificationResponse,
    UnreadCountResponse,
    SubscriptionCreate,
    SubscriptionResponse,
)

__all__ = [
    "TreeNode",
    "CategoryResponse",
    "PageStubResponse",
    "PageSave",
    "PageResponse",
    "PageSaveResponse",
    "RevisionSummary",
    "RevisionResponse",
    "SessionStart",
    "EditSessionResponse",
    "ConflictResponse",
    "SuggestionCreate",
    "SuggestionReview",
    "SuggestionResponse",
    "CommentCreate",
    "CommentUpdate",
    "CommentFlag",
    "CommentResponse",
    "CommentThreadResponse",
    "NotificationResponse",
    "UnreadCountResponse",
    "SubscriptionCreate",
    "SubscriptionResponse",
]
