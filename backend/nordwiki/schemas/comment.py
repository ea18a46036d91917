"""Comment schemas."""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional


class CommentCreate(BaseModel):
    page_id: str
    body: str = Field(..., min_length=1)
    parent_id: Optional[int] = None


class CommentUpdate(BaseModel):
    body: str = Field(..., min_length=1)


class CommentFlag(BaseModel):
    """Body for the resolved / pinned / moderated toggles."""
    value: bool


class CommentResponse(BaseModel):
    id: int
    page_id: str
    author_id: str
    author_name: str
    parent_id: Optional[int] = None
    body: str
    is_resolved: bool
    is_pinned: bool
    is_moderated: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CommentThreadResponse(CommentResponse):
    """Root comment with its replies, oldest first."""
    replies: List[CommentResponse] = []
