"""Suggested edit schemas."""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class SuggestionCreate(BaseModel):
    page_id: str
    title: str = Field(..., min_length=1, max_length=500)
    body: str
    description: Optional[str] = None


class SuggestionReview(BaseModel):
    decision: str  # approved | rejected
    notes: Optional[str] = None


class SuggestionResponse(BaseModel):
    id: int
    page_id: str
    author_id: str
    author_name: str
    title: str
    body: str
    description: Optional[str] = None
    status: str
    reviewer_id: Optional[str] = None
    review_notes: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    merged_revision_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
