"""Revision schemas."""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class RevisionSummary(BaseModel):
    """Revision list entry (no body)."""
    id: int
    page_id: str
    revision_number: int
    title: str
    status: str
    author_id: str
    author_name: str
    comment: Optional[str] = None
    is_current: bool
    created_at: datetime

    class Config:
        from_attributes = True


class RevisionResponse(RevisionSummary):
    body: str
