"""Page schemas."""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Any, Dict, List, Optional


class PageSave(BaseModel):
    """Schema for saving a page (creates a new revision)."""
    title: str = Field(..., min_length=1, max_length=500)
    body: str
    status: Optional[str] = None  # draft | review | published; omit to keep
    comment: Optional[str] = Field(None, max_length=500)
    tags: Optional[List[str]] = None
    description: Optional[str] = None

    @field_validator('title')
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be blank")
        return v

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "title": "Garvia",
                    "body": "# Garvia\n\nA port town on the northern coast.",
                    "status": "published",
                    "comment": "Added history section",
                }
            ]
        }
    }


class LiveSnapshotResponse(BaseModel):
    fields: Dict[str, Any] = {}
    last_updated: Optional[str] = None

    class Config:
        from_attributes = True


class PageResponse(BaseModel):
    """A page with its stored body and the body to display."""
    id: str
    title: str
    slug: str
    status: str
    category_id: str
    body: str
    display_body: str
    author_id: str
    author_name: str
    tags: List[str] = []
    description: Optional[str] = None
    frontmatter: Dict[str, str] = {}
    current_revision: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    is_live: bool = False
    entity_type: Optional[str] = None
    entity_name: Optional[str] = None
    live_snapshot: Optional[LiveSnapshotResponse] = None

    class Config:
        from_attributes = True


class PageSaveResponse(BaseModel):
    id: str
    title: str
    status: str
    revision_id: int
    revision_number: int
