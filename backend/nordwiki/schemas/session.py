"""Edit session and conflict schemas."""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class SessionStart(BaseModel):
    page_id: str


class EditSessionResponse(BaseModel):
    id: int
    page_id: str
    user_id: str
    user_name: str
    is_active: bool
    last_activity_at: datetime
    created_at: datetime
    ended_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ConflictResponse(BaseModel):
    """Another user editing the same page. Advisory only."""
    conflict_user_id: str
    conflict_user_name: str
    last_activity: datetime

    class Config:
        from_attributes = True
