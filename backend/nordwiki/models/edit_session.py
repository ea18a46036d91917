"""Edit session model.

A session is a user's claim of editing a page. It is live while
``is_active`` and its last heartbeat falls inside the liveness window.
"""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String
from ..database import Base
from .common import utcnow


class EditSession(Base):
    __tablename__ = "edit_sessions"
    __table_args__ = (
        Index("ix_edit_sessions_page_active", "page_id", "is_active"),
        Index("ix_edit_sessions_user_id", "user_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    page_id = Column(String(500), nullable=False)
    user_id = Column(String(100), nullable=False)
    user_name = Column(String(255), nullable=False, default="")

    is_active = Column(Boolean, nullable=False, default=True)
    last_activity_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    ended_at = Column(DateTime(timezone=True), nullable=True)
