"""Comment model. Replies point at a root comment; threads are one level deep."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from ..database import Base
from .common import utcnow


class Comment(Base):
    __tablename__ = "comments"
    __table_args__ = (
        Index("ix_comments_page_id", "page_id"),
        Index("ix_comments_parent_id", "parent_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    page_id = Column(String(500), nullable=False)

    author_id = Column(String(100), nullable=False)
    author_name = Column(String(255), nullable=False, default="")

    parent_id = Column(Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True)
    body = Column(Text, nullable=False)

    is_resolved = Column(Boolean, nullable=False, default=False)
    is_pinned = Column(Boolean, nullable=False, default=False)
    is_moderated = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
