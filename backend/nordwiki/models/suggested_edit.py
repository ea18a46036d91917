"""Suggested edit model: a proposed full replacement of a page's title and body."""

from sqlalchemy import Column, DateTime, Index, Integer, String, Text
from ..database import Base
from .common import utcnow

SUGGESTION_STATUSES = ("pending", "approved", "rejected", "merged")


class SuggestedEdit(Base):
    __tablename__ = "suggested_edits"
    __table_args__ = (
        Index("ix_suggested_edits_page_status", "page_id", "status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    page_id = Column(String(500), nullable=False)

    author_id = Column(String(100), nullable=False)
    author_name = Column(String(255), nullable=False, default="")

    # Immutable after creation
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    description = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default="pending")
    reviewer_id = Column(String(100), nullable=True)
    review_notes = Column(Text, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    merged_revision_id = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
