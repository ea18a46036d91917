"""Page and revision models.

The page body lives in the blob store. The ``pages`` row holds the metadata
and the number of the current revision; ``revisions`` is the append-only
history, keyed by (page_id, revision_number).
"""

from sqlalchemy import (
    Boolean, Column, DateTime, Index, Integer, JSON, String, Text, UniqueConstraint,
)
from ..database import Base
from .common import utcnow


class Page(Base):
    """Metadata of one page blob (id = blob path)."""

    __tablename__ = "pages"
    __table_args__ = (
        Index("ix_pages_category_id", "category_id"),
        Index("ix_pages_updated_at", "updated_at"),
    )

    id = Column(String(500), primary_key=True)  # "Nordics/towns/garvia.md"
    title = Column(String(255), nullable=False)
    slug = Column(String(500), nullable=False)
    status = Column(String(20), nullable=False, default="draft")  # draft | review | published

    author_id = Column(String(100), nullable=False)
    author_name = Column(String(255), nullable=False, default="")

    category_id = Column(String(500), nullable=False, default="")  # parent folder path
    tags = Column(JSON, default=list)
    description = Column(Text, nullable=True)

    current_revision = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class Revision(Base):
    """Immutable snapshot written on every save and restore.

    No foreign key to ``pages``: deleting a page leaves its history behind.
    """

    __tablename__ = "revisions"
    __table_args__ = (
        UniqueConstraint("page_id", "revision_number", name="uq_revisions_page_number"),
        Index("ix_revisions_page_id", "page_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    page_id = Column(String(500), nullable=False)
    revision_number = Column(Integer, nullable=False)

    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False, default="")
    status = Column(String(20), nullable=False, default="draft")

    author_id = Column(String(100), nullable=False)
    author_name = Column(String(255), nullable=False, default="")
    comment = Column(Text, nullable=True)

    is_current = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
