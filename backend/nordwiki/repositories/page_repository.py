"""Page metadata and revision history queries."""

from typing import List, Optional

from sqlalchemy import func

from ..models import Page, Revision
from ..exceptions import PageNotFoundError, RevisionNotFoundError
from .base import BaseRepository


class PageRepository(BaseRepository[Page]):
    model_class = Page
    not_found_error = PageNotFoundError

    def list_all(self) -> List[Page]:
        return self.db.query(Page).order_by(Page.id).all()


class RevisionRepository(BaseRepository[Revision]):
    model_class = Revision
    not_found_error = RevisionNotFoundError

    def list_for_page(self, page_id: str, skip: int = 0, limit: int = 100) -> List[Revision]:
        """Newest first."""
        return (
            self.db.query(Revision)
            .filter(Revision.page_id == page_id)
            .order_by(Revision.revision_number.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def max_number(self, page_id: str) -> int:
        value = (
            self.db.query(func.max(Revision.revision_number))
            .filter(Revision.page_id == page_id)
            .scalar()
        )
        return value or 0

    def get_current(self, page_id: str) -> Optional[Revision]:
        return (
            self.db.query(Revision)
            .filter(Revision.page_id == page_id, Revision.is_current.is_(True))
            .first()
        )

    def get_by_number(self, page_id: str, revision_number: int) -> Optional[Revision]:
        return (
            self.db.query(Revision)
            .filter(Revision.page_id == page_id, Revision.revision_number == revision_number)
            .first()
        )

    def clear_current(self, page_id: str) -> None:
        self.db.query(Revision).filter(
            Revision.page_id == page_id, Revision.is_current.is_(True)
        ).update({Revision.is_current: False}, synchronize_session="fetch")
