"""Suggested edit queries."""

from typing import List, Optional

from ..models import SuggestedEdit
from ..exceptions import SuggestedEditNotFoundError
from .base import BaseRepository


class SuggestedEditRepository(BaseRepository[SuggestedEdit]):
    model_class = SuggestedEdit
    not_found_error = SuggestedEditNotFoundError

    def list_for_page(self, page_id: str, status: Optional[str] = None) -> List[SuggestedEdit]:
        """Newest first, optionally filtered by status."""
        query = self.db.query(SuggestedEdit).filter(SuggestedEdit.page_id == page_id)
        if status:
            query = query.filter(SuggestedEdit.status == status)
        return query.order_by(SuggestedEdit.created_at.desc(), SuggestedEdit.id.desc()).all()

    def count_pending(self, page_id: str) -> int:
        return (
            self.db.query(SuggestedEdit)
            .filter(SuggestedEdit.page_id == page_id, SuggestedEdit.status == "pending")
            .count()
        )
