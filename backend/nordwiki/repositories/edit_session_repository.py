"""Edit session queries. Liveness is evaluated in SQL against a cutoff time."""

from datetime import datetime
from typing import List

from ..models import EditSession
from ..exceptions import SessionNotFoundError
from .base import BaseRepository


class EditSessionRepository(BaseRepository[EditSession]):
    model_class = EditSession
    not_found_error = SessionNotFoundError

    def active_for_user(self, page_id: str, user_id: str) -> List[EditSession]:
        return (
            self.db.query(EditSession)
            .filter(
                EditSession.page_id == page_id,
                EditSession.user_id == user_id,
                EditSession.is_active.is_(True),
            )
            .all()
        )

    def live_on_page(self, page_id: str, cutoff: datetime, excluding_user_id: str = None) -> List[EditSession]:
        """Active sessions on *page_id* heard from at or after *cutoff*, latest first."""
        query = self.db.query(EditSession).filter(
            EditSession.page_id == page_id,
            EditSession.is_active.is_(True),
            EditSession.last_activity_at >= cutoff,
        )
        if excluding_user_id is not None:
            query = query.filter(EditSession.user_id != excluding_user_id)
        return query.order_by(EditSession.last_activity_at.desc()).all()

    def stale(self, cutoff: datetime) -> List[EditSession]:
        return (
            self.db.query(EditSession)
            .filter(EditSession.is_active.is_(True), EditSession.last_activity_at < cutoff)
            .all()
        )
