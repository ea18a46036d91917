"""Edit sessions and conflict detection.

A user holds at most one active session per page. The editor keeps it alive
with heartbeats; a session whose last heartbeat is older than the liveness
window no longer counts as editing, even before it is explicitly ended or
expired.

Conflict detection is advisory: it reports who else is editing and never
blocks a save.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.auth import AuthContext
from ..core.config import settings
from ..models import EditSession
from ..models.common import as_utc, utcnow
from ..repositories import EditSessionRepository
from ..storage.blob_store import normalize_key
from ..exceptions import InvalidStateError, PermissionDeniedError
from .notification_service import NotificationService, WikiEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Conflict:
    conflict_user_id: str
    conflict_user_name: str
    last_activity: datetime


class EditSessionService:
    """Deep module for the edit session lifecycle: start, heartbeat, end, expire."""

    def __init__(self, db: Session, liveness_seconds: Optional[float] = None):
        self.db = db
        self.session_repo = EditSessionRepository(db)
        self.notifications = NotificationService(db)
        self.liveness = timedelta(seconds=liveness_seconds or settings.effective_session_liveness)

    def _cutoff(self, now: Optional[datetime]) -> datetime:
        return (now or utcnow()) - self.liveness

    def _end(self, session: EditSession, now: datetime) -> None:
        session.is_active = False
        session.ended_at = now

    def _get_owned(self, session_id: int, user_id: Optional[str]) -> EditSession:
        session = self.session_repo.get_by_id(session_id)
        if user_id is not None and session.user_id != user_id:
            raise PermissionDeniedError("Edit session belongs to another user", action="edit_session")
        return session

    def start(self, page_id: str, actor: AuthContext, now: Optional[datetime] = None) -> EditSession:
        """Open a session, replacing the user's earlier sessions on the same page.

        Users already editing the page get an ``edit_conflict`` notification.
        """
        now = now or utcnow()
        page_id = normalize_key(page_id)

        for previous in self.session_repo.active_for_user(page_id, actor.user_id):
            self._end(previous, now)

        session = self.session_repo.add(EditSession(
            page_id=page_id,
            user_id=actor.user_id,
            user_name=actor.user_name,
            is_active=True,
            last_activity_at=now,
            created_at=now,
        ))
        others = self.session_repo.live_on_page(page_id, self._cutoff(now), excluding_user_id=actor.user_id)
        self.db.commit()
        self.db.refresh(session)

        logger.info(
            "Edit session started",
            extra={"session_id": session.id, "page_id": page_id, "user_id": actor.user_id, "others": len(others)},
        )

        notified: set[str] = set()
        for other in others:
            if other.user_id in notified:
                continue
            notified.add(other.user_id)
            self.notifications.notify_user(other.user_id, WikiEvent(
                type="edit_conflict",
                title=f"{actor.user_name} started editing {page_id}",
                message="Someone else is editing the page you have open. Save carefully.",
                page_id=page_id,
                actor_id=actor.user_id,
                actor_name=actor.user_name,
                data={"session_id": session.id},
            ))
        return session

    def heartbeat(self, session_id: int, user_id: Optional[str] = None, now: Optional[datetime] = None) -> EditSession:
        """Refresh ``last_activity_at``.

        Raises:
            SessionNotFoundError: Unknown session.
            InvalidStateError: The session has ended.
        """
        session = self._get_owned(session_id, user_id)
        if not session.is_active:
            raise InvalidStateError(f"Edit session {session_id} has ended", current_state="ended")
        session.last_activity_at = now or utcnow()
        self.db.commit()
        return session

    def end(self, session_id: int, user_id: Optional[str] = None, now: Optional[datetime] = None) -> EditSession:
        """Mark the session ended. Ending an ended session is a no-op."""
        session = self._get_owned(session_id, user_id)
        if session.is_active:
            self._end(session, now or utcnow())
            self.db.commit()
            logger.info("Edit session ended", extra={"session_id": session_id, "page_id": session.page_id})
        return session

    def list_other_active_sessions(
        self, page_id: str, excluding_user_id: str, now: Optional[datetime] = None
    ) -> List[EditSession]:
        return self.session_repo.live_on_page(
            normalize_key(page_id), self._cutoff(now), excluding_user_id=excluding_user_id
        )

    def check_conflicts(self, page_id: str, user_id: str, now: Optional[datetime] = None) -> List[Conflict]:
        """One entry per other user live on the page, with their latest activity."""
        conflicts: dict[str, Conflict] = {}
        for session in self.list_other_active_sessions(page_id, user_id, now=now):
            if session.user_id in conflicts:
                continue
            conflicts[session.user_id] = Conflict(
                conflict_user_id=session.user_id,
                conflict_user_name=session.user_name,
                last_activity=as_utc(session.last_activity_at),
            )
        return list(conflicts.values())

    def expire_stale(self, now: Optional[datetime] = None) -> int:
        """End every active session outside the liveness window."""
        now = now or utcnow()
        stale = self.session_repo.stale(self._cutoff(now))
        for session in stale:
            self._end(session, now)
        if stale:
            self.db.commit()
            logger.info("Expired stale edit sessions", extra={"count": len(stale)})
        return len(stale)
