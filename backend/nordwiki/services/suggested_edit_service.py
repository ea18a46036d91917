"""Suggested edits -- propose, review, merge.

State machine::

    pending --review--> approved --merge--> merged
    pending --review--> rejected
    pending --merge---> merged

A suggestion's title and body never change after it is proposed. Merging
writes them as a new revision of the target page through the page save
path, so it runs under that page's save lock and commits the revision and
the ``merged`` status together.
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy.orm import Session

from ..core.auth import AuthContext
from ..models import Revision, SuggestedEdit
from ..models.common import utcnow
from ..models.suggested_edit import SUGGESTION_STATUSES
from ..repositories import SuggestedEditRepository
from ..exceptions import InvalidStateError, ValidationError
from . import permission_service
from .notification_service import NotificationService, WikiEvent
from .page_service import PageService, normalize_page_path

if TYPE_CHECKING:
    from ..core.runtime import WikiRuntime

logger = logging.getLogger(__name__)

REVIEW_DECISIONS = ("approved", "rejected")
MERGEABLE_STATUSES = ("pending", "approved")


class SuggestedEditService:
    """Deep module for the propose/review/merge workflow."""

    def __init__(self, db: Session, runtime: "WikiRuntime"):
        self.db = db
        self.runtime = runtime
        self.edit_repo = SuggestedEditRepository(db)
        self.notifications = NotificationService(db)

    def propose(
        self,
        page_id: str,
        actor: AuthContext,
        title: str,
        body: str,
        description: Optional[str] = None,
    ) -> SuggestedEdit:
        """Create a suggestion in state ``pending``."""
        permission_service.require(actor.role, "propose")
        page_id = normalize_page_path(page_id, self.runtime.settings.page_extension)
        title = (title or "").strip()
        if not title:
            raise ValidationError("Title cannot be empty", field="title")

        edit = self.edit_repo.add(SuggestedEdit(
            page_id=page_id,
            author_id=actor.user_id,
            author_name=actor.user_name,
            title=title,
            body=body,
            description=description,
            status="pending",
        ))
        self.db.commit()
        self.db.refresh(edit)
        logger.info(
            "Suggested edit proposed",
            extra={"edit_id": edit.id, "page_id": page_id, "user_id": actor.user_id},
        )

        self.notifications.publish(WikiEvent(
            type="suggested_edit_submitted",
            title=f"New suggested edit on {title}",
            message=description or f"{actor.user_name} proposed a change",
            page_id=page_id,
            actor_id=actor.user_id,
            actor_name=actor.user_name,
            data={"edit_id": edit.id},
        ))
        return edit

    def get(self, edit_id: int) -> SuggestedEdit:
        return self.edit_repo.get_by_id(edit_id)

    def list_for_page(self, page_id: str, status: Optional[str] = None) -> List[SuggestedEdit]:
        if status is not None and status not in SUGGESTION_STATUSES:
            raise ValidationError(f"Invalid status '{status}'", field="status")
        return self.edit_repo.list_for_page(page_id.strip("/"), status=status)

    def pending_count(self, page_id: str) -> int:
        return self.edit_repo.count_pending(page_id.strip("/"))

    def review(
        self,
        edit_id: int,
        decision: str,
        actor: AuthContext,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> SuggestedEdit:
        """Approve or reject a pending suggestion.

        Raises:
            PermissionDeniedError: Role cannot review.
            ValidationError: Unknown decision.
            InvalidStateError: Not pending, or rejected without notes.
        """
        permission_service.require(actor.role, "review")
        if decision not in REVIEW_DECISIONS:
            raise ValidationError(
                f"Decision must be one of: {', '.join(REVIEW_DECISIONS)}", field="decision"
            )
        edit = self.edit_repo.get_by_id(edit_id)
        if edit.status != "pending":
            raise InvalidStateError(
                f"Suggested edit {edit_id} is {edit.status}, only pending edits can be reviewed",
                current_state=edit.status,
            )
        notes = (notes or "").strip() or None
        if decision == "rejected" and notes is None:
            raise InvalidStateError("Rejecting a suggested edit requires review notes", current_state=edit.status)

        edit.status = decision
        edit.reviewer_id = actor.user_id
        edit.review_notes = notes
        edit.reviewed_at = now or utcnow()
        self.db.commit()
        logger.info(
            "Suggested edit reviewed",
            extra={"edit_id": edit_id, "decision": decision, "reviewer_id": actor.user_id},
        )

        self._notify_author(edit, actor, decision)
        return edit

    async def merge(self, edit_id: int, actor: AuthContext, now: Optional[datetime] = None) -> SuggestedEdit:
        """Write the suggestion as a new page revision and mark it ``merged``.

        Raises:
            PermissionDeniedError: Role cannot review.
            InvalidStateError: Already merged or rejected, including when a
                concurrent merge of the same suggestion won.
        """
        permission_service.require(actor.role, "review")
        edit = self.edit_repo.get_by_id(edit_id)
        self._require_mergeable(edit)

        def mark_merged(revision: Revision) -> None:
            # Runs under the page save lock: re-read so a merge that committed
            # while this one waited is seen.
            self.db.refresh(edit)
            self._require_mergeable(edit)
            edit.status = "merged"
            edit.merged_revision_id = revision.id
            if edit.reviewer_id is None:
                edit.reviewer_id = actor.user_id
            edit.reviewed_at = edit.reviewed_at or now or utcnow()

        result = await PageService(self.db, self.runtime).save_page(
            edit.page_id,
            edit.title,
            edit.body,
            actor,
            comment=f"Merged suggested edit #{edit.id} by {edit.author_name}",
            on_saved=mark_merged,
        )
        logger.info(
            "Suggested edit merged",
            extra={"edit_id": edit_id, "page_id": edit.page_id, "revision": result.revision.revision_number},
        )

        self._notify_author(edit, actor, "merged")
        return edit

    def _require_mergeable(self, edit: SuggestedEdit) -> None:
        if edit.status not in MERGEABLE_STATUSES:
            raise InvalidStateError(
                f"Suggested edit {edit.id} is {edit.status} and cannot be merged",
                current_state=edit.status,
            )

    def _notify_author(self, edit: SuggestedEdit, actor: AuthContext, outcome: str) -> None:
        self.notifications.notify_user(edit.author_id, WikiEvent(
            type="suggested_edit_reviewed",
            title=f"Your suggested edit to {edit.title} was {outcome}",
            message=edit.review_notes or "",
            page_id=edit.page_id,
            actor_id=actor.user_id,
            actor_name=actor.user_name,
            data={"edit_id": edit.id, "status": outcome},
        ))
