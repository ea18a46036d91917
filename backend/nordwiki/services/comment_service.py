"""Comment threads per page.

Threads are one level deep: a reply always points at a root comment, and
replying to a reply attaches the new comment to that reply's root. Reads
return roots (pinned first, then oldest first) with their replies embedded
oldest first.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.auth import AuthContext
from ..models import Comment
from ..repositories import CommentRepository
from ..storage.blob_store import normalize_key
from ..exceptions import PermissionDeniedError, ValidationError
from . import permission_service
from .notification_service import NotificationService, WikiEvent

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 10000


@dataclass
class CommentThread:
    comment: Comment
    replies: List[Comment] = field(default_factory=list)


def _clean_body(body: str) -> str:
    body = (body or "").strip()
    if not body:
        raise ValidationError("Comment cannot be empty", field="body")
    if len(body) > MAX_COMMENT_LENGTH:
        raise ValidationError(f"Comment exceeds {MAX_COMMENT_LENGTH} characters", field="body")
    return body


class CommentService:
    """Deep module for comment threads and their moderation flags."""

    def __init__(self, db: Session):
        self.db = db
        self.comment_repo = CommentRepository(db)
        self.notifications = NotificationService(db)

    def _require_author_or_moderator(self, comment: Comment, actor: AuthContext, action: str) -> None:
        if comment.author_id == actor.user_id:
            return
        if not permission_service.can(actor.role, "moderate"):
            raise PermissionDeniedError(
                f"Only the author or a moderator can {action} this comment", action=action
            )

    def add(
        self,
        page_id: str,
        actor: AuthContext,
        body: str,
        parent_id: Optional[int] = None,
    ) -> Comment:
        permission_service.require(actor.role, "comment")
        page_id = normalize_key(page_id)
        body = _clean_body(body)

        parent = None
        if parent_id is not None:
            parent = self.comment_repo.get_by_id(parent_id)
            if parent.page_id != page_id:
                raise ValidationError("Parent comment belongs to another page", field="parent_id")
            if parent.parent_id is not None:
                parent = self.comment_repo.get_by_id(parent.parent_id)

        comment = self.comment_repo.add(Comment(
            page_id=page_id,
            author_id=actor.user_id,
            author_name=actor.user_name,
            parent_id=parent.id if parent is not None else None,
            body=body,
        ))
        self.db.commit()
        self.db.refresh(comment)
        logger.info(
            "Comment added",
            extra={"comment_id": comment.id, "page_id": page_id, "reply": parent is not None},
        )

        self.notifications.publish(WikiEvent(
            type="comment_added",
            title=f"New comment on {page_id}",
            message=body[:200],
            page_id=page_id,
            actor_id=actor.user_id,
            actor_name=actor.user_name,
            data={"comment_id": comment.id},
        ))
        if parent is not None:
            self.notifications.notify_user(parent.author_id, WikiEvent(
                type="comment_replied",
                title=f"{actor.user_name} replied to your comment",
                message=body[:200],
                page_id=page_id,
                actor_id=actor.user_id,
                actor_name=actor.user_name,
                data={"comment_id": comment.id, "parent_id": parent.id},
            ))
        return comment

    def get(self, comment_id: int) -> Comment:
        return self.comment_repo.get_by_id(comment_id)

    def edit(self, comment_id: int, body: str, actor: AuthContext) -> Comment:
        comment = self.comment_repo.get_by_id(comment_id)
        self._require_author_or_moderator(comment, actor, "edit")
        comment.body = _clean_body(body)
        self.db.commit()
        return comment

    def delete(self, comment_id: int, actor: AuthContext) -> int:
        """Delete a comment; deleting a root deletes its replies. Returns rows removed."""
        comment = self.comment_repo.get_by_id(comment_id)
        self._require_author_or_moderator(comment, actor, "delete")
        removed_replies = self.comment_repo.delete_replies(comment.id) if comment.parent_id is None else 0
        self.comment_repo.delete(comment)
        self.db.commit()
        logger.info(
            "Comment deleted",
            extra={"comment_id": comment_id, "replies_removed": removed_replies, "user_id": actor.user_id},
        )
        return 1 + removed_replies

    def set_resolved(self, comment_id: int, resolved: bool, actor: AuthContext) -> Comment:
        comment = self.comment_repo.get_by_id(comment_id)
        self._require_author_or_moderator(comment, actor, "resolve")
        comment.is_resolved = resolved
        self.db.commit()
        return comment

    def set_pinned(self, comment_id: int, pinned: bool, actor: AuthContext) -> Comment:
        permission_service.require(actor.role, "moderate")
        comment = self.comment_repo.get_by_id(comment_id)
        comment.is_pinned = pinned
        self.db.commit()
        return comment

    def set_moderated(self, comment_id: int, moderated: bool, actor: AuthContext) -> Comment:
        permission_service.require(actor.role, "moderate")
        comment = self.comment_repo.get_by_id(comment_id)
        comment.is_moderated = moderated
        self.db.commit()
        return comment

    def list_for_page(self, page_id: str) -> List[CommentThread]:
        page_id = normalize_key(page_id)
        threads = {c.id: CommentThread(comment=c) for c in self.comment_repo.roots_for_page(page_id)}
        for reply in self.comment_repo.replies_for_page(page_id):
            thread = threads.get(reply.parent_id)
            if thread is not None:
                thread.replies.append(reply)
        return list(threads.values())

    def count(self, page_id: str) -> int:
        return self.comment_repo.count_for_page(normalize_key(page_id))
