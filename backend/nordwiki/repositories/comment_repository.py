"""Comment queries."""

from typing import List

from ..models import Comment
from ..exceptions import CommentNotFoundError
from .base import BaseRepository


class CommentRepository(BaseRepository[Comment]):
    model_class = Comment
    not_found_error = CommentNotFoundError

    def roots_for_page(self, page_id: str) -> List[Comment]:
        """Pinned first, then oldest first."""
        return (
            self.db.query(Comment)
            .filter(Comment.page_id == page_id, Comment.parent_id.is_(None))
            .order_by(Comment.is_pinned.desc(), Comment.created_at.asc(), Comment.id.asc())
            .all()
        )

    def replies_for_page(self, page_id: str) -> List[Comment]:
        """Every reply on the page, oldest first."""
        return (
            self.db.query(Comment)
            .filter(Comment.page_id == page_id, Comment.parent_id.isnot(None))
            .order_by(Comment.created_at.asc(), Comment.id.asc())
            .all()
        )

    def delete_replies(self, comment_id: int) -> int:
        return (
            self.db.query(Comment)
            .filter(Comment.parent_id == comment_id)
            .delete(synchronize_session="fetch")
        )

    def count_for_page(self, page_id: str) -> int:
        return self.db.query(Comment).filter(Comment.page_id == page_id).count()
