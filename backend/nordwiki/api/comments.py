"""Comment thread API."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from ..core.auth import AuthContext, optional_auth, require_auth
from ..database import get_db
from ..schemas.comment import (
    CommentCreate,
    CommentFlag,
    CommentResponse,
    CommentThreadResponse,
    CommentUpdate,
)
from ..services import CommentService

router = APIRouter(prefix="/api/comments", tags=["comments"])


@router.post("", response_model=CommentResponse, status_code=201)
def add_comment(
    data: CommentCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return CommentService(db).add(data.page_id, auth, data.body, parent_id=data.parent_id)


@router.get("", response_model=List[CommentThreadResponse])
def list_comments(
    page_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(optional_auth),
):
    """Root comments (pinned first, then oldest first) with replies embedded."""
    threads = CommentService(db).list_for_page(page_id)
    return [
        CommentThreadResponse(
            **CommentResponse.model_validate(t.comment).model_dump(),
            replies=[CommentResponse.model_validate(r) for r in t.replies],
        )
        for t in threads
    ]


@router.get("/count")
def count_comments(
    page_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(optional_auth),
):
    return {"page_id": page_id, "count": CommentService(db).count(page_id)}


@router.put("/{comment_id}", response_model=CommentResponse)
def edit_comment(
    comment_id: int,
    data: CommentUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return CommentService(db).edit(comment_id, data.body, auth)


@router.delete("/{comment_id}")
def delete_comment(
    comment_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Delete a comment; deleting a root also deletes its replies."""
    return {"deleted": CommentService(db).delete(comment_id, auth)}


@router.put("/{comment_id}/resolved", response_model=CommentResponse)
def set_resolved(
    comment_id: int,
    data: CommentFlag,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return CommentService(db).set_resolved(comment_id, data.value, auth)


@router.put("/{comment_id}/pinned", response_model=CommentResponse)
def set_pinned(
    comment_id: int,
    data: CommentFlag,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return CommentService(db).set_pinned(comment_id, data.value, auth)


@router.put("/{comment_id}/moderated", response_model=CommentResponse)
def set_moderated(
    comment_id: int,
    data: CommentFlag,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return CommentService(db).set_moderated(comment_id, data.value, auth)
