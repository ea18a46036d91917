"""Suggested edit API: propose, review, merge."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from ..core.auth import AuthContext, optional_auth, require_auth
from ..core.runtime import WikiRuntime, get_runtime
from ..database import get_db
from ..schemas.suggestion import SuggestionCreate, SuggestionResponse, SuggestionReview
from ..services import SuggestedEditService

router = APIRouter(prefix="/api/suggestions", tags=["suggestions"])


@router.post("", response_model=SuggestionResponse, status_code=201)
def propose(
    data: SuggestionCreate,
    db: Session = Depends(get_db),
    runtime: WikiRuntime = Depends(get_runtime),
    auth: AuthContext = Depends(require_auth),
):
    return SuggestedEditService(db, runtime).propose(
        data.page_id, auth, data.title, data.body, description=data.description
    )


@router.get("", response_model=List[SuggestionResponse])
def list_suggestions(
    page_id: str = Query(..., min_length=1),
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    runtime: WikiRuntime = Depends(get_runtime),
    auth: AuthContext = Depends(optional_auth),
):
    return SuggestedEditService(db, runtime).list_for_page(page_id, status=status)


@router.get("/pending-count")
def pending_count(
    page_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    runtime: WikiRuntime = Depends(get_runtime),
    auth: AuthContext = Depends(optional_auth),
):
    return {"page_id": page_id, "pending": SuggestedEditService(db, runtime).pending_count(page_id)}


@router.get("/{edit_id}", response_model=SuggestionResponse)
def get_suggestion(
    edit_id: int,
    db: Session = Depends(get_db),
    runtime: WikiRuntime = Depends(get_runtime),
    auth: AuthContext = Depends(optional_auth),
):
    return SuggestedEditService(db, runtime).get(edit_id)


@router.post("/{edit_id}/review", response_model=SuggestionResponse)
def review(
    edit_id: int,
    data: SuggestionReview,
    db: Session = Depends(get_db),
    runtime: WikiRuntime = Depends(get_runtime),
    auth: AuthContext = Depends(require_auth),
):
    return SuggestedEditService(db, runtime).review(edit_id, data.decision, auth, notes=data.notes)


@router.post("/{edit_id}/merge", response_model=SuggestionResponse)
async def merge(
    edit_id: int,
    db: Session = Depends(get_db),
    runtime: WikiRuntime = Depends(get_runtime),
    auth: AuthContext = Depends(require_auth),
):
    """Write the suggestion as a new page revision."""
    return await SuggestedEditService(db, runtime).merge(edit_id, auth)
