"""Revision history API."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from ..core.auth import AuthContext, optional_auth, require_auth
from ..core.runtime import WikiRuntime, get_runtime
from ..database import get_db
from ..schemas.page import PageSaveResponse
from ..schemas.revision import RevisionResponse, RevisionSummary
from ..services import PageService
from .pages import to_save_response

router = APIRouter(prefix="/api/revisions", tags=["revisions"])


@router.get("", response_model=List[RevisionSummary])
def list_revisions(
    page_id: str = Query(..., min_length=1),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    runtime: WikiRuntime = Depends(get_runtime),
    auth: AuthContext = Depends(optional_auth),
):
    """Revisions of a page, newest first."""
    return PageService(db, runtime).list_revisions(page_id, skip=skip, limit=limit)


@router.get("/{revision_id}", response_model=RevisionResponse)
def get_revision(
    revision_id: int,
    db: Session = Depends(get_db),
    runtime: WikiRuntime = Depends(get_runtime),
    auth: AuthContext = Depends(optional_auth),
):
    return PageService(db, runtime).get_revision(revision_id)


@router.post("/{revision_id}/restore", response_model=PageSaveResponse)
async def restore_revision(
    revision_id: int,
    db: Session = Depends(get_db),
    runtime: WikiRuntime = Depends(get_runtime),
    auth: AuthContext = Depends(require_auth),
):
    """Copy an old revision into a new current revision."""
    result = await PageService(db, runtime).restore_revision(revision_id, auth)
    return to_save_response(result)
