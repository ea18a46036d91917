"""Edit session API: start, heartbeat, end, and conflict polling.

Conflicts are advisory; nothing here blocks a save.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from ..core.auth import AuthContext, require_auth
from ..database import get_db
from ..schemas.session import ConflictResponse, EditSessionResponse, SessionStart
from ..services import EditSessionService

router = APIRouter(prefix="/api/sessions", tags=["sessions"])

# /api/conflicts is polled by open editors every few seconds.
conflicts_router = APIRouter(tags=["sessions"])


@router.post("", response_model=EditSessionResponse, status_code=201)
def start_session(
    data: SessionStart,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return EditSessionService(db).start(data.page_id, auth)


@router.get("", response_model=List[EditSessionResponse])
def list_other_sessions(
    page_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Live sessions of other users on the page."""
    return EditSessionService(db).list_other_active_sessions(page_id, auth.user_id)


@router.post("/{session_id}/heartbeat", response_model=EditSessionResponse)
def heartbeat(
    session_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return EditSessionService(db).heartbeat(session_id, user_id=auth.user_id)


@router.delete("/{session_id}", response_model=EditSessionResponse)
def end_session(
    session_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return EditSessionService(db).end(session_id, user_id=auth.user_id)


@conflicts_router.get("/api/conflicts", response_model=List[ConflictResponse])
def check_conflicts(
    page_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return EditSessionService(db).check_conflicts(page_id, auth.user_id)
