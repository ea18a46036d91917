"""Page API: read (with live overlay), save and delete.

Page ids are blob paths, so the route takes the rest of the URL as the
path: ``/api/pages/Nordics/towns/garvia.md``.
"""

import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, optional_auth, require_auth
from ..core.runtime import WikiRuntime, get_runtime
from ..database import get_db
from ..schemas.page import PageResponse, PageSave, PageSaveResponse
from ..services import PageService
from ..services.page_service import SaveResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/pages", tags=["pages"])


def to_save_response(result: SaveResult) -> PageSaveResponse:
    return PageSaveResponse(
        id=result.page.id,
        title=result.page.title,
        status=result.page.status,
        revision_id=result.revision.id,
        revision_number=result.revision.revision_number,
    )


@router.get("/{path:path}", response_model=PageResponse)
async def get_page(
    path: str,
    db: Session = Depends(get_db),
    runtime: WikiRuntime = Depends(get_runtime),
    auth: AuthContext = Depends(optional_auth),
):
    return await PageService(db, runtime).get_page(path)


@router.put("/{path:path}", response_model=PageSaveResponse)
async def save_page(
    path: str,
    data: PageSave,
    db: Session = Depends(get_db),
    runtime: WikiRuntime = Depends(get_runtime),
    auth: AuthContext = Depends(require_auth),
):
    """Create or update a page. Every save writes a new revision."""
    result = await PageService(db, runtime).save_page(
        path,
        data.title,
        data.body,
        auth,
        status=data.status,
        comment=data.comment,
        tags=data.tags,
        description=data.description,
    )
    return to_save_response(result)


@router.delete("/{path:path}", status_code=204)
async def delete_page(
    path: str,
    db: Session = Depends(get_db),
    runtime: WikiRuntime = Depends(get_runtime),
    auth: AuthContext = Depends(require_auth),
):
    await PageService(db, runtime).delete_page(path, auth)
