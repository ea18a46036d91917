"""Navigation API: discovered tree, categories and title search.

Everything here comes from the discovery engine's cached structure; no
page body is loaded.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from ..core.auth import AuthContext, optional_auth, require_auth
from ..core.runtime import WikiRuntime, get_runtime
from ..database import get_db
from ..schemas.tree import CategoryResponse, PageStubResponse, TreeNode
from ..services import PageService

router = APIRouter(prefix="/api", tags=["tree"])


@router.get("/tree", response_model=List[TreeNode])
async def get_tree(
    db: Session = Depends(get_db),
    runtime: WikiRuntime = Depends(get_runtime),
    auth: AuthContext = Depends(optional_auth),
):
    """Hierarchical navigation tree (titles only)."""
    return await PageService(db, runtime).get_tree()


@router.post("/tree/refresh", response_model=List[TreeNode])
async def refresh_tree(
    db: Session = Depends(get_db),
    runtime: WikiRuntime = Depends(get_runtime),
    auth: AuthContext = Depends(require_auth),
):
    """Re-run discovery against the blob store and return the new tree."""
    return await PageService(db, runtime).refresh_tree(auth)


@router.get("/categories", response_model=List[CategoryResponse])
async def get_categories(
    runtime: WikiRuntime = Depends(get_runtime),
    auth: AuthContext = Depends(optional_auth),
):
    tree = await runtime.discovery.get_tree()
    return runtime.discovery.categories(tree)


@router.get("/search", response_model=List[PageStubResponse])
async def search_pages(
    q: str = Query(..., min_length=1, max_length=200),
    runtime: WikiRuntime = Depends(get_runtime),
    auth: AuthContext = Depends(optional_auth),
):
    """Match page titles and slugs, case-insensitive."""
    return await runtime.discovery.search(q)
