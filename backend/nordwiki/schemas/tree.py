"""Navigation tree and category schemas."""

from pydantic import BaseModel
from typing import List


class TreeNode(BaseModel):
    """Schema for tree navigation."""
    type: str  # 'file' or 'folder'
    name: str
    path: str
    title: str
    is_page: bool = False  # Folder with an index page (README)
    is_group: bool = False  # Folder without one
    children: List['TreeNode'] = []

    class Config:
        from_attributes = True


class PageStubResponse(BaseModel):
    """Page metadata known from discovery; body is loaded on open."""
    id: str
    title: str
    slug: str
    category_id: str
    status: str = "published"

    class Config:
        from_attributes = True


class CategoryResponse(BaseModel):
    id: str
    title: str
    slug: str
    children: List['CategoryResponse'] = []
    pages: List[PageStubResponse] = []

    class Config:
        from_attributes = True
