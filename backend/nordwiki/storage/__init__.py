"""Page storage: blob store adapters, frontmatter codec and content cache."""

from .blob_store import (
    BlobEntry,
    BlobStore,
    InMemoryBlobStore,
    LocalBlobStore,
    HttpBlobStore,
    create_blob_store,
)
from .frontmatter import FrontmatterCodec
from .content_cache import CachedContent, ContentCache

__all__ = [
    "BlobEntry",
    "BlobStore",
    "InMemoryBlobStore",
    "LocalBlobStore",
    "HttpBlobStore",
    "create_blob_store",
    "FrontmatterCodec",
    "CachedContent",
    "ContentCache",
]
