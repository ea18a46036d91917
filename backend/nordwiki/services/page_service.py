"""Page service -- deep module for the page lifecycle and revision history.

Owns reading (metadata + lazily loaded body + live overlay), saving,
deleting and restoring pages. A save is one unit across two stores: the
revision row and the page blob either both change or neither does.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Callable, List, Optional

import sqlalchemy.exc
from sqlalchemy.orm import Session

from ..core.auth import AuthContext
from ..models import Page, Revision
from ..repositories import PageRepository, RevisionRepository
from ..storage.blob_store import normalize_key
from ..storage.frontmatter import format_list, parse_list
from ..exceptions import (
    BlobNotFoundError,
    DatabaseError,
    PageNotFoundError,
    ValidationError,
)
from . import permission_service
from .discovery import page_slug, page_title
from .live_overlay import EntitySnapshot
from .notification_service import NotificationService, WikiEvent

if TYPE_CHECKING:
    from ..core.runtime import WikiRuntime

logger = logging.getLogger(__name__)

PAGE_STATUSES = ("draft", "review", "published")


@dataclass
class PageView:
    """A page as shown to readers: metadata, stored body and display body."""

    id: str
    title: str
    slug: str
    status: str
    category_id: str
    body: str
    display_body: str
    author_id: str = "system"
    author_name: str = "System"
    tags: list[str] = field(default_factory=list)
    description: Optional[str] = None
    frontmatter: dict[str, str] = field(default_factory=dict)
    current_revision: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    is_live: bool = False
    entity_type: Optional[str] = None
    entity_name: Optional[str] = None
    live_snapshot: Optional[EntitySnapshot] = None


@dataclass
class SaveResult:
    page: Page
    revision: Revision


def normalize_page_path(path: str, extension: str) -> str:
    key = normalize_key(path)
    if not key or not key.lower().endswith(extension.lower()):
        raise ValidationError(f"Page path must end with {extension}: {path!r}", field="path")
    return key


class PageService:
    """Deep module for page operations.

    Callers never coordinate the blob store, the cache, the revision table
    and the notification hub themselves: each public method does the
    complete operation.
    """

    def __init__(self, db: Session, runtime: "WikiRuntime"):
        self.db = db
        self.runtime = runtime
        self.page_repo = PageRepository(db)
        self.revision_repo = RevisionRepository(db)
        self.notifications = NotificationService(db)

    @property
    def extension(self) -> str:
        return self.runtime.settings.page_extension

    # -- read ----------------------------------------------------------------

    async def get_tree(self, refresh: bool = False):
        return await self.runtime.discovery.get_tree(refresh=refresh)

    async def refresh_tree(self, actor: AuthContext):
        """Re-run discovery against the blob store. Moderators only."""
        permission_service.require(actor.role, "moderate")
        logger.info("Tree refresh requested", extra={"user_id": actor.user_id})
        return await self.get_tree(refresh=True)

    async def get_page(self, path: str) -> PageView:
        """Metadata plus body, loaded through the content cache, with live data applied.

        Raises:
            PageNotFoundError: No blob exists at *path*.
        """
        key = normalize_page_path(path, self.extension)
        content = await self.runtime.cache.get(key)
        fm = content.frontmatter
        page = self.page_repo.get_by_id_optional(key)
        overlay = await self.runtime.overlay.resolve(key, fm, content.body)

        view = PageView(
            id=key,
            title=fm.get("title") or page_title(key, self.extension),
            slug=page_slug(key, self.extension),
            status=fm.get("status") if fm.get("status") in PAGE_STATUSES else "published",
            category_id=key.rpartition("/")[0],
            body=content.body,
            display_body=overlay.display_body,
            tags=parse_list(fm.get("tags")),
            description=fm.get("description"),
            frontmatter=dict(fm),
            is_live=overlay.is_live,
            entity_type=overlay.entity_type,
            entity_name=overlay.entity_name,
            live_snapshot=overlay.snapshot,
        )
        if page is not None:
            view.title = page.title
            view.slug = page.slug
            view.status = page.status
            view.author_id = page.author_id
            view.author_name = page.author_name
            view.tags = list(page.tags or [])
            view.description = page.description
            view.current_revision = page.current_revision
            view.created_at = page.created_at
            view.updated_at = page.updated_at
        return view

    def list_revisions(self, page_id: str, skip: int = 0, limit: int = 100) -> List[Revision]:
        return self.revision_repo.list_for_page(normalize_key(page_id), skip=skip, limit=limit)

    def get_revision(self, revision_id: int) -> Revision:
        return self.revision_repo.get_by_id(revision_id)

    # -- write ---------------------------------------------------------------

    async def _read_blob(self, key: str) -> Optional[bytes]:
        try:
            return await self.runtime.store.get(key)
        except BlobNotFoundError:
            return None

    async def _restore_blob(self, key: str, previous: Optional[bytes]) -> None:
        try:
            if previous is None:
                await self.runtime.store.delete(key)
            else:
                await self.runtime.store.put(key, previous, overwrite=True)
        except Exception:
            logger.exception("Failed to restore blob after aborted save", extra={"page_path": key})

    async def save_page(
        self,
        path: str,
        title: str,
        body: str,
        actor: AuthContext,
        status: Optional[str] = None,
        comment: Optional[str] = None,
        tags: Optional[List[str]] = None,
        description: Optional[str] = None,
        on_saved: Optional[Callable[[Revision], None]] = None,
    ) -> SaveResult:
        """Write a new revision and the page blob as one unit.

        ``on_saved`` runs inside the same transaction after the revision is
        flushed; whatever it changes is committed (or rolled back) together
        with the revision.

        Raises:
            PermissionDeniedError: Role cannot edit, or cannot publish.
            ValidationError: Bad path, title or status.
            UpstreamUnavailableError: Blob store failed; nothing was written.
            DatabaseError: Commit failed; the previous blob was put back.
        """
        key = normalize_page_path(path, self.extension)
        title = (title or "").strip()
        if not title:
            raise ValidationError("Title cannot be empty", field="title")
        if status is not None and status not in PAGE_STATUSES:
            raise ValidationError(f"Invalid status '{status}'", field="status")
        permission_service.require(actor.role, "edit")

        async with self.runtime.page_locks.for_page(key):
            page = self.page_repo.get_by_id_optional(key)
            previous_blob = await self._read_blob(key)
            frontmatter: dict[str, str] = {}
            if previous_blob is not None:
                frontmatter, _ = self.runtime.codec.decode(previous_blob)

            if page is not None:
                previous_status = page.status
            elif previous_blob is not None:
                previous_status = frontmatter.get("status") or "published"
            else:
                previous_status = None
            new_status = status or previous_status or "draft"
            if new_status == "published" and previous_status != "published":
                permission_service.require(actor.role, "publish")

            frontmatter["title"] = title
            frontmatter["status"] = new_status
            if tags is not None:
                frontmatter["tags"] = format_list(tags)
            if description is not None:
                frontmatter["description"] = description
            blob = self.runtime.codec.encode_bytes(frontmatter, body)

            try:
                number = self.revision_repo.max_number(key) + 1
                self.revision_repo.clear_current(key)
                revision = self.revision_repo.add(Revision(
                    page_id=key,
                    revision_number=number,
                    title=title,
                    body=body,
                    status=new_status,
                    author_id=actor.user_id,
                    author_name=actor.user_name,
                    comment=comment,
                    is_current=True,
                ))

                if page is None:
                    page = self.page_repo.add(Page(
                        id=key,
                        title=title,
                        slug=page_slug(key, self.extension),
                        status=new_status,
                        author_id=actor.user_id,
                        author_name=actor.user_name,
                        category_id=key.rpartition("/")[0],
                        tags=list(tags) if tags is not None else parse_list(frontmatter.get("tags")),
                        description=frontmatter.get("description"),
                    ))
                else:
                    page.title = title
                    page.status = new_status
                    if tags is not None:
                        page.tags = list(tags)
                    if description is not None:
                        page.description = description
                page.current_revision = number

                if on_saved is not None:
                    on_saved(revision)
                self.db.flush()
            except sqlalchemy.exc.SQLAlchemyError as e:
                self.db.rollback()
                raise DatabaseError("Failed to record revision", e) from e
            except Exception:
                self.db.rollback()
                raise

            try:
                await self.runtime.store.put(key, blob, overwrite=True)
            except Exception:
                self.db.rollback()
                logger.error("Blob write failed, revision discarded", extra={"page_path": key})
                raise

            try:
                self.db.commit()
            except sqlalchemy.exc.SQLAlchemyError as e:
                self.db.rollback()
                await self._restore_blob(key, previous_blob)
                raise DatabaseError("Failed to commit page save", e) from e

            self.runtime.cache.invalidate(key)
            self.runtime.discovery.add_page(key)

        logger.info(
            "Page saved",
            extra={"page_path": key, "revision": number, "status": new_status, "user_id": actor.user_id},
        )
        self._publish_save_events(page, revision, actor, previous_status)
        return SaveResult(page=page, revision=revision)

    def _publish_save_events(
        self, page: Page, revision: Revision, actor: AuthContext, previous_status: Optional[str]
    ) -> None:
        data = {"revision_id": revision.id, "revision_number": revision.revision_number}
        self.notifications.publish(WikiEvent(
            type="page_edited",
            title=f"{page.title} was edited",
            message=revision.comment or f"{actor.user_name} saved revision #{revision.revision_number}",
            page_id=page.id,
            actor_id=actor.user_id,
            actor_name=actor.user_name,
            data=data,
        ))
        if page.status == previous_status:
            return
        if page.status == "published":
            self.notifications.publish(WikiEvent(
                type="page_published",
                title=f"{page.title} was published",
                message=f"{actor.user_name} published the page",
                page_id=page.id,
                actor_id=actor.user_id,
                actor_name=actor.user_name,
                data=data,
            ))
        elif page.status == "review":
            self.notifications.publish(WikiEvent(
                type="page_review_requested",
                title=f"Review requested for {page.title}",
                message=f"{actor.user_name} asked for a review",
                page_id=page.id,
                actor_id=actor.user_id,
                actor_name=actor.user_name,
                data=data,
            ))

    async def restore_revision(self, revision_id: int, actor: AuthContext) -> SaveResult:
        """Copy an old revision's title, body and status into a new revision."""
        old = self.revision_repo.get_by_id(revision_id)
        return await self.save_page(
            old.page_id,
            old.title,
            old.body,
            actor,
            status=old.status,
            comment=f"Restored revision #{old.revision_number}",
        )

    async def delete_page(self, path: str, actor: AuthContext) -> None:
        """Remove the blob and the metadata row. Revisions stay, orphaned."""
        key = normalize_page_path(path, self.extension)
        permission_service.require(actor.role, "delete")

        async with self.runtime.page_locks.for_page(key):
            page = self.page_repo.get_by_id_optional(key)
            if page is None and await self._read_blob(key) is None:
                raise PageNotFoundError(key)

            await self.runtime.store.delete(key)
            if page is not None:
                self.page_repo.delete(page)
                self.db.commit()
            self.runtime.cache.invalidate(key)
            self.runtime.discovery.remove_page(key)

        logger.info("Page deleted", extra={"page_path": key, "user_id": actor.user_id})
