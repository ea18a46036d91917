"""Flat key -> bytes stores holding the wiki pages.

A blob store has no directory concept. ``list(prefix)`` returns only the
immediate children of a prefix: blobs directly under it (``is_file=True``)
and the next path segment of deeper keys (``is_file=False``). Keys use ``/``
as separator and never start with one.

Contract shared by every adapter:
    list(prefix)                   -> list[BlobEntry]
    get(path)                      -> bytes, BlobNotFoundError when missing
    put(path, data, overwrite)     -> InvalidStateError when the key exists and overwrite=False
    delete(path)                   -> no-op when missing
Transport failures raise UpstreamUnavailableError.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

import httpx

from ..core.config import BlobBackend, Settings
from ..core.http_retry import request_with_retry
from ..exceptions import (
    BlobNotFoundError,
    InvalidStateError,
    UpstreamUnavailableError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlobEntry:
    """One immediate child of a listed prefix."""

    name: str
    is_file: bool
    size: Optional[int] = None


class BlobStore(Protocol):
    async def list(self, prefix: str) -> list[BlobEntry]: ...

    async def get(self, path: str) -> bytes: ...

    async def put(self, path: str, data: bytes, overwrite: bool = True) -> None: ...

    async def delete(self, path: str) -> None: ...


def normalize_key(path: str) -> str:
    """Strip surrounding slashes and reject keys that climb out of the store."""
    key = path.strip().strip("/")
    if any(part in ("", ".", "..") for part in key.split("/")) and key:
        raise ValidationError(f"Invalid blob path: {path!r}", field="path")
    return key


class InMemoryBlobStore:
    """Dict-backed store used for development and tests."""

    def __init__(self, blobs: Optional[dict[str, bytes | str]] = None):
        self._blobs: dict[str, bytes] = {}
        for key, value in (blobs or {}).items():
            self._blobs[normalize_key(key)] = value.encode("utf-8") if isinstance(value, str) else value

    def keys(self) -> list[str]:
        return sorted(self._blobs)

    async def list(self, prefix: str) -> list[BlobEntry]:
        base = normalize_key(prefix)
        lead = f"{base}/" if base else ""
        files: dict[str, BlobEntry] = {}
        folders: set[str] = set()
        for key, data in self._blobs.items():
            if not key.startswith(lead):
                continue
            rest = key[len(lead):]
            head, sep, _ = rest.partition("/")
            if sep:
                folders.add(head)
            else:
                files[head] = BlobEntry(name=head, is_file=True, size=len(data))
        entries = [BlobEntry(name=name, is_file=False) for name in sorted(folders)]
        entries.extend(files[name] for name in sorted(files))
        return entries

    async def get(self, path: str) -> bytes:
        key = normalize_key(path)
        try:
            return self._blobs[key]
        except KeyError:
            raise BlobNotFoundError(key) from None

    async def put(self, path: str, data: bytes, overwrite: bool = True) -> None:
        key = normalize_key(path)
        if not overwrite and key in self._blobs:
            raise InvalidStateError(f"Blob already exists: {key}")
        self._blobs[key] = data

    async def delete(self, path: str) -> None:
        self._blobs.pop(normalize_key(path), None)


class LocalBlobStore:
    """Store backed by a directory tree; blocking file I/O runs in a worker thread."""

    def __init__(self, root: str | os.PathLike):
        self.root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        key = normalize_key(path)
        target = (self.root / key).resolve() if key else self.root
        if target != self.root and self.root not in target.parents:
            raise ValidationError(f"Invalid blob path: {path!r}", field="path")
        return target

    def _list_sync(self, directory: Path) -> list[BlobEntry]:
        if not directory.is_dir():
            return []
        entries = []
        with os.scandir(directory) as it:
            for item in it:
                if item.is_dir():
                    entries.append(BlobEntry(name=item.name, is_file=False))
                elif item.is_file():
                    entries.append(BlobEntry(name=item.name, is_file=True, size=item.stat().st_size))
        return sorted(entries, key=lambda e: (e.is_file, e.name))

    def _put_sync(self, target: Path, data: bytes, overwrite: bool) -> None:
        if not overwrite and target.exists():
            raise InvalidStateError(f"Blob already exists: {target.relative_to(self.root).as_posix()}")
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(f".{target.name}.tmp")
        tmp.write_bytes(data)
        os.replace(tmp, target)

    async def list(self, prefix: str) -> list[BlobEntry]:
        try:
            return await asyncio.to_thread(self._list_sync, self._resolve(prefix))
        except OSError as exc:
            raise UpstreamUnavailableError("blob_store", f"Cannot list {prefix!r}: {exc}") from exc

    async def get(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except (FileNotFoundError, IsADirectoryError):
            raise BlobNotFoundError(normalize_key(path)) from None
        except OSError as exc:
            raise UpstreamUnavailableError("blob_store", f"Cannot read {path!r}: {exc}") from exc

    async def put(self, path: str, data: bytes, overwrite: bool = True) -> None:
        target = self._resolve(path)
        try:
            await asyncio.to_thread(self._put_sync, target, data, overwrite)
        except OSError as exc:
            raise UpstreamUnavailableError("blob_store", f"Cannot write {path!r}: {exc}") from exc

    async def delete(self, path: str) -> None:
        target = self._resolve(path)
        try:
            await asyncio.to_thread(target.unlink, True)
        except OSError as exc:
            raise UpstreamUnavailableError("blob_store", f"Cannot delete {path!r}: {exc}") from exc


class HttpBlobStore:
    """Bucket of a Supabase-storage style REST API.

    Endpoints used (relative to ``base_url``):
        POST   /object/list/{bucket}      body {"prefix", "limit", "offset", "sortBy"}
        GET    /object/{bucket}/{path}
        POST   /object/{bucket}/{path}    header x-upsert: true|false
        DELETE /object/{bucket}           body {"prefixes": [path]}

    Folder entries in a listing carry no ``id``/``metadata``.
    """

    LIST_PAGE_SIZE = 1000

    def __init__(
        self,
        base_url: str,
        bucket: str,
        token: str = "",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.token = token
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers: dict[str, str] = {}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
                headers["apikey"] = self.token
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return await request_with_retry(self._get_client(), method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.error(
                "Blob store request failed",
                extra={"method": method, "url": url, "error": str(exc)},
            )
            raise UpstreamUnavailableError("blob_store", f"{method} {url} failed: {exc}") from exc

    @staticmethod
    def _is_missing(resp: httpx.Response) -> bool:
        # The storage API reports a missing object as 404, or as 400 with a
        # not_found body depending on version.
        if resp.status_code == 404:
            return True
        return resp.status_code == 400 and "not_found" in resp.text.lower().replace(" ", "_")

    def _raise_for_status(self, resp: httpx.Response, action: str) -> None:
        if resp.status_code >= 400:
            raise UpstreamUnavailableError(
                "blob_store", f"{action} failed with status {resp.status_code}"
            )

    async def list(self, prefix: str) -> list[BlobEntry]:
        key = normalize_key(prefix)
        entries: list[BlobEntry] = []
        offset = 0
        while True:
            resp = await self._request(
                "POST",
                f"/object/list/{self.bucket}",
                json={
                    "prefix": key,
                    "limit": self.LIST_PAGE_SIZE,
                    "offset": offset,
                    "sortBy": {"column": "name", "order": "asc"},
                },
            )
            self._raise_for_status(resp, f"list {key!r}")
            items = resp.json()
            for item in items:
                name = item.get("name") or ""
                if not name or name == ".emptyFolderPlaceholder":
                    continue
                metadata = item.get("metadata")
                if item.get("id") is None and not metadata:
                    entries.append(BlobEntry(name=name, is_file=False))
                else:
                    size = (metadata or {}).get("size")
                    entries.append(BlobEntry(name=name, is_file=True, size=size))
            if len(items) < self.LIST_PAGE_SIZE:
                return entries
            offset += self.LIST_PAGE_SIZE

    async def get(self, path: str) -> bytes:
        key = normalize_key(path)
        resp = await self._request("GET", f"/object/{self.bucket}/{key}")
        if self._is_missing(resp):
            raise BlobNotFoundError(key)
        self._raise_for_status(resp, f"get {key!r}")
        return resp.content

    async def put(self, path: str, data: bytes, overwrite: bool = True) -> None:
        key = normalize_key(path)
        resp = await self._request(
            "POST",
            f"/object/{self.bucket}/{key}",
            content=data,
            headers={
                "x-upsert": "true" if overwrite else "false",
                "Content-Type": "text/markdown; charset=utf-8",
            },
        )
        if resp.status_code == 409 or (resp.status_code == 400 and "duplicate" in resp.text.lower()):
            raise InvalidStateError(f"Blob already exists: {key}")
        self._raise_for_status(resp, f"put {key!r}")

    async def delete(self, path: str) -> None:
        key = normalize_key(path)
        resp = await self._request(
            "DELETE", f"/object/{self.bucket}", json={"prefixes": [key]}
        )
        if self._is_missing(resp):
            return
        self._raise_for_status(resp, f"delete {key!r}")


def create_blob_store(config: Settings) -> BlobStore:
    """Build the adapter selected by ``BLOB_BACKEND``."""
    if config.blob_backend == BlobBackend.LOCAL:
        logger.info("Using local blob store", extra={"root": config.blob_local_root})
        return LocalBlobStore(config.blob_local_root)
    if config.blob_backend == BlobBackend.HTTP:
        logger.info(
            "Using HTTP blob store",
            extra={"url": config.blob_http_url, "bucket": config.blob_http_bucket},
        )
        return HttpBlobStore(
            config.blob_http_url,
            config.blob_http_bucket,
            token=config.blob_http_token,
            timeout=config.blob_http_timeout,
        )
    logger.info("Using in-memory blob store")
    return InMemoryBlobStore()
