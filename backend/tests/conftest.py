"""Shared test fixtures for the NordWiki backend test suite.

Tests run against an in-memory SQLite database (one shared connection) and
an in-memory blob store. Tables are created before and dropped after every
test, so each test starts empty.

Coroutine-level tests drive services with ``asyncio.run``; HTTP-level tests
use FastAPI's TestClient with the runtime dependency overridden.
"""

import os

# Force auth off and use throwaway stores before any app imports.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTH_ENABLED"] = "false"
os.environ["BLOB_BACKEND"] = "memory"
os.environ["LIVE_REGISTRY_URL"] = ""
os.environ["LOG_FORMAT"] = "text"

import pytest
from fastapi.testclient import TestClient

from nordwiki import models  # noqa: F401  (registers tables)
from nordwiki.database import Base, engine, get_db, SessionLocal
from nordwiki.main import app
from nordwiki.core.auth import AuthContext
from nordwiki.core.config import settings
from nordwiki.core.runtime import WikiRuntime, get_runtime
from nordwiki.middleware.request_context import _rate_buckets
from nordwiki.services.live_overlay import EntitySnapshot, StaticLiveEntityRegistry
from nordwiki.storage import FrontmatterCodec, InMemoryBlobStore

ADMIN = AuthContext(user_id="admin-1", user_name="Astrid", role="admin")
MODERATOR = AuthContext(user_id="mod-1", user_name="Bjorn", role="moderator")
EDITOR = AuthContext(user_id="editor-1", user_name="Alice", role="editor")
MEMBER = AuthContext(user_id="member-1", user_name="Mira", role="member")
OTHER_MEMBER = AuthContext(user_id="member-2", user_name="Bob", role="member")

GARVIA_SNAPSHOT = EntitySnapshot(
    fields={"population": 42, "mayor": "Sven", "nation": "Nordics"},
    last_updated="2026-10-01T12:00:00Z",
)


def headers_for(actor: AuthContext) -> dict:
    """Gateway identity headers for *actor*."""
    return {"X-User-Id": actor.user_id, "X-User-Name": actor.user_name, "X-User-Role": actor.role}


def make_blob(body: str = "# Page\n\nHello.", **frontmatter) -> bytes:
    """Factory for page blobs with a single frontmatter block."""
    return FrontmatterCodec().encode_bytes(frontmatter, body) if frontmatter else body.encode("utf-8")


@pytest.fixture(autouse=True)
def _tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    """Per-test database session."""
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def store():
    return InMemoryBlobStore({
        "Nordics/README.md": make_blob("# The Nordics\n", title="The Nordics"),
        "Nordics/towns/garvia.md": make_blob(
            "# Garvia\n\n<!-- live:stats -->\nstale numbers\n<!-- /live:stats -->\n\nA port town.\n",
            title="Garvia",
            live_sync_enabled="true",
        ),
    })


@pytest.fixture()
def registry():
    return StaticLiveEntityRegistry({("town", "garvia"): GARVIA_SNAPSHOT})


@pytest.fixture()
def runtime(store, registry):
    return WikiRuntime.build(settings, store=store, registry=registry)


@pytest.fixture()
def client(db, runtime):
    """FastAPI TestClient with the DB and runtime dependencies overridden."""

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_runtime] = lambda: runtime
    _rate_buckets.clear()  # Reset rate limiter so tests don't hit 429
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
