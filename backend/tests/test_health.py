"""Tests for /health and / endpoints."""

from tests.conftest import EDITOR, headers_for


class TestHealth:

    def test_health_returns_200(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["db"] == "ok"
        assert data["blob_backend"] == "memory"
        assert "uptime_seconds" in data
        assert "version" in data
        assert data["page_count"] == 0

    def test_page_count_follows_saves(self, client):
        client.put("/api/pages/a/p.md", json={"title": "P", "body": "x"}, headers=headers_for(EDITOR))
        assert client.get("/health").json()["page_count"] == 1

    def test_root_returns_api_info(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.json()["name"] == "NordWiki API"


class TestResponseHeaders:

    def test_response_includes_middleware_headers(self, client):
        resp = client.get("/health")
        assert "x-request-id" in resp.headers
        assert "x-response-time" in resp.headers

    def test_request_id_is_propagated(self, client):
        resp = client.get("/api/tree", headers={"X-Request-ID": "abc123"})
        assert resp.headers["x-request-id"] == "abc123"


class TestErrorResponses:

    def test_stray_database_error_is_structured(self, client, monkeypatch):
        import sqlalchemy.exc
        from nordwiki.services import NotificationService

        def broken(self, user_id):
            raise sqlalchemy.exc.OperationalError("SELECT secret", {}, Exception("disk I/O error"))

        monkeypatch.setattr(NotificationService, "unread_count", broken)
        resp = client.get("/api/notifications/unread-count", headers=headers_for(EDITOR))
        assert resp.status_code == 500
        assert resp.json()["error"] == "DATABASE_ERROR"
        assert "SELECT secret" not in resp.text
