"""
Tests for the navigation debug API.

Uses FastAPI's TestClient against an app wired to a test session.
"""

import pytest
from fastapi.testclient import TestClient

from medflow_nav.api import server
from medflow_nav.api.server import create_app


@pytest.fixture
def client(session):
    app = create_app(session)
    yield TestClient(app)
    server._session = None


class TestHealth:
    def test_health(self, client):
        resp = client.get("/api/navigation/health")

        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["session_open"] is True
        assert data["total_guards"] == 3
        assert data["cache_entries"] == 0

    def test_lifespan_closes_session(self, session):
        app = create_app(session)
        with TestClient(app) as client:
            assert client.get("/api/navigation/health").json()["status"] == "ok"
        assert session.closed
        server._session = None


class TestResolve:
    """Tests for POST /navigation/resolve."""

    def test_resolve_for_user(self, client):
        resp = client.post(
            "/api/navigation/resolve",
            json={"identity": "user-2", "roles": ["user"], "environment": "test"},
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["fingerprint"] == '["user-2",["user"]]'
        assert data["count"] == 6
        assert data["items"][0]["path"] == "/dashboard"
        assert data["items"][0]["analytics"]["action"] == "dashboard_view"

    def test_resolve_for_admin(self, client):
        resp = client.post(
            "/api/navigation/resolve",
            json={"identity": "admin-2", "roles": ["admin"], "environment": "test"},
        )
        assert resp.json()["items"][0]["path"] == "/analytics"

    def test_resolve_anonymous(self, client):
        resp = client.post("/api/navigation/resolve", json={"environment": "test"})

        assert resp.status_code == 200
        assert resp.json() == {"fingerprint": "[null,[]]", "count": 0, "items": []}

    def test_invalid_environment(self, client):
        resp = client.post(
            "/api/navigation/resolve",
            json={"identity": "user-2", "environment": "staging"},
        )

        assert resp.status_code == 400
        detail = resp.json()["detail"]
        assert detail["error"] == "validation_error"
        assert "staging" in detail["message"]


class TestIntrospection:
    """Tests for guard, audit, analytics and debug endpoints."""

    def test_guards_in_evaluation_order(self, client):
        resp = client.get("/api/navigation/guards")

        assert resp.status_code == 200
        data = resp.json()
        assert [g["id"] for g in data["guards"]] == ["auth_required", "admin_required", "feature_enabled"]
        assert data["statistics"]["guards_by_action"] == {"redirect": 1, "deny": 1, "log": 1}

    def test_audit_after_resolution(self, client, session):
        session.resolve_menu()

        resp = client.get("/api/navigation/audit", params={"limit": 2})

        data = resp.json()
        assert data["total"] == 6
        assert len(data["entries"]) == 2
        assert data["entries"][-1]["item"]["path"] == "/framer-websites"
        assert data["entries"][-1]["result"] == "ALLOWED"

    def test_audit_limit_validated(self, client):
        assert client.get("/api/navigation/audit", params={"limit": 0}).status_code == 422

    def test_analytics(self, client, session):
        items = session.resolve_menu()
        session.record_interaction(items[0])

        data = client.get("/api/navigation/analytics").json()

        assert data["summary"]["click_events"] == 1
        assert data["insights"]["top_items"] == [{"path": "/dashboard", "count": 1}]
        assert data["performance"]["cache_hit_rate"] == 0.0

    def test_debug_snapshot(self, client, session):
        session.resolve_menu()

        data = client.get("/api/navigation/debug").json()

        assert len(data["items"]) == 6
        assert data["cache_stats"]["total"] == 1
        assert data["guard_stats"]["total_guards"] == 3
