"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================
Drives the HTTP surface with the FastAPI TestClient against in-memory
SQLite.  The app's lifespan isn't run; the fixture installs a Services
container directly on ``app.state``.
"""

from __future__ import annotations

import pytest
from conftest import auth, make_user
from fastapi.testclient import TestClient

from bookswap.api.deps import Services
from bookswap.database.models import SubscriptionStatus
from bookswap.engine.events import NotificationKind


@pytest.fixture
def services(db_engine, cfg, notifier):
    return Services(engine=db_engine, config=cfg, notifier=notifier, payments=None)


@pytest.fixture
def client(services):
    from bookswap.api.main import app

    app.state.services = services
    yield TestClient(app, raise_server_exceptions=False)
    del app.state.services


@pytest.fixture
def ann(db_engine):
    return make_user(db_engine, name="Ann", postcode="SW1A1AA")


@pytest.fixture
def bob(db_engine):
    return make_user(db_engine, name="Bob", postcode="SW1A1AA")


@pytest.fixture
def dune(client, ann):
    resp = client.post(
        "/api/books",
        json={"title": "Dune", "author": "Frank Herbert", "condition": "like-new"},
        headers=auth(ann),
    )
    assert resp.status_code == 201
    return resp.json()


# ===========================================================================
# Health & auth guards
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestAuthGuards:
    PROTECTED = [
        ("get", "/api/my-books"),
        ("get", "/api/dashboard"),
        ("get", "/api/users/me"),
        ("get", "/api/swaps"),
        ("post", "/api/books"),
        ("post", "/api/swaps"),
        ("post", "/api/billing/checkout-session"),
    ]

    @pytest.mark.parametrize("method,endpoint", PROTECTED)
    def test_missing_token(self, client, method, endpoint):
        resp = getattr(client, method)(endpoint)
        assert resp.status_code == 401
        assert resp.json() == {"error": "Access token required"}

    @pytest.mark.parametrize("method,endpoint", PROTECTED)
    def test_garbage_token(self, client, method, endpoint):
        resp = getattr(client, method)(endpoint, headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401
        assert resp.json() == {"error": "Invalid or expired token"}

    def test_services_missing_is_503(self):
        from bookswap.api.main import app

        resp = TestClient(app, raise_server_exceptions=False).get("/api/books")
        assert resp.status_code == 503
        assert resp.json() == {"error": "Service not ready"}

    def test_token_without_subject(self, client):
        import jwt

        from bookswap.api.deps import JWT_ALGORITHM, JWT_SECRET

        token = jwt.encode({"name": "Ann"}, JWT_SECRET, algorithm=JWT_ALGORITHM)
        resp = client.get("/api/dashboard", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json() == {"error": "Invalid token subject"}

    def test_unknown_route_uses_error_shape(self, client):
        resp = client.get("/api/nowhere")
        assert resp.status_code == 404
        assert "error" in resp.json()


# ===========================================================================
# Users
# ===========================================================================
class TestUsers:
    def test_register(self, client, notifier):
        resp = client.post(
            "/api/users",
            json={"email": "Cat@Example.com", "name": "Cat", "postcode": "e1 1aa"},
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["email"] == "cat@example.com"
        assert body["postcode"] == "E1 1AA"
        assert body["subscription_status"] == "inactive"
        assert notifier.notify.call_args.args[0] == NotificationKind.WELCOME

    def test_register_duplicate_is_409(self, client, ann):
        resp = client.post(
            "/api/users", json={"email": "ann@example.com", "name": "Ann", "postcode": "SW1A1AA"},
        )
        assert resp.status_code == 409
        assert resp.json() == {"error": "Email already registered"}

    def test_register_bad_postcode_is_422(self, client):
        resp = client.post(
            "/api/users", json={"email": "d@example.com", "name": "Dan", "postcode": "12345"},
        )
        assert resp.status_code == 422

    def test_me_includes_email_public_profile_does_not(self, client, ann):
        me = client.get("/api/users/me", headers=auth(ann)).json()
        assert me["email"] == "ann@example.com"
        public = client.get(f"/api/users/{ann}").json()
        assert "email" not in public
        assert public["name"] == "Ann"

    def test_unknown_user_is_404(self, client):
        assert client.get("/api/users/nobody").status_code == 404


# ===========================================================================
# Books
# ===========================================================================
class TestBooks:
    def test_create_returns_snapshot_and_badge(self, dune):
        assert dune["status"] == "available"
        assert dune["owner_name"] == "Ann"
        assert dune["postcode"] == "SW1A1AA"
        assert dune["condition"] == "like-new"
        assert dune["badges_earned"] == ["Book Uploader"]

    def test_unentitled_upload_is_403(self, client, db_engine):
        dan = make_user(db_engine, name="Dan", status=SubscriptionStatus.INACTIVE)
        resp = client.post("/api/books", json={"title": "X", "author": "Y"}, headers=auth(dan))
        assert resp.status_code == 403
        assert resp.json() == {"error": "Active subscription required"}

    def test_bad_condition_is_422(self, client, ann):
        resp = client.post(
            "/api/books", json={"title": "X", "author": "Y", "condition": "mint"}, headers=auth(ann),
        )
        assert resp.status_code == 422
        assert resp.json()["error"].startswith("condition:")

    def test_browse_by_postcode(self, client, dune):
        assert [b["id"] for b in client.get("/api/books", params={"postcode": "sw1a1aa"}).json()] == [dune["id"]]
        assert client.get("/api/books", params={"postcode": "E11AA"}).json() == []

    def test_my_books(self, client, ann, dune):
        assert [b["id"] for b in client.get("/api/my-books", headers=auth(ann)).json()] == [dune["id"]]

    def test_delete(self, client, ann, bob, dune):
        assert client.delete(f"/api/books/{dune['id']}", headers=auth(bob)).status_code == 403
        resp = client.delete(f"/api/books/{dune['id']}", headers=auth(ann))
        assert resp.json() == {"success": True}
        assert client.get(f"/api/books/{dune['id']}").status_code == 404


# ===========================================================================
# Swaps
# ===========================================================================
class TestSwapLifecycle:
    def test_request_accept_complete(self, client, ann, bob, dune):
        resp = client.post("/api/swaps", json={"book_id": dune["id"]}, headers=auth(bob))
        assert resp.status_code == 201
        swap = resp.json()
        assert swap["status"] == "pending"
        assert client.get(f"/api/books/{dune['id']}").json()["status"] == "pending"

        assert client.post(f"/api/swaps/{swap['id']}/accept", headers=auth(bob)).status_code == 403
        resp = client.post(f"/api/swaps/{swap['id']}/accept", headers=auth(ann))
        assert resp.status_code == 200
        assert resp.json()["status"] == "accepted"

        resp = client.post(f"/api/swaps/{swap['id']}/complete", headers=auth(bob))
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "completed"
        assert body["badges_earned"] == {bob: ["First Swap"], ann: ["First Swap"]}
        assert client.get(f"/api/books/{dune['id']}").json()["status"] == "swapped"

        again = client.post(f"/api/swaps/{swap['id']}/complete", headers=auth(ann))
        assert again.status_code == 400

        board = client.get("/api/leaderboard/SW1A1AA").json()
        assert [row["user"]["swaps"] for row in board] == [1, 1]

    def test_reject_frees_book(self, client, ann, bob, dune):
        swap = client.post("/api/swaps", json={"book_id": dune["id"]}, headers=auth(bob)).json()
        resp = client.post(f"/api/swaps/{swap['id']}/reject", headers=auth(ann))
        assert resp.json()["status"] == "rejected"
        assert client.get(f"/api/books/{dune['id']}").json()["status"] == "available"

    def test_own_book_is_400(self, client, ann, dune):
        resp = client.post("/api/swaps", json={"book_id": dune["id"]}, headers=auth(ann))
        assert resp.status_code == 400
        assert resp.json() == {"error": "Cannot request your own book"}

    def test_unentitled_requester_sees_missing_book_as_404(self, client, db_engine):
        dan = make_user(db_engine, name="Dan", status=SubscriptionStatus.INACTIVE)
        resp = client.post("/api/swaps", json={"book_id": "nope"}, headers=auth(dan))
        assert resp.status_code == 404
        assert resp.json() == {"error": "Book not available"}

    def test_unavailable_book_is_404(self, client, db_engine, bob, dune):
        client.post("/api/swaps", json={"book_id": dune["id"]}, headers=auth(bob))
        cat = make_user(db_engine, name="Cat")
        resp = client.post("/api/swaps", json={"book_id": dune["id"]}, headers=auth(cat))
        assert resp.status_code == 404
        assert resp.json() == {"error": "Book not available"}

    def test_swap_visible_to_participants_only(self, client, db_engine, ann, bob, dune):
        swap = client.post("/api/swaps", json={"book_id": dune["id"]}, headers=auth(bob)).json()
        assert client.get(f"/api/swaps/{swap['id']}", headers=auth(ann)).status_code == 200
        cat = make_user(db_engine, name="Cat")
        assert client.get(f"/api/swaps/{swap['id']}", headers=auth(cat)).status_code == 404

    def test_list_by_role(self, client, ann, bob, dune):
        client.post("/api/swaps", json={"book_id": dune["id"]}, headers=auth(bob))
        assert len(client.get("/api/swaps", params={"role": "owner"}, headers=auth(ann)).json()) == 1
        assert client.get("/api/swaps", params={"role": "requester"}, headers=auth(ann)).json() == []
        resp = client.get("/api/swaps", params={"role": "admin"}, headers=auth(ann))
        assert resp.status_code == 422
        assert resp.json()["error"].startswith("role:")


# ===========================================================================
# Views
# ===========================================================================
class TestViews:
    def test_dashboard(self, client, ann, dune):
        data = client.get("/api/dashboard", headers=auth(ann)).json()
        assert data["books_uploaded"] == 1
        assert data["badges_earned"] == 1
        assert [b["name"] for b in data["badges"]] == ["Book Uploader"]

    def test_user_badges(self, client, ann, dune):
        assert [b["name"] for b in client.get(f"/api/users/{ann}/badges").json()] == ["Book Uploader"]

    def test_active_areas(self, client, dune):
        assert client.get("/api/active-areas").json()[0] == {
            "postcode": "SW1A1AA", "book_count": 1, "user_count": 1,
        }


# ===========================================================================
# Billing
# ===========================================================================
class TestBilling:
    def test_status(self, client, ann):
        resp = client.get("/api/billing/status", headers=auth(ann))
        assert resp.json() == {"status": "active", "is_active": True}

    def test_checkout_without_provider_is_503(self, client, ann):
        resp = client.post("/api/billing/checkout-session", headers=auth(ann))
        assert resp.status_code == 503
        assert resp.json() == {"error": "Payment system not configured"}

    def test_events_require_configured_token(self, client, monkeypatch):
        monkeypatch.delenv("BILLING_WEBHOOK_TOKEN", raising=False)
        resp = client.post("/api/billing/events", json={"type": "invoice.payment_failed"})
        assert resp.status_code == 503
        assert resp.json() == {"error": "Billing callbacks not configured"}

    def test_events_reject_wrong_token(self, client, monkeypatch):
        monkeypatch.setenv("BILLING_WEBHOOK_TOKEN", "hook-secret")
        resp = client.post(
            "/api/billing/events",
            json={"type": "invoice.payment_failed"},
            headers={"X-Webhook-Token": "guess"},
        )
        assert resp.status_code == 401
        assert resp.json() == {"error": "Invalid webhook token"}

    def test_checkout_completed_event_activates(self, client, db_engine, monkeypatch):
        monkeypatch.setenv("BILLING_WEBHOOK_TOKEN", "hook-secret")
        dan = make_user(db_engine, name="Dan", status=SubscriptionStatus.INACTIVE)

        resp = client.post(
            "/api/billing/events",
            json={
                "type": "checkout.session.completed",
                "data": {"object": {"metadata": {"userId": dan}, "customer": "cus_9"}},
            },
            headers={"X-Webhook-Token": "hook-secret"},
        )

        assert resp.json() == {"received": True, "status": "active"}
        status = client.get("/api/billing/status", headers=auth(dan)).json()
        assert status["is_active"] is True
