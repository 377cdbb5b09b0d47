"""Integration tests for the /auth endpoints, wired to in-memory repositories."""

from contextlib import asynccontextmanager

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from config import AppSettings, DatabaseSettings, JWTSettings
from errors import register_error_handlers
from routes.auth_routes import router as auth_router
from services.auth_service import INVALID_CODE_MESSAGE, AuthService

ADMIN_TOKEN = "admin-secret"
PASSWORD = "hunter2hunter2"


@pytest.fixture
def settings():
    return AppSettings(
        db=DatabaseSettings(mongodb_uri="mongodb://localhost:27017/"),
        jwt=JWTSettings(jwt_secret="test-secret"),
        admin_token=ADMIN_TOKEN,
    )


@pytest.fixture
def client(settings, user_repo, engine, throttle, clock):
    auth_service = AuthService(user_repo, engine, throttle, settings.jwt, clock=clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = settings
        app.state.auth_service = auth_service
        yield

    app = FastAPI(lifespan=lifespan)
    register_error_handlers(app)
    app.include_router(auth_router)
    with TestClient(app) as c:
        yield c


def _register(client, email="alice@example.com"):
    return client.post("/auth/register", json={"email": email, "password": PASSWORD})


class TestRegister:
    def test_created(self, client, delivery):
        resp = _register(client)
        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["challenge_issued_at"] and body["expires_at"]
        assert delivery.sent[-1][0] == "alice@example.com"

    def test_duplicate(self, client):
        _register(client)
        resp = _register(client)
        assert resp.status_code == 409
        assert resp.json()["code"] == "conflict"

    def test_weak_password(self, client):
        resp = client.post("/auth/register", json={"email": "a@example.com", "password": "x"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["field"] == "password"
        assert body["details"]

    def test_missing_body_field(self, client):
        resp = client.post("/auth/register", json={"email": "a@example.com"})
        assert resp.status_code == 422

    def test_delivery_failure(self, client, delivery):
        delivery.succeed = False
        resp = _register(client)
        assert resp.status_code == 502
        assert resp.json()["code"] == "delivery_failed"


class TestVerifyEmail:
    def test_success(self, client, delivery, user_repo):
        _register(client)
        resp = client.post(
            "/auth/verify-email",
            json={"email": "alice@example.com", "code": delivery.last_code},
        )
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Email verified successfully"}
        assert user_repo.users["alice@example.com"].email_verified is True

    def test_wrong_and_expired_share_message(self, client, delivery, clock):
        _register(client)
        wrong = client.post(
            "/auth/verify-email", json={"email": "alice@example.com", "code": "nope"}
        )
        clock.advance(minutes=11)
        expired = client.post(
            "/auth/verify-email",
            json={"email": "alice@example.com", "code": delivery.last_code},
        )
        assert wrong.status_code == expired.status_code == 400
        assert wrong.json()["error"] == expired.json()["error"] == INVALID_CODE_MESSAGE

    def test_blocked(self, client, delivery):
        _register(client)
        for _ in range(3):
            client.post(
                "/auth/verify-email", json={"email": "alice@example.com", "code": "nope"}
            )
        resp = client.post(
            "/auth/verify-email",
            json={"email": "alice@example.com", "code": delivery.last_code},
        )
        assert resp.status_code == 429


class TestCodeRequests:
    @pytest.mark.parametrize(
        "path", ["/auth/send-verification", "/auth/request-password-reset"]
    )
    def test_same_answer_for_unknown_email(self, client, path):
        _register(client)
        known = client.post(path, json={"email": "alice@example.com"})
        unknown = client.post(path, json={"email": "nobody@example.com"})
        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()


class TestLoginAndReset:
    def test_login(self, client):
        _register(client)
        resp = client.post(
            "/auth/login", json={"email": "alice@example.com", "password": PASSWORD}
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["token_type"] == "Bearer"
        assert body["email_verified"] is False
        assert body["access_token"]

    def test_login_wrong_password(self, client):
        _register(client)
        resp = client.post(
            "/auth/login", json={"email": "alice@example.com", "password": "wrong-pass1"}
        )
        assert resp.status_code == 401

    def test_reset_password(self, client, delivery):
        _register(client)
        client.post("/auth/request-password-reset", json={"email": "alice@example.com"})
        resp = client.post(
            "/auth/reset-password",
            json={
                "email": "alice@example.com",
                "code": delivery.last_code,
                "password": "n3w-password",
            },
        )
        assert resp.status_code == 200
        login = client.post(
            "/auth/login", json={"email": "alice@example.com", "password": "n3w-password"}
        )
        assert login.status_code == 200


class TestAdminUnblock:
    def _block(self, client):
        _register(client)
        for _ in range(3):
            client.post(
                "/auth/login", json={"email": "alice@example.com", "password": "wrong-pass1"}
            )

    def test_requires_token(self, client):
        resp = client.post(
            "/auth/admin/unblock", json={"subject_id": "alice@example.com", "scope": "login"}
        )
        assert resp.status_code == 403

    def test_wrong_token(self, client):
        resp = client.post(
            "/auth/admin/unblock",
            json={"subject_id": "alice@example.com", "scope": "login"},
            headers={"X-Admin-Token": "guess"},
        )
        assert resp.status_code == 403

    def test_unblocks(self, client):
        self._block(client)
        blocked = client.post(
            "/auth/login", json={"email": "alice@example.com", "password": PASSWORD}
        )
        assert blocked.status_code == 429

        resp = client.post(
            "/auth/admin/unblock",
            json={"subject_id": "alice@example.com", "scope": "login"},
            headers={"X-Admin-Token": ADMIN_TOKEN},
        )
        assert resp.status_code == 200
        assert resp.json()["cleared"] is True

        login = client.post(
            "/auth/login", json={"email": "alice@example.com", "password": PASSWORD}
        )
        assert login.status_code == 200
