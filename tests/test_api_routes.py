"""
tests/test_api_routes.py -- Integration tests for the login and identity routes.

These tests exercise the full stack: FastAPI routing -> request validation ->
Authenticator -> response model serialization -> error envelope.

Coverage:
  - POST /auth/login: 200 with token, 401 generic failure, 422 on missing fields
  - anti-enumeration: unknown user and wrong password produce identical responses
  - Cache-Control: no-store on every login response
  - GET /auth/me: 200 with a valid Bearer token, 401 otherwise
  - require_role(): 403 for a token with the wrong role

Fixtures used (from conftest.py):
  - api_client: TestClient over the real app, seeded with alice/admin and carol/viewer.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from auth.dependencies import require_role
from auth.models import TokenClaims
from auth.tokens import create_identity_token

LOGIN = "/api/v1/auth/login"
ME = "/api/v1/auth/me"


def _login(client: TestClient, username: str, password: str):
    return client.post(LOGIN, json={"username": username, "password": password})


class TestLogin:
    def test_valid_credentials_return_token(self, api_client: TestClient) -> None:
        resp = _login(api_client, "alice", "wonderland")
        assert resp.status_code == 200
        data = resp.json()
        assert data["username"] == "alice"
        assert data["role"] == "admin"
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == 86400
        assert data["token"].count(".") == 2

    def test_response_has_no_hash(self, api_client: TestClient) -> None:
        resp = _login(api_client, "alice", "wonderland")
        assert set(resp.json()) == {"username", "role", "token", "token_type", "expires_in"}
        assert "$2b$" not in resp.text

    def test_wrong_password_is_401(self, api_client: TestClient) -> None:
        resp = _login(api_client, "alice", "WRONGPASS")
        assert resp.status_code == 401
        assert resp.json() == {
            "error": {"code": "bad_credentials", "message": "Username or password is incorrect."}
        }

    def test_unknown_user_indistinguishable_from_wrong_password(self, api_client: TestClient) -> None:
        unknown = _login(api_client, "bob", "wonderland")
        wrong = _login(api_client, "alice", "WRONGPASS")
        assert unknown.status_code == wrong.status_code == 401
        assert unknown.content == wrong.content
        assert unknown.headers["content-type"] == wrong.headers["content-type"]

    def test_login_responses_are_not_cached(self, api_client: TestClient) -> None:
        assert _login(api_client, "alice", "wonderland").headers["cache-control"] == "no-store"
        assert _login(api_client, "alice", "nope").headers["cache-control"] == "no-store"

    def test_missing_password_is_422(self, api_client: TestClient) -> None:
        resp = api_client.post(LOGIN, json={"username": "alice"})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"

    @pytest.mark.parametrize("body", [{"username": "", "password": "wonderland"}, {"username": "alice", "password": ""}])
    def test_empty_fields_are_422(self, api_client: TestClient, body: dict) -> None:
        resp = api_client.post(LOGIN, json=body)
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"

    def test_overlong_password_rejected_without_echoing_input(self, api_client: TestClient) -> None:
        resp = api_client.post(LOGIN, json={"username": "alice", "password": "x" * 2000})
        assert resp.status_code == 422
        assert "xxxx" not in resp.text


class TestMe:
    def test_me_with_login_token(self, api_client: TestClient) -> None:
        token = _login(api_client, "carol", "looking-glass").json()["token"]
        resp = api_client.get(ME, headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["username"] == "carol"
        assert data["role"] == "viewer"
        issued = datetime.fromisoformat(data["issued_at"])
        expires = datetime.fromisoformat(data["expires_at"])
        assert expires - issued == timedelta(hours=24)

    def test_me_without_token_is_401(self, api_client: TestClient) -> None:
        resp = api_client.get(ME)
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"
        assert resp.headers["www-authenticate"] == "Bearer"

    def test_me_with_expired_token_is_401(self, api_client: TestClient) -> None:
        key = api_client.app.state.authenticator.secret_key
        stale = create_identity_token("alice", "admin", key, now=datetime.now(timezone.utc) - timedelta(hours=25))
        resp = api_client.get(ME, headers={"Authorization": f"Bearer {stale}"})
        assert resp.status_code == 401

    def test_me_with_tampered_token_is_401(self, api_client: TestClient) -> None:
        token = _login(api_client, "carol", "looking-glass").json()["token"]
        header, payload, signature = token.split(".")
        mid = len(signature) // 2
        forged_sig = signature[:mid] + ("A" if signature[mid] != "A" else "B") + signature[mid + 1 :]
        resp = api_client.get(ME, headers={"Authorization": f"Bearer {header}.{payload}.{forged_sig}"})
        assert resp.status_code == 401


class TestRequireRole:
    """require_role() is a dependency for downstream services; exercise it on a throwaway app."""

    def _client(self, key: str) -> TestClient:
        app = FastAPI()

        class _Authenticator:
            secret_key = key

        app.state.authenticator = _Authenticator()

        @app.get("/admin-only")
        def admin_only(identity: TokenClaims = Depends(require_role("admin"))) -> dict:
            return {"subject": identity.subject}

        return TestClient(app)

    def test_matching_role_allowed(self, signing_key: str) -> None:
        token = create_identity_token("alice", "admin", signing_key)
        resp = self._client(signing_key).get("/admin-only", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.json() == {"subject": "alice"}

    def test_other_role_forbidden(self, signing_key: str) -> None:
        token = create_identity_token("carol", "viewer", signing_key)
        resp = self._client(signing_key).get("/admin-only", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 403

    def test_no_token_unauthorized(self, signing_key: str) -> None:
        assert self._client(signing_key).get("/admin-only").status_code == 401
