"""
Tests for the GitHub OAuth endpoints.

These tests use FastAPI's TestClient and mock the token exchange, so no
request ever reaches GitHub.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient

from models.config_models import Config, OAuthConfig
from models.data_models import OAuthStatePayload, SessionPayload
from utils.signed_tokens import sign_session, sign_state, verify_session, verify_state

from conftest import SESSION_SECRET, make_response


def set_cookie_headers(response, name):
    return [h for h in response.headers.get_list("set-cookie") if h.startswith(f"{name}=")]


def start_login(client, mode=None):
    """Run the authorize step and return the state GitHub would echo back."""
    params = {"mode": mode} if mode else {}
    response = client.get("/api/auth/github", params=params, follow_redirects=False)
    assert response.status_code == 302
    query = parse_qs(urlparse(response.headers["location"]).query)
    return query["state"][0]


class TestAuthorize:
    """Tests for GET /api/auth/github."""

    def test_redirects_to_github(self, app_client):
        response = app_client.get("/api/auth/github", follow_redirects=False)

        assert response.status_code == 302
        location = urlparse(response.headers["location"])
        assert f"{location.scheme}://{location.netloc}{location.path}" == \
            "https://github.com/login/oauth/authorize"
        query = parse_qs(location.query)
        assert query["client_id"] == ["Iv1.test_client_id"]
        assert query["redirect_uri"] == ["http://localhost:5173/api/auth/callback"]
        assert query["scope"] == ["read:user read:org"]
        assert len(query["state"][0]) == 36

    def test_sets_signed_state_cookie(self, app_client):
        state = start_login(app_client, mode="write")

        payload = verify_state(SESSION_SECRET, app_client.cookies.get("oauth_state"))
        assert payload.state == state
        assert payload.mode == "write"

    def test_state_cookie_attributes(self, app_client):
        response = app_client.get("/api/auth/github", follow_redirects=False)
        [header] = set_cookie_headers(response, "oauth_state")
        lowered = header.lower()
        assert "httponly" in lowered
        assert "samesite=lax" in lowered
        assert "max-age=300" in lowered
        assert "path=/" in lowered
        assert "secure" not in lowered

    def test_mode_defaults_to_read(self, app_client):
        start_login(app_client)
        payload = verify_state(SESSION_SECRET, app_client.cookies.get("oauth_state"))
        assert payload.mode == "read"

    def test_each_login_gets_fresh_state(self, app_client):
        assert start_login(app_client) != start_login(app_client)

    @pytest.mark.parametrize("missing", ["github_client_id", "github_callback_url", "session_secret"])
    def test_missing_configuration_fails_closed(self, missing):
        from backend.app import app
        from utils.config_loader import get_config

        settings = {
            "github_client_id": "Iv1.test_client_id",
            "github_callback_url": "http://localhost/cb",
            "session_secret": SESSION_SECRET,
        }
        settings[missing] = None
        app.dependency_overrides[get_config] = lambda: Config(oauth=OAuthConfig(**settings))
        try:
            with TestClient(app) as client:
                response = client.get("/api/auth/github", follow_redirects=False)
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert "oauth_state" not in response.headers.get("set-cookie", "")


class TestCallback:
    """Tests for GET /api/auth/callback."""

    def test_successful_exchange_sets_session(self, app_client):
        state = start_login(app_client, mode="write")
        token_response = make_response(json_data={"access_token": "gho_new", "token_type": "bearer"})

        with patch("backend.auth.requests.post", return_value=token_response) as mock_post:
            response = app_client.get(
                "/api/auth/callback",
                params={"code": "code-123", "state": state},
                follow_redirects=False,
            )

        assert response.status_code == 302
        assert response.headers["location"] == "/"

        assert mock_post.call_args[0][0] == "https://github.com/login/oauth/access_token"
        assert mock_post.call_args[1]["json"] == {
            "client_id": "Iv1.test_client_id",
            "client_secret": "test_client_secret_1234567890",
            "code": "code-123",
        }
        assert mock_post.call_args[1]["headers"]["Accept"] == "application/json"

        [session_header] = set_cookie_headers(response, "session")
        assert "samesite=strict" in session_header.lower()
        assert "httponly" in session_header.lower()
        assert "max-age=604800" in session_header.lower()

        session = verify_session(SESSION_SECRET, app_client.cookies.get("session"))
        assert session.access_token == "gho_new"
        assert session.mode == "write"

        [state_header] = set_cookie_headers(response, "oauth_state")
        assert "max-age=0" in state_header.lower()

    def test_full_flow_then_token_read_back(self, app_client):
        state = start_login(app_client)
        token_response = make_response(json_data={"access_token": "gho_flow"})

        with patch("backend.auth.requests.post", return_value=token_response):
            app_client.get(
                "/api/auth/callback",
                params={"code": "c", "state": state},
                follow_redirects=False,
            )

        response = app_client.get("/api/auth/token")
        assert response.status_code == 200
        assert response.json() == {"token": "gho_flow", "mode": "read"}

    @pytest.mark.parametrize("params", [
        {"state": "s"},
        {"code": "c"},
        {},
    ])
    def test_missing_query_parameters(self, app_client, params):
        start_login(app_client)
        with patch("backend.auth.requests.post") as mock_post:
            response = app_client.get("/api/auth/callback", params=params, follow_redirects=False)
        assert response.status_code == 400
        mock_post.assert_not_called()

    def test_missing_state_cookie(self, app_client):
        with patch("backend.auth.requests.post") as mock_post:
            response = app_client.get(
                "/api/auth/callback",
                params={"code": "c", "state": "s"},
                follow_redirects=False,
            )
        assert response.status_code == 400
        mock_post.assert_not_called()

    def test_state_mismatch_forbidden(self, app_client):
        state = start_login(app_client)
        mutated = state[:-1] + ("0" if state[-1] != "0" else "1")

        with patch("backend.auth.requests.post") as mock_post:
            response = app_client.get(
                "/api/auth/callback",
                params={"code": "c", "state": mutated},
                follow_redirects=False,
            )

        assert response.status_code == 403
        assert "state mismatch" in response.json()["detail"]
        mock_post.assert_not_called()
        assert "session" not in app_client.cookies

    def test_forged_state_cookie_forbidden(self, app_client):
        forged = sign_state(
            "attacker-secret-0123456789abcdef0123456789",
            OAuthStatePayload(state="s", mode="write"),
        )
        app_client.cookies.set("oauth_state", forged)

        with patch("backend.auth.requests.post") as mock_post:
            response = app_client.get(
                "/api/auth/callback",
                params={"code": "c", "state": "s"},
                follow_redirects=False,
            )

        assert response.status_code == 403
        mock_post.assert_not_called()

    def test_expired_state_cookie_forbidden(self, app_client):
        expired = sign_state(
            SESSION_SECRET,
            OAuthStatePayload(state="s", mode="read"),
            now=datetime.now(timezone.utc) - timedelta(minutes=10),
        )
        app_client.cookies.set("oauth_state", expired)

        response = app_client.get(
            "/api/auth/callback",
            params={"code": "c", "state": "s"},
            follow_redirects=False,
        )
        assert response.status_code == 403

    def test_exchange_error_surfaces_description(self, app_client):
        state = start_login(app_client)
        token_response = make_response(json_data={
            "error": "bad_verification_code",
            "error_description": "The code passed is incorrect or expired.",
        })

        with patch("backend.auth.requests.post", return_value=token_response):
            response = app_client.get(
                "/api/auth/callback",
                params={"code": "c", "state": state},
                follow_redirects=False,
            )

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to get token: The code passed is incorrect or expired."
        assert "session" not in app_client.cookies

    def test_exchange_error_without_description(self, app_client):
        state = start_login(app_client)
        with patch("backend.auth.requests.post", return_value=make_response(json_data={})):
            response = app_client.get(
                "/api/auth/callback",
                params={"code": "c", "state": state},
                follow_redirects=False,
            )
        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to get token: Unknown error"


class TestLogout:

    def test_clears_session(self, app_client):
        app_client.cookies.set(
            "session", sign_session(SESSION_SECRET, SessionPayload(access_token="gho_x"))
        )
        response = app_client.post("/api/auth/logout")

        assert response.status_code == 200
        assert response.json() == {"success": True}
        [header] = set_cookie_headers(response, "session")
        assert "max-age=0" in header.lower()

    def test_without_session(self, app_client):
        response = app_client.post("/api/auth/logout")
        assert response.status_code == 200


class TestTokenReadBack:
    """Tests for GET /api/auth/token."""

    def test_returns_token_and_mode(self, app_client):
        app_client.cookies.set(
            "session", sign_session(SESSION_SECRET, SessionPayload(access_token="X", mode="read"))
        )
        response = app_client.get("/api/auth/token")
        assert response.status_code == 200
        assert response.json() == {"token": "X", "mode": "read"}

    def test_no_session_unauthenticated(self, app_client):
        response = app_client.get("/api/auth/token")
        assert response.status_code == 401
        assert response.json() == {"error": "Not authenticated"}

    def test_expired_session_unauthenticated(self, app_client):
        expired = sign_session(
            SESSION_SECRET,
            SessionPayload(access_token="X"),
            now=datetime.now(timezone.utc) - timedelta(days=8),
        )
        app_client.cookies.set("session", expired)
        response = app_client.get("/api/auth/token")
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid session"}

    def test_tampered_session_unauthenticated(self, app_client):
        token = sign_session(SESSION_SECRET, SessionPayload(access_token="X"))
        app_client.cookies.set("session", token + "x")
        response = app_client.get("/api/auth/token")
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid session"}

    def test_state_token_is_not_a_session(self, app_client):
        app_client.cookies.set(
            "session", sign_state(SESSION_SECRET, OAuthStatePayload(state="s", mode="read"))
        )
        response = app_client.get("/api/auth/token")
        assert response.status_code == 401

    def test_request_uses_startup_configuration(self, test_env, monkeypatch):
        from backend.app import app
        from utils.config_loader import get_config

        get_config.cache_clear()
        get_config()
        monkeypatch.setenv("LOG_LEVEL", "LOUD")
        try:
            with TestClient(app) as client:
                response = client.get("/api/auth/token")
        finally:
            get_config.cache_clear()

        assert response.status_code == 401
        assert response.json() == {"error": "Not authenticated"}
