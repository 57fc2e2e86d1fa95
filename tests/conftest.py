"""Shared pytest fixtures and configuration."""

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from models.config_models import Config, OAuthConfig

SESSION_SECRET = "test-session-secret-0123456789abcdef0123456789"


@pytest.fixture
def test_env(monkeypatch):
    """
    Set valid OAuth environment variables.

    This fixture sets up valid test environment variables so config
    can be loaded during tests without requiring real credentials.
    """
    monkeypatch.setenv("GITHUB_CLIENT_ID", "Iv1.test_client_id")
    monkeypatch.setenv("GITHUB_CLIENT_SECRET", "test_client_secret_1234567890")
    monkeypatch.setenv("GITHUB_CALLBACK_URL", "http://localhost:5173/api/auth/callback")
    monkeypatch.setenv("SESSION_SECRET", SESSION_SECRET)
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    return {
        "github_client_id": "Iv1.test_client_id",
        "github_client_secret": "test_client_secret_1234567890",
        "github_callback_url": "http://localhost:5173/api/auth/callback",
        "session_secret": SESSION_SECRET,
        "log_level": "DEBUG",
    }


@pytest.fixture
def invalid_env(monkeypatch):
    """
    Set up invalid environment variables for testing validation.
    """
    monkeypatch.setenv("GITHUB_CALLBACK_URL", "localhost/callback")
    monkeypatch.setenv("LOG_LEVEL", "LOUD")


@pytest.fixture
def oauth_config():
    """Fully configured OAuth settings."""
    return Config(
        oauth=OAuthConfig(
            github_client_id="Iv1.test_client_id",
            github_client_secret="test_client_secret_1234567890",
            github_callback_url="http://localhost:5173/api/auth/callback",
            session_secret=SESSION_SECRET,
        )
    )


@pytest.fixture
def app_client(oauth_config):
    """FastAPI test client with configuration injected."""
    from backend.app import app
    from utils.config_loader import get_config

    app.dependency_overrides[get_config] = lambda: oauth_config
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_response(status_code=200, json_data=None, headers=None):
    """Build a mock requests.Response."""
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.headers = headers or {"X-RateLimit-Remaining": "4999", "X-RateLimit-Limit": "5000"}
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    return response
