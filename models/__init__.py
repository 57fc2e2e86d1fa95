"""Data models for the nixpkgs PR tracker."""

from models.config_models import Config, OAuthConfig
from models.data_models import (
    CIStatus,
    HistoryEntry,
    Label,
    OAuthStatePayload,
    PullRequest,
    SessionPayload,
    User,
)

__all__ = [
    "Config",
    "OAuthConfig",
    "CIStatus",
    "HistoryEntry",
    "Label",
    "OAuthStatePayload",
    "PullRequest",
    "SessionPayload",
    "User",
]
