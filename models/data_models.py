"""Data models for GitHub pull request lookups, tokens and history."""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    """GitHub user profile as embedded in PR and review payloads."""
    login: str
    avatar_url: Optional[str] = None
    html_url: Optional[str] = None


class Label(BaseModel):
    name: str
    color: Optional[str] = None
    description: Optional[str] = None


class PullRequest(BaseModel):
    """Read-only projection of a nixpkgs pull request.

    ``status`` carries the HTTP status of the upstream fetch, so a 404
    still produces a PullRequest with every upstream field left empty.
    ``closed`` and ``merged`` are mutually exclusive: a closed PR is one
    that was closed without being merged.
    """

    title: Optional[str] = None
    status: int
    closed: bool = False
    merged: bool = False
    base: Optional[str] = None  # target branch, e.g. "master"
    merge_commit_sha: Optional[str] = None
    body: Optional[str] = None
    body_html: Optional[str] = None
    user: Optional[User] = None
    merged_by: Optional[User] = None
    labels: list[Label] = Field(default_factory=list)
    head_sha: Optional[str] = None


class CIStatus(BaseModel):
    """One CI result, from either a legacy commit status or a check-run."""
    id: str
    name: str
    state: str  # success, failure, pending, neutral (legacy statuses may also say "error")
    url: Optional[str] = None
    description: str = ""


class HistoryEntry(BaseModel):
    """A previously looked-up PR, stored as ``{pr, title, mergeCommit}``."""

    model_config = ConfigDict(populate_by_name=True)

    pr: int
    title: str
    merge_commit: Optional[str] = Field(default=None, alias="mergeCommit")


class OAuthStatePayload(BaseModel):
    """Claims of the short-lived CSRF token carried through the OAuth redirect."""
    state: str
    mode: str


class SessionPayload(BaseModel):
    """Claims of the session cookie."""
    access_token: str
    mode: str = "read"
