"""
API routes for nixpkgs PR lookups.

Runs the GitHub client on behalf of the browser, using the access token
from the session cookie when there is a valid one.
"""

import logging
from typing import Optional

import requests
from fastapi import APIRouter, Cookie, Depends, HTTPException
from fastapi.responses import JSONResponse

from fetchers.github import NixpkgsClient
from models.config_models import Config
from models.data_models import CIStatus, PullRequest, User
from utils.config_loader import get_config
from utils.signed_tokens import InvalidTokenError, verify_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["prs"])


def get_client(
    session: Optional[str] = Cookie(None),
    config: Config = Depends(get_config),
) -> NixpkgsClient:
    """Build a client authenticated with the session's token, or anonymous."""
    token = None
    if session and config.oauth.session_secret:
        try:
            token = verify_session(config.oauth.session_secret, session).access_token
        except InvalidTokenError:
            logger.debug("Ignoring invalid session cookie, using anonymous client")
    return NixpkgsClient(token=token, timeout=config.request_timeout)


@router.get("/healthz")
def healthz():
    return {"status": "ok"}


@router.get("/branches", response_model=list[str])
def list_branches(client: NixpkgsClient = Depends(get_client)):
    """Default branches plus the newest release branches."""
    return client.get_all_branches()


@router.get("/prs/{pr_number}", response_model=PullRequest)
def get_pr(pr_number: int, client: NixpkgsClient = Depends(get_client)):
    """
    Get a pull request.

    The upstream HTTP status is passed through when it is not 200, with
    the (mostly empty) PullRequest as the body.

    Raises:
    - 502: If GitHub could not be reached
    """
    try:
        pr = client.get_pr(pr_number)
    except requests.RequestException as e:
        logger.error(f"Failed to fetch PR #{pr_number}: {e}")
        raise HTTPException(status_code=502, detail=f"GitHub API error: {e}")

    if pr.status != 200:
        return JSONResponse(status_code=pr.status, content=pr.model_dump())
    return pr


@router.get("/prs/{pr_number}/reviews", response_model=list[User])
def get_reviews(pr_number: int, client: NixpkgsClient = Depends(get_client)):
    """Users who approved the pull request."""
    try:
        return client.get_reviews(pr_number)
    except requests.RequestException as e:
        logger.error(f"Failed to fetch reviews for PR #{pr_number}: {e}")
        raise HTTPException(status_code=502, detail=f"GitHub API error: {e}")


@router.get("/commits/{sha}/ci", response_model=list[CIStatus])
def get_ci_status(sha: str, client: NixpkgsClient = Depends(get_client)):
    """Commit statuses and check-runs for a commit."""
    return client.get_detailed_ci_status(sha)


@router.get("/commits/{sha}/branches")
def get_branch_containment(sha: str, client: NixpkgsClient = Depends(get_client)):
    """Which candidate branches already contain the commit."""
    try:
        return client.check_branches(sha)
    except requests.RequestException as e:
        logger.error(f"Failed to check branches for {sha}: {e}")
        raise HTTPException(status_code=502, detail=f"GitHub API error: {e}")


@router.get("/compare/{branch}/{commit}")
def compare(branch: str, commit: str, client: NixpkgsClient = Depends(get_client)):
    """Whether ``commit`` is reachable from ``branch``."""
    try:
        contains = client.is_contain(branch, commit)
    except requests.RequestException as e:
        logger.error(f"Failed to compare {branch}...{commit}: {e}")
        raise HTTPException(status_code=502, detail=f"GitHub API error: {e}")

    return {"branch": branch, "commit": commit, "contains": contains}
