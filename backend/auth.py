"""
GitHub OAuth routes.

Implements the authorize → callback → session redirect flow, logout, and
the token read-back endpoint the browser uses to pick up its access token.
No server-side state is kept: the CSRF state travels in a short-lived
signed cookie and the access token in a signed session cookie.
"""

import logging
import secrets
import uuid
from typing import Optional
from urllib.parse import urlencode

import requests
from fastapi import APIRouter, Cookie, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from models.config_models import Config
from models.data_models import OAuthStatePayload, SessionPayload
from utils.config_loader import get_config
from utils.signed_tokens import (
    SESSION_LIFETIME,
    STATE_TOKEN_LIFETIME,
    InvalidTokenError,
    sign_session,
    sign_state,
    verify_session,
    verify_state,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
OAUTH_SCOPES = "read:user read:org"

STATE_COOKIE = "oauth_state"
SESSION_COOKIE = "session"


def _is_https(request: Request) -> bool:
    return request.url.scheme == "https"


@router.get("/github")
def authorize(
    request: Request,
    mode: Optional[str] = None,
    config: Config = Depends(get_config),
):
    """
    Start the OAuth flow by redirecting to GitHub's authorize page.

    Query Parameters:
    - mode: Access mode remembered in the session (default: "read")

    Raises:
    - 500: If the client id, callback URL or session secret is not configured
    """
    missing = config.oauth.missing_settings()
    if missing:
        logger.error(f"Cannot start OAuth flow, missing: {', '.join(missing)}")
        raise HTTPException(status_code=500, detail="Missing environment variables")

    mode = mode or "read"
    state = str(uuid.uuid4())

    auth_url = GITHUB_AUTHORIZE_URL + "?" + urlencode({
        "client_id": config.oauth.github_client_id,
        "redirect_uri": config.oauth.github_callback_url,
        "scope": OAUTH_SCOPES,
        "state": state,
    })

    state_token = sign_state(config.oauth.session_secret, OAuthStatePayload(state=state, mode=mode))

    response = RedirectResponse(auth_url, status_code=302)
    response.set_cookie(
        STATE_COOKIE,
        state_token,
        max_age=int(STATE_TOKEN_LIFETIME.total_seconds()),
        path="/",
        httponly=True,
        secure=_is_https(request),
        samesite="lax",
    )
    logger.info(f"Redirecting to GitHub authorize (mode={mode})")
    return response


@router.get("/callback")
def callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    oauth_state: Optional[str] = Cookie(None),
    config: Config = Depends(get_config),
):
    """
    Finish the OAuth flow: check the CSRF state, exchange the code for an
    access token and store it in a signed session cookie.

    Raises:
    - 400: If code, state or the state cookie is missing
    - 403: If the state cookie is invalid/expired or does not match state
    - 500: If the token exchange fails
    """
    if not code or not state or not oauth_state:
        raise HTTPException(status_code=400, detail="Invalid request: missing parameters.")

    secret = config.oauth.session_secret
    if not secret:
        logger.error("OAuth callback reached without SESSION_SECRET configured")
        raise HTTPException(status_code=500, detail="Missing environment variables")

    try:
        state_payload = verify_state(secret, oauth_state)
    except InvalidTokenError as e:
        logger.warning(f"Rejected OAuth state token: {e}")
        raise HTTPException(status_code=403, detail="Invalid or expired OAuth state token.")

    if not secrets.compare_digest(state.encode(), state_payload.state.encode()):
        logger.warning("OAuth state mismatch")
        raise HTTPException(status_code=403, detail="Invalid CSRF token (state mismatch).")

    try:
        token_response = requests.post(
            GITHUB_TOKEN_URL,
            json={
                "client_id": config.oauth.github_client_id,
                "client_secret": config.oauth.github_client_secret,
                "code": code,
            },
            headers={"Accept": "application/json"},
            timeout=config.request_timeout,
        )
        data = token_response.json()
    except (requests.RequestException, ValueError) as e:
        logger.error(f"OAuth token exchange failed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to get token: {e}")

    if not isinstance(data, dict):
        data = {}
    access_token = data.get("access_token")
    if not access_token:
        reason = data.get("error_description") or data.get("error") or "Unknown error"
        logger.error(f"OAuth token exchange returned no token: {reason}")
        raise HTTPException(status_code=500, detail=f"Failed to get token: {reason}")

    session_token = sign_session(
        secret, SessionPayload(access_token=access_token, mode=state_payload.mode)
    )

    response = RedirectResponse("/", status_code=302)
    response.set_cookie(
        SESSION_COOKIE,
        session_token,
        max_age=int(SESSION_LIFETIME.total_seconds()),
        path="/",
        httponly=True,
        secure=_is_https(request),
        samesite="strict",
    )
    response.delete_cookie(STATE_COOKIE, path="/")
    logger.info(f"OAuth login complete (mode={state_payload.mode})")
    return response


@router.post("/logout")
def logout(response: Response):
    """Drop the session cookie."""
    response.delete_cookie(SESSION_COOKIE, path="/")
    return {"success": True}


@router.get("/token")
def read_token(
    session: Optional[str] = Cookie(None),
    config: Config = Depends(get_config),
):
    """
    Return the access token and mode stored in the caller's session cookie.

    Responds 401 with an {"error": ...} body when there is no session
    cookie or it does not verify.
    """
    if not session:
        return JSONResponse(status_code=401, content={"error": "Not authenticated"})

    secret = config.oauth.session_secret
    if not secret:
        return JSONResponse(status_code=401, content={"error": "Invalid session"})

    try:
        payload = verify_session(secret, session)
    except InvalidTokenError:
        return JSONResponse(status_code=401, content={"error": "Invalid session"})

    return {"token": payload.access_token, "mode": payload.mode}
