"""Signed, time-limited tokens for the OAuth state cookie and the session cookie.

Both cookies are HS256 JWTs signed with the same ``SESSION_SECRET`` but
issued for different audiences, so a state token can never be replayed as a
session and vice versa.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
from pydantic import ValidationError

from models.data_models import OAuthStatePayload, SessionPayload

logger = logging.getLogger(__name__)

STATE_AUDIENCE = "oauth-state"
SESSION_AUDIENCE = "session"

STATE_TOKEN_LIFETIME = timedelta(minutes=5)
SESSION_LIFETIME = timedelta(days=7)

InvalidTokenError = jwt.InvalidTokenError


class TokenSigner:
    """Sign and verify JWT claims for a single audience with a fixed lifetime."""

    algorithm = "HS256"

    def __init__(self, secret: str, audience: str, lifetime: timedelta):
        self.secret = secret
        self.audience = audience
        self.lifetime = lifetime

    def sign(self, claims: dict[str, Any], now: Optional[datetime] = None) -> str:
        """Return a compact JWT for ``claims``, expiring ``lifetime`` after ``now``."""
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            **claims,
            "aud": self.audience,
            "iat": issued_at,
            "exp": issued_at + self.lifetime,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> dict[str, Any]:
        """Return the claims of ``token``.

        Raises:
            InvalidTokenError: bad signature, wrong audience, expired, or malformed
        """
        return jwt.decode(
            token,
            self.secret,
            algorithms=[self.algorithm],
            audience=self.audience,
            options={"require": ["exp", "iat", "aud"]},
        )


def state_signer(secret: str) -> TokenSigner:
    return TokenSigner(secret, STATE_AUDIENCE, STATE_TOKEN_LIFETIME)


def session_signer(secret: str) -> TokenSigner:
    return TokenSigner(secret, SESSION_AUDIENCE, SESSION_LIFETIME)


def sign_state(secret: str, payload: OAuthStatePayload, now: Optional[datetime] = None) -> str:
    return state_signer(secret).sign(payload.model_dump(), now=now)


def verify_state(secret: str, token: str) -> OAuthStatePayload:
    """Verify an OAuth state token and return its ``{state, mode}`` payload.

    Both claims must be strings; anything else is treated like a bad signature.
    """
    claims = state_signer(secret).verify(token)
    state, mode = claims.get("state"), claims.get("mode")
    if not isinstance(state, str) or not isinstance(mode, str):
        raise InvalidTokenError("Invalid OAuth state payload")
    return OAuthStatePayload(state=state, mode=mode)


def sign_session(secret: str, payload: SessionPayload, now: Optional[datetime] = None) -> str:
    return session_signer(secret).sign(payload.model_dump(), now=now)


def verify_session(secret: str, token: str) -> SessionPayload:
    """Verify a session token and return its payload, defaulting ``mode`` to "read"."""
    claims = session_signer(secret).verify(token)
    try:
        return SessionPayload(
            access_token=claims.get("access_token"),
            mode=claims.get("mode") or "read",
        )
    except ValidationError as e:
        logger.debug(f"Session token has an unexpected payload: {e}")
        raise InvalidTokenError("Invalid session payload") from e
