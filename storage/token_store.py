"""
Local storage for the GitHub access token and the PR lookup history.

The stores wrap an injected key-value backend. Without one (e.g. code
running server-side, where there is no user-local storage) every operation
is a silent no-op. The history is kept as a single JSON array under the
``history`` key and is read-modify-written as a whole.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional, Protocol, Union

import requests
from pydantic import ValidationError

from models.data_models import HistoryEntry

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
HISTORY_KEY = "history"


class KeyValueStore(Protocol):
    """Minimal string key-value interface, modelled on browser localStorage."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """In-process key-value store."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStore:
    """
    Key-value store persisted as one JSON object in a file.

    Every write rewrites the whole file; concurrent writers are not
    coordinated and the last write wins.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable storage file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _dump(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)


class TokenStore:
    """Holds the GitHub access token in a single storage slot."""

    def __init__(self, store: Optional[KeyValueStore] = None):
        self.store = store

    def set_token(self, token: str) -> None:
        if self.store is None:
            return
        self.store.set(TOKEN_KEY, token)

    def get_token(self) -> Optional[str]:
        if self.store is None:
            return None
        return self.store.get(TOKEN_KEY)

    def has_token(self) -> bool:
        return bool(self.get_token())


class HistoryStore:
    """Ordered list of previously looked-up PRs, unique by PR number."""

    def __init__(self, store: Optional[KeyValueStore] = None):
        self.store = store

    def list(self) -> list[HistoryEntry]:
        if self.store is None:
            return []
        raw = self.store.get(HISTORY_KEY)
        if not raw:
            return []
        try:
            return [HistoryEntry.model_validate(item) for item in json.loads(raw)]
        except (ValueError, TypeError, ValidationError) as e:
            logger.warning(f"Discarding malformed history: {e}")
            return []

    def _write(self, entries: list[HistoryEntry]) -> None:
        payload = [entry.model_dump(by_alias=True) for entry in entries]
        self.store.set(HISTORY_KEY, json.dumps(payload))

    def save(self, entry: HistoryEntry) -> None:
        """Append ``entry`` unless its PR is already recorded.

        An existing entry is left untouched, including its title.
        """
        if self.store is None:
            return
        entries = self.list()
        if any(existing.pr == entry.pr for existing in entries):
            return
        entries.append(entry)
        self._write(entries)

    def lookup_title(self, pr: int) -> str:
        for entry in self.list():
            if entry.pr == pr:
                return entry.title
        return ""

    def delete(self, pr: int) -> None:
        if self.store is None:
            return
        self._write([entry for entry in self.list() if entry.pr != pr])


def sync_auth_token(
    token_store: TokenStore,
    base_url: str,
    session_cookie: str,
    timeout: float = 30.0,
) -> bool:
    """
    Copy the access token out of a server session into local storage.

    Calls the server's ``/api/auth/token`` endpoint with the given session
    cookie. Failures are logged and reported by the return value.

    Returns:
        bool: True if a token was stored
    """
    if token_store.store is None:
        return False
    url = f"{base_url.rstrip('/')}/api/auth/token"
    try:
        response = requests.get(url, cookies={"session": session_cookie}, timeout=timeout)
        if not response.ok:
            logger.warning(f"Token sync rejected: HTTP {response.status_code}")
            return False
        token = response.json().get("token")
    except (requests.RequestException, ValueError, AttributeError) as e:
        logger.error(f"Failed to sync auth token: {e}")
        return False

    if not token:
        return False
    token_store.set_token(token)
    logger.info("Synced auth token from server session")
    return True
