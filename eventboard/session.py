"""
Per-session OAuth token context for Drive export.

The signed session cookie only carries a random session id and the transient
OAuth handshake values. Tokens live server-side behind ``TokenStore``.
"""

from __future__ import annotations

import json
import threading
import uuid
from dataclasses import dataclass, field
from typing import MutableMapping, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from eventboard.errors import TokenStoreError

SESSION_ID_KEY = "sid"
OAUTH_STATE_KEY = "oauth_state"
OAUTH_VERIFIER_KEY = "oauth_code_verifier"


class TokenStore(Protocol):
    """get/set/clear capability over stored OAuth tokens."""

    def get_token(self, session_id: str) -> Optional[dict]:
        ...

    def set_token(self, session_id: str, token: dict) -> None:
        ...

    def clear_token(self, session_id: str) -> None:
        ...


class InMemoryTokenStore:
    """Process-local store; a restart forces every user to re-authorize."""

    def __init__(self):
        self._tokens: dict[str, dict] = {}
        self._lock = threading.Lock()

    def get_token(self, session_id: str) -> Optional[dict]:
        with self._lock:
            token = self._tokens.get(session_id)
            return dict(token) if token else None

    def set_token(self, session_id: str, token: dict) -> None:
        with self._lock:
            self._tokens[session_id] = dict(token)

    def clear_token(self, session_id: str) -> None:
        with self._lock:
            self._tokens.pop(session_id, None)

    def reset(self) -> None:
        with self._lock:
            self._tokens.clear()


@dataclass
class RedisTokenStore:
    """Redis-backed token store so authorizations survive restarts."""

    url: str
    prefix: str = "eventboard:tokens:"
    ttl_seconds: Optional[int] = None

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def _key(self, session_id: str) -> str:
        return f"{self.prefix}{session_id}"

    def get_token(self, session_id: str) -> Optional[dict]:
        try:
            raw = self.client.get(self._key(session_id))
        except redis_exceptions.RedisError as exc:
            raise TokenStoreError(f"token lookup failed: {exc}") from exc
        if raw is None:
            return None
        return json.loads(raw)

    def set_token(self, session_id: str, token: dict) -> None:
        try:
            self.client.set(self._key(session_id), json.dumps(token), ex=self.ttl_seconds)
        except redis_exceptions.RedisError as exc:
            raise TokenStoreError(f"token write failed: {exc}") from exc

    def clear_token(self, session_id: str) -> None:
        try:
            self.client.delete(self._key(session_id))
        except redis_exceptions.RedisError as exc:
            raise TokenStoreError(f"token delete failed: {exc}") from exc


@dataclass
class DriveSession:
    """Explicit authorization context for one browser session."""

    session_id: str
    store: TokenStore
    data: MutableMapping = field(default_factory=dict)

    @classmethod
    def from_cookie_session(
        cls, session: MutableMapping, store: TokenStore
    ) -> "DriveSession":
        session_id = session.get(SESSION_ID_KEY)
        if not session_id:
            session_id = uuid.uuid4().hex
            session[SESSION_ID_KEY] = session_id
        return cls(session_id=session_id, store=store, data=session)

    @property
    def token(self) -> Optional[dict]:
        return self.store.get_token(self.session_id)

    @property
    def connected(self) -> bool:
        return bool(self.token)

    def save_token(self, token: dict) -> None:
        self.store.set_token(self.session_id, token)

    def clear(self) -> None:
        self.store.clear_token(self.session_id)

    def remember_oauth_handshake(self, state: str, code_verifier: Optional[str]) -> None:
        self.data[OAUTH_STATE_KEY] = state
        if code_verifier:
            self.data[OAUTH_VERIFIER_KEY] = code_verifier
        else:
            self.data.pop(OAUTH_VERIFIER_KEY, None)

    def pop_oauth_handshake(self) -> tuple[Optional[str], Optional[str]]:
        state = self.data.pop(OAUTH_STATE_KEY, None)
        verifier = self.data.pop(OAUTH_VERIFIER_KEY, None)
        return state, verifier
