"""Encrypted, cookie-addressed storage for the ATS bearer token."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
import secrets
import time
from pathlib import Path
from typing import Any, Callable, Optional

from cryptography.fernet import Fernet, InvalidToken

COOKIE_NAME = "hiring_funnel_session"
SESSION_TTL_SECONDS = 12 * 60 * 60


def _urlsafe(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


class SessionStore:
    """One Fernet-encrypted file per session; the cookie carries `id.hmac(id)`.

    The token never leaves the server in clear text and a session file older
    than `ttl_seconds` since its last write is treated as absent.
    """

    def __init__(
        self,
        root: str | Path,
        *,
        secret: str,
        encryption_key: str = "",
        ttl_seconds: int = SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.root = Path(root).expanduser().resolve()
        self.ttl_seconds = ttl_seconds
        self._secret = secret.encode("utf-8")
        self._fernet = self._build_fernet(encryption_key)
        self._clock = clock

    @classmethod
    def from_env(cls) -> "SessionStore":
        return cls(
            os.getenv("SESSION_STORE_DIR", "/tmp/hiring_funnel_sessions"),
            secret=os.getenv("SESSION_SECRET", "dev-session-secret-change-me"),
            encryption_key=os.getenv("TOKEN_ENCRYPTION_KEY", "").strip(),
        )

    def _build_fernet(self, encryption_key: str) -> Fernet:
        if encryption_key:
            try:
                return Fernet(encryption_key.encode("utf-8"))
            except ValueError:
                pass
        return Fernet(base64.urlsafe_b64encode(hashlib.sha256(self._secret).digest()))

    def _signature(self, session_id: str) -> str:
        return _urlsafe(hmac.new(self._secret, session_id.encode("utf-8"), hashlib.sha256).digest())

    def _path(self, session_id: str) -> Path:
        return self.root / f"{session_id}.bin"

    def new_session_id(self) -> str:
        return secrets.token_urlsafe(32)

    def cookie_value(self, session_id: str) -> str:
        return f"{session_id}.{self._signature(session_id)}"

    def session_id_from_cookie(self, cookie_value: Optional[str]) -> Optional[str]:
        if not cookie_value or "." not in cookie_value:
            return None
        session_id, sig = cookie_value.split(".", 1)
        if not session_id or not hmac.compare_digest(self._signature(session_id), sig):
            return None
        return session_id

    def save(self, session_id: str, payload: dict[str, Any]) -> None:
        data = dict(payload)
        now = int(self._clock())
        data["updated_at"] = now
        data.setdefault("created_at", now)
        self.root.mkdir(parents=True, exist_ok=True)
        raw = json.dumps(data, separators=(",", ":"), sort_keys=True).encode("utf-8")
        self._path(session_id).write_bytes(self._fernet.encrypt(raw))

    def load(self, session_id: str) -> Optional[dict[str, Any]]:
        path = self._path(session_id)
        if not path.exists():
            return None
        try:
            payload = json.loads(self._fernet.decrypt(path.read_bytes()).decode("utf-8"))
        except (InvalidToken, ValueError):
            return None
        if not isinstance(payload, dict):
            return None
        updated_at = int(payload.get("updated_at", 0))
        if updated_at and int(self._clock()) - updated_at > self.ttl_seconds:
            self.delete(session_id)
            return None
        return payload

    def delete(self, session_id: str) -> None:
        self._path(session_id).unlink(missing_ok=True)

    def store_token(self, token: str, session_id: Optional[str] = None) -> str:
        session_id = session_id or self.new_session_id()
        self.save(session_id, {"ats_token": token})
        return session_id

    def token_for_cookie(self, cookie_value: Optional[str]) -> Optional[tuple[str, str]]:
        """(session_id, token) for a valid cookie whose session still holds a token."""
        session_id = self.session_id_from_cookie(cookie_value)
        if not session_id:
            return None
        payload = self.load(session_id)
        token = str((payload or {}).get("ats_token") or "")
        if not token:
            return None
        return session_id, token
