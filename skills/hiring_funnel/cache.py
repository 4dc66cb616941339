"""In-process TTL cache for remote count lookups."""

from __future__ import annotations

import hashlib
import json
import threading
import time
from typing import Any, Callable, Optional

CACHE_TTL_SECONDS = 5 * 60


def credential_fingerprint(token: str) -> str:
    """Short, non-reversible tag for a bearer token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]


def build_cache_key(
    kind: str,
    job_id: str,
    start: str,
    end: str,
    status: int,
    source_category: Optional[str] = None,
    source_name: Optional[str] = None,
    *,
    scope: str = "",
) -> str:
    """Deterministic key for one remote read.

    `scope` is the credential fingerprint; reads made with one token are
    never served to another. Stage-count keys leave the source fields out
    entirely, so they can never collide with a channel-count key for the
    same job and window.
    """
    params: dict[str, Any] = {
        "scope": scope,
        "job_id": job_id,
        "start": start,
        "end": end,
        "status": int(status),
    }
    if source_category is not None:
        params["source_category"] = source_category
        params["source_name"] = source_name or ""
    canonical_json = json.dumps(params, sort_keys=True, separators=(",", ":"))
    return f"{kind}:{canonical_json}"


class ResultCache:
    """Entries expire `ttl_seconds` after insertion.

    Expiry is checked lazily: an expired entry reads as absent but stays in
    the map until overwritten or `purge_expired` runs.
    """

    def __init__(self, ttl_seconds: float = CACHE_TTL_SECONDS, *, clock: Callable[[], float] = time.monotonic):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def _fresh(self, inserted_at: float, now: float) -> bool:
        return now - inserted_at < self.ttl_seconds

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            inserted_at, value = entry
            if not self._fresh(inserted_at, self._clock()):
                return None
            return value

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), value)

    def purge_expired(self) -> int:
        with self._lock:
            now = self._clock()
            stale = [k for k, (inserted_at, _) in self._entries.items() if not self._fresh(inserted_at, now)]
            for key in stale:
                del self._entries[key]
            return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
