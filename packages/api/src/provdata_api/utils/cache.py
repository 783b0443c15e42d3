"""
utils/cache.py — Process-local cache for the province index used by map composition.

Map responses join every fact row to its province geometry. Loading the
registry for each request is wasteful because provinces change only when
`provdata seed-provinces` runs, so the {province_id: Province} index is
kept here for a short TTL. A caller that sees a province id the cached
index does not know asks for a reload instead of waiting for expiry.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any

import structlog

log = structlog.get_logger(__name__)


class TTLCache:
    """Dict of named entries, each expiring default_ttl seconds after it was loaded."""

    def __init__(self, default_ttl: float = 300.0) -> None:
        self._store: dict[str, tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._default_ttl = default_ttl

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if time.monotonic() > expires_at:
                del self._store[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        with self._lock:
            expires_at = time.monotonic() + (ttl if ttl is not None else self._default_ttl)
            self._store[key] = (value, expires_at)

    def get_or_load(
        self,
        key: str,
        load: Callable[[], Any],
        *,
        stale: Callable[[Any], bool] | None = None,
    ) -> Any:
        """
        Return the cached entry, calling load() when it is missing, expired or stale.

        Args:
            key:   Entry name.
            load:  Builds a fresh value; runs outside the lock.
            stale: Optional check that forces a reload of a live entry.
        """
        value = self.get(key)
        if value is not None and not (stale and stale(value)):
            return value
        reason = "stale" if value is not None else "miss"
        value = load()
        self.set(key, value)
        log.debug("cache_reload", key=key, reason=reason)
        return value

    def clear(self) -> None:
        with self._lock:
            self._store.clear()


# Provinces change only on reseed; a 10 minute window of stale names is acceptable.
province_cache = TTLCache(default_ttl=600)
