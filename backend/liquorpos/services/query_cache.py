# Overview: Process-local TTL cache for hot reference lookups (location ids, variant-by-UPC).

"""
Query cache

A small thread-safe TTL map. Values are only ever hints: callers cache
primary keys, never quantities, and re-read rows through the session.
Negative results (UPC not found) are never stored so a product created
at a previously unknown barcode is visible on the next scan.

The cache instance lives on the Flask app (app.extensions["query_cache"])
and is passed into services explicitly so tests can inject a NullCache or
a QueryCache driven by a fake clock.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

from flask import current_app

logger = logging.getLogger(__name__)


def location_key(kind: str) -> str:
    return f"{kind}_location"


def variant_key(upc: str) -> str:
    return f"variant_{upc}"


class QueryCache:
    """Thread-safe in-memory cache with per-entry TTL."""

    def __init__(self, default_ttl: float = 300, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, dict] = {}
        self._default_ttl = default_ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._sweeper: threading.Thread | None = None

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry["stored_at"] <= entry["ttl"]:
                return entry["value"]
            # expired; drop it and miss
            del self._entries[key]
            return None

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        with self._lock:
            self._entries[key] = {
                "value": value,
                "stored_at": self._clock(),
                "ttl": self._default_ttl if ttl is None else ttl,
            }

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_all(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        """Evict every expired entry. Returns the number evicted."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if now - e["stored_at"] > e["ttl"]]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("query cache sweep evicted %d entries", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_or_load(self, key: str, loader: Callable[[], Any], ttl: float | None = None) -> Any | None:
        """Return the cached value or call loader(); None results are not cached."""
        value = self.get(key)
        if value is not None:
            return value
        value = loader()
        if value is not None:
            self.set(key, value, ttl=ttl)
        return value

    def start_sweeper(self, interval: float = 60) -> None:
        """Run sweep() every `interval` seconds on a daemon thread."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return

        def _run():
            while True:
                time.sleep(interval)
                try:
                    self.sweep()
                except Exception:
                    logger.exception("query cache sweep failed")

        self._sweeper = threading.Thread(target=_run, name="query-cache-sweeper", daemon=True)
        self._sweeper.start()


class NullCache(QueryCache):
    """Cache that never stores anything; every lookup goes to the database."""

    def get(self, key: str) -> Any | None:
        return None

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        return None

    def start_sweeper(self, interval: float = 60) -> None:
        return None


def get_query_cache() -> QueryCache:
    """The cache attached to the running app (NullCache outside an app)."""
    cache = current_app.extensions.get("query_cache")
    if cache is None:
        return NullCache()
    return cache


def resolve_cache(cache: QueryCache | None) -> QueryCache:
    return cache if cache is not None else get_query_cache()


def location_ttl() -> int:
    return current_app.config.get("QUERY_CACHE_LOCATION_TTL_SECONDS", 600)


def variant_ttl() -> int:
    return current_app.config.get("QUERY_CACHE_VARIANT_TTL_SECONDS", 120)
