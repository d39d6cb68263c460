"""
response caching - pluggable store plus deterministic cache keys.
"""

import hashlib
import json
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple
from urllib.parse import parse_qsl, urlsplit

from cachetools import TLRUCache


# seconds to keep a response, by cache context
TTL_BY_CONTEXT = {
    "search": 3600,
    "detail": 604800,
    "batch": 21600,
    "metadata": 2592000,
}
DEFAULT_TTL = 3600


class CacheStore(Protocol):
    """minimal key/value store the cache layer needs."""

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None: ...

    def has(self, key: str) -> bool: ...

    def clear(self) -> None: ...


def _expires_at(key: str, entry: Tuple[Any, Optional[int]], now: float) -> float:
    ttl = entry[1]
    if ttl is None:
        return float("inf")
    return now + ttl


class MemoryCacheStore:
    """
    in-process store with a ttl per entry.
    lost when the process exits.
    """

    def __init__(self, maxsize: int = 1024, timer: Callable[[], float] = time.monotonic):
        self._cache = TLRUCache(maxsize=maxsize, ttu=_expires_at, timer=timer)

    def get(self, key: str) -> Any:
        entry = self._cache.get(key)
        return None if entry is None else entry[0]

    def set(self, key: str, value: Any, ttl: Optional[int] = None):
        self._cache[key] = (value, ttl)

    def has(self, key: str) -> bool:
        return key in self._cache

    def clear(self):
        self._cache.clear()

    def __len__(self):
        return len(self._cache)


def query_value(value: Any) -> Any:
    """render a param value the way it goes on the wire."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return [query_value(v) for v in value]
    return str(value)


def merge_query(url: str, query: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    url query string merged with explicit params, as sent.
    explicit params win, None and "" are dropped, keys sorted, values rendered.
    """
    merged: Dict[str, Any] = {}
    for key, value in parse_qsl(urlsplit(url).query, keep_blank_values=True):
        if value != "":
            merged[key] = value
    for key, value in (query or {}).items():
        if value is None or value == "":
            continue
        merged[key] = value
    return {k: query_value(merged[k]) for k in sorted(merged)}


def _canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


class CacheLayer:
    """
    optional response cache in front of the request engine.
    with no store (or when disabled) remember() just calls the resolver.
    """

    def __init__(self, store: Optional[CacheStore] = None):
        self.store = store
        self._enabled = True

    @property
    def is_enabled(self) -> bool:
        return self._enabled and self.store is not None

    def enable(self):
        self._enabled = True

    def disable(self):
        self._enabled = False

    def clear(self):
        if self.store is not None:
            self.store.clear()

    def ttl_for(self, context: Optional[str]) -> int:
        if context is None:
            return DEFAULT_TTL
        return TTL_BY_CONTEXT.get(context, DEFAULT_TTL)

    def remember(self, key: str, resolver: Callable[[], Any], context: Optional[str] = None) -> Any:
        """return cached value for key, or resolve and store it."""
        if not self.is_enabled:
            return resolver()

        if self.store.has(key):
            return self.store.get(key)

        value = resolver()
        self.store.set(key, value, self.ttl_for(context))
        return value

    def build_key(
        self,
        method: str,
        url: str,
        query: Optional[Dict[str, Any]] = None,
        payload: Any = None,
        has_auth: bool = False,
    ) -> str:
        """
        deterministic key for a request.

        the url's own query string is merged with the explicit params
        (explicit wins) and sorted, so param order never changes the key.
        empty params are dropped and values rendered as sent, so 1 and "1"
        share a key.
        auth presence is part of the key so authenticated and anonymous
        responses never mix.
        """
        parts = urlsplit(url)
        ordered = merge_query(url, query)

        if payload is None:
            body = ""
        elif isinstance(payload, (bytes, str)):
            body = payload if isinstance(payload, str) else payload.decode("utf-8", "replace")
        else:
            body = _canonical_json(payload)
        payload_hash = hashlib.sha256(body.encode("utf-8")).hexdigest()

        raw = "|".join([
            method.upper(),
            parts.hostname or "",
            parts.path or "",
            _canonical_json(ordered),
            payload_hash,
            "auth" if has_auth else "anon",
        ])
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()
