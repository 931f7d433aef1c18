"""TTL cache for custom objects read across reconciliations."""

from __future__ import annotations

import os
import threading
import time
from typing import Any

# Sync handlers run in kopf's thread pool
_lock = threading.Lock()
_cache: dict[str, tuple[Any, float]] = {}
_cache_ttl: float = float(os.getenv("K8S_CACHE_TTL_SECONDS", "30.0"))


def make_cache_key(kind: str, namespace: str, name: str) -> str:
    """Create a cache key (``kind:namespace:name``) for a Kubernetes resource."""
    return f"{kind}:{namespace}:{name}"


def get_cached_object(key: str) -> Any | None:
    """Get an object from cache if it hasn't expired.

    Args:
        key: Cache key from ``make_cache_key``

    Returns:
        Cached object or None if not found or expired
    """
    with _lock:
        entry = _cache.get(key)
        if entry is None:
            return None
        obj, timestamp = entry
        if time.monotonic() - timestamp > _cache_ttl:
            del _cache[key]
            return None
        return obj


def set_cached_object(key: str, obj: Any) -> None:
    """Store an object in cache with the current timestamp."""
    with _lock:
        _cache[key] = (obj, time.monotonic())


def invalidate_object(kind: str, namespace: str, name: str) -> None:
    """Drop one resource from the cache."""
    with _lock:
        _cache.pop(make_cache_key(kind, namespace, name), None)


def invalidate_cache(prefix: str | None = None) -> None:
    """Invalidate cache entries whose key starts with ``prefix`` (all when None)."""
    with _lock:
        if prefix is None:
            _cache.clear()
            return
        for key in [k for k in _cache if k.startswith(prefix)]:
            del _cache[key]
