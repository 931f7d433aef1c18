"""Tests for the object cache."""

from __future__ import annotations

from unittest.mock import patch

from sftpgo_operator.utils import cache
from sftpgo_operator.utils.cache import (
    get_cached_object,
    invalidate_cache,
    invalidate_object,
    make_cache_key,
    set_cached_object,
)


class TestCache:
    """Test cases for cache functions."""

    def test_make_cache_key(self):
        assert make_cache_key("SftpGoServer", "default", "main") == "SftpGoServer:default:main"

    def test_set_and_get(self):
        key = make_cache_key("SftpGoServer", "default", "main")
        set_cached_object(key, {"metadata": {"name": "main"}})

        assert get_cached_object(key) == {"metadata": {"name": "main"}}

    def test_get_missing(self):
        assert get_cached_object("missing") is None

    def test_expired_entry_is_dropped(self):
        key = make_cache_key("SftpGoServer", "default", "main")
        with patch.object(cache.time, "monotonic", return_value=100.0):
            set_cached_object(key, {"x": 1})
        with patch.object(cache.time, "monotonic", return_value=100.0 + cache._cache_ttl + 1):
            assert get_cached_object(key) is None
        assert key not in cache._cache

    def test_invalidate_object(self):
        set_cached_object(make_cache_key("SftpGoServer", "ns", "a"), 1)
        set_cached_object(make_cache_key("SftpGoServer", "ns", "b"), 2)

        invalidate_object("SftpGoServer", "ns", "a")

        assert get_cached_object(make_cache_key("SftpGoServer", "ns", "a")) is None
        assert get_cached_object(make_cache_key("SftpGoServer", "ns", "b")) == 2

    def test_invalidate_cache_prefix(self):
        set_cached_object("SftpGoServer:ns:a", 1)
        set_cached_object("Other:ns:a", 2)

        invalidate_cache("SftpGoServer:")

        assert get_cached_object("SftpGoServer:ns:a") is None
        assert get_cached_object("Other:ns:a") == 2

    def test_invalidate_all(self):
        set_cached_object("a", 1)
        invalidate_cache()
        assert get_cached_object("a") is None
