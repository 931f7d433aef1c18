"""Utility functions for the SFTPGo Operator."""

from .cache import (
    get_cached_object,
    invalidate_cache,
    invalidate_object,
    make_cache_key,
    set_cached_object,
)
from .conditions import (
    get_condition,
    set_degraded_condition,
    set_ready_condition,
    update_condition,
)
from .events import emit_event
from .rate_limit import call_with_rate_limit_retry, rate_limit_k8s, rate_limit_sftpgo
from .secrets import get_secret_value, resolve_password, resolve_public_keys

__all__ = [
    "update_condition",
    "get_condition",
    "set_ready_condition",
    "set_degraded_condition",
    "emit_event",
    "get_secret_value",
    "resolve_password",
    "resolve_public_keys",
    "get_cached_object",
    "set_cached_object",
    "invalidate_cache",
    "invalidate_object",
    "make_cache_key",
    "rate_limit_k8s",
    "rate_limit_sftpgo",
    "call_with_rate_limit_retry",
]
