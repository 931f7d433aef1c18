"""Client-side rate limiting for Kubernetes and SFTPGo API calls."""

from __future__ import annotations

import os
import threading
import time
from functools import wraps
from typing import Any, Callable, TypeVar

from kubernetes.client.exceptions import ApiException

from .. import metrics

_F = TypeVar("_F", bound=Callable[..., Any])


class _Throttle:
    """Minimum-interval throttle shared by every caller of one API."""

    def __init__(self, api_type: str, per_second: float) -> None:
        self.api_type = api_type
        self.min_interval = 1.0 / per_second if per_second > 0 else 0.0
        self._lock = threading.Lock()
        self._last_call = 0.0

    def wait(self) -> None:
        with self._lock:
            now = time.monotonic()
            sleep_time = self._last_call + self.min_interval - now
            if sleep_time > 0:
                metrics.rate_limit_hits_total.labels(api_type=self.api_type).inc()
                time.sleep(sleep_time)
            self._last_call = time.monotonic()

    def __call__(self, func: _F) -> _F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            self.wait()
            return func(*args, **kwargs)

        return wrapper  # type: ignore


_k8s_throttle = _Throttle("k8s", float(os.getenv("K8S_RATE_LIMIT_PER_SECOND", "10.0")))
_sftpgo_throttle = _Throttle("sftpgo", float(os.getenv("SFTPGO_RATE_LIMIT_PER_SECOND", "5.0")))


def rate_limit_k8s(func: _F) -> _F:
    """Wrap a Kubernetes API call so calls are spaced by the configured rate."""
    return _k8s_throttle(func)


def rate_limit_sftpgo(func: _F) -> _F:
    """Wrap an SFTPGo API call so calls are spaced by the configured rate."""
    return _sftpgo_throttle(func)


def is_rate_limit_error(e: Exception) -> bool:
    """Check whether an exception is a Kubernetes API throttling response."""
    if not isinstance(e, ApiException):
        return False
    return e.status == 429 or (e.status == 503 and "rate limit" in str(e).lower())


def call_with_rate_limit_retry(func: Callable[[], Any], max_retries: int = 3) -> Any:
    """Call ``func``, retrying Kubernetes throttling errors with exponential backoff (1s, 2s, 4s)."""
    attempt = 0
    while True:
        try:
            return func()
        except ApiException as e:
            if not is_rate_limit_error(e) or attempt >= max_retries:
                raise
            time.sleep(2**attempt)
            attempt += 1
