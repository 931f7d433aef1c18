"""Shared test configuration."""

from __future__ import annotations

import os
from collections.abc import Iterator
from unittest.mock import MagicMock, patch

import pytest

# Read at import time by the operator modules
os.environ.setdefault("K8S_RATE_LIMIT_PER_SECOND", "0")
os.environ.setdefault("SFTPGO_RATE_LIMIT_PER_SECOND", "0")
os.environ.setdefault("OTEL_TRACES_ENABLED", "false")

from sftpgo_operator.utils.cache import invalidate_cache  # noqa: E402


@pytest.fixture(autouse=True)
def kopf_events() -> Iterator[MagicMock]:
    """Capture Kubernetes events instead of posting them."""
    with patch("kopf.event") as mock_event:
        yield mock_event


@pytest.fixture(autouse=True)
def clear_cache() -> Iterator[None]:
    invalidate_cache()
    yield
    invalidate_cache()
