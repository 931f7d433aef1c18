"""Reconciliation error taxonomy and sanitization utilities."""

from __future__ import annotations

import re
from typing import Any

from ..constants import (
    REASON_API_ERROR,
    REASON_AUTH_NOT_CONFIGURED,
    REASON_VALIDATION_ERROR,
)


class ReconcileError(Exception):
    """An error that ends a reconciliation pass with a stable reason code.

    Attributes:
        reason: Condition reason written to the resource status
        message: Raw error text written to the condition message
        retry: Whether the pass should be retried by the dispatcher
    """

    retry = True

    def __init__(self, reason: str, message: str, retry: bool | None = None) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message
        if retry is not None:
            self.retry = retry


class ReferenceNotFoundError(ReconcileError):
    """A referenced server or secret does not exist.

    Not retried by requeue: the pass re-runs when the resource changes.
    """

    retry = False


class ConfigurationError(ReconcileError):
    """User misconfiguration: no admin credentials, or no usable credentials for a new user."""

    retry = False


class AuthNotConfiguredError(ConfigurationError):
    """The referenced server has no usable admin credentials."""

    def __init__(self, message: str) -> None:
        super().__init__(REASON_AUTH_NOT_CONFIGURED, message)


class ValidationError(ConfigurationError):
    """The desired state cannot be applied as specified."""

    def __init__(self, message: str) -> None:
        super().__init__(REASON_VALIDATION_ERROR, message)


class BackendError(ReconcileError):
    """A transient failure talking to either backend."""

    def __init__(self, message: str, reason: str = REASON_API_ERROR) -> None:
        super().__init__(reason, message)


class ConflictError(BackendError):
    """An optimistic-concurrency write kept conflicting."""


# Patterns that might expose sensitive information
SENSITIVE_PATTERNS = [
    r"https?://[^:/\s]+:([^@\s]+)@",
    r"authorization[:\s]+basic\s+([A-Za-z0-9+/=]+)",
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "password",
    "secret",
    "credentials",
    "token",
    "public_keys",
}


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(
            pattern,
            lambda m: m.group(0).replace(m.group(1), "[REDACTED]"),
            sanitized,
            flags=re.IGNORECASE,
        )

    for field in SENSITIVE_FIELDS:
        sanitized = re.sub(
            rf"\b{field}[:=\s]+([^\s,;\)]+)",
            rf"{field}: [REDACTED]",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: Exception) -> str:
    """Sanitize exception message."""
    return sanitize_error_message(str(error))


def sanitize_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """Sanitize dictionary by redacting sensitive fields.

    Args:
        data: Dictionary to sanitize
        sensitive_keys: Additional keys to redact (merged with SENSITIVE_FIELDS)

    Returns:
        Sanitized dictionary with sensitive values redacted
    """
    all_sensitive = SENSITIVE_FIELDS | (sensitive_keys or set())
    sanitized: dict[str, Any] = {}

    for key, value in data.items():
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in all_sensitive):
            sanitized[key] = "[REDACTED]"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value, sensitive_keys)
        elif isinstance(value, str):
            sanitized[key] = sanitize_error_message(value)
        else:
            sanitized[key] = value

    return sanitized
