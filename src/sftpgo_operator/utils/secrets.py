"""Utilities for reading Kubernetes secrets and resolving secret-backed credentials."""

from __future__ import annotations

import base64
import binascii
from typing import Any

from kubernetes import client

from ..constants import REASON_API_ERROR, REASON_SECRET_NOT_FOUND
from ..services.kube.client import K8S_API_ERRORS, K8S_REQUEST_TIMEOUT, describe_api_error
from .errors import BackendError, ReferenceNotFoundError
from .rate_limit import rate_limit_k8s


class SecretNotFoundError(ValueError):
    """A secret or a key inside it does not exist."""


def _decode(value: str | bytes) -> str:
    # Handle both string and bytes (different versions of kubernetes client)
    if isinstance(value, bytes):
        return value.decode("utf-8")
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        # Not base64, assume it's already decoded
        return value


def read_secret_data(
    api: client.CoreV1Api,
    namespace: str,
    secret_name: str,
) -> dict[str, str]:
    """Read all data from a Kubernetes secret.

    Args:
        api: Kubernetes API client
        namespace: Namespace of the secret
        secret_name: Name of the secret

    Returns:
        Dictionary of secret data (decoded)

    Raises:
        SecretNotFoundError: If secret not found
        client.exceptions.ApiException: On any other API error
    """
    try:
        secret = rate_limit_k8s(api.read_namespaced_secret)(
            name=secret_name,
            namespace=namespace,
            _request_timeout=K8S_REQUEST_TIMEOUT,
        )
    except client.exceptions.ApiException as e:
        if e.status == 404:
            raise SecretNotFoundError(f"Secret '{secret_name}' not found in namespace '{namespace}'") from e
        raise
    return {key: _decode(value) for key, value in (secret.data or {}).items()}


def get_secret_value(
    api: client.CoreV1Api,
    namespace: str,
    secret_name: str,
    key: str,
) -> str:
    """Get a value from a Kubernetes secret.

    Args:
        api: Kubernetes API client
        namespace: Namespace of the secret
        secret_name: Name of the secret
        key: Key in the secret

    Returns:
        Secret value

    Raises:
        SecretNotFoundError: If secret or key not found
    """
    data = read_secret_data(api, namespace, secret_name)
    if key not in data:
        raise SecretNotFoundError(f"Key '{key}' not found in secret '{secret_name}'")
    return data[key]


def _lookup(api: client.CoreV1Api, namespace: str, ref: dict[str, Any]) -> str:
    """Resolve a ``{name, key}`` reference into its value with reconcile errors."""
    try:
        return get_secret_value(api, namespace, ref.get("name", ""), ref.get("key", ""))
    except SecretNotFoundError as e:
        raise ReferenceNotFoundError(REASON_SECRET_NOT_FOUND, str(e)) from e
    except K8S_API_ERRORS as e:
        raise BackendError(f"Failed to read secret {ref.get('name')}: {describe_api_error(e)}", REASON_API_ERROR) from e


def parse_public_keys(raw: str) -> list[str]:
    """Split newline-separated public keys, dropping blanks and ``#`` comments."""
    keys = []
    for line in raw.splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            keys.append(line)
    return keys


def resolve_password(api: client.CoreV1Api, namespace: str, spec: dict[str, Any]) -> str:
    """Resolve a user's password: inline literal, then secret reference, else empty."""
    if spec.get("password"):
        return spec["password"]
    ref = spec.get("passwordSecretRef")
    if ref:
        return _lookup(api, namespace, ref)
    return ""


def resolve_public_keys(api: client.CoreV1Api, namespace: str, spec: dict[str, Any]) -> list[str]:
    """Resolve a user's public keys: inline list, then secret reference, else empty."""
    if spec.get("publicKeys"):
        return list(spec["publicKeys"])
    ref = spec.get("publicKeysSecretRef")
    if ref:
        return parse_public_keys(_lookup(api, namespace, ref))
    return []
