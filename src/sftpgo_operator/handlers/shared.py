"""Shared utilities for handlers."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from kubernetes import client

from .. import metrics
from ..builders.server import apply_server_defaults
from ..constants import (
    ADMIN_PASSWORD_KEY,
    ADMIN_USERNAME_KEY,
    API_GROUP,
    API_VERSION,
    KIND_SERVER,
    PLURAL_SERVERS,
    REASON_API_ERROR,
    REASON_AUTH_ERROR,
    REASON_SERVER_NOT_FOUND,
)
from ..services.kube.client import K8S_API_ERRORS, K8S_REQUEST_TIMEOUT, describe_api_error
from ..services.sftpgo.base import UserAdminAPI
from ..services.sftpgo.client import SftpGoClient, service_url
from ..utils.cache import get_cached_object, make_cache_key, set_cached_object
from ..utils.errors import AuthNotConfiguredError, BackendError, ReferenceNotFoundError
from ..utils.rate_limit import call_with_rate_limit_retry, rate_limit_k8s
from ..utils.secrets import SecretNotFoundError, read_secret_data


@dataclass(frozen=True)
class AdminCredentials:
    """Admin credentials of an SFTPGo server."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"AdminCredentials(username={self.username!r}, password='***')"


def get_server_with_cache(
    api: Any,
    server_name: str,
    server_ns: str,
) -> dict[str, Any]:
    """Get SftpGoServer CRD with caching.

    Args:
        api: Kubernetes CustomObjectsApi instance
        server_name: Name of the server
        server_ns: Namespace of the server

    Returns:
        SftpGoServer CRD object

    Raises:
        client.exceptions.ApiException: If server not found or API error
        urllib3.exceptions.HTTPError: On transport failures and timeouts
    """
    cache_key = make_cache_key(KIND_SERVER, server_ns, server_name)
    cached_server = get_cached_object(cache_key)

    if cached_server is not None:
        metrics.api_call_total.labels(api_type="k8s", operation="get_server", result="cache_hit").inc()
        return cached_server

    start_time = time.time()
    try:
        server_obj = call_with_rate_limit_retry(
            lambda: rate_limit_k8s(api.get_namespaced_custom_object)(
                group=API_GROUP,
                version=API_VERSION,
                namespace=server_ns,
                plural=PLURAL_SERVERS,
                name=server_name,
                _request_timeout=K8S_REQUEST_TIMEOUT,
            )
        )
        metrics.api_call_total.labels(api_type="k8s", operation="get_server", result="success").inc()
        set_cached_object(cache_key, server_obj)
        return server_obj
    except K8S_API_ERRORS:
        metrics.api_call_total.labels(api_type="k8s", operation="get_server", result="error").inc()
        raise
    finally:
        duration = time.time() - start_time
        metrics.api_call_duration_seconds.labels(api_type="k8s", operation="get_server").observe(duration)


def resolve_server(api: Any, user_meta: dict[str, Any], spec: dict[str, Any]) -> dict[str, Any]:
    """Resolve an SftpGoUser's serverRef to the server object.

    The reference namespace defaults to the user's own namespace.

    Raises:
        ReferenceNotFoundError: The server does not exist (ServerNotFound)
        BackendError: Any other API failure
    """
    ref = spec.get("serverRef") or {}
    server_name = ref.get("name", "")
    server_ns = ref.get("namespace") or user_meta.get("namespace", "default")

    try:
        return get_server_with_cache(api, server_name, server_ns)
    except K8S_API_ERRORS as e:
        if isinstance(e, client.exceptions.ApiException) and e.status == 404:
            raise ReferenceNotFoundError(
                REASON_SERVER_NOT_FOUND,
                f"SftpGoServer {server_ns}/{server_name} not found",
            ) from e
        raise BackendError(f"Failed to get SftpGoServer {server_ns}/{server_name}: {describe_api_error(e)}") from e


def resolve_admin_credentials(api: client.CoreV1Api, server: dict[str, Any]) -> AdminCredentials:
    """Read a server's admin credentials from its adminSecretRef.

    Raises:
        AuthNotConfiguredError: No adminSecretRef, or empty username/password
        ReferenceNotFoundError: The admin secret does not exist (AuthError)
        BackendError: Any other API failure
    """
    meta = server.get("metadata", {})
    ref = (server.get("spec") or {}).get("adminSecretRef") or {}
    secret_name = ref.get("name")
    if not secret_name:
        raise AuthNotConfiguredError(f"SftpGoServer {meta.get('name')} has no adminSecretRef configured")

    namespace = meta.get("namespace", "default")
    try:
        data = read_secret_data(api, namespace, secret_name)
    except SecretNotFoundError as e:
        raise ReferenceNotFoundError(REASON_AUTH_ERROR, f"Failed to get admin credentials: {e}") from e
    except K8S_API_ERRORS as e:
        raise BackendError(f"Failed to read admin secret {secret_name}: {describe_api_error(e)}", REASON_API_ERROR) from e

    username = data.get(ADMIN_USERNAME_KEY, "")
    password = data.get(ADMIN_PASSWORD_KEY, "")
    if not username or not password:
        raise AuthNotConfiguredError(f"Admin secret {secret_name} has an empty username or password")
    return AdminCredentials(username=username, password=password)


def server_base_url(server: dict[str, Any]) -> str:
    """Base URL of a server's REST API, on its effective web port."""
    meta = server.get("metadata", {})
    settings = apply_server_defaults(
        meta.get("name", ""),
        meta.get("namespace", "default"),
        server.get("spec") or {},
    )
    return service_url(settings.name, settings.namespace, settings.web_port)


def create_sftpgo_client(base_url: str, credentials: AdminCredentials) -> UserAdminAPI:
    """Create an SFTPGo client for a server."""
    return SftpGoClient(base_url, credentials.username, credentials.password)
