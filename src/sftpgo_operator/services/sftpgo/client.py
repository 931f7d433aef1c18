"""SFTPGo REST API client."""

from __future__ import annotations

import logging
import os
import time
from typing import Any
from urllib.parse import quote

import httpx

from ... import metrics
from ...builders.user import require_credentials
from ...utils.rate_limit import rate_limit_sftpgo
from .models import UpsertResult, UserPayload

logger = logging.getLogger(__name__)

API_TIMEOUT = float(os.getenv("SFTPGO_API_TIMEOUT_SECONDS", "30.0"))
USERS_PATH = "/api/v2/users"


class SftpGoAPIError(Exception):
    """Error returned by the SFTPGo API, or a transport failure reaching it."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SftpGoNotFoundError(SftpGoAPIError):
    """The requested SFTPGo entity does not exist."""


class SftpGoConflictError(SftpGoAPIError):
    """SFTPGo rejected the write as conflicting with existing state."""


class SftpGoUnauthorizedError(SftpGoAPIError):
    """SFTPGo rejected the admin credentials."""


def service_url(name: str, namespace: str, port: int) -> str:
    """Return the in-cluster URL of an SFTPGo service."""
    return f"http://{name}.{namespace}.svc.cluster.local:{port}"


def _user_path(username: str) -> str:
    return f"{USERS_PATH}/{quote(username, safe='')}"


class SftpGoClient:
    """Client for the SFTPGo user administration API."""

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        timeout: float = API_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Base URL of the SFTPGo web service
            username: Admin username for basic authentication
            password: Admin password for basic authentication
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url
        auth = httpx.BasicAuth(username, password) if username and password else None
        self.http = httpx.Client(
            base_url=base_url,
            auth=auth,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> SftpGoClient:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _request(self, operation: str, method: str, path: str, **kwargs: Any) -> httpx.Response:
        start_time = time.time()
        try:
            response = rate_limit_sftpgo(self.http.request)(method, path, **kwargs)
        except httpx.HTTPError as e:
            metrics.api_call_total.labels(api_type="sftpgo", operation=operation, result="error").inc()
            raise SftpGoAPIError(f"{method} {path} failed: {e}") from e
        finally:
            metrics.api_call_duration_seconds.labels(api_type="sftpgo", operation=operation).observe(
                time.time() - start_time
            )
        result = "success" if response.is_success else str(response.status_code)
        metrics.api_call_total.labels(api_type="sftpgo", operation=operation, result=result).inc()
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response, method: str, path: str) -> None:
        if response.status_code in (200, 201, 204):
            return
        message = f"{method} {path}: API returned {response.status_code}"
        if response.status_code in (401, 403):
            raise SftpGoUnauthorizedError(message, response.status_code)
        if response.status_code == 404:
            raise SftpGoNotFoundError(message, response.status_code)
        if response.status_code == 409:
            raise SftpGoConflictError(message, response.status_code)
        raise SftpGoAPIError(message, response.status_code)

    @staticmethod
    def _decode_user(response: httpx.Response) -> UserPayload:
        try:
            return UserPayload.from_dict(response.json())
        except ValueError as e:
            raise SftpGoAPIError(f"Invalid user response: {e}", response.status_code) from e

    def get_user(self, username: str) -> UserPayload | None:
        """Fetch a user by username, or None when SFTPGo has no such user."""
        path = _user_path(username)
        response = self._request("get_user", "GET", path)
        if response.status_code == 404:
            return None
        self._raise_for_status(response, "GET", path)
        return self._decode_user(response)

    def create_user(self, payload: UserPayload) -> UserPayload:
        """Create a user and return SFTPGo's view of it."""
        response = self._request("create_user", "POST", USERS_PATH, json=payload.to_dict())
        self._raise_for_status(response, "POST", USERS_PATH)
        return self._decode_user(response)

    def update_user(self, username: str, payload: UserPayload) -> UserPayload:
        """Replace an existing user.

        SFTPGo answers updates with a status message, so the sent payload
        (without its password) is returned.
        """
        path = _user_path(username)
        response = self._request("update_user", "PUT", path, json=payload.to_dict())
        self._raise_for_status(response, "PUT", path)
        return UserPayload.from_dict(payload.to_dict())

    def delete_user(self, username: str) -> None:
        """Delete a user. Deleting a user that does not exist succeeds."""
        path = _user_path(username)
        response = self._request("delete_user", "DELETE", path)
        if response.status_code == 404:
            logger.info(f"SFTPGo user {username} already absent")
            return
        self._raise_for_status(response, "DELETE", path)

    def upsert_user(self, payload: UserPayload) -> UpsertResult:
        """Create the user if absent, otherwise update it in place.

        Updates keep the remote numeric id. The payload never carries an
        empty password, so an omitted password leaves the stored one as is.

        Raises:
            ValidationError: When creating a user with neither password nor keys
        """
        existing = self.get_user(payload.username)
        if existing is None:
            require_credentials(payload)
            created = self.create_user(payload)
            metrics.sftpgo_user_operations_total.labels(operation="create", result="success").inc()
            return UpsertResult(user=created, created=True)

        desired = payload.with_id(existing.id)
        updated = self.update_user(payload.username, desired)
        metrics.sftpgo_user_operations_total.labels(operation="update", result="success").inc()
        return UpsertResult(user=updated, created=False)
