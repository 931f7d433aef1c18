"""SFTPGo admin API interface."""

from __future__ import annotations

from typing import Any, Protocol

from .models import UpsertResult, UserPayload


class UserAdminAPI(Protocol):
    """Protocol defining the user operations the operator needs from SFTPGo."""

    def __enter__(self) -> UserAdminAPI: ...

    def __exit__(self, *exc: Any) -> None: ...

    def get_user(self, username: str) -> UserPayload | None:
        """Fetch a user, or None when it does not exist."""
        ...

    def create_user(self, payload: UserPayload) -> UserPayload:
        """Create a user."""
        ...

    def update_user(self, username: str, payload: UserPayload) -> UserPayload:
        """Replace an existing user."""
        ...

    def delete_user(self, username: str) -> None:
        """Delete a user; deleting a missing user succeeds."""
        ...

    def upsert_user(self, payload: UserPayload) -> UpsertResult:
        """Create the user if absent, otherwise update it in place."""
        ...
