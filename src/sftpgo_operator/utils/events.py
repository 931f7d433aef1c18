"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_CHILD_APPLIED,
    EVENT_REASON_CLEANUP_SKIPPED,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RECONCILE_STARTED,
    EVENT_REASON_USER_CREATED,
    EVENT_REASON_USER_DELETED,
    EVENT_REASON_USER_UPDATED,
)


def emit_event(
    body: dict[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        body: Resource body (or metadata-bearing object) the event refers to
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_reconcile_started(body: dict[str, Any]) -> None:
    """Emit reconcile started event."""
    emit_event(body, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")


def emit_reconcile_failed(body: dict[str, Any], message: str) -> None:
    """Emit reconcile failed event."""
    emit_event(body, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_child_applied(body: dict[str, Any], kind: str, name: str, operation: str) -> None:
    """Emit child object applied event."""
    emit_event(body, EVENT_REASON_CHILD_APPLIED, f"{kind} {name} {operation}")


def emit_user_created(body: dict[str, Any], username: str) -> None:
    """Emit SFTPGo user created event."""
    emit_event(body, EVENT_REASON_USER_CREATED, f"SFTPGo user {username} created")


def emit_user_updated(body: dict[str, Any], username: str) -> None:
    """Emit SFTPGo user updated event."""
    emit_event(body, EVENT_REASON_USER_UPDATED, f"SFTPGo user {username} updated")


def emit_user_deleted(body: dict[str, Any], username: str) -> None:
    """Emit SFTPGo user deleted event."""
    emit_event(body, EVENT_REASON_USER_DELETED, f"SFTPGo user {username} deleted")


def emit_cleanup_skipped(body: dict[str, Any], message: str) -> None:
    """Emit remote cleanup skipped event."""
    emit_event(body, EVENT_REASON_CLEANUP_SKIPPED, message, type_="Warning")
