"""Utilities for managing Kubernetes conditions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import COND_DEGRADED, COND_READY, REASON_RECONCILED


def update_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    status: str,
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Update or add a condition to the conditions list.

    The input list is not modified; a new list is returned with at most one
    entry per condition type.

    Args:
        conditions: List of existing conditions
        condition_type: Type of condition
        status: Status of condition ("True", "False", "Unknown")
        reason: Reason for the condition
        message: Human-readable message
        observed_generation: Generation when condition was observed

    Returns:
        Updated list of conditions
    """
    now = datetime.now(timezone.utc).isoformat()

    new_condition = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": now,
    }
    if observed_generation is not None:
        new_condition["observedGeneration"] = observed_generation

    updated: list[dict[str, Any]] = []
    replaced = False
    for cond in conditions:
        if cond.get("type") != condition_type:
            updated.append(dict(cond))
            continue
        if replaced:
            # Drop duplicates left behind by older writers
            continue
        # Only move lastTransitionTime if status changed
        if cond.get("status") == status:
            new_condition["lastTransitionTime"] = cond.get("lastTransitionTime", now)
        updated.append(new_condition)
        replaced = True

    if not replaced:
        updated.append(new_condition)

    return updated


def get_condition(conditions: list[dict[str, Any]], condition_type: str) -> dict[str, Any] | None:
    """Return the condition of the given type, if any."""
    for cond in conditions:
        if cond.get("type") == condition_type:
            return cond
    return None


def set_ready_condition(
    conditions: list[dict[str, Any]],
    status: bool,
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Set the Ready condition."""
    return update_condition(
        conditions,
        COND_READY,
        "True" if status else "False",
        reason,
        message,
        observed_generation,
    )


def set_degraded_condition(
    conditions: list[dict[str, Any]],
    status: bool,
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Set the Degraded condition."""
    return update_condition(
        conditions,
        COND_DEGRADED,
        "True" if status else "False",
        reason if status else REASON_RECONCILED,
        message,
        observed_generation,
    )
