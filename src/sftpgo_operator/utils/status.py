"""Projection of reconciliation outcomes onto resource status."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..constants import (
    PHASE_ERROR,
    PHASE_PENDING,
    PHASE_RUNNING,
    PHASE_SYNCED,
    REASON_AUTH_NOT_CONFIGURED,
)
from .conditions import set_degraded_condition, set_ready_condition
from .errors import ReconcileError

PHASES = frozenset({PHASE_RUNNING, PHASE_PENDING, PHASE_ERROR, PHASE_SYNCED})

# Failure reasons that park the resource instead of marking it failed
_PENDING_REASONS = frozenset({REASON_AUTH_NOT_CONFIGURED})


@dataclass(frozen=True)
class Outcome:
    """Result of one reconciliation pass."""

    ready: bool
    reason: str
    phase: str
    message: str = ""
    retry: bool = False

    def __post_init__(self) -> None:
        if self.phase not in PHASES:
            raise ValueError(f"Unknown phase {self.phase!r}")

    @classmethod
    def succeeded(cls, reason: str, phase: str, message: str = "") -> Outcome:
        return cls(ready=True, reason=reason, phase=phase, message=message)

    @classmethod
    def failed(cls, error: ReconcileError) -> Outcome:
        phase = PHASE_PENDING if error.reason in _PENDING_REASONS else PHASE_ERROR
        return cls(
            ready=False,
            reason=error.reason,
            phase=phase,
            message=error.message,
            retry=error.retry,
        )


def project_status(
    conditions: list[dict[str, Any]],
    outcome: Outcome,
    extra: dict[str, Any] | None = None,
    track_degraded: bool = False,
) -> dict[str, Any]:
    """Build the status patch for an outcome.

    Failed outcomes only rewrite ``phase`` and ``conditions``; ``extra``
    fields (replica counts, ports, remote identifiers) are written on
    success only.

    Args:
        conditions: Current condition list of the resource
        outcome: Outcome of the pass
        extra: Additional status fields recorded on success
        track_degraded: Also maintain the Degraded condition

    Returns:
        Status patch dictionary
    """
    updated = set_ready_condition(conditions, outcome.ready, outcome.reason, outcome.message)
    if track_degraded:
        updated = set_degraded_condition(updated, not outcome.ready, outcome.reason, outcome.message)

    status: dict[str, Any] = {
        "phase": outcome.phase,
        "conditions": updated,
    }
    if outcome.ready and extra:
        status.update(extra)
    return status
