"""Base handler class with common functionality for all CRD handlers."""

from __future__ import annotations

import logging
import os
import time
from enum import Enum
from typing import Any, Callable

import kopf

from .. import metrics
from ..constants import CONTROLLER_NAME
from ..logging import log_resource_event
from ..utils.errors import BackendError, ConflictError, ReconcileError, sanitize_dict, sanitize_exception
from ..utils.events import emit_reconcile_failed, emit_reconcile_started
from ..utils.status import Outcome, project_status

# Delay before re-entering after the finalizer was recorded
FINALIZER_REQUEUE_DELAY = 1
CONFLICT_RETRY_DELAY = 1
BACKEND_RETRY_DELAY = int(os.getenv("BACKEND_RETRY_DELAY_SECONDS", "15"))


class Lifecycle(str, Enum):
    """States of a managed resource while the operator can observe it.

    Removing the finalizer in ``TERMINATING`` lets the object go; no
    handler runs after that, so there is no state for it here.
    """

    INITIALIZING = "Initializing"
    ACTIVE = "Active"
    TERMINATING = "Terminating"


def lifecycle_state(meta: dict[str, Any], finalizer: str) -> Lifecycle:
    if meta.get("deletionTimestamp"):
        return Lifecycle.TERMINATING
    if finalizer not in (meta.get("finalizers") or []):
        return Lifecycle.INITIALIZING
    return Lifecycle.ACTIVE


class BaseHandler:
    """Base class for all CRD handlers with common functionality."""

    def __init__(self, kind: str, finalizer: str):
        """Initialize base handler.

        Args:
            kind: The Kubernetes resource kind (e.g., "SftpGoServer")
            finalizer: Finalizer marker owned by this handler
        """
        self.kind = kind
        self.finalizer = finalizer
        self.logger = logging.getLogger(__name__)

    def _get_resource_context(self, meta: dict[str, Any]) -> dict[str, Any]:
        return {
            "name": meta.get("name", "unknown"),
            "namespace": meta.get("namespace", "default"),
            "uid": meta.get("uid", "unknown"),
        }

    def _log(
        self,
        level: int,
        meta: dict[str, Any],
        message: str,
        event: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        ctx = self._get_resource_context(meta)
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=ctx["name"],
            namespace=ctx["namespace"],
            uid=ctx["uid"],
            event=event,
            reason=reason,
            message=message,
            level=level,
            **sanitize_dict(kwargs),
        )

    def log_info(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "info",
        reason: str = "Info",
        **kwargs: Any,
    ) -> None:
        """Log an info-level structured log message."""
        self._log(logging.INFO, meta, message, event, reason, **kwargs)

    def log_warning(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "warning",
        reason: str = "Warning",
        **kwargs: Any,
    ) -> None:
        """Log a warning-level structured log message."""
        self._log(logging.WARNING, meta, message, event, reason, **kwargs)

    def log_error(
        self,
        meta: dict[str, Any],
        message: str,
        error: Exception | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            error: Optional exception to include sanitized error details
            event: Event type (default: "error")
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        if error is not None:
            kwargs["error"] = sanitize_exception(error)
            kwargs["error_type"] = type(error).__name__
        self._log(logging.ERROR, meta, message, event, reason, **kwargs)

    def ensure_finalizer(self, meta: dict[str, Any], patch: kopf.Patch) -> bool:
        """Add the finalizer when missing.

        Returns:
            True if the finalizer had to be added
        """
        finalizers = list(meta.get("finalizers") or [])
        if self.finalizer in finalizers:
            return False
        finalizers.append(self.finalizer)
        patch.metadata["finalizers"] = finalizers
        return True

    def remove_finalizer(self, meta: dict[str, Any], patch: kopf.Patch) -> None:
        """Remove finalizer from metadata."""
        finalizers = list(meta.get("finalizers") or [])
        if self.finalizer in finalizers:
            finalizers.remove(self.finalizer)
            patch.metadata["finalizers"] = finalizers if finalizers else None

    def record_finalizer(self, meta: dict[str, Any], patch: kopf.Patch) -> None:
        """Record the finalizer before any side effect.

        Raises:
            kopf.TemporaryError: When the finalizer was just added, so the
                pass re-enters once it is persisted
        """
        if self.ensure_finalizer(meta, patch):
            self.log_info(meta, "Finalizer added", event="finalizer", reason="FinalizerAdded")
            raise kopf.TemporaryError("Finalizer added, requeueing", delay=FINALIZER_REQUEUE_DELAY)

    def fail_pass(
        self,
        body: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        error: ReconcileError,
        track_degraded: bool = False,
    ) -> None:
        """Record a failed pass on the resource status.

        Only ``phase`` and ``conditions`` are written. The condition message
        carries the raw error text; logs and events get a sanitized copy.

        Raises:
            kopf.TemporaryError: When the error is retryable
        """
        meta = body.get("metadata", {})
        outcome = Outcome.failed(error)
        sanitized = sanitize_exception(error)

        self.log_error(meta, f"Reconciliation failed: {sanitized}", error=error, reason=error.reason)
        emit_reconcile_failed(body, f"{error.reason}: {sanitized}")
        metrics.error_total.labels(kind=self.kind, error_type=error.reason).inc()
        metrics.reconcile_total.labels(kind=self.kind, result="failed").inc()
        metrics.resource_status_total.labels(kind=self.kind, status=outcome.phase.lower()).inc()

        patch.status.update(project_status(status.get("conditions") or [], outcome, track_degraded=track_degraded))

        if outcome.retry:
            delay = CONFLICT_RETRY_DELAY if isinstance(error, ConflictError) else BACKEND_RETRY_DELAY
            raise kopf.TemporaryError(sanitized, delay=delay)

    def reconcile_with_metrics(
        self,
        body: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        reconcile_fn: Callable[[], None],
        track_degraded: bool = False,
    ) -> None:
        """Execute reconciliation with metrics and error handling.

        ``ReconcileError`` ends the pass through ``fail_pass``. Anything
        else is logged and recorded as a retryable APIError.

        Args:
            body: Resource body
            status: Current resource status
            patch: Kopf patch object
            reconcile_fn: Function to execute for reconciliation
            track_degraded: Also maintain the Degraded condition on failure
        """
        meta = body.get("metadata", {})
        emit_reconcile_started(body)
        metrics.reconcile_total.labels(kind=self.kind, result="started").inc()

        start_time = time.time()
        try:
            reconcile_fn()
            metrics.reconcile_total.labels(kind=self.kind, result="success").inc()
        except ReconcileError as e:
            self.fail_pass(body, status, patch, e, track_degraded=track_degraded)
        except Exception as e:
            metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
            self.log_error(meta, "Unexpected reconciliation error", error=e, reason="ReconciliationFailed")
            unexpected = BackendError(f"Unexpected error: {type(e).__name__}: {e}")
            self.fail_pass(body, status, patch, unexpected, track_degraded=track_degraded)
        finally:
            metrics.reconcile_duration_seconds.labels(kind=self.kind).observe(time.time() - start_time)

    def update_resource_status(
        self,
        patch: kopf.Patch,
        status: dict[str, Any],
        outcome: Outcome,
        status_data: dict[str, Any] | None = None,
        track_degraded: bool = False,
    ) -> None:
        """Write a successful outcome to the resource status.

        Args:
            patch: Kopf patch object
            status: Current resource status
            outcome: Outcome of the pass
            status_data: Additional status fields
            track_degraded: Also maintain the Degraded condition
        """
        metrics.resource_status_total.labels(kind=self.kind, status=outcome.phase.lower()).inc()
        patch.status.update(
            project_status(status.get("conditions") or [], outcome, status_data, track_degraded=track_degraded)
        )
