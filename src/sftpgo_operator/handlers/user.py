"""Handler for SftpGoUser CRD."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any

import kopf

from ..builders.user import build_user_payload
from ..constants import (
    API_GROUP_VERSION,
    KIND_USER,
    PHASE_SYNCED,
    REASON_SYNCED,
    REASON_UNAUTHORIZED,
    USER_FINALIZER,
)
from ..services.kube.client import get_core_api, get_custom_objects_api
from ..services.sftpgo.client import SftpGoAPIError, SftpGoConflictError, SftpGoUnauthorizedError
from ..tracing import trace_span
from ..utils.errors import BackendError, ConfigurationError, ConflictError, ReconcileError, ReferenceNotFoundError
from ..utils.events import emit_cleanup_skipped, emit_user_created, emit_user_deleted, emit_user_updated
from ..utils.secrets import resolve_password, resolve_public_keys
from ..utils.status import Outcome
from .base import BaseHandler, Lifecycle, lifecycle_state
from .shared import create_sftpgo_client, resolve_admin_credentials, resolve_server, server_base_url


def _remote_error(action: str, username: str, error: SftpGoAPIError) -> ReconcileError:
    message = f"Failed to {action} SFTPGo user {username}: {error}"
    if isinstance(error, SftpGoUnauthorizedError):
        return ReconcileError(REASON_UNAUTHORIZED, message, retry=False)
    if isinstance(error, SftpGoConflictError):
        return ConflictError(message)
    return BackendError(message)


class UserHandler(BaseHandler):
    """Handler for SftpGoUser resources."""

    def __init__(self):
        super().__init__(KIND_USER, USER_FINALIZER)

    def reconcile(
        self,
        body: dict[str, Any],
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
    ) -> None:
        """Reconcile SftpGoUser resource."""
        namespace = meta.get("namespace", "default")
        username = spec.get("username", "")

        with trace_span("reconcile_user", kind=KIND_USER, attributes={"user.username": username}):
            core_api = get_core_api()
            server = resolve_server(get_custom_objects_api(), meta, spec)
            credentials = resolve_admin_credentials(core_api, server)

            password = resolve_password(core_api, namespace, spec)
            public_keys = resolve_public_keys(core_api, namespace, spec)
            payload = build_user_payload(spec, password, public_keys)

            with trace_span("upsert_user", kind=KIND_USER):
                with create_sftpgo_client(server_base_url(server), credentials) as sftpgo:
                    try:
                        result = sftpgo.upsert_user(payload)
                    except SftpGoAPIError as e:
                        raise _remote_error("sync", username, e) from e

            if result.created:
                emit_user_created(body, username)
            else:
                emit_user_updated(body, username)

            status_data = {
                "observedGeneration": meta.get("generation", 0),
                "userID": result.user.id,
                "lastSynced": datetime.now(timezone.utc).isoformat(),
            }
            outcome = Outcome.succeeded(REASON_SYNCED, PHASE_SYNCED, "User synced to SFTPGo")
            self.update_resource_status(patch, status, outcome, status_data)
            self.log_info(
                meta,
                "User synced",
                event="synced",
                reason=REASON_SYNCED,
                created=result.created,
                user_id=result.user.id,
            )

    def handle(
        self,
        body: dict[str, Any],
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
    ) -> None:
        """Run one reconciliation pass."""
        state = lifecycle_state(meta, self.finalizer)
        if state is Lifecycle.TERMINATING:
            return
        if state is Lifecycle.INITIALIZING:
            self.record_finalizer(meta, patch)

        self.reconcile_with_metrics(body, status, patch, lambda: self.reconcile(body, spec, meta, status, patch))

    def delete(
        self,
        body: dict[str, Any],
        spec: dict[str, Any],
        meta: dict[str, Any],
        patch: kopf.Patch,
    ) -> None:
        """Handle SftpGoUser resource deletion.

        Removing the remote user is best-effort: a missing server, unusable
        credentials or a failing API never keep the finalizer in place.
        """
        username = spec.get("username", "")
        try:
            server = resolve_server(get_custom_objects_api(), meta, spec)
            credentials = resolve_admin_credentials(get_core_api(), server)
            with create_sftpgo_client(server_base_url(server), credentials) as sftpgo:
                sftpgo.delete_user(username)
        except (ReferenceNotFoundError, ConfigurationError) as e:
            self.log_warning(meta, f"Skipping remote cleanup: {e}", event="deletion", reason=e.reason)
            emit_cleanup_skipped(body, f"Remote cleanup of {username} skipped: {e.reason}")
        except (SftpGoAPIError, BackendError) as e:
            self.log_error(meta, "Remote cleanup failed", error=e, event="deletion", reason="CleanupFailed")
            emit_cleanup_skipped(body, f"Remote cleanup of {username} failed")
        else:
            emit_user_deleted(body, username)
            self.log_info(meta, f"SFTPGo user {username} deleted", event="deletion", reason="Deletion")

        self.remove_finalizer(meta, patch)


# Global handler instance
_handler = UserHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_USER)
@kopf.on.update(API_GROUP_VERSION, KIND_USER)
@kopf.on.resume(API_GROUP_VERSION, KIND_USER)
@kopf.timer(API_GROUP_VERSION, KIND_USER, interval=int(os.getenv("DRIFT_CHECK_INTERVAL_SECONDS", "300")))
def handle_user(
    body: kopf.Body,
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle SftpGoUser resource reconciliation."""
    _handler.handle(body, spec, meta, status, patch)


@kopf.on.delete(API_GROUP_VERSION, KIND_USER)
def handle_user_delete(
    body: kopf.Body,
    spec: dict[str, Any],
    meta: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle SftpGoUser resource deletion."""
    _handler.delete(body, spec, meta, patch)
