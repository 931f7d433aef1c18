"""Handler for SftpGoServer CRD."""

from __future__ import annotations

import os
from typing import Any

import kopf

from ..builders.server import apply_server_defaults, build_desired_children, status_ports
from ..constants import (
    API_GROUP_VERSION,
    KIND_CONFIG_MAP,
    KIND_DEPLOYMENT,
    KIND_PVC,
    KIND_SERVER,
    KIND_SERVICE,
    PHASE_RUNNING,
    REASON_CONFIG_MAP_ERROR,
    REASON_DEPLOYMENT_ERROR,
    REASON_PVC_ERROR,
    REASON_RECONCILED,
    REASON_SERVICE_ERROR,
    SERVER_FINALIZER,
)
from ..services.kube.apply import ApplyOperation, apply_object, get_object
from ..services.kube.client import K8S_API_ERRORS, describe_api_error, get_apps_api, get_core_api
from ..tracing import trace_span
from ..utils.cache import invalidate_object
from ..utils.errors import BackendError, ConflictError
from ..utils.events import emit_child_applied
from ..utils.status import Outcome
from .base import BaseHandler, Lifecycle, lifecycle_state

# Condition reason for a failure while applying each child kind
STAGE_REASONS = {
    KIND_CONFIG_MAP: REASON_CONFIG_MAP_ERROR,
    KIND_PVC: REASON_PVC_ERROR,
    KIND_DEPLOYMENT: REASON_DEPLOYMENT_ERROR,
    KIND_SERVICE: REASON_SERVICE_ERROR,
}


class ServerHandler(BaseHandler):
    """Handler for SftpGoServer resources."""

    def __init__(self):
        super().__init__(KIND_SERVER, SERVER_FINALIZER)

    def _apply_child(self, core_api: Any, apps_api: Any, body: dict[str, Any], desired: dict[str, Any]) -> None:
        kind = desired["kind"]
        child_name = desired["metadata"]["name"]
        reason = STAGE_REASONS[kind]

        with trace_span("apply_child", kind=KIND_SERVER, attributes={"child.kind": kind, "child.name": child_name}):
            try:
                result = apply_object(core_api, apps_api, desired, body)
            except ConflictError as e:
                raise ConflictError(f"Failed to apply {kind} {child_name}: {e}", reason) from e
            except K8S_API_ERRORS as e:
                raise BackendError(f"Failed to apply {kind} {child_name}: {describe_api_error(e)}", reason) from e

        if result.operation is not ApplyOperation.UNCHANGED:
            emit_child_applied(body, kind, child_name, result.operation.value)
            self.log_info(
                body.get("metadata", {}),
                f"{kind} {child_name} {result.operation.value}",
                event="child_applied",
                reason="ChildApplied",
                child_kind=kind,
            )

    def _read_replicas(self, core_api: Any, apps_api: Any, namespace: str, name: str) -> dict[str, int]:
        try:
            deployment = get_object(core_api, apps_api, KIND_DEPLOYMENT, namespace, name)
        except K8S_API_ERRORS as e:
            raise BackendError(f"Failed to read Deployment {name}: {describe_api_error(e)}", REASON_DEPLOYMENT_ERROR) from e
        deployment_status = (deployment or {}).get("status") or {}
        return {
            "replicas": deployment_status.get("replicas") or 0,
            "readyReplicas": deployment_status.get("readyReplicas") or 0,
        }

    def reconcile(
        self,
        body: dict[str, Any],
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
    ) -> None:
        """Reconcile SftpGoServer resource."""
        name = meta.get("name", "unknown")
        namespace = meta.get("namespace", "default")

        with trace_span("reconcile_server", kind=KIND_SERVER, attributes={"server.name": name}):
            settings = apply_server_defaults(name, namespace, spec)
            children = build_desired_children(settings)

            core_api = get_core_api()
            apps_api = get_apps_api()
            for desired in children.ordered():
                self._apply_child(core_api, apps_api, body, desired)

            status_data: dict[str, Any] = {
                "observedGeneration": meta.get("generation", 0),
                "ports": status_ports(settings),
            }
            status_data.update(self._read_replicas(core_api, apps_api, namespace, name))

            outcome = Outcome.succeeded(REASON_RECONCILED, PHASE_RUNNING, "SFTPGo server reconciled successfully")
            self.update_resource_status(patch, status, outcome, status_data, track_degraded=True)
            self.log_info(meta, "Server reconciled", event="reconciled", reason=REASON_RECONCILED)

    def handle(
        self,
        body: dict[str, Any],
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
    ) -> None:
        """Run one reconciliation pass."""
        # User passes must see fresh server state
        invalidate_object(KIND_SERVER, meta.get("namespace", "default"), meta.get("name", ""))

        state = lifecycle_state(meta, self.finalizer)
        if state is Lifecycle.TERMINATING:
            return
        if state is Lifecycle.INITIALIZING:
            self.record_finalizer(meta, patch)

        self.reconcile_with_metrics(
            body,
            status,
            patch,
            lambda: self.reconcile(body, spec, meta, status, patch),
            track_degraded=True,
        )

    def delete(
        self,
        meta: dict[str, Any],
        patch: kopf.Patch,
    ) -> None:
        """Handle SftpGoServer resource deletion.

        Children are garbage-collected through their owner references.
        """
        invalidate_object(KIND_SERVER, meta.get("namespace", "default"), meta.get("name", ""))
        self.log_info(meta, "Server is being deleted", event="deletion", reason="Deletion")
        self.remove_finalizer(meta, patch)


# Global handler instance
_handler = ServerHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_SERVER)
@kopf.on.update(API_GROUP_VERSION, KIND_SERVER)
@kopf.on.resume(API_GROUP_VERSION, KIND_SERVER)
@kopf.timer(API_GROUP_VERSION, KIND_SERVER, interval=int(os.getenv("DRIFT_CHECK_INTERVAL_SECONDS", "300")))
def handle_server(
    body: kopf.Body,
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle SftpGoServer resource reconciliation."""
    _handler.handle(body, spec, meta, status, patch)


@kopf.on.delete(API_GROUP_VERSION, KIND_SERVER)
def handle_server_delete(
    meta: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle SftpGoServer resource deletion."""
    _handler.delete(meta, patch)
