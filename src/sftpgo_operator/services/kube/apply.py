"""Idempotent application of child objects against the Kubernetes API."""

from __future__ import annotations

import copy
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

import kopf
import urllib3
from kubernetes import client

from ... import metrics
from ...constants import KIND_CONFIG_MAP, KIND_DEPLOYMENT, KIND_PVC, KIND_SERVICE
from ...utils.errors import ConflictError
from ...utils.rate_limit import rate_limit_k8s
from .client import K8S_REQUEST_TIMEOUT

logger = logging.getLogger(__name__)

MAX_APPLY_ATTEMPTS = 3

# kind -> (api group, method suffix on the typed client)
KIND_METHODS = {
    KIND_CONFIG_MAP: ("core", "config_map"),
    KIND_PVC: ("core", "persistent_volume_claim"),
    KIND_SERVICE: ("core", "service"),
    KIND_DEPLOYMENT: ("apps", "deployment"),
}

# Paths of the kind-specific payload the operator owns
OWNED_PATHS: dict[str, list[tuple[str, ...]]] = {
    KIND_CONFIG_MAP: [("data",)],
    KIND_PVC: [],
    KIND_DEPLOYMENT: [("spec", "replicas"), ("spec", "template")],
    KIND_SERVICE: [("spec", "ports"), ("spec", "selector"), ("spec", "type")],
}

# Pod settings rendered only when configured. A live value other than the
# API server default means the setting was removed from the server spec.
OPTIONAL_POD_KEYS = ("serviceAccountName", "nodeSelector", "tolerations", "affinity")
OPTIONAL_CONTAINER_KEYS = ("imagePullPolicy", "env", "resources")

_serializer = client.ApiClient()


class ApplyOperation(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class ApplyResult:
    """What ``apply_object`` did, with the object as last seen."""

    operation: ApplyOperation
    obj: dict[str, Any]


def _api_method(core_api: Any, apps_api: Any, kind: str, verb: str) -> Any:
    try:
        group, suffix = KIND_METHODS[kind]
    except KeyError:
        raise ValueError(f"Unsupported child kind {kind!r}") from None
    api = core_api if group == "core" else apps_api
    return rate_limit_k8s(getattr(api, f"{verb}_namespaced_{suffix}"))


def _to_dict(obj: Any) -> dict[str, Any]:
    return _serializer.sanitize_for_serialization(obj)


def _dig(obj: dict[str, Any], path: tuple[str, ...]) -> Any:
    for key in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def _put(obj: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    for key in path[:-1]:
        obj = obj.setdefault(key, {})
    obj[path[-1]] = copy.deepcopy(value)


def is_subset(desired: Any, live: Any) -> bool:
    """Whether everything in ``desired`` is present and equal in ``live``.

    Server-side defaults (extra keys in ``live``) are not drift.
    """
    if isinstance(desired, dict):
        if not isinstance(live, dict):
            return False
        return all(key in live and is_subset(value, live[key]) for key, value in desired.items())
    if isinstance(desired, list):
        if not isinstance(live, list) or len(desired) != len(live):
            return False
        return all(is_subset(d, l) for d, l in zip(desired, live))
    return desired == live


def _default_pull_policy(image: str) -> str:
    if "@" in image:
        return "IfNotPresent"
    name = image.rsplit("/", 1)[-1]
    if ":" not in name or name.endswith(":latest"):
        return "Always"
    return "IfNotPresent"


def _is_server_default(key: str, value: Any, container: dict[str, Any] | None = None) -> bool:
    if value in (None, {}, []):
        return True
    if key == "serviceAccountName":
        return value == "default"
    if key == "imagePullPolicy" and container is not None:
        return value == _default_pull_policy(container.get("image") or "")
    return False


def removed_pod_settings(desired: dict[str, Any], live: dict[str, Any]) -> list[str]:
    """List optional pod settings still live although ``desired`` omits them."""
    prefix = ("spec", "template", "spec")
    desired_pod = _dig(desired, prefix) or {}
    live_pod = _dig(live, prefix) or {}
    stale = [
        ".".join((*prefix, key))
        for key in OPTIONAL_POD_KEYS
        if key not in desired_pod and not _is_server_default(key, live_pod.get(key))
    ]

    live_containers = {c.get("name"): c for c in live_pod.get("containers") or []}
    for container in desired_pod.get("containers") or []:
        live_container = live_containers.get(container["name"])
        if live_container is None:
            continue
        stale.extend(
            f"{'.'.join(prefix)}.containers[{container['name']}].{key}"
            for key in OPTIONAL_CONTAINER_KEYS
            if key not in container and not _is_server_default(key, live_container.get(key), live_container)
        )
    return stale


def _has_owner(live: dict[str, Any], owner_ref: dict[str, Any]) -> bool:
    refs = (live.get("metadata") or {}).get("ownerReferences") or []
    return any(ref.get("uid") == owner_ref["uid"] for ref in refs)


def diff_owned_fields(desired: dict[str, Any], live: dict[str, Any], owner_ref: dict[str, Any]) -> list[str]:
    """List the owned fields whose live value differs from the desired one."""
    drift = []
    desired_meta = desired.get("metadata") or {}
    live_meta = live.get("metadata") or {}
    for field in ("labels", "annotations"):
        if desired_meta.get(field) and not is_subset(desired_meta[field], live_meta.get(field) or {}):
            drift.append(f"metadata.{field}")
    if not _has_owner(live, owner_ref):
        drift.append("metadata.ownerReferences")
    for path in OWNED_PATHS[desired["kind"]]:
        if not is_subset(_dig(desired, path), _dig(live, path)):
            drift.append(".".join(path))
    if desired["kind"] == KIND_DEPLOYMENT:
        drift.extend(removed_pod_settings(desired, live))
    return drift


def _merge_owned_fields(desired: dict[str, Any], live: dict[str, Any], owner_ref: dict[str, Any]) -> dict[str, Any]:
    body = copy.deepcopy(live)
    body.pop("status", None)
    meta = body.setdefault("metadata", {})
    desired_meta = desired.get("metadata") or {}
    for field in ("labels", "annotations"):
        if desired_meta.get(field):
            meta[field] = {**(meta.get(field) or {}), **desired_meta[field]}
    if not _has_owner(body, owner_ref):
        meta["ownerReferences"] = [*(meta.get("ownerReferences") or []), owner_ref]
    for path in OWNED_PATHS[desired["kind"]]:
        _put(body, path, _dig(desired, path))
    return body


def get_object(core_api: Any, apps_api: Any, kind: str, namespace: str, name: str) -> dict[str, Any] | None:
    """Read a child object, or None when it does not exist."""
    read = _api_method(core_api, apps_api, kind, "read")
    start_time = time.time()
    try:
        obj = read(name=name, namespace=namespace, _request_timeout=K8S_REQUEST_TIMEOUT)
    except client.exceptions.ApiException as e:
        if e.status == 404:
            metrics.api_call_total.labels(api_type="k8s", operation=f"get_{kind}", result="not_found").inc()
            return None
        metrics.api_call_total.labels(api_type="k8s", operation=f"get_{kind}", result="error").inc()
        raise
    except urllib3.exceptions.HTTPError:
        metrics.api_call_total.labels(api_type="k8s", operation=f"get_{kind}", result="error").inc()
        raise
    finally:
        metrics.api_call_duration_seconds.labels(api_type="k8s", operation=f"get_{kind}").observe(
            time.time() - start_time
        )
    metrics.api_call_total.labels(api_type="k8s", operation=f"get_{kind}", result="success").inc()
    return _to_dict(obj)


def apply_object(
    core_api: Any,
    apps_api: Any,
    desired: dict[str, Any],
    owner: dict[str, Any],
) -> ApplyResult:
    """Make the live object match ``desired`` on the fields the operator owns.

    The object is created (with an owner reference to ``owner``) when
    absent and replaced only when an owned field drifted. Write conflicts
    are retried from a fresh read.

    Args:
        core_api: Kubernetes CoreV1Api instance
        apps_api: Kubernetes AppsV1Api instance
        desired: Desired manifest
        owner: Body of the owning custom resource

    Returns:
        ApplyResult describing the operation performed

    Raises:
        ConflictError: When every attempt hit a write conflict
        client.exceptions.ApiException: On any other API error
        urllib3.exceptions.HTTPError: On transport failures and timeouts
    """
    kind = desired["kind"]
    name = desired["metadata"]["name"]
    namespace = desired["metadata"]["namespace"]
    owner_ref = kopf.build_owner_reference(owner)

    for attempt in range(1, MAX_APPLY_ATTEMPTS + 1):
        try:
            live = get_object(core_api, apps_api, kind, namespace, name)
            if live is None:
                body = copy.deepcopy(desired)
                body["metadata"]["ownerReferences"] = [owner_ref]
                create = _api_method(core_api, apps_api, kind, "create")
                created = create(namespace=namespace, body=body, _request_timeout=K8S_REQUEST_TIMEOUT)
                metrics.child_apply_total.labels(kind=kind, result=ApplyOperation.CREATED.value).inc()
                return ApplyResult(ApplyOperation.CREATED, _to_dict(created))

            drift = diff_owned_fields(desired, live, owner_ref)
            if not drift:
                metrics.child_apply_total.labels(kind=kind, result=ApplyOperation.UNCHANGED.value).inc()
                return ApplyResult(ApplyOperation.UNCHANGED, live)

            logger.debug(f"{kind} {namespace}/{name} drifted on {', '.join(drift)}")
            replace = _api_method(core_api, apps_api, kind, "replace")
            replaced = replace(
                name=name,
                namespace=namespace,
                body=_merge_owned_fields(desired, live, owner_ref),
                _request_timeout=K8S_REQUEST_TIMEOUT,
            )
            metrics.child_apply_total.labels(kind=kind, result=ApplyOperation.UPDATED.value).inc()
            return ApplyResult(ApplyOperation.UPDATED, _to_dict(replaced))
        except client.exceptions.ApiException as e:
            if e.status != 409:
                metrics.child_apply_total.labels(kind=kind, result="error").inc()
                raise
            logger.info(f"Conflict applying {kind} {namespace}/{name} (attempt {attempt}/{MAX_APPLY_ATTEMPTS})")
        except urllib3.exceptions.HTTPError:
            metrics.child_apply_total.labels(kind=kind, result="error").inc()
            raise

    metrics.child_apply_total.labels(kind=kind, result="conflict").inc()
    raise ConflictError(f"{kind} {namespace}/{name} kept conflicting after {MAX_APPLY_ATTEMPTS} attempts")
