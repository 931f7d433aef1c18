"""Tests for the SftpGoServer handler."""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import Mock, patch

import kopf
import pytest
from kubernetes import client
from urllib3.exceptions import ReadTimeoutError

from sftpgo_operator.constants import (
    COND_DEGRADED,
    COND_READY,
    KIND_SERVER,
    PHASE_ERROR,
    PHASE_RUNNING,
    REASON_CONFIG_MAP_ERROR,
    REASON_RECONCILED,
    SERVER_FINALIZER,
)
from sftpgo_operator.handlers.server import ServerHandler, handle_server
from sftpgo_operator.utils.cache import get_cached_object, make_cache_key, set_cached_object
from sftpgo_operator.utils.conditions import get_condition


def _not_found() -> client.exceptions.ApiException:
    return client.exceptions.ApiException(status=404)


def _body(spec: dict | None = None, finalizers: list[str] | None = None) -> dict:
    return {
        "apiVersion": "sftpgo.sftpgo.io/v1alpha1",
        "kind": KIND_SERVER,
        "metadata": {
            "name": "sftp",
            "namespace": "files",
            "uid": "uid-1",
            "generation": 2,
            "finalizers": [SERVER_FINALIZER] if finalizers is None else finalizers,
        },
        "spec": spec or {},
    }


def _echo_create(namespace, body, **kwargs):
    return body


@pytest.fixture
def core_api() -> Mock:
    api = Mock()
    api.read_namespaced_config_map.side_effect = _not_found()
    api.read_namespaced_persistent_volume_claim.side_effect = _not_found()
    api.read_namespaced_service.side_effect = _not_found()
    api.create_namespaced_config_map.side_effect = _echo_create
    api.create_namespaced_persistent_volume_claim.side_effect = _echo_create
    api.create_namespaced_service.side_effect = _echo_create
    return api


@pytest.fixture
def apps_api() -> Mock:
    api = Mock()
    api.read_namespaced_deployment.side_effect = [
        _not_found(),
        {"metadata": {"name": "sftp"}, "status": {"replicas": 1, "readyReplicas": 1}},
    ]
    api.create_namespaced_deployment.side_effect = _echo_create
    return api


@pytest.fixture
def kube(core_api: Mock, apps_api: Mock) -> Iterator[tuple[Mock, Mock]]:
    with patch("sftpgo_operator.handlers.server.get_core_api", return_value=core_api), patch(
        "sftpgo_operator.handlers.server.get_apps_api", return_value=apps_api
    ):
        yield core_api, apps_api


class TestServerReconcile:
    """Test cases for ServerHandler.handle."""

    def test_first_pass_records_finalizer_only(self, kube):
        core_api, apps_api = kube
        body = _body(finalizers=[])
        patch_obj = kopf.Patch()

        with pytest.raises(kopf.TemporaryError):
            ServerHandler().handle(body, body["spec"], body["metadata"], {}, patch_obj)

        assert patch_obj.metadata["finalizers"] == [SERVER_FINALIZER]
        core_api.create_namespaced_config_map.assert_not_called()
        apps_api.create_namespaced_deployment.assert_not_called()

    def test_success(self, kube):
        core_api, apps_api = kube
        body = _body()
        patch_obj = kopf.Patch()

        ServerHandler().handle(body, body["spec"], body["metadata"], {}, patch_obj)

        core_api.create_namespaced_config_map.assert_called_once()
        core_api.create_namespaced_persistent_volume_claim.assert_not_called()
        apps_api.create_namespaced_deployment.assert_called_once()
        core_api.create_namespaced_service.assert_called_once()

        status = patch_obj.status
        assert status["phase"] == PHASE_RUNNING
        assert status["ports"] == {"sftp": 2022, "web": 8080, "http": 8080}
        assert status["replicas"] == 1
        assert status["readyReplicas"] == 1
        assert status["observedGeneration"] == 2
        ready = get_condition(status["conditions"], COND_READY)
        assert ready["status"] == "True"
        assert ready["reason"] == REASON_RECONCILED
        assert get_condition(status["conditions"], COND_DEGRADED)["status"] == "False"

    def test_children_applied_in_order(self, kube):
        core_api, apps_api = kube
        calls = []
        core_api.create_namespaced_config_map.side_effect = lambda namespace, body, **kw: calls.append(body["kind"])
        core_api.create_namespaced_persistent_volume_claim.side_effect = (
            lambda namespace, body, **kw: calls.append(body["kind"])
        )
        apps_api.create_namespaced_deployment.side_effect = lambda namespace, body, **kw: calls.append(body["kind"])
        core_api.create_namespaced_service.side_effect = lambda namespace, body, **kw: calls.append(body["kind"])
        body = _body({"dataVolume": {"size": "1Gi"}})

        ServerHandler().handle(body, body["spec"], body["metadata"], {}, kopf.Patch())

        assert calls == ["ConfigMap", "PersistentVolumeClaim", "Deployment", "Service"]

    def test_config_map_failure(self, kube):
        core_api, apps_api = kube
        core_api.read_namespaced_config_map.side_effect = client.exceptions.ApiException(status=500, reason="Boom")
        body = _body()
        patch_obj = kopf.Patch()
        previous = {"replicas": 1, "conditions": []}

        with pytest.raises(kopf.TemporaryError):
            ServerHandler().handle(body, body["spec"], body["metadata"], previous, patch_obj)

        assert set(patch_obj.status) == {"phase", "conditions"}
        assert patch_obj.status["phase"] == PHASE_ERROR
        assert get_condition(patch_obj.status["conditions"], COND_READY)["reason"] == REASON_CONFIG_MAP_ERROR
        assert get_condition(patch_obj.status["conditions"], COND_DEGRADED)["status"] == "True"
        apps_api.create_namespaced_deployment.assert_not_called()

    def test_apply_timeout_reported_as_stage_failure(self, kube):
        core_api, apps_api = kube
        core_api.read_namespaced_config_map.side_effect = ReadTimeoutError(None, "/api/v1", "Read timed out.")
        body = _body()
        patch_obj = kopf.Patch()

        with pytest.raises(kopf.TemporaryError):
            ServerHandler().handle(body, body["spec"], body["metadata"], {}, patch_obj)

        assert get_condition(patch_obj.status["conditions"], COND_READY)["reason"] == REASON_CONFIG_MAP_ERROR
        apps_api.create_namespaced_deployment.assert_not_called()

    def test_invalidates_cached_server(self, kube):
        key = make_cache_key(KIND_SERVER, "files", "sftp")
        set_cached_object(key, {"stale": True})
        body = _body()

        ServerHandler().handle(body, body["spec"], body["metadata"], {}, kopf.Patch())

        assert get_cached_object(key) is None

    def test_periodic_pass_refreshes_replica_counts(self, kube):
        core_api, apps_api = kube
        apps_api.read_namespaced_deployment.side_effect = [
            _not_found(),
            {"metadata": {"name": "sftp"}, "status": {"replicas": 1}},
            _not_found(),
            {"metadata": {"name": "sftp"}, "status": {"replicas": 1, "readyReplicas": 1}},
        ]
        body = _body()

        first = kopf.Patch()
        handle_server(body=body, spec=body["spec"], meta=body["metadata"], status={}, patch=first)
        second = kopf.Patch()
        handle_server(body=body, spec=body["spec"], meta=body["metadata"], status=dict(first.status), patch=second)

        assert first.status["readyReplicas"] == 0
        assert second.status["readyReplicas"] == 1


class TestServerDelete:
    """Test cases for ServerHandler.delete."""

    def test_removes_finalizer_and_cache(self):
        key = make_cache_key(KIND_SERVER, "files", "sftp")
        set_cached_object(key, {"stale": True})
        meta = _body(finalizers=[SERVER_FINALIZER, "other"])["metadata"]
        patch_obj = kopf.Patch()

        ServerHandler().delete(meta, patch_obj)

        assert patch_obj.metadata["finalizers"] == ["other"]
        assert get_cached_object(key) is None
