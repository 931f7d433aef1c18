"""Tests for the SftpGoUser handler."""

from __future__ import annotations

import base64
from collections.abc import Iterator
from dataclasses import dataclass
from unittest.mock import MagicMock, Mock, patch

import kopf
import pytest
from kubernetes import client
from urllib3.exceptions import ReadTimeoutError

from sftpgo_operator.constants import (
    COND_READY,
    PHASE_ERROR,
    PHASE_PENDING,
    PHASE_SYNCED,
    REASON_API_ERROR,
    REASON_AUTH_NOT_CONFIGURED,
    REASON_SERVER_NOT_FOUND,
    REASON_SYNCED,
    REASON_UNAUTHORIZED,
    REASON_VALIDATION_ERROR,
    USER_FINALIZER,
)
from sftpgo_operator.handlers.shared import AdminCredentials
from sftpgo_operator.handlers.user import UserHandler, handle_user
from sftpgo_operator.services.sftpgo.client import SftpGoAPIError, SftpGoConflictError, SftpGoUnauthorizedError
from sftpgo_operator.services.sftpgo.models import UpsertResult, UserPayload
from sftpgo_operator.utils.conditions import get_condition
from sftpgo_operator.utils.errors import ValidationError

SERVER = {
    "apiVersion": "sftpgo.sftpgo.io/v1alpha1",
    "kind": "SftpGoServer",
    "metadata": {"name": "sftp", "namespace": "files"},
    "spec": {"adminSecretRef": {"name": "sftp-admin"}},
}


def _body(spec: dict | None = None, finalizers: list[str] | None = None) -> dict:
    return {
        "metadata": {
            "name": "alice",
            "namespace": "files",
            "uid": "uid-2",
            "generation": 1,
            "finalizers": [USER_FINALIZER] if finalizers is None else finalizers,
        },
        "spec": {"username": "alice", "password": "pw", "serverRef": {"name": "sftp"}, **(spec or {})},
    }


@dataclass
class Backends:
    custom_api: Mock
    core_api: Mock
    sftpgo: Mock
    create_client: Mock


@pytest.fixture
def backends() -> Iterator[Backends]:
    custom_api = Mock()
    custom_api.get_namespaced_custom_object.return_value = SERVER

    core_api = Mock()
    core_api.read_namespaced_secret.return_value = Mock(
        data={
            "username": base64.b64encode(b"admin").decode(),
            "password": base64.b64encode(b"admin-pw").decode(),
        }
    )

    sftpgo = Mock()
    sftpgo.upsert_user.return_value = UpsertResult(user=UserPayload(username="alice", home_dir="", id=7), created=True)
    create_client = MagicMock()
    create_client.return_value.__enter__.return_value = sftpgo

    with patch("sftpgo_operator.handlers.user.get_custom_objects_api", return_value=custom_api), patch(
        "sftpgo_operator.handlers.user.get_core_api", return_value=core_api
    ), patch("sftpgo_operator.handlers.user.create_sftpgo_client", create_client):
        yield Backends(custom_api, core_api, sftpgo, create_client)


def _handle(body: dict, status: dict | None = None) -> kopf.Patch:
    patch_obj = kopf.Patch()
    UserHandler().handle(body, body["spec"], body["metadata"], status or {}, patch_obj)
    return patch_obj


class TestUserReconcile:
    """Test cases for UserHandler.handle."""

    def test_first_pass_records_finalizer_only(self, backends: Backends):
        patch_obj = kopf.Patch()
        body = _body(finalizers=[])

        with pytest.raises(kopf.TemporaryError):
            UserHandler().handle(body, body["spec"], body["metadata"], {}, patch_obj)

        assert patch_obj.metadata["finalizers"] == [USER_FINALIZER]
        backends.custom_api.get_namespaced_custom_object.assert_not_called()
        backends.create_client.assert_not_called()

    def test_synced(self, backends: Backends, kopf_events: Mock):
        patch_obj = _handle(_body({"bandwidthLimits": {"upload": 1048576}}))

        status = patch_obj.status
        assert status["phase"] == PHASE_SYNCED
        assert status["userID"] == 7
        assert status["lastSynced"]
        ready = get_condition(status["conditions"], COND_READY)
        assert ready["status"] == "True"
        assert ready["reason"] == REASON_SYNCED

        backends.create_client.assert_called_once_with(
            "http://sftp.files.svc.cluster.local:8080", AdminCredentials("admin", "admin-pw")
        )
        payload = backends.sftpgo.upsert_user.call_args.args[0]
        assert payload.upload_bandwidth == 1024
        assert payload.password == "pw"
        assert "UserCreated" in [c.kwargs["reason"] for c in kopf_events.call_args_list]

    def test_resync_of_synced_user(self, backends: Backends):
        backends.sftpgo.upsert_user.return_value = UpsertResult(
            user=UserPayload(username="alice", home_dir="", id=7), created=False
        )
        first = _handle(_body())
        previous = dict(first.status)

        second = _handle(_body(), status=previous)

        assert second.status["phase"] == PHASE_SYNCED
        assert second.status["userID"] == 7
        assert backends.sftpgo.upsert_user.call_count == 2
        assert (
            get_condition(second.status["conditions"], COND_READY)["lastTransitionTime"]
            == get_condition(previous["conditions"], COND_READY)["lastTransitionTime"]
        )

    def test_server_not_found(self, backends: Backends):
        backends.custom_api.get_namespaced_custom_object.side_effect = client.exceptions.ApiException(status=404)

        patch_obj = _handle(_body())

        assert patch_obj.status["phase"] == PHASE_ERROR
        assert get_condition(patch_obj.status["conditions"], COND_READY)["reason"] == REASON_SERVER_NOT_FOUND
        assert set(patch_obj.status) == {"phase", "conditions"}
        backends.create_client.assert_not_called()

    def test_auth_not_configured_parks_without_error(self, backends: Backends):
        backends.custom_api.get_namespaced_custom_object.return_value = {**SERVER, "spec": {}}

        patch_obj = _handle(_body())

        assert patch_obj.status["phase"] == PHASE_PENDING
        assert get_condition(patch_obj.status["conditions"], COND_READY)["reason"] == REASON_AUTH_NOT_CONFIGURED
        backends.create_client.assert_not_called()

    def test_validation_error(self, backends: Backends):
        backends.sftpgo.upsert_user.side_effect = ValidationError("New user requires either password or publicKeys")

        patch_obj = _handle(_body({"password": None}))

        assert patch_obj.status["phase"] == PHASE_ERROR
        condition = get_condition(patch_obj.status["conditions"], COND_READY)
        assert condition["reason"] == REASON_VALIDATION_ERROR
        assert condition["message"] == "New user requires either password or publicKeys"

    def test_unauthorized_not_retried(self, backends: Backends):
        backends.sftpgo.upsert_user.side_effect = SftpGoUnauthorizedError("GET: 401", 401)

        patch_obj = _handle(_body())

        assert get_condition(patch_obj.status["conditions"], COND_READY)["reason"] == REASON_UNAUTHORIZED

    def test_api_error_retried(self, backends: Backends):
        backends.sftpgo.upsert_user.side_effect = SftpGoAPIError("PUT: API returned 500", 500)

        with pytest.raises(kopf.TemporaryError):
            _handle(_body())

    def test_kubernetes_timeout_recorded_and_retried(self, backends: Backends):
        backends.custom_api.get_namespaced_custom_object.side_effect = ReadTimeoutError(None, "/apis", "Read timed out.")

        patch_obj = kopf.Patch()
        body = _body()
        with pytest.raises(kopf.TemporaryError):
            UserHandler().handle(body, body["spec"], body["metadata"], {}, patch_obj)

        assert patch_obj.status["phase"] == PHASE_ERROR
        assert get_condition(patch_obj.status["conditions"], COND_READY)["reason"] == REASON_API_ERROR
        backends.create_client.assert_not_called()

    def test_sftpgo_conflict_retried_quickly(self, backends: Backends):
        backends.sftpgo.upsert_user.side_effect = SftpGoConflictError("POST: API returned 409", 409)

        with pytest.raises(kopf.TemporaryError) as exc_info:
            _handle(_body())
        assert exc_info.value.delay == 1

    def test_periodic_pass_recovers_once_server_exists(self, backends: Backends):
        backends.custom_api.get_namespaced_custom_object.side_effect = client.exceptions.ApiException(status=404)
        body = _body()

        first = kopf.Patch()
        handle_user(body=body, spec=body["spec"], meta=body["metadata"], status={}, patch=first)
        backends.custom_api.get_namespaced_custom_object.side_effect = None
        second = kopf.Patch()
        handle_user(body=body, spec=body["spec"], meta=body["metadata"], status=dict(first.status), patch=second)

        assert get_condition(first.status["conditions"], COND_READY)["reason"] == REASON_SERVER_NOT_FOUND
        assert second.status["phase"] == PHASE_SYNCED
        assert get_condition(second.status["conditions"], COND_READY)["status"] == "True"

    def test_terminating_user_not_reconciled(self, backends: Backends):
        body = _body()
        body["metadata"]["deletionTimestamp"] = "2024-01-01T00:00:00Z"

        patch_obj = _handle(body)

        assert "phase" not in patch_obj.status
        backends.custom_api.get_namespaced_custom_object.assert_not_called()


class TestUserDelete:
    """Test cases for UserHandler.delete."""

    def _delete(self, body: dict) -> kopf.Patch:
        patch_obj = kopf.Patch()
        UserHandler().delete(body, body["spec"], body["metadata"], patch_obj)
        return patch_obj

    def test_deletes_remote_user(self, backends: Backends):
        patch_obj = self._delete(_body())

        backends.sftpgo.delete_user.assert_called_once_with("alice")
        assert patch_obj.metadata["finalizers"] is None

    def test_server_gone_skips_remote_call(self, backends: Backends, kopf_events: Mock):
        backends.custom_api.get_namespaced_custom_object.side_effect = client.exceptions.ApiException(status=404)

        patch_obj = self._delete(_body())

        backends.create_client.assert_not_called()
        assert patch_obj.metadata["finalizers"] is None
        assert kopf_events.call_args.kwargs["reason"] == "CleanupSkipped"

    def test_no_credentials_skips_remote_call(self, backends: Backends):
        backends.custom_api.get_namespaced_custom_object.return_value = {**SERVER, "spec": {}}

        patch_obj = self._delete(_body())

        backends.create_client.assert_not_called()
        assert patch_obj.metadata["finalizers"] is None

    def test_remote_failure_does_not_block(self, backends: Backends):
        backends.sftpgo.delete_user.side_effect = SftpGoAPIError("DELETE: API returned 500", 500)

        patch_obj = self._delete(_body(finalizers=[USER_FINALIZER, "other"]))

        assert patch_obj.metadata["finalizers"] == ["other"]

    def test_kubernetes_timeout_does_not_block(self, backends: Backends):
        backends.custom_api.get_namespaced_custom_object.side_effect = ReadTimeoutError(None, "/apis", "Read timed out.")

        patch_obj = self._delete(_body())

        backends.create_client.assert_not_called()
        assert patch_obj.metadata["finalizers"] is None
