"""Tests for the SFTPGo user payload builder."""

from __future__ import annotations

import pytest

from sftpgo_operator.builders.user import (
    build_groups,
    build_permissions,
    build_user_payload,
    bytes_to_kilobytes,
    require_credentials,
)
from sftpgo_operator.services.sftpgo.models import (
    GROUP_TYPE_PRIMARY,
    GROUP_TYPE_SECONDARY,
    STATUS_DISABLED,
    STATUS_ENABLED,
)
from sftpgo_operator.utils.errors import ValidationError


class TestBuildUserPayload:
    """Test cases for build_user_payload."""

    def test_minimal_spec(self):
        payload = build_user_payload({"username": "alice", "homeDir": "/srv/sftpgo/data/alice"}, "pw", [])

        assert payload.username == "alice"
        assert payload.home_dir == "/srv/sftpgo/data/alice"
        assert payload.status == STATUS_ENABLED
        assert payload.password == "pw"
        assert payload.permissions == {"/": ["*"]}

    def test_bandwidth_converted_to_kilobytes(self):
        spec = {"username": "alice", "bandwidthLimits": {"upload": 1048576, "download": 2048}}

        payload = build_user_payload(spec, "pw", [])

        assert payload.upload_bandwidth == 1024
        assert payload.download_bandwidth == 2
        assert payload.to_dict()["upload_bandwidth"] == 1024

    def test_disabled_status(self):
        payload = build_user_payload({"username": "alice", "status": "disabled"}, "pw", [])
        assert payload.status == STATUS_DISABLED
        assert payload.to_dict()["status"] == 0

    def test_full_spec(self):
        spec = {
            "username": "bob",
            "email": "bob@example.com",
            "homeDir": "/data/bob",
            "permissions": ["list", "download"],
            "quota": {"size": 1000, "files": 10},
            "maxSessions": 2,
            "allowedIP": ["10.0.0.0/8"],
            "deniedIP": ["10.1.0.0/16"],
            "groups": ["staff", "uploaders"],
            "virtualFolders": [
                {"virtualPath": "/shared", "physicalPath": "/mnt/shared", "quota": 500, "quotaFiles": 5},
            ],
        }

        payload = build_user_payload(spec, "", ["ssh-ed25519 AAAA"])
        data = payload.to_dict()

        assert data["email"] == "bob@example.com"
        assert data["permissions"] == {"/": ["list", "download"]}
        assert data["quota_size"] == 1000
        assert data["quota_files"] == 10
        assert data["max_sessions"] == 2
        assert data["allowed_ip"] == ["10.0.0.0/8"]
        assert data["denied_ip"] == ["10.1.0.0/16"]
        assert "filters" not in data
        assert data["public_keys"] == ["ssh-ed25519 AAAA"]
        assert data["virtual_folders"] == [
            {"virtual_path": "/shared", "mapped_path": "/mnt/shared", "quota_size": 500, "quota_files": 5}
        ]
        assert data["groups"] == [
            {"name": "staff", "type": GROUP_TYPE_PRIMARY},
            {"name": "uploaders", "type": GROUP_TYPE_SECONDARY},
        ]
        assert "password" not in data

    def test_empty_password_never_serialized(self):
        payload = build_user_payload({"username": "alice"}, "", [])
        assert "password" not in payload.to_dict()
        assert "id" not in payload.to_dict()


class TestHelpers:
    """Test cases for builder helpers."""

    def test_bytes_to_kilobytes(self):
        assert bytes_to_kilobytes(None) == 0
        assert bytes_to_kilobytes(1023) == 0
        assert bytes_to_kilobytes(1048576) == 1024

    def test_build_permissions_default(self):
        assert build_permissions(None) == {"/": ["*"]}
        assert build_permissions([]) == {"/": ["*"]}

    def test_build_groups(self):
        groups = build_groups(["a", "b", "c"])
        assert [g.type for g in groups] == [GROUP_TYPE_PRIMARY, GROUP_TYPE_SECONDARY, GROUP_TYPE_SECONDARY]
        assert build_groups(None) == ()


class TestRequireCredentials:
    """Test cases for require_credentials."""

    def test_rejects_without_password_or_keys(self):
        payload = build_user_payload({"username": "alice"}, "", [])

        with pytest.raises(ValidationError, match="New user requires either password or publicKeys"):
            require_credentials(payload)

    def test_accepts_keys_only(self):
        require_credentials(build_user_payload({"username": "alice"}, "", ["ssh-ed25519 AAAA"]))

    def test_accepts_password_only(self):
        require_credentials(build_user_payload({"username": "alice"}, "pw", []))
