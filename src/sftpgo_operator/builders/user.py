"""Builder for SFTPGo user payloads."""

from __future__ import annotations

from typing import Any

from ..services.sftpgo.models import (
    GROUP_TYPE_PRIMARY,
    GROUP_TYPE_SECONDARY,
    STATUS_DISABLED,
    STATUS_ENABLED,
    GroupMapping,
    UserPayload,
    VirtualFolder,
)
from ..utils.errors import ValidationError

DEFAULT_PERMISSIONS = ["*"]
ROOT_PATH = "/"


def bytes_to_kilobytes(value: int | None) -> int:
    """Convert a bytes/sec limit to SFTPGo's KB/s (truncating)."""
    return int(value or 0) // 1024


def build_permissions(permissions: list[str] | None) -> dict[str, list[str]]:
    """Map a permission list onto the root path, granting all when unset."""
    return {ROOT_PATH: list(permissions) if permissions else list(DEFAULT_PERMISSIONS)}


def build_groups(groups: list[str] | None) -> tuple[GroupMapping, ...]:
    """The first group is the primary one, the rest are secondary."""
    return tuple(
        GroupMapping(name=name, type=GROUP_TYPE_PRIMARY if idx == 0 else GROUP_TYPE_SECONDARY)
        for idx, name in enumerate(groups or [])
    )


def build_user_payload(
    spec: dict[str, Any],
    password: str,
    public_keys: list[str],
) -> UserPayload:
    """Create the SFTPGo user payload from an SftpGoUser spec.

    Args:
        spec: SftpGoUser CRD spec
        password: Resolved password (may be empty)
        public_keys: Resolved public keys (may be empty)

    Returns:
        Payload for the SFTPGo users API
    """
    quota = spec.get("quota") or {}
    bandwidth = spec.get("bandwidthLimits") or {}

    virtual_folders = tuple(
        VirtualFolder(
            virtual_path=vf.get("virtualPath", ""),
            mapped_path=vf.get("physicalPath", ""),
            quota_size=vf.get("quota") or 0,
            quota_files=vf.get("quotaFiles") or 0,
        )
        for vf in spec.get("virtualFolders") or []
    )

    return UserPayload(
        username=spec.get("username", ""),
        status=STATUS_DISABLED if spec.get("status") == "disabled" else STATUS_ENABLED,
        email=spec.get("email") or "",
        password=password or "",
        public_keys=tuple(public_keys or ()),
        home_dir=spec.get("homeDir", ""),
        virtual_folders=virtual_folders,
        permissions=build_permissions(spec.get("permissions")),
        quota_size=quota.get("size") or 0,
        quota_files=quota.get("files") or 0,
        upload_bandwidth=bytes_to_kilobytes(bandwidth.get("upload")),
        download_bandwidth=bytes_to_kilobytes(bandwidth.get("download")),
        max_sessions=spec.get("maxSessions") or 0,
        allowed_ip=tuple(spec.get("allowedIP") or ()),
        denied_ip=tuple(spec.get("deniedIP") or ()),
        groups=build_groups(spec.get("groups")),
    )


def require_credentials(payload: UserPayload) -> None:
    """Reject creating a user that could never log in.

    Only applies at creation; updates may omit credentials.
    """
    if not payload.has_credentials:
        raise ValidationError("New user requires either password or publicKeys")
