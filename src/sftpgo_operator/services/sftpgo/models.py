"""Models for the SFTPGo REST API."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

# SFTPGo group membership types
GROUP_TYPE_PRIMARY = 1
GROUP_TYPE_SECONDARY = 2

STATUS_ENABLED = 1
STATUS_DISABLED = 0


@dataclass(frozen=True)
class VirtualFolder:
    """A virtual folder mapped into a user's home."""

    virtual_path: str
    mapped_path: str
    quota_size: int = 0
    quota_files: int = 0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "virtual_path": self.virtual_path,
            "mapped_path": self.mapped_path,
        }
        if self.quota_size:
            data["quota_size"] = self.quota_size
        if self.quota_files:
            data["quota_files"] = self.quota_files
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VirtualFolder:
        return cls(
            virtual_path=data.get("virtual_path", ""),
            mapped_path=data.get("mapped_path", ""),
            quota_size=data.get("quota_size") or 0,
            quota_files=data.get("quota_files") or 0,
        )


@dataclass(frozen=True)
class GroupMapping:
    """Membership of a user in an SFTPGo group."""

    name: str
    type: int = GROUP_TYPE_PRIMARY

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": self.type}


@dataclass(frozen=True)
class UserPayload:
    """SFTPGo's representation of a user.

    ``to_dict`` omits empty optional fields, so an empty password is never
    sent and the stored one is left untouched on update.
    """

    username: str
    home_dir: str
    status: int = STATUS_ENABLED
    id: int = 0
    email: str = ""
    password: str = ""
    public_keys: tuple[str, ...] = ()
    virtual_folders: tuple[VirtualFolder, ...] = ()
    permissions: dict[str, list[str]] = field(default_factory=dict)
    quota_size: int = 0
    quota_files: int = 0
    upload_bandwidth: int = 0
    download_bandwidth: int = 0
    max_sessions: int = 0
    allowed_ip: tuple[str, ...] = ()
    denied_ip: tuple[str, ...] = ()
    groups: tuple[GroupMapping, ...] = ()

    @property
    def has_credentials(self) -> bool:
        return bool(self.password) or bool(self.public_keys)

    def with_id(self, user_id: int) -> UserPayload:
        return replace(self, id=user_id)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "username": self.username,
            "status": self.status,
            "home_dir": self.home_dir,
        }
        optional: dict[str, Any] = {
            "id": self.id,
            "email": self.email,
            "password": self.password,
            "public_keys": list(self.public_keys),
            "virtual_folders": [vf.to_dict() for vf in self.virtual_folders],
            "permissions": {path: list(perms) for path, perms in self.permissions.items()},
            "quota_size": self.quota_size,
            "quota_files": self.quota_files,
            "upload_bandwidth": self.upload_bandwidth,
            "download_bandwidth": self.download_bandwidth,
            "max_sessions": self.max_sessions,
            "groups": [g.to_dict() for g in self.groups],
            "allowed_ip": list(self.allowed_ip),
            "denied_ip": list(self.denied_ip),
        }
        data.update({key: value for key, value in optional.items() if value})
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserPayload:
        """Build a payload from an API response, ignoring fields we don't manage."""
        # SFTPGo itself nests the IP lists under filters
        filters = data.get("filters") or {}
        return cls(
            id=data.get("id") or 0,
            username=data.get("username", ""),
            status=data.get("status", STATUS_ENABLED),
            email=data.get("email") or "",
            # SFTPGo returns a hash (or nothing) here; never round-trip it
            password="",
            public_keys=tuple(data.get("public_keys") or ()),
            home_dir=data.get("home_dir", ""),
            virtual_folders=tuple(VirtualFolder.from_dict(vf) for vf in data.get("virtual_folders") or ()),
            permissions={path: list(perms) for path, perms in (data.get("permissions") or {}).items()},
            quota_size=data.get("quota_size") or 0,
            quota_files=data.get("quota_files") or 0,
            upload_bandwidth=data.get("upload_bandwidth") or 0,
            download_bandwidth=data.get("download_bandwidth") or 0,
            max_sessions=data.get("max_sessions") or 0,
            allowed_ip=tuple(data.get("allowed_ip") or filters.get("allowed_ip") or ()),
            denied_ip=tuple(data.get("denied_ip") or filters.get("denied_ip") or ()),
            groups=tuple(
                GroupMapping(name=g.get("name", ""), type=g.get("type", GROUP_TYPE_PRIMARY))
                for g in data.get("groups") or ()
            ),
        )


@dataclass(frozen=True)
class UpsertResult:
    """Outcome of an idempotent user upsert."""

    user: UserPayload
    created: bool
