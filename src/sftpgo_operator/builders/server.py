"""Builders for the child objects of an SftpGoServer."""

from __future__ import annotations

import copy
import hashlib
import json
import posixpath
from dataclasses import dataclass, field
from typing import Any

from ..constants import (
    ADMIN_PASSWORD_KEY,
    ADMIN_USERNAME_KEY,
    ANNOTATION_CONFIG_HASH,
    CONFIG_FILE_NAME,
    CONFIG_MOUNT_PATH,
    CONTAINER_NAME,
    CONTROLLER_NAME,
    DEFAULT_DATA_MOUNT_PATH,
    DEFAULT_IMAGE,
    DEFAULT_REPLICAS,
    DEFAULT_SFTP_PORT,
    DEFAULT_STORAGE_BACKEND,
    DEFAULT_VOLUME_SIZE,
    DEFAULT_WEB_PORT,
    LABEL_INSTANCE,
    LABEL_MANAGED_BY,
    LABEL_NAME,
    LABEL_SERVER_NAME,
)

DEFAULT_FTP_PORT = 2121
DEFAULT_WEBDAV_PORT = 10080

# Backends that keep their database in a file on the data volume
FILE_BACKENDS = {"sqlite", "bolt"}
NETWORK_BACKENDS = {"postgresql", "mysql", "cockroachdb"}

# SFTPGo encodes the postgres sslmode as an integer
SSL_MODES = {
    "disable": 0,
    "require": 1,
    "verify-ca": 2,
    "verify-full": 3,
}


@dataclass(frozen=True)
class ServerSettings:
    """An SftpGoServer spec with every default applied."""

    name: str
    namespace: str
    image: str
    replicas: int
    sftp_port: int
    web_port: int
    storage_backend: str
    data_mount_path: str
    image_pull_policy: str | None = None
    service_account: str | None = None
    ftp_port: int | None = None
    webdav_port: int | None = None
    data_volume: dict[str, Any] | None = None
    database: dict[str, Any] | None = None
    admin_secret_name: str | None = None
    config: dict[str, Any] = field(default_factory=dict)
    resources: dict[str, Any] | None = None
    node_selector: dict[str, str] | None = None
    tolerations: list[dict[str, Any]] | None = None
    affinity: dict[str, Any] | None = None

    @property
    def pvc_name(self) -> str:
        return f"{self.name}-data"


@dataclass(frozen=True)
class DesiredChildSet:
    """Desired child objects of one server, in application order."""

    config_map: dict[str, Any]
    deployment: dict[str, Any]
    service: dict[str, Any]
    pvc: dict[str, Any] | None = None

    def ordered(self) -> list[dict[str, Any]]:
        """Children in the order they must be applied."""
        children = [self.config_map]
        if self.pvc is not None:
            children.append(self.pvc)
        children.extend([self.deployment, self.service])
        return children


def _section(config: dict[str, Any], name: str) -> dict[str, Any]:
    return config.get(name) or {}


def apply_server_defaults(name: str, namespace: str, spec: dict[str, Any]) -> ServerSettings:
    """Apply defaults to an SftpGoServer spec.

    Protocol-specific ports in ``config`` take precedence over the
    top-level ``sftpPort``/``webPort`` fields.

    Args:
        name: Server name
        namespace: Server namespace
        spec: SftpGoServer CRD spec

    Returns:
        Fully defaulted settings
    """
    spec = copy.deepcopy(spec)
    config = spec.get("config") or {}
    sftp = _section(config, "sftp")
    http = _section(config, "http")
    ftp = _section(config, "ftp")
    webdav = _section(config, "webdav")

    replicas = spec.get("replicas")
    data_volume = spec.get("dataVolume")
    admin_ref = spec.get("adminSecretRef") or {}

    return ServerSettings(
        name=name,
        namespace=namespace,
        image=spec.get("image") or DEFAULT_IMAGE,
        image_pull_policy=spec.get("imagePullPolicy") or None,
        replicas=DEFAULT_REPLICAS if replicas is None else int(replicas),
        service_account=spec.get("serviceAccount") or None,
        sftp_port=sftp.get("port") or spec.get("sftpPort") or DEFAULT_SFTP_PORT,
        web_port=http.get("port") or spec.get("webPort") or DEFAULT_WEB_PORT,
        ftp_port=(ftp.get("port") or DEFAULT_FTP_PORT) if ftp.get("enabled") else None,
        webdav_port=(webdav.get("port") or DEFAULT_WEBDAV_PORT) if webdav.get("enabled") else None,
        storage_backend=spec.get("storageBackend") or DEFAULT_STORAGE_BACKEND,
        data_mount_path=(data_volume or {}).get("mountPath") or DEFAULT_DATA_MOUNT_PATH,
        data_volume=data_volume,
        database=spec.get("database"),
        admin_secret_name=admin_ref.get("name") or None,
        config=config,
        resources=spec.get("resources"),
        node_selector=spec.get("nodeSelector"),
        tolerations=spec.get("tolerations"),
        affinity=spec.get("affinity"),
    )


def selector_labels(settings: ServerSettings) -> dict[str, str]:
    return {
        LABEL_NAME: "sftpgo",
        LABEL_INSTANCE: settings.name,
    }


def object_labels(settings: ServerSettings) -> dict[str, str]:
    return {
        **selector_labels(settings),
        LABEL_MANAGED_BY: CONTROLLER_NAME,
        LABEL_SERVER_NAME: settings.name,
    }


def _metadata(settings: ServerSettings, name: str) -> dict[str, Any]:
    return {
        "name": name,
        "namespace": settings.namespace,
        "labels": object_labels(settings),
    }


def _data_provider(settings: ServerSettings) -> dict[str, Any]:
    backend = settings.storage_backend
    provider: dict[str, Any] = {"driver": backend}

    if backend in FILE_BACKENDS:
        provider["name"] = posixpath.join(settings.data_mount_path, "sftpgo.db")
    elif backend in NETWORK_BACKENDS:
        db = settings.database or {}
        provider["name"] = db.get("database") or "sftpgo"
        if db.get("host"):
            provider["host"] = db["host"]
        if db.get("port"):
            provider["port"] = db["port"]
        if db.get("username"):
            provider["username"] = db["username"]
        if db.get("sslMode") in SSL_MODES:
            provider["sslmode"] = SSL_MODES[db["sslMode"]]

    if settings.admin_secret_name:
        provider["create_default_admin"] = True
    return provider


def _tls_binding_fields(section: dict[str, Any]) -> dict[str, Any]:
    if not section.get("enableHTTPS"):
        return {}
    return {
        "enable_https": True,
        "certificate_file": section.get("certificateFile", ""),
        "certificate_key_file": section.get("certificateKeyFile", ""),
    }


def build_sftpgo_config(settings: ServerSettings) -> dict[str, Any]:
    """Build the sftpgo.json configuration document."""
    config = settings.config
    sftp = _section(config, "sftp")
    http = _section(config, "http")
    ftp = _section(config, "ftp")
    webdav = _section(config, "webdav")
    common = _section(config, "common")

    sftpd: dict[str, Any] = {
        "bindings": [{"port": settings.sftp_port, "address": "", "apply_proxy_config": True}],
        "max_auth_tries": sftp.get("maxAuthTries", 0),
        "host_keys": list(sftp.get("hostKeys") or []),
        "keyboard_interactive_authentication": sftp.get("keyboardInteractiveAuth", True),
        "password_authentication": sftp.get("passwordAuthentication", True),
    }
    if sftp.get("allowedSSHCommands"):
        sftpd["enabled_ssh_commands"] = list(sftp["allowedSSHCommands"])

    document: dict[str, Any] = {
        "sftpd": sftpd,
        "data_provider": _data_provider(settings),
        "httpd": {
            "bindings": [
                {
                    "port": settings.web_port,
                    "address": "",
                    "enable_web_admin": True,
                    "enable_web_client": True,
                    "enable_rest_api": True,
                    **_tls_binding_fields(http),
                }
            ]
        },
    }

    common_fields = {
        "idle_timeout": common.get("idleTimeout"),
        "upload_mode": common.get("uploadMode"),
        "max_total_connections": common.get("maxTotalConnections"),
        "max_per_host_connections": common.get("maxPerHostConnections"),
    }
    common_fields = {key: value for key, value in common_fields.items() if value is not None}
    if common_fields:
        document["common"] = common_fields

    if settings.ftp_port is not None:
        ftpd: dict[str, Any] = {"bindings": [{"port": settings.ftp_port, "address": ""}]}
        passive = ftp.get("passivePortRange")
        if passive:
            ftpd["passive_port_range"] = {"start": passive["start"], "end": passive["end"]}
        document["ftpd"] = ftpd

    if settings.webdav_port is not None:
        document["webdavd"] = {
            "bindings": [{"port": settings.webdav_port, "address": "", **_tls_binding_fields(webdav)}]
        }

    return document


def render_config(settings: ServerSettings) -> str:
    """Render the configuration artifact; identical settings give identical bytes."""
    return json.dumps(build_sftpgo_config(settings), indent=2, sort_keys=True) + "\n"


def config_hash(rendered: str) -> str:
    return hashlib.sha256(rendered.encode("utf-8")).hexdigest()


def service_ports(settings: ServerSettings) -> list[tuple[str, int]]:
    """Named ports exposed by the workload and its service."""
    ports = [("sftp", settings.sftp_port), ("web", settings.web_port)]
    if settings.ftp_port is not None:
        ports.append(("ftp", settings.ftp_port))
    if settings.webdav_port is not None:
        ports.append(("webdav", settings.webdav_port))
    return ports


def status_ports(settings: ServerSettings) -> dict[str, int]:
    """Resolved port assignments recorded on the server status."""
    ports = {
        "sftp": settings.sftp_port,
        "web": settings.web_port,
        "http": settings.web_port,
    }
    if settings.ftp_port is not None:
        ports["ftp"] = settings.ftp_port
    return ports


def build_config_map(settings: ServerSettings, rendered_config: str) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": _metadata(settings, settings.name),
        "data": {CONFIG_FILE_NAME: rendered_config},
    }


def build_pvc(settings: ServerSettings) -> dict[str, Any] | None:
    if settings.data_volume is None:
        return None
    volume = settings.data_volume
    spec: dict[str, Any] = {
        "accessModes": ["ReadWriteOnce"],
        "resources": {"requests": {"storage": volume.get("size") or DEFAULT_VOLUME_SIZE}},
    }
    if volume.get("storageClass"):
        spec["storageClassName"] = volume["storageClass"]
    return {
        "apiVersion": "v1",
        "kind": "PersistentVolumeClaim",
        "metadata": _metadata(settings, settings.pvc_name),
        "spec": spec,
    }


def _secret_env(name: str, secret_name: str, key: str) -> dict[str, Any]:
    return {
        "name": name,
        "valueFrom": {"secretKeyRef": {"name": secret_name, "key": key}},
    }


def _container_env(settings: ServerSettings) -> list[dict[str, Any]]:
    env = []
    if settings.admin_secret_name:
        env.append(_secret_env("SFTPGO_DEFAULT_ADMIN_USERNAME", settings.admin_secret_name, ADMIN_USERNAME_KEY))
        env.append(_secret_env("SFTPGO_DEFAULT_ADMIN_PASSWORD", settings.admin_secret_name, ADMIN_PASSWORD_KEY))
    password_ref = (settings.database or {}).get("passwordSecret")
    if settings.storage_backend in NETWORK_BACKENDS and password_ref:
        env.append(_secret_env("SFTPGO_DATA_PROVIDER__PASSWORD", password_ref["name"], password_ref["key"]))
    return env


def build_deployment(settings: ServerSettings, rendered_config: str) -> dict[str, Any]:
    if settings.data_volume is not None:
        data_volume = {"name": "data", "persistentVolumeClaim": {"claimName": settings.pvc_name}}
    else:
        data_volume = {"name": "data", "emptyDir": {}}

    container: dict[str, Any] = {
        "name": CONTAINER_NAME,
        "image": settings.image,
        "command": ["sftpgo"],
        "args": ["serve", "--config-file", posixpath.join(CONFIG_MOUNT_PATH, CONFIG_FILE_NAME)],
        "ports": [
            {"name": port_name, "containerPort": port, "protocol": "TCP"}
            for port_name, port in service_ports(settings)
        ],
        "volumeMounts": [
            {"name": "config", "mountPath": CONFIG_MOUNT_PATH, "readOnly": True},
            {"name": "data", "mountPath": settings.data_mount_path},
        ],
    }
    if settings.image_pull_policy:
        container["imagePullPolicy"] = settings.image_pull_policy
    env = _container_env(settings)
    if env:
        container["env"] = env
    if settings.resources:
        container["resources"] = settings.resources

    pod_spec: dict[str, Any] = {
        "containers": [container],
        "volumes": [
            {"name": "config", "configMap": {"name": settings.name}},
            data_volume,
        ],
    }
    if settings.service_account:
        pod_spec["serviceAccountName"] = settings.service_account
    if settings.node_selector:
        pod_spec["nodeSelector"] = settings.node_selector
    if settings.tolerations:
        pod_spec["tolerations"] = settings.tolerations
    if settings.affinity:
        pod_spec["affinity"] = settings.affinity

    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": _metadata(settings, settings.name),
        "spec": {
            "replicas": settings.replicas,
            "selector": {"matchLabels": selector_labels(settings)},
            "template": {
                "metadata": {
                    "labels": selector_labels(settings),
                    "annotations": {ANNOTATION_CONFIG_HASH: config_hash(rendered_config)},
                },
                "spec": pod_spec,
            },
        },
    }


def build_service(settings: ServerSettings) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": _metadata(settings, settings.name),
        "spec": {
            "type": "ClusterIP",
            "selector": selector_labels(settings),
            "ports": [
                {"name": port_name, "port": port, "targetPort": port, "protocol": "TCP"}
                for port_name, port in service_ports(settings)
            ],
        },
    }


def build_desired_children(settings: ServerSettings) -> DesiredChildSet:
    """Compute every child object of a server. Pure: no I/O, no side effects."""
    rendered = render_config(settings)
    return DesiredChildSet(
        config_map=build_config_map(settings, rendered),
        pvc=build_pvc(settings),
        deployment=build_deployment(settings, rendered),
        service=build_service(settings),
    )
