"""Kubernetes API client construction."""

from __future__ import annotations

import os

import urllib3
from kubernetes import client, config

K8S_REQUEST_TIMEOUT = float(os.getenv("K8S_REQUEST_TIMEOUT_SECONDS", "30.0"))

# Error responses plus the transport failures (timeouts, dropped
# connections) urllib3 raises underneath the client
K8S_API_ERRORS = (client.exceptions.ApiException, urllib3.exceptions.HTTPError)

_config_loaded = False


def load_kube_config() -> None:
    """Load in-cluster configuration, falling back to the local kubeconfig."""
    global _config_loaded
    if _config_loaded:
        return
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()
    _config_loaded = True


def get_core_api() -> client.CoreV1Api:
    """Get Kubernetes CoreV1Api client."""
    load_kube_config()
    return client.CoreV1Api()


def get_apps_api() -> client.AppsV1Api:
    """Get Kubernetes AppsV1Api client."""
    load_kube_config()
    return client.AppsV1Api()


def get_custom_objects_api() -> client.CustomObjectsApi:
    """Get Kubernetes CustomObjectsApi client."""
    load_kube_config()
    return client.CustomObjectsApi()


def describe_api_error(error: Exception) -> str:
    """Short description of a failed Kubernetes API call."""
    if isinstance(error, client.exceptions.ApiException):
        return str(error.reason)
    return f"{type(error).__name__}: {error}"
