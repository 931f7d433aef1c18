"""Kubernetes object store adapter."""
