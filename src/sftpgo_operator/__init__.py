"""Kubernetes operator managing SFTPGo servers and their users."""

__version__ = "0.1.0"
