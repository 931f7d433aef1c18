"""Desired-state builders for servers and users."""
