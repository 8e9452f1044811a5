"""Clients for third-party HTTP services."""
