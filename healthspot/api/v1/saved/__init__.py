"""Saved providers and search history for anonymous users."""

from healthspot.api.v1.saved.router import router

__all__ = ["router"]
