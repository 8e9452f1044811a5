"""Tests for healthspot.middleware."""
