"""Tests for healthspot.integrations."""
