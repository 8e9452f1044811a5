"""Tests for healthspot.core."""
