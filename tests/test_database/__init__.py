"""Tests for healthspot.database."""
