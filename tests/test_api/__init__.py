"""Tests for healthspot.api endpoints and services."""
