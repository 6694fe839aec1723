"""Shared HTTP mocks for tests."""
