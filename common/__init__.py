"""Shared helpers: JSON logging setup and URL/path utilities."""
