"""Logging setup and retry observers."""
