"""Configuration loading and access."""
