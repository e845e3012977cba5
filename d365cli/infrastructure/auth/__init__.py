"""Bearer token providers."""
