"""Domain Events emitted by the request execution core."""
