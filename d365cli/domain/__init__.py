"""Domain Layer: request/outcome models, interfaces (ports) and events."""
