"""Domain models: requests, outcomes and retry policies."""
