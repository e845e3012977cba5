"""d365cli: resilient client for a D365 / Dataverse style Web API."""

__version__ = "0.1.0"
