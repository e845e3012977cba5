"""Application services built on top of the request dispatcher."""
