"""Defines common Value Objects used across the request execution core.

These objects represent simple values like endpoint paths, policy keys and
bearer tokens, ensuring consistency across layers.
"""

from typing import Any, Dict, NewType

# Using NewType for semantic clarity, although they are plain values at runtime.
PolicyKey = NewType("PolicyKey", str)          # Registry lookup key, e.g. 'retrying'
EndpointPath = NewType("EndpointPath", str)    # Path relative to the API base URL, e.g. 'WhoAmI'
BearerToken = NewType("BearerToken", str)      # OAuth2 access token
Seconds = NewType("Seconds", float)            # Wait durations

JsonObject = Dict[str, Any]

# Well-known policy keys shared by the dispatcher and the registry
RETRYING_POLICY = PolicyKey("retrying")
PASSTHROUGH_POLICY = PolicyKey("passthrough")
