"""Exception hierarchy for d365cli.

The request execution core reports per-request results as Outcome values.
These exceptions are raised for configuration problems at startup, by the
auth adapter, and by ``Outcome.unwrap()`` for callers that prefer raising.
"""

from typing import Optional


class D365CliError(Exception):
    """Base class for all d365cli errors."""


# --- Configuration errors (fatal at startup) ---

class ConfigurationError(D365CliError):
    """Raised when required settings are missing or invalid."""


class UnknownPolicyError(ConfigurationError):
    """Raised when a policy key is not present in the registry."""

    def __init__(self, *keys: str):
        self.keys = keys
        joined = ", ".join(f"'{k}'" for k in keys)
        super().__init__(f"Unknown retry policy: {joined}")


class DuplicateKeyError(ConfigurationError):
    """Raised when registering a policy under a key that already exists."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Retry policy already registered: '{key}'")


# --- Auth errors ---

class TokenAcquisitionError(D365CliError):
    """Raised when the token endpoint does not return an access token."""


class ScopeNotSupportedError(TokenAcquisitionError):
    """Raised when the requested scope is rejected (it must look like 'resource/.default')."""


# --- Request errors (raised by Outcome.unwrap) ---

class ApiCallError(D365CliError):
    """A request ended without a successful response."""

    def __init__(self, message: str, status_code: Optional[int] = None, content: Optional[str] = None):
        self.status_code = status_code
        self.content = content
        super().__init__(message)


class TransportError(ApiCallError):
    """Network or connection failure."""


class ServerError(ApiCallError):
    """The server answered with a 5xx status."""


class RateLimitedError(ApiCallError):
    """The server answered 429 Too Many Requests."""


class RequestTimeoutError(ApiCallError):
    """The server answered 408 Request Timeout."""


class ClientError(ApiCallError):
    """Any other 4xx status. Never retried."""


class UnexpectedStatusError(ApiCallError):
    """A 1xx or 3xx status the client does not follow. Never retried."""


class ExhaustedRetriesError(ApiCallError):
    """All attempts allowed by the policy failed with retryable errors."""

    def __init__(self, last_error: ApiCallError, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(
            f"Max attempts ({attempts}) exceeded. Last error: {last_error}",
            status_code=last_error.status_code,
            content=last_error.content,
        )


class CancelledRequestError(ApiCallError):
    """The retry loop was cancelled before it finished."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Request cancelled after {attempts} attempt(s)")
