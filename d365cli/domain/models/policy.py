"""Retry policy model and the per-request retry context."""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .common import PolicyKey


class PolicyKind(str, Enum):
    RETRYING = "retrying"
    PASSTHROUGH = "passthrough"


class RetryContext(dict):
    """Key-value bag carried between the attempts of one retry loop.

    Holds at least the optional ``retry_after`` hint taken from the most
    recent retryable response. Discarded when the loop ends.
    """

    RETRY_AFTER = "retry_after"

    @property
    def retry_after(self) -> Optional[float]:
        return self.get(self.RETRY_AFTER)

    @retry_after.setter
    def retry_after(self, value: Optional[float]) -> None:
        if value is None:
            self.pop(self.RETRY_AFTER, None)
        else:
            self[self.RETRY_AFTER] = value


# (attempt_number, context) -> seconds to wait
BackoffFn = Callable[[int, RetryContext], float]


@dataclass(frozen=True)
class Policy:
    """A named retry policy. Immutable once registered."""

    key: PolicyKey
    kind: PolicyKind
    max_attempts: int = 0
    backoff: Optional[BackoffFn] = None

    def __post_init__(self):
        if self.max_attempts < 0:
            raise ValueError(f"max_attempts must be >= 0, got {self.max_attempts}")
        if self.kind is PolicyKind.RETRYING and self.max_attempts > 0 and self.backoff is None:
            raise ValueError(f"Retrying policy '{self.key}' needs a backoff function")

    @property
    def retries_enabled(self) -> bool:
        """False when the policy executes exactly once (passthrough or max_attempts == 0)."""
        return self.kind is PolicyKind.RETRYING and self.max_attempts > 0
