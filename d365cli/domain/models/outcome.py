"""Outcome of a request attempt and of a whole retry loop.

Callers branch on the outcome kind instead of catching exceptions.
``unwrap()`` is provided for call sites that would rather raise.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type

from d365cli.domain.exceptions import (
    ApiCallError,
    CancelledRequestError,
    ClientError,
    ExhaustedRetriesError,
    RateLimitedError,
    RequestTimeoutError,
    ServerError,
    TransportError,
    UnexpectedStatusError,
)


class FailureReason(str, Enum):
    TRANSPORT = "transport"
    SERVER_ERROR = "server-error"
    RATE_LIMITED = "rate-limited"
    TIMEOUT = "timeout"
    CLIENT_ERROR = "client-error"
    UNEXPECTED_STATUS = "unexpected-status"


_REASON_ERRORS: Dict[FailureReason, Type[ApiCallError]] = {
    FailureReason.TRANSPORT: TransportError,
    FailureReason.SERVER_ERROR: ServerError,
    FailureReason.RATE_LIMITED: RateLimitedError,
    FailureReason.TIMEOUT: RequestTimeoutError,
    FailureReason.CLIENT_ERROR: ClientError,
    FailureReason.UNEXPECTED_STATUS: UnexpectedStatusError,
}


def _response_text(response: Any) -> Optional[str]:
    if response is None:
        return None
    try:
        return response.text
    except Exception:  # body not read or not decodable
        return None


class Outcome:
    """Base class for every outcome variant."""

    is_success = False
    is_terminal = True

    @property
    def kind(self) -> str:
        return type(self).__name__

    def describe(self) -> str:
        return self.kind

    def unwrap(self) -> Any:
        """Returns the response on success, raises the matching ApiCallError otherwise."""
        raise NotImplementedError


@dataclass(frozen=True)
class Attempt:
    """One pass through the send/classify step of a retry loop."""

    attempt_number: int
    outcome: Outcome
    wait_before_next: Optional[float] = None


@dataclass(frozen=True)
class Success(Outcome):
    response: Any
    attempts: Tuple[Attempt, ...] = ()

    is_success = True

    @property
    def status_code(self) -> Optional[int]:
        return getattr(self.response, "status_code", None)

    def describe(self) -> str:
        return f"success (HTTP {self.status_code})"

    def unwrap(self) -> Any:
        return self.response


@dataclass(frozen=True)
class RetryableFailure(Outcome):
    """A failure worth another attempt. Never returned to the caller by the executor."""

    reason: FailureReason
    retry_after: Optional[float] = None
    status_code: Optional[int] = None
    response: Any = None
    error: Optional[BaseException] = None

    is_terminal = False

    def describe(self) -> str:
        if self.status_code is not None:
            return f"{self.reason.value} (HTTP {self.status_code})"
        if self.error is not None:
            return f"{self.reason.value} ({type(self.error).__name__}: {self.error})"
        return self.reason.value

    def to_error(self) -> ApiCallError:
        error_cls = _REASON_ERRORS[self.reason]
        return error_cls(self.describe(), status_code=self.status_code, content=_response_text(self.response))

    def unwrap(self) -> Any:
        raise self.to_error()


@dataclass(frozen=True)
class TerminalFailure(Outcome):
    """A failure that ends the loop immediately."""

    reason: FailureReason
    status_code: Optional[int] = None
    response: Any = None
    error: Optional[BaseException] = None
    attempts: Tuple[Attempt, ...] = ()

    @classmethod
    def from_retryable(cls, failure: RetryableFailure) -> "TerminalFailure":
        """Used by single-shot execution, where a retryable failure is final."""
        return cls(
            reason=failure.reason,
            status_code=failure.status_code,
            response=failure.response,
            error=failure.error,
        )

    def describe(self) -> str:
        if self.status_code is not None:
            return f"{self.reason.value} (HTTP {self.status_code})"
        if self.error is not None:
            return f"{self.reason.value} ({type(self.error).__name__}: {self.error})"
        return self.reason.value

    def unwrap(self) -> Any:
        error_cls = _REASON_ERRORS[self.reason]
        raise error_cls(self.describe(), status_code=self.status_code, content=_response_text(self.response))


@dataclass(frozen=True)
class ExhaustedRetries(Outcome):
    """Every allowed attempt failed with a retryable failure."""

    last_failure: RetryableFailure
    attempts: Tuple[Attempt, ...] = ()

    @property
    def reason(self) -> FailureReason:
        return self.last_failure.reason

    @property
    def status_code(self) -> Optional[int]:
        return self.last_failure.status_code

    def describe(self) -> str:
        return f"retries exhausted after {len(self.attempts)} attempt(s), last: {self.last_failure.describe()}"

    def unwrap(self) -> Any:
        raise ExhaustedRetriesError(self.last_failure.to_error(), len(self.attempts))


@dataclass(frozen=True)
class Cancelled(Outcome):
    """The loop was stopped by the caller's cancellation signal."""

    attempts: Tuple[Attempt, ...] = ()

    def describe(self) -> str:
        return f"cancelled after {len(self.attempts)} attempt(s)"

    def unwrap(self) -> Any:
        raise CancelledRequestError(len(self.attempts))
