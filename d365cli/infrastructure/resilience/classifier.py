"""Outcome classification for a single attempt.

Turns a raw response or a transport exception into an Outcome. Rules are
applied in priority order: transport failure, 5xx, 429, 408, 2xx success,
other 4xx, then any remaining status (1xx, 3xx) as unexpected.
"""

import logging
from typing import Any, Union

import httpx

from d365cli.domain.models.outcome import FailureReason, Outcome, RetryableFailure, Success, TerminalFailure
from d365cli.infrastructure.resilience.backoff import parse_retry_after

logger = logging.getLogger(__name__)

RETRY_AFTER_HEADER = "Retry-After"

# Exceptions raised by the send capability that count as transport failures
TRANSPORT_EXCEPTIONS = (httpx.TransportError, TimeoutError, ConnectionError)


def is_transport_error(error: BaseException) -> bool:
    return isinstance(error, TRANSPORT_EXCEPTIONS)


def classify(response_or_error: Union[Any, BaseException]) -> Outcome:
    """Classifies the result of one send.

    Args:
        response_or_error: A response (anything with ``status_code`` and
            ``headers``) or the exception the send raised.

    Returns:
        Success, RetryableFailure or TerminalFailure.

    Raises:
        TypeError: If given an exception that is not a transport failure.
            Such errors are programming/config bugs and must not be retried.
    """
    if isinstance(response_or_error, BaseException):
        if is_transport_error(response_or_error):
            return RetryableFailure(FailureReason.TRANSPORT, error=response_or_error)
        raise TypeError(f"Cannot classify non-transport exception: {response_or_error!r}")

    response = response_or_error
    status = int(response.status_code)

    if 500 <= status <= 599:
        return RetryableFailure(FailureReason.SERVER_ERROR, status_code=status, response=response)
    if status == 429:
        retry_after = parse_retry_after(response.headers.get(RETRY_AFTER_HEADER))
        return RetryableFailure(
            FailureReason.RATE_LIMITED, retry_after=retry_after, status_code=status, response=response
        )
    if status == 408:
        return RetryableFailure(FailureReason.TIMEOUT, status_code=status, response=response)
    if 200 <= status <= 299:
        return Success(response)
    if 400 <= status <= 499:
        return TerminalFailure(FailureReason.CLIENT_ERROR, status_code=status, response=response)
    return TerminalFailure(FailureReason.UNEXPECTED_STATUS, status_code=status, response=response)
