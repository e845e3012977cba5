"""Backoff calculation for retry waits.

Everything in this module is pure: no I/O, no clocks, no randomness.
"""

import logging
from typing import Any, Optional

from d365cli.domain.models.policy import RetryContext

logger = logging.getLogger(__name__)

DEFAULT_BACKOFF_BASE = 2.0


def compute(attempt_number: int, context: Optional[RetryContext] = None, base: float = DEFAULT_BACKOFF_BASE) -> float:
    """Returns the number of seconds to wait after a failed attempt.

    A ``retry_after`` hint in the context replaces the exponential value
    entirely; otherwise the wait is ``base ** attempt_number``.

    Args:
        attempt_number: The attempt that just failed (1-based).
        context: The retry context of the current loop, if any.
        base: Exponential base.

    Raises:
        ValueError: If attempt_number is smaller than 1.
    """
    if attempt_number < 1:
        raise ValueError(f"attempt_number must be >= 1, got {attempt_number}")
    if context is not None and context.retry_after is not None:
        return float(context.retry_after)
    return float(base ** attempt_number)


class ExponentialBackoff:
    """Backoff function stored on retrying policies."""

    def __init__(self, base: float = DEFAULT_BACKOFF_BASE):
        if base <= 1:
            raise ValueError(f"Backoff base must be > 1 for growth, got {base}")
        self.base = base

    def __call__(self, attempt_number: int, context: RetryContext) -> float:
        return compute(attempt_number, context, base=self.base)

    def __repr__(self) -> str:
        return f"ExponentialBackoff(base={self.base})"


def parse_retry_after(value: Any) -> Optional[float]:
    """Parses a Retry-After header value.

    Only a non-negative integer count of seconds is understood. HTTP-dates,
    fractions, negatives, values too large for a float and garbage are
    treated as absent.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text.isdigit() or not text.isascii():
        if text:
            logger.debug(f"Ignoring unparsable Retry-After header: '{text}'")
        return None
    try:
        return float(int(text))
    except (ValueError, OverflowError):
        logger.debug(f"Ignoring out-of-range Retry-After header ({len(text)} digits)")
        return None
