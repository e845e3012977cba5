"""Domain Events related to API calls and resilience.

Examples include events for when calls are initiated, retried, fail, or succeed.
"""

from dataclasses import dataclass, field
import time
from typing import Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


@dataclass
class ApiCallInitiated(DomainEvent):
    """Event triggered when an attempt is about to be sent."""
    method: str
    target: str
    attempt_number: int
    policy: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallSucceeded(DomainEvent):
    """Event triggered when a logical request succeeds."""
    method: str
    target: str
    status_code: Optional[int]
    attempts: int
    latency_ms: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when a logical request ends without success."""
    method: str
    target: str
    outcome: str  # e.g. 'TerminalFailure', 'ExhaustedRetries', 'Cancelled'
    reason: Optional[str]
    attempts: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed attempt."""
    attempt_number: int
    delay_seconds: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class TokenAcquired(DomainEvent):
    """Event triggered when a fresh access token has been obtained."""
    authority: str
    expires_in: float
    timestamp: float = field(default_factory=time.time)
