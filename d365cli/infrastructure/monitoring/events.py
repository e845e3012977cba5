"""Minimal domain event dispatching.

There is no event bus; events are written to the log at debug level so they
can be picked up by log shipping.
"""

import logging

from d365cli.domain.events.api_events import DomainEvent

logger = logging.getLogger(__name__)


def dispatch_event(event: DomainEvent) -> None:
    logger.debug(f"EVENT: {event}")
