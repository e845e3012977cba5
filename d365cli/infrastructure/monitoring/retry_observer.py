"""Retry observers used by the composition root."""

import logging
from typing import Optional

from d365cli.domain.interfaces.retry_observer import RetryObserver
from d365cli.domain.interfaces.user_interface import UserInterface

logger = logging.getLogger(__name__)


class LoggingRetryObserver(RetryObserver):
    """Logs each scheduled retry and optionally echoes it to the console."""

    def __init__(self, ui: Optional[UserInterface] = None):
        self.ui = ui

    def on_retry(self, attempt_number: int, wait_seconds: float) -> None:
        logger.info(f"Retry Attempt No: {attempt_number} (next attempt in {wait_seconds:.2f}s)")
        if self.ui is not None:
            self.ui.display_warning(f"Retry Attempt No: {attempt_number}, waiting {wait_seconds:.0f}s")
