"""Interface for retry notifications.

Observers are for logging/metrics only. They never influence control flow,
and anything they raise is swallowed by the executor.
"""

import abc


class RetryObserver(abc.ABC):

    @abc.abstractmethod
    def on_retry(self, attempt_number: int, wait_seconds: float) -> None:
        """Called synchronously before each backoff wait.

        Args:
            attempt_number: The attempt that just failed (1-based).
            wait_seconds: How long the executor will wait before the next attempt.
        """
        pass
