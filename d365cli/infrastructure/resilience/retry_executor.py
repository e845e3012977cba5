"""Executors that run one logical request through the send capability.

``PassthroughExecutor`` sends exactly once and treats every outcome as final.
``RetryExecutor`` runs the attempt loop of a retrying policy:

    Attempting -> Waiting -> Attempting -> ... -> Done

Done is one of Success, TerminalFailure, ExhaustedRetries or Cancelled.
Waits are cooperative (asyncio) and are raced against the caller's
cancellation event, so a cancel aborts the pending wait immediately.
"""

import asyncio
import dataclasses
import logging
import time
from typing import Awaitable, Callable, List, Optional, Union

from d365cli.domain.events.api_events import ApiCallFailed, ApiCallInitiated, ApiCallSucceeded, RetryScheduled
from d365cli.domain.interfaces.request_sender import RequestSender
from d365cli.domain.interfaces.retry_observer import RetryObserver
from d365cli.domain.models.outcome import (
    Attempt,
    Cancelled,
    ExhaustedRetries,
    Outcome,
    RetryableFailure,
    TerminalFailure,
)
from d365cli.domain.models.policy import Policy, RetryContext
from d365cli.domain.models.request import ApiRequest
from d365cli.infrastructure.monitoring.events import dispatch_event
from d365cli.infrastructure.resilience.classifier import TRANSPORT_EXCEPTIONS, classify

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]
ObserverLike = Union[RetryObserver, Callable[[int, float], None]]


def _is_cancelled(cancel_event: Optional[asyncio.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()


class PassthroughExecutor:
    """Sends a request once. Retryable failures are surfaced as terminal."""

    def __init__(self, sender: RequestSender):
        self.sender = sender

    async def execute(
        self,
        policy: Policy,
        request: ApiRequest,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Outcome:
        if _is_cancelled(cancel_event):
            logger.info(f"{request.describe()} cancelled before it was sent")
            return self._finish(request, Cancelled())

        started = time.perf_counter()
        outcome = await self._attempt(request, 1, policy)
        if isinstance(outcome, RetryableFailure):
            outcome = TerminalFailure.from_retryable(outcome)
        return self._finish(request, dataclasses.replace(outcome, attempts=(Attempt(1, outcome),)), started)

    async def _attempt(self, request: ApiRequest, attempt_number: int, policy: Policy) -> Outcome:
        """Sends once and classifies what came back.

        Transport exceptions become a RetryableFailure; any other exception
        raised by the sender propagates to the caller.
        """
        dispatch_event(ApiCallInitiated(
            method=request.method.value, target=request.target,
            attempt_number=attempt_number, policy=policy.key,
        ))
        try:
            response = await self.sender.send(request)
        except TRANSPORT_EXCEPTIONS as e:
            logger.debug(f"Transport error on {request.describe()} attempt {attempt_number}: {e!r}")
            return classify(e)
        return classify(response)

    def _finish(self, request: ApiRequest, outcome: Outcome, started: Optional[float] = None) -> Outcome:
        attempts = len(getattr(outcome, "attempts", ()))
        if outcome.is_success:
            latency_ms = (time.perf_counter() - started) * 1000 if started is not None else 0.0
            dispatch_event(ApiCallSucceeded(
                method=request.method.value, target=request.target,
                status_code=outcome.status_code, attempts=attempts, latency_ms=latency_ms,
            ))
        else:
            reason = getattr(outcome, "reason", None)
            dispatch_event(ApiCallFailed(
                method=request.method.value, target=request.target, outcome=outcome.kind,
                reason=reason.value if reason is not None else None, attempts=attempts,
            ))
        return outcome


class RetryExecutor(PassthroughExecutor):
    """Runs the retry loop for policies with retries enabled."""

    def __init__(
        self,
        sender: RequestSender,
        observer: Optional[ObserverLike] = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        """Initializes the RetryExecutor.

        Args:
            sender: The send capability.
            observer: Notified before each wait, either a RetryObserver or a
                plain ``(attempt_number, wait_seconds)`` callable.
            sleep: Coroutine used to wait between attempts.
        """
        super().__init__(sender)
        self.observer = observer
        self._sleep = sleep

    async def execute(
        self,
        policy: Policy,
        request: ApiRequest,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Outcome:
        """Executes the request under the given policy.

        Args:
            policy: The policy resolved for the request.
            request: The request to send.
            cancel_event: Setting it aborts the loop with a Cancelled outcome.

        Returns:
            Success, TerminalFailure, ExhaustedRetries or Cancelled.
        """
        if not policy.retries_enabled:
            return await super().execute(policy, request, cancel_event)

        started = time.perf_counter()
        context = RetryContext()
        attempts: List[Attempt] = []
        attempt_number = 1

        while True:
            if _is_cancelled(cancel_event):
                logger.info(f"{request.describe()} cancelled before attempt {attempt_number}")
                return self._finish(request, Cancelled(tuple(attempts)))

            outcome = await self._attempt(request, attempt_number, policy)

            if outcome.is_terminal:
                attempts.append(Attempt(attempt_number, outcome))
                return self._finish(request, dataclasses.replace(outcome, attempts=tuple(attempts)), started)

            if attempt_number >= policy.max_attempts:
                attempts.append(Attempt(attempt_number, outcome))
                logger.error(
                    f"Max attempts ({policy.max_attempts}) reached for {request.describe()}. "
                    f"Last error: {outcome.describe()}"
                )
                return self._finish(request, ExhaustedRetries(outcome, tuple(attempts)))

            # Hints are attempt-local: a failure without Retry-After clears the previous one
            context.retry_after = outcome.retry_after
            wait_seconds = policy.backoff(attempt_number, context)
            attempts.append(Attempt(attempt_number, outcome, wait_seconds))

            logger.warning(
                f"Retryable error on {request.describe()} attempt {attempt_number}/{policy.max_attempts}: "
                f"{outcome.describe()}. Waiting {wait_seconds:.2f}s..."
            )
            dispatch_event(RetryScheduled(attempt_number=attempt_number, delay_seconds=wait_seconds))
            self._notify(attempt_number, wait_seconds)

            if not await self._wait(wait_seconds, cancel_event):
                logger.info(f"{request.describe()} cancelled while waiting to retry")
                return self._finish(request, Cancelled(tuple(attempts)))

            attempt_number += 1

    def _notify(self, attempt_number: int, wait_seconds: float) -> None:
        if self.observer is None:
            return
        callback = self.observer.on_retry if isinstance(self.observer, RetryObserver) else self.observer
        try:
            callback(attempt_number, wait_seconds)
        except Exception as e:
            logger.warning(f"Retry observer failed on attempt {attempt_number}: {e}", exc_info=True)

    async def _wait(self, seconds: float, cancel_event: Optional[asyncio.Event]) -> bool:
        """Waits for the backoff delay. Returns False if cancelled first."""
        if cancel_event is None:
            await self._sleep(seconds)
            return True
        if cancel_event.is_set():
            return False

        sleeper = asyncio.ensure_future(self._sleep(seconds))
        canceller = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({sleeper, canceller}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            pending = [task for task in (sleeper, canceller) if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
        if sleeper.done() and not sleeper.cancelled():
            # surfaces a failure raised by the sleep function
            sleeper.result()
        return not cancel_event.is_set()
