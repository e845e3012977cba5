"""Method-based request dispatcher.

GET and DELETE are idempotent and safe to retry, so they go through the
'retrying' policy. Every other verb may have side effects on the server and
goes through the 'passthrough' policy: a blind retry could duplicate a
create or an update. This rule is fixed and cannot be changed per call.
"""

import asyncio
import logging
from typing import FrozenSet, Optional

from d365cli.domain.interfaces.request_sender import RequestSender
from d365cli.domain.models.common import PASSTHROUGH_POLICY, RETRYING_POLICY, PolicyKey
from d365cli.domain.models.outcome import Outcome
from d365cli.domain.models.policy import Policy
from d365cli.domain.models.request import ApiRequest, HttpMethod
from d365cli.infrastructure.resilience.policy_registry import PolicyRegistry
from d365cli.infrastructure.resilience.retry_executor import ObserverLike, RetryExecutor, SleepFn

logger = logging.getLogger(__name__)

IDEMPOTENT_METHODS: FrozenSet[HttpMethod] = frozenset({HttpMethod.GET, HttpMethod.DELETE})


def select_policy_key(method: HttpMethod) -> PolicyKey:
    """Returns the registry key of the policy that applies to method."""
    return RETRYING_POLICY if method in IDEMPOTENT_METHODS else PASSTHROUGH_POLICY


class RequestDispatcher:
    """Routes each request through the policy chosen by its method."""

    def __init__(
        self,
        registry: PolicyRegistry,
        sender: RequestSender,
        observer: Optional[ObserverLike] = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        """Initializes the dispatcher.

        Raises:
            UnknownPolicyError: If the registry lacks one of the well-known keys.
        """
        registry.validate([RETRYING_POLICY, PASSTHROUGH_POLICY])
        self.registry = registry
        self.executor = RetryExecutor(sender, observer=observer, sleep=sleep)
        logger.info("RequestDispatcher initialized (retrying: GET, DELETE; passthrough: everything else)")

    def policy_for(self, request: ApiRequest) -> Policy:
        return self.registry.resolve(select_policy_key(request.method))

    async def dispatch(self, request: ApiRequest, cancel_event: Optional[asyncio.Event] = None) -> Outcome:
        """Executes the request and returns its final outcome.

        Args:
            request: The request to execute.
            cancel_event: Optional signal; setting it aborts pending retry waits.
        """
        policy = self.policy_for(request)
        logger.debug(f"Dispatching {request.describe()} with policy '{policy.key}'")
        outcome = await self.executor.execute(policy, request, cancel_event)
        logger.info(f"{request.describe()} -> {outcome.describe()}")
        return outcome
