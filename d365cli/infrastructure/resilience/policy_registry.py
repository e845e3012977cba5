"""Registry of named retry policies.

Policies are registered once at startup and resolved by key for every
outgoing request. Writes are serialized; reads go against an immutable
snapshot so concurrent request flows can resolve without locking.
"""

import logging
from threading import Lock
from types import MappingProxyType
from typing import Iterable, Iterator, List, Mapping

from d365cli.domain.exceptions import DuplicateKeyError, UnknownPolicyError
from d365cli.domain.models.common import PASSTHROUGH_POLICY, RETRYING_POLICY, PolicyKey
from d365cli.domain.models.policy import Policy, PolicyKind
from d365cli.infrastructure.resilience.backoff import DEFAULT_BACKOFF_BASE, ExponentialBackoff

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 4  # one call plus three retries


class PolicyRegistry:
    """Maps policy keys to Policy objects."""

    def __init__(self):
        self._lock = Lock()
        self._policies: Mapping[str, Policy] = MappingProxyType({})

    def register(self, key: str, policy: Policy) -> None:
        """Registers a policy under a unique key.

        Raises:
            DuplicateKeyError: If the key is already registered.
        """
        with self._lock:
            if key in self._policies:
                raise DuplicateKeyError(key)
            updated = dict(self._policies)
            updated[key] = policy
            self._policies = MappingProxyType(updated)
        logger.debug(f"Registered retry policy '{key}': {policy}")

    def resolve(self, key: str) -> Policy:
        """Returns the policy registered under key.

        Raises:
            UnknownPolicyError: If nothing is registered under key.
        """
        try:
            return self._policies[key]
        except KeyError:
            raise UnknownPolicyError(key) from None

    def validate(self, keys: Iterable[str]) -> None:
        """Checks that every key is registered.

        Raises:
            UnknownPolicyError: Naming all missing keys.
        """
        snapshot = self._policies
        missing = [k for k in keys if k not in snapshot]
        if missing:
            raise UnknownPolicyError(*missing)

    def keys(self) -> List[str]:
        return list(self._policies)

    def policies(self) -> List[Policy]:
        return list(self._policies.values())

    def __contains__(self, key: object) -> bool:
        return key in self._policies

    def __len__(self) -> int:
        return len(self._policies)

    def __iter__(self) -> Iterator[str]:
        return iter(self._policies)


def build_default_registry(
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    backoff_base: float = DEFAULT_BACKOFF_BASE,
) -> PolicyRegistry:
    """Creates a registry holding the 'retrying' and 'passthrough' policies."""
    registry = PolicyRegistry()
    registry.register(
        RETRYING_POLICY,
        Policy(
            key=PolicyKey(RETRYING_POLICY),
            kind=PolicyKind.RETRYING,
            max_attempts=max_attempts,
            backoff=ExponentialBackoff(backoff_base),
        ),
    )
    registry.register(
        PASSTHROUGH_POLICY,
        Policy(key=PolicyKey(PASSTHROUGH_POLICY), kind=PolicyKind.PASSTHROUGH),
    )
    logger.info(
        f"Policy registry initialized: retrying(max_attempts={max_attempts}, base={backoff_base}), passthrough"
    )
    return registry
