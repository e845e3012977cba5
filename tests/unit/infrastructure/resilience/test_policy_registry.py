from concurrent.futures import ThreadPoolExecutor

import pytest

from d365cli.domain.exceptions import DuplicateKeyError, UnknownPolicyError
from d365cli.domain.models.common import PASSTHROUGH_POLICY, RETRYING_POLICY, PolicyKey
from d365cli.domain.models.policy import Policy, PolicyKind
from d365cli.infrastructure.resilience.backoff import ExponentialBackoff
from d365cli.infrastructure.resilience.policy_registry import PolicyRegistry, build_default_registry


@pytest.fixture
def registry() -> PolicyRegistry:
    return PolicyRegistry()


def test_register_and_resolve(registry: PolicyRegistry):
    policy = Policy(PolicyKey("custom"), PolicyKind.PASSTHROUGH)
    registry.register("custom", policy)
    assert registry.resolve("custom") is policy
    assert "custom" in registry
    assert len(registry) == 1


def test_register_duplicate_key_fails(registry: PolicyRegistry):
    registry.register("custom", Policy(PolicyKey("custom"), PolicyKind.PASSTHROUGH))
    with pytest.raises(DuplicateKeyError, match="custom"):
        registry.register("custom", Policy(PolicyKey("custom"), PolicyKind.PASSTHROUGH))


def test_resolve_unknown_key_fails(registry: PolicyRegistry):
    with pytest.raises(UnknownPolicyError, match="missing"):
        registry.resolve("missing")


def test_validate_names_every_missing_key(registry: PolicyRegistry):
    registry.register("a", Policy(PolicyKey("a"), PolicyKind.PASSTHROUGH))
    with pytest.raises(UnknownPolicyError) as exc_info:
        registry.validate(["a", "b", "c"])
    assert exc_info.value.keys == ("b", "c")


def test_default_registry_contents():
    registry = build_default_registry(max_attempts=3, backoff_base=2.0)
    assert sorted(registry.keys()) == sorted([RETRYING_POLICY, PASSTHROUGH_POLICY])

    retrying = registry.resolve(RETRYING_POLICY)
    assert retrying.kind is PolicyKind.RETRYING
    assert retrying.max_attempts == 3
    assert isinstance(retrying.backoff, ExponentialBackoff)
    assert retrying.retries_enabled

    passthrough = registry.resolve(PASSTHROUGH_POLICY)
    assert passthrough.kind is PolicyKind.PASSTHROUGH
    assert not passthrough.retries_enabled


def test_policies_are_immutable():
    policy = Policy(PolicyKey("p"), PolicyKind.PASSTHROUGH)
    with pytest.raises(AttributeError):
        policy.max_attempts = 5


def test_retrying_policy_needs_backoff():
    with pytest.raises(ValueError):
        Policy(PolicyKey("r"), PolicyKind.RETRYING, max_attempts=3)


def test_negative_max_attempts_rejected():
    with pytest.raises(ValueError):
        Policy(PolicyKey("r"), PolicyKind.RETRYING, max_attempts=-1, backoff=ExponentialBackoff())


def test_retrying_policy_with_zero_attempts_runs_once():
    policy = Policy(PolicyKey("r"), PolicyKind.RETRYING, max_attempts=0)
    assert not policy.retries_enabled


def test_concurrent_resolve():
    registry = build_default_registry()
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: registry.resolve(RETRYING_POLICY), range(200)))
    assert all(r is results[0] for r in results)
