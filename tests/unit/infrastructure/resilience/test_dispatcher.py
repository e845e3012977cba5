import asyncio

import httpx
import pytest

from d365cli.domain.exceptions import UnknownPolicyError
from d365cli.domain.models.common import PASSTHROUGH_POLICY, RETRYING_POLICY, EndpointPath, PolicyKey
from d365cli.domain.models.outcome import ExhaustedRetries, Success, TerminalFailure
from d365cli.domain.models.policy import Policy, PolicyKind
from d365cli.domain.models.request import ApiRequest, HttpMethod
from d365cli.infrastructure.resilience.dispatcher import RequestDispatcher, select_policy_key
from d365cli.infrastructure.resilience.policy_registry import PolicyRegistry, build_default_registry


@pytest.mark.parametrize("method", [HttpMethod.GET, HttpMethod.DELETE])
def test_idempotent_methods_select_retrying(method):
    assert select_policy_key(method) == RETRYING_POLICY


@pytest.mark.parametrize("method", [m for m in HttpMethod if m not in (HttpMethod.GET, HttpMethod.DELETE)])
def test_other_methods_select_passthrough(method):
    assert select_policy_key(method) == PASSTHROUGH_POLICY


def test_dispatcher_validates_registry_at_startup(scripted_sender):
    registry = PolicyRegistry()
    registry.register(RETRYING_POLICY, Policy(PolicyKey(RETRYING_POLICY), PolicyKind.PASSTHROUGH))
    with pytest.raises(UnknownPolicyError, match="passthrough"):
        RequestDispatcher(registry, scripted_sender(httpx.Response(200)))


def test_get_is_retried(scripted_sender, recording_sleep, observer):
    sender = scripted_sender(httpx.Response(503), httpx.Response(200))
    dispatcher = RequestDispatcher(build_default_registry(max_attempts=3), sender, observer, sleep=recording_sleep)

    outcome = asyncio.run(dispatcher.dispatch(ApiRequest(HttpMethod.GET, EndpointPath("WhoAmI"))))

    assert isinstance(outcome, Success)
    assert sender.call_count == 2
    assert len(observer.calls) == 1


def test_delete_exhausts_retries(scripted_sender, recording_sleep, observer):
    sender = scripted_sender(httpx.Response(503))
    dispatcher = RequestDispatcher(build_default_registry(max_attempts=3), sender, observer, sleep=recording_sleep)

    outcome = asyncio.run(dispatcher.dispatch(ApiRequest(HttpMethod.DELETE, EndpointPath("accounts(1)"))))

    assert isinstance(outcome, ExhaustedRetries)
    assert sender.call_count == 3
    assert len(observer.calls) == 2


@pytest.mark.parametrize("method", [HttpMethod.POST, HttpMethod.PATCH, HttpMethod.PUT])
def test_non_idempotent_methods_are_sent_once(method, scripted_sender, recording_sleep, observer):
    sender = scripted_sender(httpx.Response(503), httpx.Response(200))
    dispatcher = RequestDispatcher(build_default_registry(max_attempts=3), sender, observer, sleep=recording_sleep)

    outcome = asyncio.run(dispatcher.dispatch(ApiRequest(method, EndpointPath("accounts"), body={"name": "x"})))

    assert isinstance(outcome, TerminalFailure)
    assert outcome.status_code == 503
    assert sender.call_count == 1
    assert observer.calls == []


def test_policy_for_is_deterministic(scripted_sender):
    dispatcher = RequestDispatcher(build_default_registry(), scripted_sender(httpx.Response(200)))
    request = ApiRequest(HttpMethod.GET, EndpointPath("WhoAmI"))
    assert dispatcher.policy_for(request) is dispatcher.policy_for(request)
    assert dispatcher.policy_for(request).key == RETRYING_POLICY
