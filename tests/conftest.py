import asyncio
import os
from typing import List, Sequence, Union

import httpx
import pytest

from d365cli.domain.interfaces.request_sender import RequestSender
from d365cli.domain.interfaces.token_provider import TokenProvider
from d365cli.domain.models.common import BearerToken
from d365cli.domain.models.request import ApiRequest
from d365cli.infrastructure.config.settings import clear_test_config, reset_configuration


class ScriptedSender(RequestSender):
    """Returns (or raises) the scripted items in order and records every request.

    The last item repeats once the script runs out.
    """

    def __init__(self, script: Sequence[Union[httpx.Response, BaseException]]):
        self.script = list(script)
        self.requests: List[ApiRequest] = []

    @property
    def call_count(self) -> int:
        return len(self.requests)

    async def send(self, request: ApiRequest) -> httpx.Response:
        self.requests.append(request)
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, BaseException):
            raise item
        return item


class RecordingSleep:
    """Stand-in for asyncio.sleep that returns immediately."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


class RecordingObserver:
    def __init__(self):
        self.calls: List[tuple] = []

    def __call__(self, attempt_number: int, wait_seconds: float) -> None:
        self.calls.append((attempt_number, wait_seconds))


class StaticTokenProvider(TokenProvider):
    def __init__(self, token: str = "test-token"):
        self.token = BearerToken(token)
        self.calls = 0

    async def get_bearer_token(self) -> BearerToken:
        self.calls += 1
        return self.token


@pytest.fixture
def scripted_sender():
    """Factory: scripted_sender(httpx.Response(503), httpx.Response(200))."""
    def factory(*script):
        return ScriptedSender(script)
    return factory


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def token_provider() -> StaticTokenProvider:
    return StaticTokenProvider()


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keeps tests independent from the developer's environment and config files."""
    for name in [n for n in os.environ if n.startswith("D365CLI_")]:
        monkeypatch.delenv(name, raising=False)
    reset_configuration()
    yield
    clear_test_config()
    reset_configuration()
