from typing import List

import httpx
import pytest
from rich.console import Console
from typer.testing import CliRunner

from d365cli import main
from d365cli.core.command_handler import CommandHandler
from d365cli.core.services.request_service import RequestService
from d365cli.core.services.whoami_service import WhoAmIService
from d365cli.infrastructure.cli.display import ConsoleDisplay
from d365cli.infrastructure.http.httpx_sender import HttpxRequestSender, create_http_client
from d365cli.infrastructure.monitoring.retry_observer import LoggingRetryObserver
from d365cli.infrastructure.resilience.dispatcher import RequestDispatcher
from d365cli.infrastructure.resilience.policy_registry import build_default_registry

BASE_URL = "https://org.crm.dynamics.com/api/data/v9.1/"


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def server_script():
    """Responses the fake Web API will return, in order (last one repeats)."""
    return []


@pytest.fixture
def server_requests() -> List[httpx.Request]:
    return []


@pytest.fixture
def wired_app(monkeypatch, server_script, server_requests, token_provider, recording_sleep):
    """Wires the real object graph against an in-memory Web API."""
    def handler(request: httpx.Request) -> httpx.Response:
        server_requests.append(request)
        return server_script.pop(0) if len(server_script) > 1 else server_script[0]

    ui = ConsoleDisplay(console=Console(width=120, color_system=None))
    registry = build_default_registry(max_attempts=3)
    sender = HttpxRequestSender(create_http_client(BASE_URL, transport=httpx.MockTransport(handler)), token_provider)
    observer = LoggingRetryObserver(ui=ui)
    dispatcher = RequestDispatcher(registry, sender, observer, sleep=recording_sleep)
    deps = {
        "ui": ui,
        "sender": sender,
        "registry": registry,
        "dispatcher": dispatcher,
        "observer": observer,
        "command_handler": CommandHandler(
            whoami_service=WhoAmIService(dispatcher, ui),
            request_service=RequestService(dispatcher, ui),
            registry=registry,
            ui=ui,
        ),
    }
    monkeypatch.setattr(main, "_dependencies", deps)
    return deps


def test_whoami_flow(runner, wired_app, server_script, server_requests):
    server_script.append(httpx.Response(200, json={
        "@odata.context": "https://org/$metadata#WhoAmIResponse",
        "BusinessUnitId": "b-1",
        "UserId": "u-1",
        "OrganizationId": "o-1",
    }))

    result = runner.invoke(main.app, ["whoami"])

    assert result.exit_code == 0, result.stdout
    assert "UserId" in result.stdout and "u-1" in result.stdout
    assert "@odata.context" not in result.stdout
    assert server_requests[0].headers["Authorization"] == "Bearer test-token"


def test_whoami_retries_through_throttling(runner, wired_app, server_script, server_requests, recording_sleep):
    server_script.extend([
        httpx.Response(429, headers={"Retry-After": "10"}),
        httpx.Response(503),
        httpx.Response(200, json={"UserId": "u-1"}),
    ])

    result = runner.invoke(main.app, ["whoami"])

    assert result.exit_code == 0, result.stdout
    assert len(server_requests) == 3
    assert recording_sleep.delays == [10.0, 4.0]
    assert result.stdout.count("Retry Attempt No:") == 2
    assert "Retry Attempt No: 1" in result.stdout
    assert "Retry Attempt No: 2" in result.stdout


def test_whoami_forbidden_exits_non_zero(runner, wired_app, server_script, server_requests):
    server_script.append(httpx.Response(403, text="Authorization_RequestDenied"))

    result = runner.invoke(main.app, ["whoami"])

    assert result.exit_code == 1
    assert len(server_requests) == 1
    assert "Failed to call the Web Api" in result.stdout
    assert "Authorization_RequestDenied" in result.stdout


def test_post_request_is_sent_once(runner, wired_app, server_script, server_requests):
    server_script.append(httpx.Response(503))

    result = runner.invoke(main.app, ["request", "POST", "accounts", "--data", '{"name": "Contoso"}'])

    assert result.exit_code == 1
    assert len(server_requests) == 1
    assert server_requests[0].method == "POST"


def test_delete_request_is_retried(runner, wired_app, server_script, server_requests):
    server_script.extend([httpx.Response(500), httpx.Response(204)])

    result = runner.invoke(main.app, ["request", "delete", "accounts(1)"])

    assert result.exit_code == 0, result.stdout
    assert len(server_requests) == 2
    assert "HTTP 204" in result.stdout


def test_policies_command(runner, wired_app):
    result = runner.invoke(main.app, ["policies"])

    assert result.exit_code == 0, result.stdout
    assert "retrying" in result.stdout
    assert "passthrough" in result.stdout


def test_missing_configuration_exits_cleanly(runner, monkeypatch):
    monkeypatch.setattr(main, "_dependencies", None)
    monkeypatch.setattr(main, "load_configuration", lambda: None)
    monkeypatch.setattr(main, "setup_logging", lambda **kwargs: None)

    result = runner.invoke(main.app, ["whoami"])

    assert result.exit_code == 1
    assert "Application Initialization Failed" in result.stdout
