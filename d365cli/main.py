"""Main entry point for the d365cli application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
from typing import Any, Coroutine, Dict, Optional

import typer
from typing_extensions import Annotated

from d365cli.core.command_handler import CommandHandler
from d365cli.core.services.request_service import RequestService
from d365cli.core.services.whoami_service import WhoAmIService
from d365cli.domain.exceptions import ConfigurationError, D365CliError
from d365cli.infrastructure.auth.client_credentials import ClientCredentialsTokenProvider
from d365cli.infrastructure.cli.display import ConsoleDisplay
from d365cli.infrastructure.config.settings import (
    get_api_base_url,
    get_auth_settings,
    get_backoff_base,
    get_config,
    get_max_attempts,
    get_timeout_seconds,
    load_configuration,
)
from d365cli.infrastructure.http.httpx_sender import HttpxRequestSender, create_http_client
from d365cli.infrastructure.monitoring.logger_setup import parse_log_level, setup_logging
from d365cli.infrastructure.monitoring.retry_observer import LoggingRetryObserver
from d365cli.infrastructure.resilience.dispatcher import RequestDispatcher
from d365cli.infrastructure.resilience.policy_registry import build_default_registry

logger = logging.getLogger(__name__)


# --- Dependency Injection Container (Manual) ---

def create_dependencies() -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.

    Raises:
        ConfigurationError: If required settings are missing.
    """
    # 1. Configuration and logging
    load_configuration()
    setup_logging(
        log_level=parse_log_level(get_config("logging.level", "INFO")),
        log_file=get_config("logging.file"),
        log_format=get_config("logging.format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
    )
    logger.info("Initializing application dependencies...")

    base_url = get_api_base_url()
    if not base_url:
        raise ConfigurationError("api.base_url is not configured (D365CLI_API_BASE_URL).")
    auth = get_auth_settings()

    dependencies: Dict[str, Any] = {}
    dependencies["ui"] = ConsoleDisplay()

    # 2. Infrastructure adapters
    dependencies["token_provider"] = ClientCredentialsTokenProvider(
        authority=auth["authority"],
        client_id=auth["client_id"],
        client_secret=auth["client_secret"],
        scope=auth["scope"],
    )
    dependencies["sender"] = HttpxRequestSender(
        create_http_client(base_url, timeout=get_timeout_seconds()),
        dependencies["token_provider"],
    )

    # 3. Resilience
    dependencies["registry"] = build_default_registry(
        max_attempts=get_max_attempts(),
        backoff_base=get_backoff_base(),
    )
    dependencies["dispatcher"] = RequestDispatcher(
        registry=dependencies["registry"],
        sender=dependencies["sender"],
        observer=LoggingRetryObserver(ui=dependencies["ui"]),
    )

    # 4. Core services
    dependencies["whoami_service"] = WhoAmIService(dependencies["dispatcher"], dependencies["ui"])
    dependencies["request_service"] = RequestService(dependencies["dispatcher"], dependencies["ui"])
    dependencies["command_handler"] = CommandHandler(
        whoami_service=dependencies["whoami_service"],
        request_service=dependencies["request_service"],
        registry=dependencies["registry"],
        ui=dependencies["ui"],
    )
    logger.info("All dependencies initialized successfully.")
    return dependencies


_dependencies: Optional[Dict[str, Any]] = None


def get_dependencies() -> Dict[str, Any]:
    """Returns the wired dependencies, creating them on first use."""
    global _dependencies
    if _dependencies is None:
        try:
            _dependencies = create_dependencies()
        except D365CliError as e:
            logger.error(f"Fatal Error during application initialization: {e}")
            ConsoleDisplay().display_error(f"Application Initialization Failed: {e}")
            raise typer.Exit(code=1)
    return _dependencies


# --- Typer App Definition ---
app = typer.Typer(
    name="d365cli",
    help="d365cli: call a D365 / Dataverse Web API with method-aware retry policies.",
    add_completion=False,
)


# --- Helper for Running Async Commands ---
def run_async(coro: Coroutine[Any, Any, bool]) -> bool:
    """Runs an async command and closes the HTTP client in the same event loop."""

    async def runner() -> bool:
        try:
            return await coro
        finally:
            sender = get_dependencies().get("sender")
            if sender is not None:
                await sender.aclose()

    return asyncio.run(runner())


# --- CLI Commands ---

@app.command()
def whoami():
    """Call WhoAmI to check authentication and connectivity."""
    handler: CommandHandler = get_dependencies()["command_handler"]
    if not run_async(handler.handle_whoami()):
        raise typer.Exit(code=1)


@app.command()
def request(
    method: Annotated[str, typer.Argument(help="HTTP method (GET, POST, PATCH, PUT, DELETE, ...).")],
    path: Annotated[str, typer.Argument(help="Path relative to the API base URL, e.g. 'accounts?$top=3'.")],
    data: Annotated[Optional[str], typer.Option("--data", "-d", help="JSON request body.")] = None,
):
    """Send a request. GET and DELETE are retried, other methods are sent once."""
    handler: CommandHandler = get_dependencies()["command_handler"]
    if not run_async(handler.handle_request(method, path, data)):
        raise typer.Exit(code=1)


@app.command()
def policies():
    """List the registered retry policies."""
    handler: CommandHandler = get_dependencies()["command_handler"]
    handler.handle_policies()


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
