"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py) and delegates
the work to the appropriate application services.
"""

import logging
from typing import Optional

from d365cli.core.services.request_service import RequestService
from d365cli.core.services.whoami_service import WhoAmIService
from d365cli.domain.exceptions import D365CliError
from d365cli.domain.interfaces.user_interface import UserInterface
from d365cli.infrastructure.resilience.policy_registry import PolicyRegistry

logger = logging.getLogger(__name__)


class CommandHandler:
    """Handles incoming commands and delegates to appropriate services."""

    def __init__(
        self,
        whoami_service: WhoAmIService,
        request_service: RequestService,
        registry: PolicyRegistry,
        ui: UserInterface,
    ):
        self.whoami_service = whoami_service
        self.request_service = request_service
        self.registry = registry
        self.ui = ui

    async def handle_whoami(self) -> bool:
        """Handles the 'whoami' command. Returns True on success."""
        logger.info("Handling 'whoami' command.")
        try:
            outcome = await self.whoami_service.who_am_i()
        except D365CliError as e:
            logger.error(f"WhoAmI command failed: {e}", exc_info=True)
            self.ui.display_error(f"WhoAmI command failed: {e}")
            return False
        return outcome.is_success

    async def handle_request(self, method: str, path: str, data: Optional[str] = None) -> bool:
        """Handles the 'request' command. Returns True on success."""
        logger.info(f"Handling 'request' command: {method} {path}")
        try:
            outcome = await self.request_service.send(method, path, data)
        except ValueError as e:
            self.ui.display_error(f"Invalid request: {e}")
            return False
        except D365CliError as e:
            logger.error(f"Request command failed: {e}", exc_info=True)
            self.ui.display_error(f"Request command failed: {e}")
            return False
        return outcome.is_success

    def handle_policies(self) -> None:
        """Handles the 'policies' command."""
        self.ui.display_policies(self.registry.policies())
