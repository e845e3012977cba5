import logging
from typing import Any, Iterable, Mapping, Optional

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from d365cli.domain.interfaces.user_interface import UserInterface
from d365cli.domain.models.policy import Policy

logger = logging.getLogger(__name__)

# OData annotations such as '@odata.context' are metadata, not data
ANNOTATION_PREFIX = "@"


def visible_properties(result: Mapping[str, Any]) -> Iterable[tuple]:
    """Yields (name, value) pairs of a Web API result, skipping annotations."""
    for name, value in result.items():
        if not str(name).startswith(ANNOTATION_PREFIX):
            yield name, value


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_result(self, result: Mapping[str, Any], **kwargs: Any) -> None:
        """Displays the properties of a JSON result as a two-column table.

        Args:
            result: The decoded JSON object.
            **kwargs: Additional arguments including:
                - title: Table title (default: "Result")
        """
        title = kwargs.get("title", "Result")
        table = Table(title=title, box=ROUNDED, border_style="cyan", show_header=True)
        table.add_column("Property", style="bold cyan")
        table.add_column("Value", style="white")
        rows = 0
        for name, value in visible_properties(result):
            table.add_row(str(name), "" if value is None else str(value))
            rows += 1
        logger.debug(f"display_result: {rows} properties shown")
        self.console.print(table)

    def display_policies(self, policies: Iterable[Policy]) -> None:
        """Lists registered retry policies."""
        table = Table(title="Retry policies", box=SIMPLE, border_style="cyan")
        table.add_column("Key", style="bold")
        table.add_column("Kind")
        table.add_column("Max attempts", justify="right")
        table.add_column("Backoff")
        for policy in policies:
            table.add_row(
                policy.key,
                policy.kind.value,
                str(policy.max_attempts),
                repr(policy.backoff) if policy.backoff is not None else "-",
            )
        self.console.print(table)

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message with enhanced styling.

        Args:
            error_message: The error message to display.
        """
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.debug(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_success(self, message: str, **kwargs: Any) -> None:
        self.console.print(Text(message, style="bold green"))
