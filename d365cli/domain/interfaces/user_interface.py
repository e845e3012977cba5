"""Interface for interacting with the user (output only).

Defines the contract for displaying results, errors, warnings and
informational messages, allowing different UI implementations.
"""

import abc
from typing import Any, Iterable, Mapping

from d365cli.domain.models.policy import Policy


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_result(self, result: Mapping[str, Any], **kwargs: Any) -> None:
        """Displays a JSON object returned by the API.

        Args:
            result: The decoded JSON object.
            **kwargs: Additional arguments for formatting (e.g., title).
        """
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user."""
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass

    @abc.abstractmethod
    def display_success(self, message: str, **kwargs: Any) -> None:
        """Displays a success message to the user."""
        pass

    @abc.abstractmethod
    def display_policies(self, policies: Iterable[Policy]) -> None:
        """Lists the registered retry policies."""
        pass
