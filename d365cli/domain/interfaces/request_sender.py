"""Interface for the send capability used by the retry executor.

The host application supplies it (an HTTP client carrying auth headers).
The execution core never builds or refreshes credentials itself.
"""

import abc
from typing import Any

from d365cli.domain.models.request import ApiRequest


class RequestSender(abc.ABC):
    """Abstract Base Class for sending one request once."""

    @abc.abstractmethod
    async def send(self, request: ApiRequest) -> Any:
        """Sends the request and returns the raw HTTP response.

        Args:
            request: The request to send.

        Returns:
            A response object exposing ``status_code``, ``headers`` and ``text``.

        Raises:
            httpx.TransportError: On network level failures (connect, read, timeout).
        """
        pass
